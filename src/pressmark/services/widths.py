"""Pick the width a responsive image derivative is generated at."""

import re

MAX_WIDTH_CONDITION = re.compile(r"max-width:\s*(\d+(?:\.\d+)?)px", re.IGNORECASE)
SLOT_WIDTH = re.compile(r"(?:^|\)|\s)(\d+(?:\.\d+)?)px\s*$", re.IGNORECASE)


def _to_width(value: str | int | float | None) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        width = int(float(value))
    except (TypeError, ValueError):
        return None
    return width if width > 0 else None


def largest_size_from_sizes(sizes: str) -> int | None:
    """
    Return the largest pixel bound found in a ``sizes`` attribute.

    Each comma separated entry contributes its ``max-width: Npx`` condition,
    or its slot width when that is a smaller px value
    (``(max-width: 600px) 300px`` counts as 300). A bare ``Npx`` entry
    counts as N. Entries without a px bound are ignored.
    """
    largest: int | None = None
    for entry in sizes.split(","):
        condition = MAX_WIDTH_CONDITION.search(entry)
        slot = SLOT_WIDTH.search(entry.strip())

        bound = _to_width(condition.group(1)) if condition else None
        slot_width = _to_width(slot.group(1)) if slot else None

        if bound is None:
            bound = slot_width
        elif slot_width is not None and slot_width < bound:
            bound = slot_width

        if bound is not None and (largest is None or bound > largest):
            largest = bound
    return largest


def html_inferred_width(width: str | int | None, sizes: str | None) -> int | None:
    """Infer a width from the img tag's width attribute, then its sizes attribute."""
    explicit = _to_width(width)
    if explicit is not None:
        return explicit
    if sizes:
        return largest_size_from_sizes(sizes)
    return None


def resolve_image_width(
    *,
    explicit_width: str | int | None = None,
    sizes: str | None = None,
    asset_width: int | None = None,
    fallback_width: int | None = None,
) -> int | None:
    """
    Resolve the target width for one image.

    Args:
        explicit_width: The img tag's width attribute
        sizes: The img tag's sizes attribute
        asset_width: Natural width of the media item, when known
        fallback_width: Configured width used when nothing better is known

    Returns:
        Width in pixels, or None if no signal and no fallback exist
    """
    inferred = html_inferred_width(explicit_width, sizes)
    natural = _to_width(asset_width)

    # Never fall back to a width larger than the original upload
    fallback = _to_width(fallback_width)
    if natural is not None and fallback is not None and natural < fallback:
        fallback = natural

    if inferred is not None:
        if natural is not None and natural < inferred:
            return natural
        return inferred

    return fallback
