"""Decompose isolated img tag fragments into their attributes."""

import json
import logging
from dataclasses import dataclass
from html.parser import HTMLParser

from pressmark.services.scanner import TagMatch

logger = logging.getLogger(__name__)

WP_IMAGE_CLASS_MARKER = "wp-image-"


@dataclass(frozen=True)
class FragmentAttributes:
    """Attributes decoded from a single img tag."""

    src: str | None = None
    width: str | None = None
    sizes: str | None = None
    css_class: str | None = None
    alt: str | None = None
    db_id_hint: int | None = None


@dataclass(frozen=True)
class ImageFragment:
    """A located img tag together with its decoded attributes."""

    match: TagMatch
    attributes: FragmentAttributes


class ImgAttributeCollector(HTMLParser):
    """Collects the attributes of the first img tag in a fragment."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=False)
        self.attributes: dict[str, str] | None = None

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == "img" and self.attributes is None:
            self.attributes = {name: value or "" for name, value in attrs}


def get_db_id_hint(attributes: dict[str, str]) -> int | None:
    """
    Find the WordPress database id of the attachment an img tag shows.

    data-id / data-image-id win; otherwise the number at the end of a
    ``wp-image-<id>`` class is used. Zero or unparseable values give None.
    """
    for name in ("data-id", "data-image-id"):
        parsed = _parse_db_id(attributes.get(name))
        if parsed is not None:
            return parsed

    css_class = attributes.get("class")
    if not css_class:
        return None

    wp_image_class = next(
        (class_name for class_name in css_class.split(" ") if WP_IMAGE_CLASS_MARKER in class_name),
        None,
    )
    if wp_image_class is None:
        return None

    return _parse_db_id(wp_image_class.split("-")[-1])


def _parse_db_id(value: str | None) -> int | None:
    if not value:
        return None
    try:
        db_id = int(value.strip())
    except ValueError:
        return None
    return db_id or None


def decompose_fragment(match: TagMatch) -> ImageFragment | None:
    """
    Parse a matched img tag into its attributes.

    Args:
        match: Tag match whose text is still JSON-string escaped

    Returns:
        ImageFragment, or None when the text isn't a decodable img tag
    """
    try:
        html = json.loads(f'"{match.text}"')
    except json.JSONDecodeError:
        logger.debug("Skipping img match that isn't a single JSON string: %.80s", match.text)
        return None

    collector = ImgAttributeCollector()
    collector.feed(html)
    collector.close()

    if collector.attributes is None:
        return None

    attrs = collector.attributes
    attributes = FragmentAttributes(
        src=attrs.get("src") or None,
        width=attrs.get("width"),
        sizes=attrs.get("sizes"),
        css_class=attrs.get("class"),
        alt=attrs.get("alt"),
        db_id_hint=get_db_id_hint(attrs),
    )
    return ImageFragment(match=match, attributes=attributes)


def decompose_fragments(matches: list[TagMatch]) -> list[ImageFragment]:
    """Decompose every match, dropping the ones that don't parse."""
    fragments = []
    for match in matches:
        fragment = decompose_fragment(match)
        if fragment is not None:
            fragments.append(fragment)
    return fragments
