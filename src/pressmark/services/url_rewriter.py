"""URL rewriting for absolute links to the source site in serialized records."""

import logging
import re

from pressmark.models.content import ContentNode
from pressmark.services.reporting import format_log_message
from pressmark.services.scanner import LinkMatch, find_site_links

logger = logging.getLogger(__name__)

_QUOTES_AND_BACKSLASHES = re.compile(r"['\"\\]")
_PATH_CONTINUES = r"(?![\w/%~-])"


def build_link_substitution(link: LinkMatch, base_url: str) -> tuple[str, str]:
    """
    Turn a matched link into an (absolute URL, relative path) pair.

    Quotes and the JSON escaping backslashes are stripped from both.

    Raises:
        ValueError: The cleaned values don't form a same-site URL and a root-relative path
    """
    absolute = _QUOTES_AND_BACKSLASHES.sub("", link.text)
    relative = link.path.replace("\\", "")

    if not relative.startswith("/"):
        raise ValueError(f"Not a usable relative path: {link.path!r}")
    if not absolute.lower().startswith(base_url.lower()):
        raise ValueError(f"Link {absolute!r} is not under {base_url!r}")

    return absolute, relative


def rewrite_site_links(node_string: str, base_url: str, node: ContentNode | None = None) -> str:
    """
    Rewrite absolute links to the source site as root-relative paths.

    Args:
        node_string: Serialized record
        base_url: Site URL without trailing slash
        node: Record being processed, for log messages

    Returns:
        Serialized record with every occurrence of a matched link replaced
    """
    links = find_site_links(node_string, base_url)
    if not links:
        return node_string  # Fast path: no links

    replacements: dict[str, str] = {}
    for link in links:
        if not link.path:
            continue
        try:
            absolute, relative = build_link_substitution(link, base_url)
        except ValueError as e:
            where = f"{node.typename} {node.id}" if node is not None else "record"
            logger.warning(format_log_message(f"Failed to process inline html links in {where}: {e}"))
            continue
        replacements.setdefault(absolute, relative)

    if not replacements:
        return node_string

    # Longest first, and never inside a longer path (e.g. /wp inside /wp-content/...)
    alternatives = "|".join(re.escape(absolute) for absolute in sorted(replacements, key=len, reverse=True))
    pattern = re.compile(f"(?:{alternatives}){_PATH_CONTINUES}")
    return pattern.sub(lambda match: replacements[match.group(0)], node_string)
