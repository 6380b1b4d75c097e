"""Locate image tags, file URLs and site links inside serialized records.

Everything here works on the literal JSON text of a record. Quotes inside
the HTML are therefore escaped (``src=\\"...\\"``) and the patterns account
for that.
"""

import re
from dataclasses import dataclass

FILE_EXTENSIONS = (
    "jpeg|jpg|png|gif|ico|pdf|doc|docx|ppt|pptx|pps|ppsx|odt|xls|psd|mp3|m4a|ogg|wav|mp4|m4v|mov|wmv|avi|mpg|"
    "ogv|3gp|3g2|svg|bmp|tif|tiff|asf|asx|wm|wmx|divx|flv|qt|mpe|webm|mkv|tt|asc|c|cc|h|csv|tsv|ics|rtx|css|"
    "htm|html|m4b|ra|ram|mid|midi|wax|mka|rtf|js|swf|class|tar|zip|gz|gzip|rar|7z|exe|pot|wri|xla|xlt|xlw|mdb|"
    "mpp|docm|dotx|dotm|xlsm|xlsb|xltx|xltm|xlam|pptm|ppsm|potx|potm|ppam|sldx|sldm|onetoc|onetoc2|onetmp|"
    "onepkg|odp|ods|odg|odc|odb|odf|wp|wpd|key|numbers|pages"
)

# src=\"<url ending in a known file extension>
REMOTE_FILE_SRC_PATTERN = re.compile(
    r'(?:src=\\")('
    r"(?:(?:https?|ftp|file)://|www\.|ftp\.)"
    r"(?:\([-A-Z0-9+&@#/%=~_|$?!:,.]*\)|[-A-Z0-9+&@#/%=~_|$?!:,.])*"
    r"(?:\([-A-Z0-9+&@#/%=~_|$?!:,.]*\)|[A-Z0-9+&@#/%=~_|$])"
    rf"\.(?:{FILE_EXTENSIONS}))"
    r'(?=\\"| |\.)',
    re.IGNORECASE | re.MULTILINE,
)

IMG_TAG_PATTERN = re.compile(r"<img([\w\W]+?)/?>", re.IGNORECASE)

# Media items connected through a field serialize as {"id":"...","sourceUrl":"..."}
REFERENCED_MEDIA_ID_PATTERN = re.compile(r'"id":"([^"]*)","sourceUrl"')

EXCLUDED_LINK_PREFIXES = ("/wp-content", "/wp-admin", "/wp-includes")


@dataclass(frozen=True)
class TagMatch:
    """A raw tag occurrence inside a serialized record."""

    text: str
    start: int
    end: int


@dataclass(frozen=True)
class LinkMatch:
    """An absolute same-site link and the path captured from it."""

    text: str
    path: str


def find_remote_file_urls(node_string: str) -> list[str]:
    """Return every URL-like src value that ends in a known file extension."""
    return [match.group(1) for match in REMOTE_FILE_SRC_PATTERN.finditer(node_string)]


def find_image_tags(node_string: str, base_url: str) -> list[TagMatch]:
    """
    Find img tags hosted on the source site.

    Args:
        node_string: Serialized record
        base_url: Site URL; tags whose text doesn't contain it are skipped

    Returns:
        Matches in document order, duplicates included
    """
    if not base_url:
        return []

    return [
        TagMatch(text=match.group(0), start=match.start(), end=match.end())
        for match in IMG_TAG_PATTERN.finditer(node_string)
        if base_url in match.group(0)
    ]


def site_link_pattern(base_url: str) -> re.Pattern[str]:
    """Build the pattern matching quoted absolute links to the source site."""
    excluded = "|".join(re.escape(prefix) for prefix in EXCLUDED_LINK_PREFIXES)
    return re.compile(
        rf"[\"']{re.escape(base_url)}(?!{excluded})(/[^'\"]+)[\"']",
        re.IGNORECASE | re.MULTILINE,
    )


def find_site_links(node_string: str, base_url: str) -> list[LinkMatch]:
    """Find quoted absolute links to the source site, skipping wp-content/admin/includes."""
    if not base_url:
        return []

    pattern = site_link_pattern(base_url)
    return [LinkMatch(text=match.group(0), path=match.group(1)) for match in pattern.finditer(node_string)]


def find_referenced_media_ids(node_string: str, exclude_id: str | None = None) -> list[str]:
    """Return ids of media items connected to a record, minus the record itself."""
    return [
        media_id
        for media_id in REFERENCED_MEDIA_ID_PATTERN.findall(node_string)
        if media_id != exclude_id
    ]
