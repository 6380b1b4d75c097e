"""Replace inline img tags with responsive image markup."""

import asyncio
import logging
from dataclasses import dataclass

from pressmark.config import Settings
from pressmark.exceptions import DerivativeError
from pressmark.models.content import ContentNode, FileNode, MediaItem
from pressmark.services.derivatives import DerivativeRenderer
from pressmark.services.fragments import decompose_fragments
from pressmark.services.markup import render_responsive_image, to_json_fragment
from pressmark.services.media import MediaResolver, ResolvedMedia
from pressmark.services.node_store import NodeStore
from pressmark.services.reporting import format_log_message
from pressmark.services.scanner import TagMatch, find_image_tags, find_remote_file_urls
from pressmark.services.widths import resolve_image_width

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageReplacement:
    """Rendered markup for one distinct img tag."""

    text: str
    markup: str


def splice_replacements(node_string: str, matches: list[TagMatch], replacements: dict[str, str]) -> str:
    """
    Replace matched tags in a single left-to-right pass.

    Every match whose text has a replacement is swapped, so identical tags
    all get the same markup. Inserted markup is never searched again.
    """
    if not replacements:
        return node_string

    parts: list[str] = []
    cursor = 0
    for match in matches:
        markup = replacements.get(match.text)
        if markup is None:
            continue
        parts.append(node_string[cursor : match.start])
        parts.append(markup)
        cursor = match.end
    parts.append(node_string[cursor:])
    return "".join(parts)


class ImageRewriter:
    """Image filter of the record pipeline."""

    def __init__(
        self,
        settings: Settings,
        resolver: MediaResolver,
        renderer: DerivativeRenderer,
        store: NodeStore,
    ) -> None:
        self.settings = settings
        self.resolver = resolver
        self.renderer = renderer
        self.store = store

    async def replace_images(self, node_string: str, node: ContentNode) -> str:
        """
        Swap every resolvable same-site img tag in ``node_string``.

        Args:
            node_string: Serialized record
            node: The record being processed, used for logging and as download parent

        Returns:
            The serialized record with img tags replaced
        """
        if not self.settings.html.use_responsive_images:
            return node_string

        if not find_remote_file_urls(node_string):
            return node_string

        matches = find_image_tags(node_string, self.settings.base_url)
        if not matches:
            return node_string

        fragments = decompose_fragments(matches)
        resolved = await self.resolver.resolve(fragments, node)
        if not resolved:
            return node_string

        results = await asyncio.gather(
            *(self._build_replacement(text, media, node) for text, media in resolved.items())
        )
        replacements = {result.text: result.markup for result in results if result is not None}

        return splice_replacements(node_string, matches, replacements)

    async def _get_file(self, media: ResolvedMedia, node: ContentNode) -> FileNode | None:
        asset = media.asset
        if isinstance(asset, FileNode):
            return asset

        if asset.local_file is None:
            logger.warning(
                format_log_message(f"{node.typename} {node.id} references media item {asset.id} which has no local file")
            )
            return None

        file_node = await self.store.get_by_id(asset.local_file.id)
        if not isinstance(file_node, FileNode):
            logger.warning(
                format_log_message(f"File {asset.local_file.id} for media item {asset.id} was not found in the store")
            )
            return None
        return file_node

    async def _build_replacement(self, text: str, media: ResolvedMedia, node: ContentNode) -> ImageReplacement | None:
        file_node = await self._get_file(media, node)
        if file_node is None:
            return None

        attributes = media.attributes
        asset_width = media.asset.natural_width if isinstance(media.asset, MediaItem) else None
        width = resolve_image_width(
            explicit_width=attributes.width,
            sizes=attributes.sizes,
            asset_width=asset_width,
            fallback_width=self.settings.html.fallback_image_max_width,
        )
        if width is None:
            logger.debug("No width could be determined for %s", file_node.url)
            return None

        try:
            fluid = await self.renderer.fluid(
                file_node,
                width=width,
                quality=self.settings.html.image_quality,
                path_prefix=self.settings.path_prefix,
            )
        except DerivativeError as e:
            logger.error("%s", e.message)
            logger.warning(
                format_log_message(f"{node.typename} {node.id} couldn't process inline html image {file_node.url}")
            )
            return None

        markup = render_responsive_image(fluid, width=width, css_class=attributes.css_class, alt=attributes.alt)
        return ImageReplacement(text=text, markup=to_json_fragment(markup))
