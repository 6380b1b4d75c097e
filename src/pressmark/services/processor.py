"""Process content records: inline image replacement and link rewriting."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable

from pressmark.config import Settings
from pressmark.exceptions import MediaFetchError, NodeProcessingError, RemoteFileError
from pressmark.models.content import ContentNode
from pressmark.services.images import ImageRewriter
from pressmark.services.references import PendingReferenceSet
from pressmark.services.scanner import find_referenced_media_ids
from pressmark.services.url_rewriter import rewrite_site_links

logger = logging.getLogger(__name__)

NodeStringFilter = Callable[[str, ContentNode], Awaitable[str]]


def serialize_node(node: ContentNode) -> str:
    """Serialize a record to canonical JSON: sorted keys, no whitespace, raw unicode."""
    return json.dumps(node.to_data(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class NodeProcessor:
    """Runs the string filters over one serialized record at a time."""

    def __init__(self, settings: Settings, image_rewriter: ImageRewriter) -> None:
        self.settings = settings
        self.image_rewriter = image_rewriter
        self.filters: list[NodeStringFilter] = [self._replace_images, self._replace_links]

    def find_referenced_image_node_ids(self, node_string: str, node: ContentNode) -> list[str]:
        """
        Find media item ids connected to a record through its fields.

        Nothing is collected when media items are resolved lazily or inline
        image processing is switched off.
        """
        if self.settings.lazy_nodes or not self.settings.html.use_responsive_images:
            return []
        return find_referenced_media_ids(node_string, exclude_id=node.id)

    async def _replace_images(self, node_string: str, node: ContentNode) -> str:
        return await self.image_rewriter.replace_images(node_string, node)

    async def _replace_links(self, node_string: str, node: ContentNode) -> str:
        return rewrite_site_links(node_string, self.settings.base_url, node)

    async def process_node_string(self, node_string: str, node: ContentNode) -> str:
        """Apply every filter in order to a serialized record."""
        for node_string_filter in self.filters:
            node_string = await node_string_filter(node_string, node)
        return node_string

    async def process_node(
        self,
        node: ContentNode,
        referenced_media_ids: PendingReferenceSet | None = None,
    ) -> ContentNode:
        """
        Process one record.

        Args:
            node: The record to process; it is never modified
            referenced_media_ids: Collects media item ids referenced by the record

        Returns:
            A new record if anything changed, otherwise ``node`` itself

        Raises:
            NodeProcessingError: Processing of this record had to be aborted
        """
        node_string = serialize_node(node)

        media_ids = self.find_referenced_image_node_ids(node_string, node)
        if media_ids and referenced_media_ids is not None:
            referenced_media_ids.update(media_ids)

        try:
            processed = await self.process_node_string(node_string, node)
        except MediaFetchError as e:
            raise NodeProcessingError(
                f"Failed to fetch media items for {node.typename} {node.id}: {e.message}",
                node_id=node.id,
            ) from e
        except RemoteFileError as e:
            raise NodeProcessingError(
                f"Failed to download {e.url} for {node.typename} {node.id}: {e.message}",
                node_id=node.id,
            ) from e

        # Only parse if the serialized record changed
        if processed == node_string:
            return node

        logger.debug("Rewrote inline html in %s %s", node.typename, node.id)
        return type(node).model_validate(json.loads(processed))

    async def process_nodes(
        self,
        nodes: list[ContentNode],
        referenced_media_ids: PendingReferenceSet | None = None,
        concurrency: int = 8,
    ) -> list[ContentNode]:
        """Process several records concurrently, keeping their order."""
        semaphore = asyncio.Semaphore(max(concurrency, 1))

        async def _process(node: ContentNode) -> ContentNode:
            async with semaphore:
                return await self.process_node(node, referenced_media_ids)

        return list(await asyncio.gather(*(_process(node) for node in nodes)))


# Global processor instance
_node_processor: NodeProcessor | None = None


async def get_node_processor() -> NodeProcessor:
    """Get the global node processor, wiring up the default services."""
    global _node_processor
    if _node_processor is None:
        from pressmark.config import get_settings
        from pressmark.services.derivatives import get_derivative_renderer
        from pressmark.services.media import MediaResolver
        from pressmark.services.node_store import get_node_store
        from pressmark.services.wordpress import get_wordpress_service

        settings = get_settings()
        wordpress = await get_wordpress_service()
        image_rewriter = ImageRewriter(
            settings,
            resolver=MediaResolver(wordpress, base_url=settings.base_url),
            renderer=get_derivative_renderer(),
            store=await get_node_store(),
        )
        _node_processor = NodeProcessor(settings, image_rewriter)
    return _node_processor


def reset_node_processor() -> None:
    """Reset the global node processor. Useful for testing or config changes."""
    global _node_processor
    _node_processor = None
