"""Resolve inline img tags to media items or downloaded files."""

import asyncio
import base64
import logging
import re
from dataclasses import dataclass

from pressmark.exceptions import NodeProcessingError, RemoteFileError, RemoteFileNotFoundError
from pressmark.models.content import ContentNode, FileNode, MediaItem
from pressmark.services.fragments import FragmentAttributes, ImageFragment
from pressmark.services.reporting import missing_image_message
from pressmark.services.wordpress import WordPressService

logger = logging.getLogger(__name__)

# WordPress names resized copies <name>-<width>x<height>.<ext>
IMAGE_SIZES_PATTERN = re.compile(r"-\d+x\d+(?=\.[A-Za-z0-9]+(?:[?#].*)?$)")


def strip_image_sizes_from_url(url: str) -> str:
    """Turn the URL of a resized copy into the URL of the original upload."""
    return IMAGE_SIZES_PATTERN.sub("", url, count=1)


def db_id_to_media_item_id(db_id: int | None) -> str | None:
    """Encode a database id as the WPGraphQL global id of a media item."""
    if not db_id:
        return None
    return base64.b64encode(f"post:{db_id}".encode()).decode("ascii")


@dataclass(frozen=True)
class ResolvedMedia:
    """The media item or bare file an img tag was resolved to."""

    asset: MediaItem | FileNode
    attributes: FragmentAttributes

    @property
    def is_media_item(self) -> bool:
        return isinstance(self.asset, MediaItem)


class MediaResolver:
    """Maps img tag fragments to media items, downloading what WordPress doesn't know."""

    def __init__(self, wordpress: WordPressService, base_url: str = "") -> None:
        self.wordpress = wordpress
        self.base_url = base_url

    async def resolve(self, fragments: list[ImageFragment], node: ContentNode) -> dict[str, ResolvedMedia]:
        """
        Resolve fragments found in ``node``.

        Source URL matches win over id hint matches. Images WordPress has no
        media item for are downloaded directly; a 404 there is logged and the
        tag left unresolved.

        Args:
            fragments: Decomposed img tags, duplicates allowed
            node: The record the tags were found in

        Returns:
            Mapping of raw tag text to its resolution

        Raises:
            NodeProcessingError: A direct download failed for a reason other than not found
        """
        unique: dict[str, FragmentAttributes] = {}
        for fragment in fragments:
            unique.setdefault(fragment.match.text, fragment.attributes)

        if not unique:
            return {}

        candidate_urls = list(
            dict.fromkeys(
                url
                for attributes in unique.values()
                if attributes.src
                for url in (attributes.src, strip_image_sizes_from_url(attributes.src))
            )
        )
        by_url = await self.wordpress.fetch_media_items(urls=candidate_urls) if candidate_urls else []

        # Images edited in the media library get a new source URL, the id hint still finds them
        fetched_ids = {item.id for item in by_url}
        hinted_ids: list[str] = []
        for attributes in unique.values():
            media_id = db_id_to_media_item_id(attributes.db_id_hint)
            if media_id and media_id not in fetched_ids and media_id not in hinted_ids:
                hinted_ids.append(media_id)
        by_id = await self.wordpress.fetch_media_items(ids=hinted_ids) if hinted_ids else []

        items_by_source_url: dict[str, MediaItem] = {}
        items_by_id: dict[str, MediaItem] = {}
        for item in [*by_url, *by_id]:
            if item.source_url:
                items_by_source_url.setdefault(item.source_url, item)
            items_by_id.setdefault(item.id, item)

        resolved: dict[str, ResolvedMedia] = {}
        unresolved: dict[str, list[str]] = {}
        for text, attributes in unique.items():
            item = self._match_media_item(attributes, items_by_source_url, items_by_id)
            if item is not None:
                resolved[text] = ResolvedMedia(asset=item, attributes=attributes)
            elif attributes.src:
                unresolved.setdefault(attributes.src, []).append(text)

        if unresolved:
            urls = list(unresolved)
            files = await asyncio.gather(*(self._download(url, node) for url in urls))
            for url, file_node in zip(urls, files):
                if file_node is None:
                    continue
                for text in unresolved[url]:
                    resolved[text] = ResolvedMedia(asset=file_node, attributes=unique[text])

        return resolved

    @staticmethod
    def _match_media_item(
        attributes: FragmentAttributes,
        items_by_source_url: dict[str, MediaItem],
        items_by_id: dict[str, MediaItem],
    ) -> MediaItem | None:
        if attributes.src:
            for url in (attributes.src, strip_image_sizes_from_url(attributes.src)):
                if url in items_by_source_url:
                    return items_by_source_url[url]

        media_id = db_id_to_media_item_id(attributes.db_id_hint)
        if media_id is not None:
            return items_by_id.get(media_id)

        return None

    async def _download(self, url: str, node: ContentNode) -> FileNode | None:
        try:
            return await self.wordpress.create_remote_file_node(url, parent_node_id=node.id)
        except RemoteFileNotFoundError:
            logger.warning(missing_image_message(node, url, self.base_url))
            return None
        except RemoteFileError as e:
            raise NodeProcessingError(
                f"Failed to fetch inline image {url} for {node.typename} {node.id}: {e.message}",
                node_id=node.id,
            ) from e
