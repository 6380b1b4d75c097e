"""WordPress media lookups and remote file downloads."""

import asyncio
import hashlib
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import httpx

from pressmark.config import Settings
from pressmark.exceptions import MediaFetchError, RemoteFileError, RemoteFileNotFoundError
from pressmark.models.content import FileNode, LocalFileRef, MediaItem
from pressmark.services.cache import Cache, get_cache
from pressmark.services.node_store import NodeStore

logger = logging.getLogger(__name__)

MEDIA_ITEM_FIELDS = """
fragment MediaItemFields on MediaItem {
  __typename
  id
  databaseId
  title
  link
  sourceUrl
  mimeType
  mediaDetails {
    width
    height
  }
}
"""

NOT_FOUND_STATUS_CODES = {404, 410}


def file_node_id(url: str) -> str:
    """Return the stable id of the File record for a downloaded URL."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, url))


def _chunks(items: list[str], size: int) -> list[list[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def _dedupe(items: list[str] | None) -> list[str]:
    return list(dict.fromkeys(item for item in items or [] if item))


class WordPressService:
    """Service for fetching media items from WPGraphQL and files from the site."""

    def __init__(
        self,
        settings: Settings,
        store: NodeStore,
        cache: Cache | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.cache = cache or get_cache()
        self._client = client
        self._downloads: dict[str, asyncio.Task[FileNode]] = {}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            auth = None
            if self.settings.has_basic_auth:
                auth = httpx.BasicAuth(self.settings.wp_auth_user or "", self.settings.wp_auth_password or "")
            self._client = httpx.AsyncClient(
                headers={"User-Agent": "pressmark/0.1.0"},
                auth=auth,
                timeout=self.settings.http_timeout_seconds,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL query and return its data payload."""
        client = await self._get_client()

        try:
            response = await client.post(
                self.settings.resolved_graphql_url,
                json={"query": query, "variables": variables},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise MediaFetchError(f"Media item query failed: {e}") from e

        if payload.get("errors"):
            messages = "; ".join(error.get("message", "unknown error") for error in payload["errors"])
            raise MediaFetchError(f"Media item query returned errors: {messages}", details={"errors": payload["errors"]})

        return payload.get("data") or {}

    async def _query_by_source_urls(self, urls: list[str]) -> list[MediaItem]:
        """Look up media items by source URL, one aliased field per URL."""
        declarations = ", ".join(f"$url{index}: ID!" for index in range(len(urls)))
        fields = "\n".join(
            f"  mediaItem{index}: mediaItem(id: $url{index}, idType: SOURCE_URL) {{ ...MediaItemFields }}"
            for index in range(len(urls))
        )
        query = f"query MediaItemsBySourceUrl({declarations}) {{\n{fields}\n}}\n{MEDIA_ITEM_FIELDS}"
        variables = {f"url{index}": url for index, url in enumerate(urls)}

        data = await self._graphql(query, variables)
        return [MediaItem.model_validate(node) for node in data.values() if node]

    async def _query_by_ids(self, ids: list[str]) -> list[MediaItem]:
        """Look up media items by global id."""
        query = (
            "query MediaItemsById($ids: [ID], $first: Int) {\n"
            "  mediaItems(first: $first, where: { in: $ids }) { nodes { ...MediaItemFields } }\n"
            f"}}\n{MEDIA_ITEM_FIELDS}"
        )
        data = await self._graphql(query, {"ids": ids, "first": len(ids)})
        nodes = (data.get("mediaItems") or {}).get("nodes") or []
        return [MediaItem.model_validate(node) for node in nodes if node]

    async def fetch_media_items(
        self,
        urls: list[str] | None = None,
        ids: list[str] | None = None,
    ) -> list[MediaItem]:
        """
        Fetch media items by source URL and/or global id and store them.

        Each unique URL or id is requested at most once; earlier lookups are
        served from the cache. Newly fetched items get their file downloaded
        and linked through ``localFile``.

        Args:
            urls: Candidate source URLs
            ids: Global media item ids

        Returns:
            The media items found, without duplicates
        """
        url_keys = {f"media:url:{url}": url for url in _dedupe(urls)}
        id_keys = {f"media:id:{media_id}": media_id for media_id in _dedupe(ids)}

        cached = await self.cache.get_many([*url_keys, *id_keys])
        missing_urls = [url for key, url in url_keys.items() if key not in cached]
        missing_ids = [media_id for key, media_id in id_keys.items() if key not in cached]

        batch_size = max(self.settings.media_batch_size, 1)
        queries = [self._query_by_source_urls(chunk) for chunk in _chunks(missing_urls, batch_size)]
        queries += [self._query_by_ids(chunk) for chunk in _chunks(missing_ids, batch_size)]
        results = await asyncio.gather(*queries)

        fetched: dict[str, MediaItem] = {}
        for items in results:
            for item in items:
                fetched.setdefault(item.id, item)

        if fetched:
            created = await asyncio.gather(*(self._create_media_item_node(item) for item in fetched.values()))
            fetched = {item.id: item for item in created}
            await self.cache.set_many(self._cache_entries(fetched.values()))

        media_items: dict[str, MediaItem] = {item.id: item for item in cached.values()}
        media_items.update(fetched)
        return list(media_items.values())

    @staticmethod
    def _cache_entries(items: Any) -> dict[str, MediaItem]:
        entries: dict[str, MediaItem] = {}
        for item in items:
            entries[f"media:id:{item.id}"] = item
            if item.source_url:
                entries[f"media:url:{item.source_url}"] = item
        return entries

    async def _create_media_item_node(self, item: MediaItem) -> MediaItem:
        """Download a media item's file, link it and store both records."""
        if item.source_url and item.local_file is None:
            try:
                file_node = await self.create_remote_file_node(item.source_url, parent_node_id=item.id)
            except RemoteFileNotFoundError:
                logger.warning("Media item %s points at a missing file: %s", item.id, item.source_url)
            else:
                item = item.model_copy(update={"local_file": LocalFileRef(id=file_node.id)})

        await self.store.create_node(item)
        return item

    async def create_remote_file_node(self, url: str, parent_node_id: str | None = None) -> FileNode:
        """
        Download a file from the source site and store a File record for it.

        Concurrent requests for the same URL share one download; a file that
        was already downloaded is returned from the store.

        Raises:
            RemoteFileNotFoundError: The server answered 404 or 410
            RemoteFileError: Any other HTTP or transport failure
        """
        node_id = file_node_id(url)

        existing = await self.store.get_by_id(node_id)
        if isinstance(existing, FileNode) and Path(existing.path).exists():
            return existing

        task = self._downloads.get(url)
        if task is None:
            task = asyncio.ensure_future(self._download(url, node_id, parent_node_id))
            self._downloads[url] = task
            task.add_done_callback(lambda _: self._downloads.pop(url, None))
        return await asyncio.shield(task)

    async def _download(self, url: str, node_id: str, parent_node_id: str | None) -> FileNode:
        client = await self._get_client()

        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise RemoteFileError(f"Failed to download {url}: {e}", url=url) from e

        if response.status_code in NOT_FOUND_STATUS_CODES:
            raise RemoteFileNotFoundError(
                f"Received a {response.status_code} when fetching {url}",
                url=url,
                status_code=response.status_code,
            )
        if response.is_error:
            raise RemoteFileError(
                f"Received a {response.status_code} when fetching {url}",
                url=url,
                status_code=response.status_code,
            )

        content = response.content
        digest = hashlib.sha256(content).hexdigest()
        media_type = response.headers.get("content-type", "").split(";")[0].strip() or None
        destination = self._destination_path(url, digest, media_type)

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, lambda: self._write_file(destination, content))

        file_node = FileNode(
            id=node_id,
            url=url,
            path=str(destination),
            parent_id=parent_node_id,
            media_type=media_type,
            digest=digest,
        )
        await self.store.create_node(file_node)
        logger.debug("Downloaded %s to %s", url, destination)
        return file_node

    def _destination_path(self, url: str, digest: str, media_type: str | None) -> Path:
        """Build the local path a download is written to."""
        suffix = Path(urlsplit(url).path).suffix.lower()
        if not suffix and media_type:
            suffix = mimetypes.guess_extension(media_type) or ""
        return Path(self.settings.downloads_path) / f"{digest[:24]}{suffix}"

    @staticmethod
    def _write_file(destination: Path, content: bytes) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(content)


# Global service instance
_wordpress_service: WordPressService | None = None


async def get_wordpress_service() -> WordPressService:
    """Get the global WordPress service instance."""
    global _wordpress_service
    if _wordpress_service is None:
        from pressmark.config import get_settings
        from pressmark.services.node_store import get_node_store

        _wordpress_service = WordPressService(get_settings(), await get_node_store())
    return _wordpress_service


async def shutdown_wordpress_service() -> None:
    """Shutdown the global WordPress service."""
    global _wordpress_service
    if _wordpress_service:
        await _wordpress_service.close()
        _wordpress_service = None
