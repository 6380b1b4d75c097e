"""Tests for resolving img tags to media items and files."""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from pressmark.exceptions import NodeProcessingError, RemoteFileError, RemoteFileNotFoundError
from pressmark.models.content import FileNode, MediaItem, Post
from pressmark.services.fragments import FragmentAttributes, ImageFragment
from pressmark.services.media import MediaResolver, db_id_to_media_item_id, strip_image_sizes_from_url
from pressmark.services.scanner import TagMatch

UPLOADS = "https://site.test/wp-content/uploads"


def _fragment(src: str | None, db_id_hint: int | None = None, text: str | None = None) -> ImageFragment:
    text = text or f'<img src=\\"{src}\\"/>'
    return ImageFragment(
        match=TagMatch(text=text, start=0, end=len(text)),
        attributes=FragmentAttributes(src=src, db_id_hint=db_id_hint),
    )


@pytest.fixture
def node():
    """Create the record the images were found in."""
    return Post(id="cG9zdDox", databaseId=1, title="Hello", link="https://site.test/hello/")


@pytest.fixture
def wordpress():
    """Create a mock WordPress service that knows no media items."""
    service = MagicMock()
    service.fetch_media_items = AsyncMock(return_value=[])
    service.create_remote_file_node = AsyncMock()
    return service


class TestHelpers:
    """Tests for the URL and id helpers."""

    def test_strip_image_sizes(self):
        """Test that the size suffix of resized copies is removed."""
        assert strip_image_sizes_from_url(f"{UPLOADS}/a-300x200.jpg") == f"{UPLOADS}/a.jpg"
        assert strip_image_sizes_from_url(f"{UPLOADS}/a-300x200.jpg?ver=2") == f"{UPLOADS}/a.jpg?ver=2"

    def test_strip_image_sizes_leaves_other_names(self):
        """Test that names without a trailing size suffix are kept."""
        assert strip_image_sizes_from_url(f"{UPLOADS}/100x100-a.jpg") == f"{UPLOADS}/100x100-a.jpg"
        assert strip_image_sizes_from_url(f"{UPLOADS}/photo-2x.jpg") == f"{UPLOADS}/photo-2x.jpg"

    def test_db_id_to_media_item_id(self):
        """Test the WPGraphQL global id encoding."""
        assert db_id_to_media_item_id(12) == "cG9zdDoxMg=="
        assert db_id_to_media_item_id(None) is None
        assert db_id_to_media_item_id(0) is None


class TestMediaResolver:
    """Tests for MediaResolver.resolve."""

    @pytest.mark.asyncio
    async def test_resolves_resized_copy_to_original(self, wordpress, node):
        """Test that a resized copy matches the media item of the original upload."""
        item = MediaItem(id="m1", sourceUrl=f"{UPLOADS}/a.jpg")
        wordpress.fetch_media_items.return_value = [item]
        fragment = _fragment(f"{UPLOADS}/a-300x200.jpg")

        resolved = await MediaResolver(wordpress).resolve([fragment], node)

        wordpress.fetch_media_items.assert_awaited_once_with(urls=[f"{UPLOADS}/a-300x200.jpg", f"{UPLOADS}/a.jpg"])
        assert resolved[fragment.match.text].asset is item
        assert resolved[fragment.match.text].is_media_item
        wordpress.create_remote_file_node.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_back_to_id_hint(self, wordpress, node):
        """Test that an edited image is still found through its database id."""
        item = MediaItem(id="cG9zdDoxMg==", sourceUrl=f"{UPLOADS}/a-edited.jpg")

        async def fetch(urls=None, ids=None):
            return [item] if ids == ["cG9zdDoxMg=="] else []

        wordpress.fetch_media_items.side_effect = fetch
        fragment = _fragment(f"{UPLOADS}/a.jpg", db_id_hint=12)

        resolved = await MediaResolver(wordpress).resolve([fragment], node)

        assert resolved[fragment.match.text].asset is item

    @pytest.mark.asyncio
    async def test_source_url_wins_over_id_hint(self, wordpress, node):
        """Test that a URL match takes precedence over a conflicting id hint."""
        by_url = MediaItem(id="m-url", sourceUrl=f"{UPLOADS}/a.jpg")
        by_id = MediaItem(id="cG9zdDoxMg==", sourceUrl=f"{UPLOADS}/other.jpg")

        async def fetch(urls=None, ids=None):
            return [by_url] if urls else [by_id]

        wordpress.fetch_media_items.side_effect = fetch
        fragment = _fragment(f"{UPLOADS}/a.jpg", db_id_hint=12)

        resolved = await MediaResolver(wordpress).resolve([fragment], node)

        assert resolved[fragment.match.text].asset is by_url

    @pytest.mark.asyncio
    async def test_skips_id_lookup_when_already_found(self, wordpress, node):
        """Test that hinted ids returned by the URL lookup are not requested again."""
        item = MediaItem(id="cG9zdDoxMg==", sourceUrl=f"{UPLOADS}/a.jpg")
        wordpress.fetch_media_items.return_value = [item]

        await MediaResolver(wordpress).resolve([_fragment(f"{UPLOADS}/a.jpg", db_id_hint=12)], node)

        assert wordpress.fetch_media_items.await_count == 1

    @pytest.mark.asyncio
    async def test_downloads_unknown_images(self, wordpress, node):
        """Test that images without a media item are downloaded once per URL."""
        file_node = FileNode(id="f", url=f"{UPLOADS}/a.jpg", path="/tmp/a.jpg")
        wordpress.create_remote_file_node.return_value = file_node
        first = _fragment(f"{UPLOADS}/a.jpg")
        second = _fragment(f"{UPLOADS}/a.jpg", text=f'<img class=\\"x\\" src=\\"{UPLOADS}/a.jpg\\"/>')

        resolved = await MediaResolver(wordpress).resolve([first, second, first], node)

        wordpress.create_remote_file_node.assert_awaited_once_with(f"{UPLOADS}/a.jpg", parent_node_id=node.id)
        assert resolved[first.match.text].asset is file_node
        assert resolved[second.match.text].asset is file_node
        assert not resolved[first.match.text].is_media_item

    @pytest.mark.asyncio
    async def test_missing_image_is_a_warning(self, wordpress, node, caplog):
        """Test that a 404 is logged with an edit link and the tag left alone."""
        url = f"{UPLOADS}/gone.jpg"
        wordpress.create_remote_file_node.side_effect = RemoteFileNotFoundError("404", url=url, status_code=404)
        fragment = _fragment(url)

        with caplog.at_level(logging.WARNING):
            resolved = await MediaResolver(wordpress, base_url="https://site.test").resolve([fragment], node)

        assert resolved == {}
        assert url in caplog.text
        assert "/wp-admin/post.php?post=1&action=edit" in caplog.text

    @pytest.mark.asyncio
    async def test_other_download_errors_abort(self, wordpress, node):
        """Test that a failed download that isn't a 404 aborts the record."""
        url = f"{UPLOADS}/broken.jpg"
        wordpress.create_remote_file_node.side_effect = RemoteFileError("500", url=url, status_code=500)

        with pytest.raises(NodeProcessingError) as exc_info:
            await MediaResolver(wordpress).resolve([_fragment(url)], node)
        assert exc_info.value.node_id == node.id

    @pytest.mark.asyncio
    async def test_no_fragments(self, wordpress, node):
        """Test that nothing is fetched without fragments."""
        assert await MediaResolver(wordpress).resolve([], node) == {}
        wordpress.fetch_media_items.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fragment_without_src(self, wordpress, node):
        """Test that an img without src and hint stays unresolved."""
        resolved = await MediaResolver(wordpress).resolve([_fragment(None, text="<img alt=\\\"x\\\"/>")], node)

        assert resolved == {}
        wordpress.fetch_media_items.assert_not_awaited()
        wordpress.create_remote_file_node.assert_not_awaited()
