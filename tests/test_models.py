"""Tests for content record models."""

from pressmark.models.content import ContentNode, FileNode, MediaItem, Page, Post, parse_record


class TestParseRecord:
    """Tests for picking the record model from raw data."""

    def test_post(self):
        """Test that posts are parsed as Post."""
        record = parse_record({"__typename": "Post", "id": "cG9zdDox", "content": "<p>Hi</p>"})
        assert isinstance(record, Post)
        assert record.content == "<p>Hi</p>"

    def test_page(self):
        """Test that pages are parsed as Page."""
        assert isinstance(parse_record({"__typename": "Page", "id": "p"}), Page)

    def test_media_item(self):
        """Test media item fields and natural width."""
        record = parse_record(
            {
                "__typename": "MediaItem",
                "id": "m",
                "sourceUrl": "https://site.test/wp-content/uploads/a.jpg",
                "mediaDetails": {"width": 1600, "height": 900, "file": "a.jpg"},
                "localFile": {"id": "f"},
            }
        )
        assert isinstance(record, MediaItem)
        assert record.source_url == "https://site.test/wp-content/uploads/a.jpg"
        assert record.natural_width == 1600
        assert record.local_file is not None
        assert record.local_file.id == "f"

    def test_file(self):
        """Test that File records are parsed as FileNode."""
        record = parse_record({"__typename": "File", "id": "f", "url": "https://x/a.jpg", "path": "/tmp/a.jpg"})
        assert isinstance(record, FileNode)

    def test_unknown_typename(self):
        """Test that other types fall back to the generic record."""
        record = parse_record({"__typename": "Event", "id": "e", "venue": "Hall"})
        assert type(record) is ContentNode
        assert record.typename == "Event"

    def test_missing_typename(self):
        """Test that data without a typename is a generic record."""
        assert type(parse_record({"id": "x"})) is ContentNode


class TestToData:
    """Tests for ContentNode.to_data."""

    def test_round_trip_keeps_unknown_fields(self):
        """Test that a record dumps back to the data it was parsed from."""
        data = {
            "__typename": "Post",
            "id": "cG9zdDox",
            "databaseId": 1,
            "content": "<p>Hi</p>",
            "featuredImage": {"node": {"id": "m", "sourceUrl": "https://site.test/a.jpg"}},
            "categories": {"nodes": [{"name": "News"}]},
        }
        assert parse_record(data).to_data() == data

    def test_unset_fields_are_not_added(self):
        """Test that defaults don't appear in the dump."""
        assert Post(id="p").to_data() == {"id": "p"}

    def test_display_title(self):
        """Test the title fallback."""
        assert Post(id="p", title="Hello").display_title == "Hello"
        assert Post(id="p").display_title == "p"

    def test_media_item_without_details(self):
        """Test natural width when WordPress reported none."""
        assert MediaItem(id="m").natural_width is None
