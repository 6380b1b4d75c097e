"""Pydantic models for WordPress content records."""

from typing import Annotated, Any, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter


class ContentNode(BaseModel):
    """A content record sourced from WPGraphQL.

    Fields the models don't declare are kept as extras so a record survives
    a dump/validate round trip unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    typename: str = Field(default="ContentNode", alias="__typename")
    database_id: int | None = Field(default=None, alias="databaseId")
    title: str | None = None
    link: str | None = None

    def to_data(self) -> dict[str, Any]:
        """Return the JSON-compatible form of this record, as it was received."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)

    @property
    def display_title(self) -> str:
        """Return the title, or the id for untitled records."""
        return self.title if self.title is not None else self.id


class Post(ContentNode):
    """A blog post."""

    typename: str = Field(default="Post", alias="__typename")
    content: str | None = None


class Page(ContentNode):
    """A static page."""

    typename: str = Field(default="Page", alias="__typename")
    content: str | None = None


class MediaDetails(BaseModel):
    """Natural dimensions reported by WordPress for a media item."""

    model_config = ConfigDict(extra="allow")

    width: int | None = None
    height: int | None = None


class LocalFileRef(BaseModel):
    """Reference to the File record holding a media item's downloaded file."""

    id: str


class MediaItem(ContentNode):
    """A media library entry."""

    typename: str = Field(default="MediaItem", alias="__typename")
    source_url: str | None = Field(default=None, alias="sourceUrl")
    mime_type: str | None = Field(default=None, alias="mimeType")
    media_details: MediaDetails | None = Field(default=None, alias="mediaDetails")
    local_file: LocalFileRef | None = Field(default=None, alias="localFile")

    @property
    def natural_width(self) -> int | None:
        """Return the full-size width of the original upload, if known."""
        if self.media_details is None:
            return None
        return self.media_details.width


class FileNode(ContentNode):
    """A file downloaded from the source site and stored locally."""

    typename: str = Field(default="File", alias="__typename")
    url: str
    path: str
    parent_id: str | None = Field(default=None, alias="parent")
    media_type: str | None = Field(default=None, alias="mediaType")
    digest: str | None = None


class FluidImage(BaseModel):
    """Description of a generated set of responsive image derivatives."""

    src: str
    src_set: str
    sizes: str
    aspect_ratio: float
    presentation_width: int
    presentation_height: int
    original_img: str | None = None


KNOWN_TYPENAMES = {"Post", "Page", "MediaItem", "File"}


def _record_kind(value: Any) -> str:
    """Pick the union member for raw data or an already-built model."""
    if isinstance(value, dict):
        typename = value.get("__typename", value.get("typename"))
    else:
        typename = getattr(value, "typename", None)
    return typename if typename in KNOWN_TYPENAMES else "ContentNode"


ContentRecord = Annotated[
    Union[
        Annotated[Post, Tag("Post")],
        Annotated[Page, Tag("Page")],
        Annotated[MediaItem, Tag("MediaItem")],
        Annotated[FileNode, Tag("File")],
        Annotated[ContentNode, Tag("ContentNode")],
    ],
    Discriminator(_record_kind),
]

_record_adapter: TypeAdapter[ContentRecord] = TypeAdapter(ContentRecord)


def parse_record(data: dict[str, Any]) -> ContentNode:
    """Validate raw record data into the matching record model."""
    return _record_adapter.validate_python(data)
