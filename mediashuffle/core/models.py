"""Media models shared by the library, the ranking engine and the API layer."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class PrioritizationAlgorithm(str, Enum):
    """Closed set of ordering strategies understood by the ranking engine."""

    RANDOM = "random"
    UNVIEWED_FIRST = "unviewed_first"
    LEAST_VIEWED = "least_viewed"
    MOST_LIKED = "most_liked"
    MOST_VIEWED = "most_viewed"
    OLDEST_FIRST = "oldest_first"


class MediaType(str, Enum):
    """Media type filter applied to candidate queries."""

    IMAGE = "image"
    VIDEO = "video"
    BOTH = "both"


class MediaSort(str, Enum):
    """Column orderings accepted when listing media."""

    CREATED_DATE_ASC = "created_date_asc"
    CREATED_DATE_DESC = "created_date_desc"
    VIEW_COUNT_ASC = "view_count_asc"
    VIEW_COUNT_DESC = "view_count_desc"
    LAST_VIEWED_ASC = "last_viewed_asc"
    LAST_VIEWED_DESC = "last_viewed_desc"
    LIKE_COUNT_DESC = "like_count_desc"
    FILE_NAME_ASC = "file_name_asc"


def utc_now() -> str:
    """Return current UTC time in ISO-8601 format."""
    return datetime.now(timezone.utc).isoformat()


def _normalize_timestamp(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class MediaRecord(BaseModel):
    """The fields of a media item the ranking engine reads."""

    model_config = {"frozen": True}

    id: int
    view_count: int = Field(default=0, ge=0)
    last_viewed: str | None = None
    like_count: int = 0

    @field_validator("last_viewed", mode="before")
    @classmethod
    def _coerce_last_viewed(cls, value: Any) -> Any:
        return _normalize_timestamp(value)

    @property
    def is_disliked(self) -> bool:
        return self.like_count < 0

    @property
    def never_viewed(self) -> bool:
        return self.last_viewed is None


class RankedEntry(BaseModel):
    """A media id and its zero-based presentation position."""

    id: int
    idx: int


class Tag(BaseModel):
    """A tag that can be applied to media files."""

    id: int
    name: str
    created_at: str


class MediaFile(BaseModel):
    """A row of the media_files table."""

    id: int
    folder_path: str
    file_name: str
    file_path: str
    file_size: int | None = None
    mime_type: str | None = None
    width: int | None = None
    height: int | None = None
    created_date: str | None = None
    view_count: int = 0
    last_viewed: str | None = None
    like_count: int = 0
    is_deleted: bool = False
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)
    tags: list[Tag] = Field(default_factory=list)

    def to_record(self) -> MediaRecord:
        """Project this file onto the fields used for prioritization."""
        return MediaRecord(
            id=self.id,
            view_count=self.view_count,
            last_viewed=self.last_viewed,
            like_count=self.like_count,
        )


class NewMediaFile(BaseModel):
    """Payload for importing a media file into the library."""

    file_path: str
    folder_path: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    width: int | None = None
    height: int | None = None
    created_date: str | None = None
    view_count: int = Field(default=0, ge=0)
    last_viewed: str | None = None
    like_count: int = 0
    tags: list[str] = Field(default_factory=list)

    @field_validator("last_viewed", "created_date", mode="before")
    @classmethod
    def _coerce_timestamps(cls, value: Any) -> Any:
        return _normalize_timestamp(value)


class ViewHistoryEntry(BaseModel):
    """A single recorded view, joined with its media file."""

    id: int
    media_id: int
    viewed_at: str
    file_name: str | None = None
    file_path: str | None = None


class Folder(BaseModel):
    """A folder that holds at least one non-deleted media file."""

    folder_path: str
    media_count: int


class Playlist(BaseModel):
    """A named, user-ordered collection of media files."""

    id: int
    name: str
    description: str | None = None
    last_accessed: str | None = None
    created_at: str


class PlaylistItem(BaseModel):
    """A media file at its position within a playlist."""

    media_id: int
    sort_order: int
    file_name: str
    file_path: str
    mime_type: str | None = None


class PlaylistWithMedia(BaseModel):
    playlist: Playlist
    items: list[PlaylistItem] = Field(default_factory=list)
