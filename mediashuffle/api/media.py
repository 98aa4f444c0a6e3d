"""API-shaped in-process functions for the media browser."""

import logging
import random
import sqlite3
from typing import Any

from pydantic import BaseModel, Field

from mediashuffle.core.library import (
    add_media_files,
    add_tag_to_media,
    get_all_tags,
    get_candidate_media,
    get_media_file,
    get_tags_for_media,
    get_view_history,
    list_folders,
    list_media,
    record_like,
    record_view,
    remove_tag_from_media,
    set_dislike,
)
from mediashuffle.core.models import (
    Folder,
    MediaFile,
    MediaSort,
    MediaType,
    NewMediaFile,
    PrioritizationAlgorithm,
    RankedEntry,
    Tag,
    ViewHistoryEntry,
)
from mediashuffle.core.ranking import DEFAULT_ALGORITHM, randomize

logger = logging.getLogger(__name__)


class RandomizeRequest(BaseModel):
    """Request to randomize_media() API."""

    algorithm: PrioritizationAlgorithm = DEFAULT_ALGORITHM
    exclude_disliked: bool = True
    folder: str | None = None
    media_type: MediaType = MediaType.BOTH
    tags: list[str] = Field(default_factory=list)
    seed: int | None = None


class RandomizeResponse(BaseModel):
    """Response from randomize_media() API."""

    algorithm: PrioritizationAlgorithm
    exclude_disliked: bool
    candidates: int
    items: list[RankedEntry]


class ListMediaRequest(BaseModel):
    """Request to list_media_files() API."""

    folder: str | None = None
    media_type: MediaType = MediaType.BOTH
    tags: list[str] = Field(default_factory=list)
    sort: MediaSort = MediaSort.CREATED_DATE_DESC
    limit: int = Field(default=30, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class ViewResult(BaseModel):
    """Response from view_media() API."""

    media_id: int
    view_count: int


class LikeResult(BaseModel):
    """Response from like_media() and dislike_media() APIs."""

    media_id: int
    like_count: int


def randomize_media(conn: sqlite3.Connection, request: RandomizeRequest) -> RandomizeResponse:
    """
    Order the media matching a folder/type/tag filter.

    Fetches the candidate set from the library and hands it to the ranking
    engine. The order is computed fresh on every call and never stored.
    """
    candidates = get_candidate_media(
        conn,
        folder=request.folder,
        media_type=request.media_type,
        tags=request.tags or None,
    )

    rng = random.Random(request.seed) if request.seed is not None else None
    items = randomize(
        candidates,
        algorithm=request.algorithm,
        exclude_disliked=request.exclude_disliked,
        rng=rng,
    )

    return RandomizeResponse(
        algorithm=request.algorithm,
        exclude_disliked=request.exclude_disliked,
        candidates=len(candidates),
        items=items,
    )


def list_media_files(conn: sqlite3.Connection, request: ListMediaRequest) -> list[MediaFile]:
    """Page through media files in a fixed column order."""
    return list_media(
        conn,
        folder=request.folder,
        media_type=request.media_type,
        tags=request.tags or None,
        sort=request.sort,
        limit=request.limit,
        offset=request.offset,
    )


def folders(conn: sqlite3.Connection) -> list[Folder]:
    return list_folders(conn)


def get_media(conn: sqlite3.Connection, media_id: int) -> MediaFile:
    """Return one media file with its tags."""
    return get_media_file(conn, media_id)


def view_media(conn: sqlite3.Connection, media_id: int) -> ViewResult:
    """Record that a media file was presented."""
    return ViewResult(media_id=media_id, view_count=record_view(conn, media_id))


def like_media(conn: sqlite3.Connection, media_id: int) -> LikeResult:
    """Record a like for a media file."""
    return LikeResult(media_id=media_id, like_count=record_like(conn, media_id))


def dislike_media(conn: sqlite3.Connection, media_id: int) -> LikeResult:
    """Mark a media file as disliked so it drops out of default orderings."""
    return LikeResult(media_id=media_id, like_count=set_dislike(conn, media_id))


def list_tags(conn: sqlite3.Connection, media_id: int | None = None) -> list[Tag]:
    """Return every tag, or only the tags on one media file."""
    if media_id is None:
        return get_all_tags(conn)
    get_media_file(conn, media_id)
    return get_tags_for_media(conn, media_id)


def tag_media(conn: sqlite3.Connection, media_id: int, tag_name: str) -> Tag:
    return add_tag_to_media(conn, media_id, tag_name)


def untag_media(conn: sqlite3.Connection, media_id: int, tag_name: str) -> bool:
    """Remove a tag by name. Returns False if the file did not carry it."""
    for tag in get_tags_for_media(conn, media_id):
        if tag.name == tag_name:
            return remove_tag_from_media(conn, media_id, tag.id)
    get_media_file(conn, media_id)
    return False


def history(conn: sqlite3.Connection, limit: int = 20) -> list[ViewHistoryEntry]:
    """Return the most recently viewed media files."""
    return get_view_history(conn, limit=limit)


def import_media(conn: sqlite3.Connection, entries: list[dict[str, Any]]) -> list[int]:
    """
    Validate and insert media entries. Returns the new media ids.

    All entries are validated before anything is written, and the inserts
    share one transaction: either every entry is imported or none is.
    """
    files = [NewMediaFile.model_validate(entry) for entry in entries]
    ids = add_media_files(conn, files)
    logger.info("Imported %d media files", len(ids))
    return ids
