"""Media library queries: candidate sets, listings, interactions and tags."""

import logging
import sqlite3
from pathlib import PurePath
from typing import Any

from .db import transaction
from .models import (
    Folder,
    MediaFile,
    MediaRecord,
    MediaSort,
    MediaType,
    NewMediaFile,
    Tag,
    ViewHistoryEntry,
    utc_now,
)

logger = logging.getLogger(__name__)

DISLIKE_VALUE = -1


class MediaNotFoundError(LookupError):
    """Raised when a media id does not exist or is soft-deleted."""

    def __init__(self, media_id: int) -> None:
        self.media_id = media_id
        super().__init__(f"Media file not found: {media_id}")


class TagAlreadyAppliedError(ValueError):
    """Raised when a tag is added to a media file that already carries it."""

    def __init__(self, media_id: int, tag_name: str) -> None:
        self.media_id = media_id
        self.tag_name = tag_name
        super().__init__(f"Tag {tag_name!r} already applied to media {media_id}")


def _row_to_tag(row: sqlite3.Row) -> Tag:
    return Tag(id=row["id"], name=row["name"], created_at=row["created_at"])


def _row_to_media_file(row: sqlite3.Row, tags: list[Tag] | None = None) -> MediaFile:
    data: dict[str, Any] = dict(row)
    data["is_deleted"] = bool(data["is_deleted"])
    data["tags"] = tags or []
    return MediaFile(**data)


def media_exists(conn: sqlite3.Connection, media_id: int) -> bool:
    """Check if a non-deleted media file exists."""
    row = conn.execute(
        "SELECT 1 FROM media_files WHERE id = ? AND is_deleted = 0", (media_id,)
    ).fetchone()
    return row is not None


def _require_media(conn: sqlite3.Connection, media_id: int) -> sqlite3.Row:
    row = conn.execute(
        "SELECT * FROM media_files WHERE id = ? AND is_deleted = 0", (media_id,)
    ).fetchone()
    if row is None:
        logger.warning("Media file not found: %s", media_id)
        raise MediaNotFoundError(media_id)
    return row


def _get_or_create_tag(cursor: sqlite3.Cursor, name: str) -> Tag:
    row = cursor.execute("SELECT * FROM tags WHERE name = ?", (name,)).fetchone()
    if row is not None:
        return _row_to_tag(row)

    created_at = utc_now()
    cursor.execute(
        "INSERT INTO tags (name, created_at) VALUES (?, ?)", (name, created_at)
    )
    logger.info("Created tag: %s", name)
    return Tag(id=cursor.lastrowid or 0, name=name, created_at=created_at)


def _insert_media(cursor: sqlite3.Cursor, media: NewMediaFile, now: str) -> int:
    path = PurePath(media.file_path)
    cursor.execute(
        """
        INSERT INTO media_files (
            folder_path, file_name, file_path, file_size, mime_type,
            width, height, created_date, view_count, last_viewed,
            like_count, is_deleted, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
        """,
        (
            media.folder_path or str(path.parent),
            media.file_name or path.name,
            media.file_path,
            media.file_size,
            media.mime_type,
            media.width,
            media.height,
            media.created_date,
            media.view_count,
            media.last_viewed,
            media.like_count,
            now,
            now,
        ),
    )
    media_id = cursor.lastrowid or 0

    for name in dict.fromkeys(media.tags):
        tag = _get_or_create_tag(cursor, name)
        cursor.execute(
            "INSERT INTO media_tags (media_id, tag_id, created_at) VALUES (?, ?, ?)",
            (media_id, tag.id, now),
        )
    return media_id


def add_media_file(conn: sqlite3.Connection, media: NewMediaFile) -> int:
    """Insert a media file and its tags. Returns the new media id."""
    with transaction(conn) as cursor:
        media_id = _insert_media(cursor, media, utc_now())

    logger.info("Added media file %s as id %d", media.file_path, media_id)
    return media_id


def add_media_files(conn: sqlite3.Connection, files: list[NewMediaFile]) -> list[int]:
    """
    Insert several media files in one transaction. Returns the new ids.

    A failure on any file (a duplicate file_path, for instance) rolls back
    the whole batch.
    """
    now = utc_now()
    with transaction(conn) as cursor:
        ids = [_insert_media(cursor, media, now) for media in files]

    logger.info("Added %d media files", len(ids))
    return ids


def get_tags_for_media(conn: sqlite3.Connection, media_id: int) -> list[Tag]:
    """Get all tags applied to a media file, sorted by name."""
    rows = conn.execute(
        """
        SELECT t.id, t.name, t.created_at
        FROM tags t
        JOIN media_tags mt ON t.id = mt.tag_id
        WHERE mt.media_id = ?
        ORDER BY t.name ASC
        """,
        (media_id,),
    ).fetchall()
    return [_row_to_tag(row) for row in rows]


def get_all_tags(conn: sqlite3.Connection) -> list[Tag]:
    """Get every known tag, sorted by name."""
    rows = conn.execute("SELECT * FROM tags ORDER BY name ASC").fetchall()
    return [_row_to_tag(row) for row in rows]


def get_media_file(conn: sqlite3.Connection, media_id: int) -> MediaFile:
    """Get a single media file with its tags."""
    row = _require_media(conn, media_id)
    return _row_to_media_file(row, get_tags_for_media(conn, media_id))


def add_tag_to_media(conn: sqlite3.Connection, media_id: int, tag_name: str) -> Tag:
    """Apply a tag to a media file, creating the tag if needed."""
    _require_media(conn, media_id)

    with transaction(conn) as cursor:
        tag = _get_or_create_tag(cursor, tag_name)
        existing = cursor.execute(
            "SELECT 1 FROM media_tags WHERE media_id = ? AND tag_id = ?",
            (media_id, tag.id),
        ).fetchone()
        if existing is not None:
            logger.warning("Tag %r already applied to media %d", tag_name, media_id)
            raise TagAlreadyAppliedError(media_id, tag_name)

        cursor.execute(
            "INSERT INTO media_tags (media_id, tag_id, created_at) VALUES (?, ?, ?)",
            (media_id, tag.id, utc_now()),
        )

    logger.info("Added tag %r to media %d", tag_name, media_id)
    return tag


def remove_tag_from_media(conn: sqlite3.Connection, media_id: int, tag_id: int) -> bool:
    """Remove a tag from a media file. Returns False if it was not applied."""
    _require_media(conn, media_id)
    cursor = conn.execute(
        "DELETE FROM media_tags WHERE media_id = ? AND tag_id = ?", (media_id, tag_id)
    )
    removed = cursor.rowcount > 0
    if removed:
        logger.info("Removed tag %d from media %d", tag_id, media_id)
    return removed


SORT_COLUMNS = {
    MediaSort.CREATED_DATE_ASC: "m.created_date ASC",
    MediaSort.CREATED_DATE_DESC: "m.created_date DESC",
    MediaSort.VIEW_COUNT_ASC: "m.view_count ASC",
    MediaSort.VIEW_COUNT_DESC: "m.view_count DESC",
    MediaSort.LAST_VIEWED_ASC: "m.last_viewed ASC",
    MediaSort.LAST_VIEWED_DESC: "m.last_viewed DESC",
    MediaSort.LIKE_COUNT_DESC: "m.like_count DESC",
    MediaSort.FILE_NAME_ASC: "m.file_name ASC",
}


def _media_filter(
    folder: str | None,
    media_type: MediaType,
    tags: list[str] | None,
) -> tuple[str, list[Any]]:
    """Build the WHERE clause shared by candidate and listing queries."""
    clause = "m.is_deleted = 0"
    params: list[Any] = []

    if folder:
        clause += " AND m.folder_path = ?"
        params.append(folder)

    if media_type == MediaType.IMAGE:
        clause += " AND m.mime_type LIKE 'image/%'"
    elif media_type == MediaType.VIDEO:
        clause += " AND m.mime_type LIKE 'video/%'"

    if tags:
        placeholders = ",".join("?" for _ in tags)
        clause += f"""
            AND m.id IN (
                SELECT mt.media_id
                FROM media_tags mt
                JOIN tags t ON mt.tag_id = t.id
                WHERE t.name IN ({placeholders})
            )
        """
        params.extend(tags)

    return clause, params


def get_candidate_media(
    conn: sqlite3.Connection,
    folder: str | None = None,
    media_type: MediaType = MediaType.BOTH,
    tags: list[str] | None = None,
) -> list[MediaRecord]:
    """
    Get the candidate set for prioritization.

    Soft-deleted files are always excluded. Tags use OR logic: a file
    matches if it carries any of the given tag names.
    """
    media_type = MediaType(media_type)
    where, params = _media_filter(folder, media_type, tags)
    rows = conn.execute(
        f"""
        SELECT m.id, m.view_count, m.last_viewed, m.like_count
        FROM media_files m
        WHERE {where}
        ORDER BY m.id
        """,
        params,
    ).fetchall()
    logger.debug(
        "Candidate query folder=%s type=%s tags=%s matched %d files",
        folder,
        media_type.value,
        tags,
        len(rows),
    )

    return [MediaRecord(**dict(row)) for row in rows]


def list_media(
    conn: sqlite3.Connection,
    folder: str | None = None,
    media_type: MediaType = MediaType.BOTH,
    tags: list[str] | None = None,
    sort: MediaSort = MediaSort.CREATED_DATE_DESC,
    limit: int = 30,
    offset: int = 0,
) -> list[MediaFile]:
    """
    List media files with their tags, using the candidate filters.

    Ties on the sort column fall back to id so that paging with
    limit/offset is stable.
    """
    media_type = MediaType(media_type)
    sort = MediaSort(sort)
    where, params = _media_filter(folder, media_type, tags)
    rows = conn.execute(
        f"""
        SELECT m.*
        FROM media_files m
        WHERE {where}
        ORDER BY {SORT_COLUMNS[sort]}, m.id ASC
        LIMIT ? OFFSET ?
        """,
        [*params, limit, offset],
    ).fetchall()
    logger.debug("Listed %d media files sorted by %s", len(rows), sort.value)

    return [_row_to_media_file(row, get_tags_for_media(conn, row["id"])) for row in rows]


def list_folders(conn: sqlite3.Connection) -> list[Folder]:
    """List folders that contain non-deleted media, with file counts."""
    rows = conn.execute(
        """
        SELECT folder_path, COUNT(*) AS media_count
        FROM media_files
        WHERE is_deleted = 0
        GROUP BY folder_path
        ORDER BY folder_path ASC
        """
    ).fetchall()
    return [Folder(**dict(row)) for row in rows]


def _read_counts(cursor: sqlite3.Cursor, media_id: int) -> sqlite3.Row:
    return cursor.execute(
        "SELECT file_name, view_count, like_count FROM media_files WHERE id = ?",
        (media_id,),
    ).fetchone()


def record_view(
    conn: sqlite3.Connection, media_id: int, viewed_at: str | None = None
) -> int:
    """Increment view_count, stamp last_viewed and log history. Returns the new count."""
    viewed_at = viewed_at or utc_now()

    with transaction(conn, immediate=True) as cursor:
        cursor.execute(
            """
            UPDATE media_files
            SET view_count = view_count + 1, last_viewed = ?, updated_at = ?
            WHERE id = ? AND is_deleted = 0
            """,
            (viewed_at, viewed_at, media_id),
        )
        if cursor.rowcount == 0:
            logger.warning("Media file not found: %s", media_id)
            raise MediaNotFoundError(media_id)
        cursor.execute(
            "INSERT INTO view_history (media_id, viewed_at) VALUES (?, ?)",
            (media_id, viewed_at),
        )
        row = _read_counts(cursor, media_id)

    logger.info("Recorded view of %s (view_count=%d)", row["file_name"], row["view_count"])
    return row["view_count"]


def record_like(conn: sqlite3.Connection, media_id: int) -> int:
    """
    Increment like_count. Returns the new count.

    A disliked file goes back to undecided (0) rather than counting up
    from an arbitrary negative value.
    """
    with transaction(conn, immediate=True) as cursor:
        cursor.execute(
            """
            UPDATE media_files
            SET like_count = CASE WHEN like_count < 0 THEN 0 ELSE like_count + 1 END,
                updated_at = ?
            WHERE id = ? AND is_deleted = 0
            """,
            (utc_now(), media_id),
        )
        if cursor.rowcount == 0:
            logger.warning("Media file not found: %s", media_id)
            raise MediaNotFoundError(media_id)
        row = _read_counts(cursor, media_id)

    logger.info("Liked %s (like_count=%d)", row["file_name"], row["like_count"])
    return row["like_count"]


def set_dislike(conn: sqlite3.Connection, media_id: int) -> int:
    """Mark a media file as disliked. Returns the new like_count."""
    cursor = conn.execute(
        """
        UPDATE media_files SET like_count = ?, updated_at = ?
        WHERE id = ? AND is_deleted = 0
        """,
        (DISLIKE_VALUE, utc_now(), media_id),
    )
    if cursor.rowcount == 0:
        logger.warning("Media file not found: %s", media_id)
        raise MediaNotFoundError(media_id)
    logger.info("Disliked media %d", media_id)
    return DISLIKE_VALUE


def get_view_history(conn: sqlite3.Connection, limit: int = 20) -> list[ViewHistoryEntry]:
    """Get the most recent views, newest first."""
    rows = conn.execute(
        """
        SELECT vh.id, vh.media_id, vh.viewed_at, m.file_name, m.file_path
        FROM view_history vh
        JOIN media_files m ON vh.media_id = m.id
        WHERE m.is_deleted = 0
        ORDER BY vh.viewed_at DESC, vh.id DESC
        LIMIT ?
        """,
        (limit,),
    ).fetchall()
    return [ViewHistoryEntry(**dict(row)) for row in rows]
