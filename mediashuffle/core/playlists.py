"""Playlists: named, user-ordered collections of media files."""

import logging
import sqlite3

from .db import transaction
from .library import MediaNotFoundError, media_exists
from .models import Playlist, PlaylistItem, PlaylistWithMedia, utc_now

logger = logging.getLogger(__name__)


class PlaylistNotFoundError(LookupError):
    """Raised when a playlist id does not exist."""

    def __init__(self, playlist_id: int) -> None:
        self.playlist_id = playlist_id
        super().__init__(f"Playlist not found: {playlist_id}")


class PlaylistExistsError(ValueError):
    """Raised when a playlist name is already taken."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Playlist already exists: {name}")


class PlaylistMembershipError(ValueError):
    """Raised when a media file is added twice or removed while absent."""


def _require_playlist(conn: sqlite3.Connection, playlist_id: int) -> Playlist:
    row = conn.execute("SELECT * FROM playlists WHERE id = ?", (playlist_id,)).fetchone()
    if row is None:
        logger.warning("Playlist not found: %s", playlist_id)
        raise PlaylistNotFoundError(playlist_id)
    return Playlist(**dict(row))


def _name_taken(conn: sqlite3.Connection, name: str, exclude_id: int | None = None) -> bool:
    row = conn.execute(
        "SELECT id FROM playlists WHERE name = ? AND id IS NOT ?", (name, exclude_id)
    ).fetchone()
    return row is not None


def get_all_playlists(conn: sqlite3.Connection) -> list[Playlist]:
    """Get every playlist, sorted by name."""
    rows = conn.execute("SELECT * FROM playlists ORDER BY name ASC").fetchall()
    return [Playlist(**dict(row)) for row in rows]


def get_playlist(conn: sqlite3.Connection, playlist_id: int) -> Playlist:
    return _require_playlist(conn, playlist_id)


def get_playlist_with_media(conn: sqlite3.Connection, playlist_id: int) -> PlaylistWithMedia:
    """
    Get a playlist and its media in sort_order.

    Soft-deleted files stay in the playlist table but are not returned.
    Opening a playlist stamps its last_accessed time.
    """
    conn.execute(
        "UPDATE playlists SET last_accessed = ? WHERE id = ?", (utc_now(), playlist_id)
    )
    playlist = _require_playlist(conn, playlist_id)
    rows = conn.execute(
        """
        SELECT pm.media_id, pm.sort_order, m.file_name, m.file_path, m.mime_type
        FROM playlist_media pm
        JOIN media_files m ON m.id = pm.media_id
        WHERE pm.playlist_id = ? AND m.is_deleted = 0
        ORDER BY pm.sort_order ASC
        """,
        (playlist_id,),
    ).fetchall()

    logger.info("Retrieved playlist %s with %d items", playlist.name, len(rows))
    return PlaylistWithMedia(
        playlist=playlist, items=[PlaylistItem(**dict(row)) for row in rows]
    )


def create_playlist(
    conn: sqlite3.Connection, name: str, description: str | None = None
) -> Playlist:
    """Create an empty playlist. Names are unique."""
    if _name_taken(conn, name):
        logger.warning("Playlist already exists: %s", name)
        raise PlaylistExistsError(name)

    cursor = conn.execute(
        "INSERT INTO playlists (name, description, created_at) VALUES (?, ?, ?)",
        (name, description or None, utc_now()),
    )
    logger.info("Created playlist: %s", name)
    return _require_playlist(conn, cursor.lastrowid or 0)


def update_playlist(
    conn: sqlite3.Connection,
    playlist_id: int,
    name: str | None = None,
    description: str | None = None,
) -> Playlist:
    """Rename a playlist and/or change its description."""
    _require_playlist(conn, playlist_id)

    fields: list[str] = []
    values: list[object] = []
    if name is not None:
        if _name_taken(conn, name, exclude_id=playlist_id):
            logger.warning("Playlist already exists: %s", name)
            raise PlaylistExistsError(name)
        fields.append("name = ?")
        values.append(name)
    if description is not None:
        fields.append("description = ?")
        values.append(description or None)

    if not fields:
        raise ValueError("No fields to update")

    conn.execute(
        f"UPDATE playlists SET {', '.join(fields)} WHERE id = ?", (*values, playlist_id)
    )
    playlist = _require_playlist(conn, playlist_id)
    logger.info("Updated playlist: %s", playlist.name)
    return playlist


def delete_playlist(conn: sqlite3.Connection, playlist_id: int) -> None:
    """Delete a playlist. Its membership rows go with it; media files stay."""
    playlist = _require_playlist(conn, playlist_id)
    conn.execute("DELETE FROM playlists WHERE id = ?", (playlist_id,))
    logger.info("Deleted playlist: %s", playlist.name)


def add_media_to_playlist(conn: sqlite3.Connection, playlist_id: int, media_id: int) -> int:
    """Append a media file to the end of a playlist. Returns its sort_order."""
    _require_playlist(conn, playlist_id)
    if not media_exists(conn, media_id):
        logger.warning("Media file not found: %s", media_id)
        raise MediaNotFoundError(media_id)

    with transaction(conn, immediate=True) as cursor:
        existing = cursor.execute(
            "SELECT 1 FROM playlist_media WHERE playlist_id = ? AND media_id = ?",
            (playlist_id, media_id),
        ).fetchone()
        if existing is not None:
            raise PlaylistMembershipError(
                f"Media {media_id} already in playlist {playlist_id}"
            )

        row = cursor.execute(
            "SELECT MAX(sort_order) AS max_order FROM playlist_media WHERE playlist_id = ?",
            (playlist_id,),
        ).fetchone()
        sort_order = 0 if row["max_order"] is None else row["max_order"] + 1

        cursor.execute(
            "INSERT INTO playlist_media (playlist_id, media_id, sort_order) VALUES (?, ?, ?)",
            (playlist_id, media_id, sort_order),
        )

    logger.info("Added media %d to playlist %d at position %d", media_id, playlist_id, sort_order)
    return sort_order


def remove_media_from_playlist(
    conn: sqlite3.Connection, playlist_id: int, media_id: int
) -> None:
    _require_playlist(conn, playlist_id)
    cursor = conn.execute(
        "DELETE FROM playlist_media WHERE playlist_id = ? AND media_id = ?",
        (playlist_id, media_id),
    )
    if cursor.rowcount == 0:
        raise PlaylistMembershipError(f"Media {media_id} not in playlist {playlist_id}")
    logger.info("Removed media %d from playlist %d", media_id, playlist_id)


def reorder_playlist(
    conn: sqlite3.Connection, playlist_id: int, media_ids: list[int]
) -> None:
    """
    Replace a playlist's contents with media_ids, in that order.

    Positions are renumbered 0..n-1. Every id must be an existing media
    file and appear once; otherwise nothing changes.
    """
    _require_playlist(conn, playlist_id)
    if len(set(media_ids)) != len(media_ids):
        raise PlaylistMembershipError("Duplicate media ids in reorder")
    for media_id in media_ids:
        if not media_exists(conn, media_id):
            logger.warning("Media file not found: %s", media_id)
            raise MediaNotFoundError(media_id)

    with transaction(conn, immediate=True) as cursor:
        cursor.execute("DELETE FROM playlist_media WHERE playlist_id = ?", (playlist_id,))
        cursor.executemany(
            "INSERT INTO playlist_media (playlist_id, media_id, sort_order) VALUES (?, ?, ?)",
            [(playlist_id, media_id, i) for i, media_id in enumerate(media_ids)],
        )

    logger.info("Reordered playlist %d with %d items", playlist_id, len(media_ids))
