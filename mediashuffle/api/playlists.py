"""API-shaped in-process functions for playlists."""

import sqlite3

from pydantic import BaseModel, Field

from mediashuffle.core.models import Playlist, PlaylistWithMedia
from mediashuffle.core.playlists import (
    add_media_to_playlist,
    create_playlist,
    delete_playlist,
    get_all_playlists,
    get_playlist_with_media,
    remove_media_from_playlist,
    reorder_playlist,
    update_playlist,
)


class CreatePlaylistRequest(BaseModel):
    """Request to new_playlist() API."""

    name: str = Field(min_length=1, max_length=100)
    description: str | None = None


class UpdatePlaylistRequest(BaseModel):
    """Request to edit_playlist() API. Omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None


class ReorderPlaylistRequest(BaseModel):
    media_ids: list[int]


def playlists(conn: sqlite3.Connection) -> list[Playlist]:
    return get_all_playlists(conn)


def new_playlist(conn: sqlite3.Connection, request: CreatePlaylistRequest) -> Playlist:
    return create_playlist(conn, request.name, request.description)


def open_playlist(conn: sqlite3.Connection, playlist_id: int) -> PlaylistWithMedia:
    """Return a playlist with its media in playlist order."""
    return get_playlist_with_media(conn, playlist_id)


def edit_playlist(
    conn: sqlite3.Connection, playlist_id: int, request: UpdatePlaylistRequest
) -> Playlist:
    return update_playlist(
        conn, playlist_id, name=request.name, description=request.description
    )


def remove_playlist(conn: sqlite3.Connection, playlist_id: int) -> None:
    delete_playlist(conn, playlist_id)


def append_to_playlist(conn: sqlite3.Connection, playlist_id: int, media_id: int) -> int:
    """Append a media file to a playlist. Returns its position."""
    return add_media_to_playlist(conn, playlist_id, media_id)


def drop_from_playlist(conn: sqlite3.Connection, playlist_id: int, media_id: int) -> None:
    remove_media_from_playlist(conn, playlist_id, media_id)


def reorder(
    conn: sqlite3.Connection, playlist_id: int, request: ReorderPlaylistRequest
) -> PlaylistWithMedia:
    """Set the full playlist order and return the reordered playlist."""
    reorder_playlist(conn, playlist_id, request.media_ids)
    return get_playlist_with_media(conn, playlist_id)
