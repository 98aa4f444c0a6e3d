"""CLI for the Media Shuffle library."""

import json
import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import click
from pydantic import ValidationError

from mediashuffle.api.media import (
    ListMediaRequest,
    RandomizeRequest,
    dislike_media,
    folders,
    get_media,
    history,
    import_media,
    like_media,
    list_media_files,
    list_tags,
    randomize_media,
    tag_media,
    untag_media,
    view_media,
)
from mediashuffle.api.playlists import (
    CreatePlaylistRequest,
    ReorderPlaylistRequest,
    UpdatePlaylistRequest,
    append_to_playlist,
    drop_from_playlist,
    edit_playlist,
    new_playlist,
    open_playlist,
    playlists,
    remove_playlist,
    reorder,
)
from mediashuffle.core.db import DEFAULT_DB_PATH, get_connection, init_db
from mediashuffle.core.library import MediaNotFoundError, TagAlreadyAppliedError
from mediashuffle.core.models import MediaSort, MediaType, PrioritizationAlgorithm
from mediashuffle.core.playlists import (
    PlaylistExistsError,
    PlaylistMembershipError,
    PlaylistNotFoundError,
)
from mediashuffle.kpis.metrics import compute_stats

T = TypeVar("T")

DB_ENVVAR = "MEDIASHUFFLE_DB"

# Errors a user can cause with valid syntax; reported without a traceback.
USER_ERRORS = (
    MediaNotFoundError,
    TagAlreadyAppliedError,
    PlaylistNotFoundError,
    PlaylistExistsError,
    PlaylistMembershipError,
    ValidationError,
)

db_path_option = click.option(
    "--db-path",
    type=click.Path(),
    default=str(DEFAULT_DB_PATH),
    envvar=DB_ENVVAR,
    show_envvar=True,
    help="Path to SQLite database file",
)

media_type_option = click.option(
    "--type",
    "media_type",
    type=click.Choice([t.value for t in MediaType]),
    default=MediaType.BOTH.value,
    help="Media type filter",
)


def _open_db(db_path: str) -> sqlite3.Connection:
    path = Path(db_path)
    if not path.exists():
        raise click.ClickException(f"Database not found: {path}. Run 'init-db' first")
    return get_connection(path)


def _run(db_path: str, action: Callable[[sqlite3.Connection], T]) -> T:
    conn = _open_db(db_path)
    try:
        return action(conn)
    except USER_ERRORS as e:
        raise click.ClickException(str(e)) from e
    finally:
        conn.close()


def _interact(
    db_path: str, action: Callable[[sqlite3.Connection, int], T], media_id: int
) -> T:
    return _run(db_path, lambda conn: action(conn, media_id))


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Media Shuffle CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command("init-db")
@db_path_option
@click.option("--force", is_flag=True, help="Drop existing database if it exists")
def init_db_cmd(db_path: str, force: bool) -> None:
    """Initialize the database schema."""
    path = Path(db_path)

    if path.exists():
        if force:
            path.unlink()
            click.echo(f"Removed existing database: {path}")
        else:
            click.echo(f"Database already exists: {path}")
            click.echo("Use --force to recreate")
            return

    conn = init_db(path)
    conn.close()
    click.echo(f"Initialized database: {path}")


@cli.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@db_path_option
def import_cmd(file: str, db_path: str) -> None:
    """Import media records from a JSON array."""
    try:
        entries = json.loads(Path(file).read_text())
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON in {file}: {e}") from e

    if not isinstance(entries, list):
        raise click.ClickException("Import file must contain a JSON array")

    conn = _open_db(db_path)
    try:
        ids = import_media(conn, entries)
    except ValidationError as e:
        raise click.ClickException(str(e)) from e
    except sqlite3.IntegrityError as e:
        raise click.ClickException(f"Import rejected: {e}") from e
    finally:
        conn.close()

    click.echo(f"Imported {len(ids)} media files")


@cli.command("randomize")
@click.option(
    "--algorithm",
    type=click.Choice([a.value for a in PrioritizationAlgorithm]),
    default=PrioritizationAlgorithm.RANDOM.value,
    help="Prioritization algorithm",
)
@click.option(
    "--include-disliked",
    is_flag=True,
    help="Keep media with a negative like count",
)
@click.option("--folder", type=str, help="Only media in this folder")
@media_type_option
@click.option("--tag", "tags", multiple=True, help="Tag filter (repeatable, OR logic)")
@click.option("--limit", type=int, help="Only print the first N entries")
@click.option("--seed", type=int, help="Random seed for reproducibility")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@db_path_option
def randomize_cmd(
    algorithm: str,
    include_disliked: bool,
    folder: str | None,
    media_type: str,
    tags: tuple[str, ...],
    limit: int | None,
    seed: int | None,
    json_output: bool,
    db_path: str,
) -> None:
    """Print media ids in presentation order."""
    conn = _open_db(db_path)
    try:
        response = randomize_media(
            conn,
            RandomizeRequest(
                algorithm=algorithm,
                exclude_disliked=not include_disliked,
                folder=folder,
                media_type=media_type,
                tags=list(tags),
                seed=seed,
            ),
        )
    finally:
        conn.close()

    items = response.items if limit is None else response.items[:limit]

    if json_output:
        click.echo(json.dumps([item.model_dump() for item in items], indent=2))
        return

    click.echo(
        f"{response.algorithm.value}: {len(response.items)} of "
        f"{response.candidates} candidates"
    )
    for item in items:
        click.echo(f"{item.idx:>6} {item.id:>8}")


@cli.command("list")
@click.option("--folder", type=str, help="Only media in this folder")
@media_type_option
@click.option("--tag", "tags", multiple=True, help="Tag filter (repeatable, OR logic)")
@click.option(
    "--sort",
    type=click.Choice([s.value for s in MediaSort]),
    default=MediaSort.CREATED_DATE_DESC.value,
    help="Sort order",
)
@click.option("--limit", default=30, help="Page size (1-100)")
@click.option("--offset", default=0, help="Number of files to skip")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@db_path_option
def list_cmd(
    folder: str | None,
    media_type: str,
    tags: tuple[str, ...],
    sort: str,
    limit: int,
    offset: int,
    json_output: bool,
    db_path: str,
) -> None:
    """List media files in a fixed sort order."""
    files = _run(
        db_path,
        lambda conn: list_media_files(
            conn,
            ListMediaRequest(
                folder=folder,
                media_type=media_type,
                tags=list(tags),
                sort=sort,
                limit=limit,
                offset=offset,
            ),
        ),
    )

    if json_output:
        click.echo(json.dumps([f.model_dump() for f in files], indent=2))
        return

    if not files:
        click.echo("No media files")
        return

    click.echo(f"{'ID':>8} {'Views':>6} {'Likes':>6} {'File':<50}")
    click.echo("-" * 73)
    for f in files:
        click.echo(f"{f.id:>8} {f.view_count:>6} {f.like_count:>6} {f.file_path:<50}")


@cli.command("folders")
@db_path_option
def folders_cmd(db_path: str) -> None:
    """List folders that contain media."""
    result = _run(db_path, folders)
    if not result:
        click.echo("No folders")
        return
    for folder in result:
        click.echo(f"{folder.media_count:>6} {folder.folder_path}")


@cli.command("show")
@click.argument("media_id", type=int)
@click.option("--json-output", is_flag=True, help="Output as JSON")
@db_path_option
def show_cmd(media_id: int, json_output: bool, db_path: str) -> None:
    """Show one media file with its tags."""
    media = _interact(db_path, get_media, media_id)

    if json_output:
        click.echo(json.dumps(media.model_dump(), indent=2))
        return

    click.echo(f"Media {media.id}: {media.file_path}")
    click.echo(f"  Type: {media.mime_type or '-'}")
    click.echo(f"  Views: {media.view_count} (last {media.last_viewed or 'never'})")
    click.echo(f"  Likes: {media.like_count}")
    click.echo(f"  Tags: {', '.join(t.name for t in media.tags) or '-'}")


@cli.command("tag")
@click.argument("media_id", type=int)
@click.argument("name")
@db_path_option
def tag_cmd(media_id: int, name: str, db_path: str) -> None:
    """Apply a tag to a media file."""
    tag = _run(db_path, lambda conn: tag_media(conn, media_id, name))
    click.echo(f"Media {media_id}: tagged {tag.name!r}")


@cli.command("untag")
@click.argument("media_id", type=int)
@click.argument("name")
@db_path_option
def untag_cmd(media_id: int, name: str, db_path: str) -> None:
    """Remove a tag from a media file."""
    removed = _run(db_path, lambda conn: untag_media(conn, media_id, name))
    if not removed:
        raise click.ClickException(f"Media {media_id} is not tagged {name!r}")
    click.echo(f"Media {media_id}: removed tag {name!r}")


@cli.command("tags")
@click.option("--media", "media_id", type=int, help="Only tags on this media file")
@db_path_option
def tags_cmd(media_id: int | None, db_path: str) -> None:
    """List tags."""
    result = _run(db_path, lambda conn: list_tags(conn, media_id))
    if not result:
        click.echo("No tags")
        return
    for tag in result:
        click.echo(f"{tag.id:>6} {tag.name}")


@cli.command("view")
@click.argument("media_id", type=int)
@db_path_option
def view_cmd(media_id: int, db_path: str) -> None:
    """Record a view of a media file."""
    result = _interact(db_path, view_media, media_id)
    click.echo(f"Media {media_id}: view_count={result.view_count}")


@cli.command("like")
@click.argument("media_id", type=int)
@db_path_option
def like_cmd(media_id: int, db_path: str) -> None:
    """Like a media file."""
    result = _interact(db_path, like_media, media_id)
    click.echo(f"Media {media_id}: like_count={result.like_count}")


@cli.command("dislike")
@click.argument("media_id", type=int)
@db_path_option
def dislike_cmd(media_id: int, db_path: str) -> None:
    """Dislike a media file."""
    result = _interact(db_path, dislike_media, media_id)
    click.echo(f"Media {media_id}: like_count={result.like_count}")


@cli.command("history")
@click.option("--limit", default=20, help="Number of views to show")
@db_path_option
def history_cmd(limit: int, db_path: str) -> None:
    """Show recently viewed media."""
    conn = _open_db(db_path)
    try:
        entries = history(conn, limit=limit)
    finally:
        conn.close()

    if not entries:
        click.echo("No views recorded")
        return

    click.echo(f"{'Media':>8} {'Viewed at':<34} {'File':<40}")
    click.echo("-" * 84)
    for entry in entries:
        click.echo(f"{entry.media_id:>8} {entry.viewed_at:<34} {entry.file_path or '-':<40}")


@cli.command("stats")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@db_path_option
def stats_cmd(json_output: bool, db_path: str) -> None:
    """Compute and display library statistics."""
    conn = _open_db(db_path)
    try:
        stats = compute_stats(conn)
    finally:
        conn.close()

    if json_output:
        click.echo(json.dumps(stats, indent=2))
        return

    counts = stats["counts"]
    click.echo("Library:")
    click.echo(f"  Media: {counts['media']} ({counts['images']} images, {counts['videos']} videos)")
    click.echo(f"  Viewed: {counts['viewed']}")
    click.echo(f"  Never viewed: {counts['never_viewed']}")
    click.echo(f"  Tags: {counts['tags']}")
    click.echo(f"  Playlists: {counts['playlists']}")
    click.echo()
    click.echo("Likes:")
    click.echo(f"  Liked: {stats['likes']['liked']}")
    click.echo(f"  Undecided: {stats['likes']['undecided']}")
    click.echo(f"  Disliked: {stats['likes']['disliked']}")
    click.echo()
    click.echo(f"Total views: {stats['total_views']}")
    click.echo(f"View Gini: {stats['view_gini']:.4f}")
    click.echo(f"Like-state Entropy: {stats['like_state_entropy']:.4f} bits")


@cli.group("playlist")
def playlist_group() -> None:
    """Manage playlists."""


@playlist_group.command("list")
@db_path_option
def playlist_list_cmd(db_path: str) -> None:
    """List playlists."""
    result = _run(db_path, playlists)
    if not result:
        click.echo("No playlists")
        return
    for playlist in result:
        click.echo(f"{playlist.id:>6} {playlist.name}")


@playlist_group.command("create")
@click.argument("name")
@click.option("--description", type=str, help="Playlist description")
@db_path_option
def playlist_create_cmd(name: str, description: str | None, db_path: str) -> None:
    """Create an empty playlist."""
    playlist = _run(
        db_path,
        lambda conn: new_playlist(
            conn, CreatePlaylistRequest(name=name, description=description)
        ),
    )
    click.echo(f"Created playlist {playlist.id}: {playlist.name}")


@playlist_group.command("show")
@click.argument("playlist_id", type=int)
@click.option("--json-output", is_flag=True, help="Output as JSON")
@db_path_option
def playlist_show_cmd(playlist_id: int, json_output: bool, db_path: str) -> None:
    """Show a playlist's media in order."""
    result = _run(db_path, lambda conn: open_playlist(conn, playlist_id))

    if json_output:
        click.echo(json.dumps(result.model_dump(), indent=2))
        return

    click.echo(f"{result.playlist.name} ({len(result.items)} items)")
    if result.playlist.description:
        click.echo(f"  {result.playlist.description}")
    for item in result.items:
        click.echo(f"{item.sort_order:>6} {item.media_id:>8} {item.file_path}")


@playlist_group.command("update")
@click.argument("playlist_id", type=int)
@click.option("--name", type=str, help="New name")
@click.option("--description", type=str, help="New description")
@db_path_option
def playlist_update_cmd(
    playlist_id: int, name: str | None, description: str | None, db_path: str
) -> None:
    """Rename a playlist or change its description."""
    if name is None and description is None:
        raise click.UsageError("Give --name and/or --description")

    playlist = _run(
        db_path,
        lambda conn: edit_playlist(
            conn, playlist_id, UpdatePlaylistRequest(name=name, description=description)
        ),
    )
    click.echo(f"Updated playlist {playlist.id}: {playlist.name}")


@playlist_group.command("delete")
@click.argument("playlist_id", type=int)
@db_path_option
def playlist_delete_cmd(playlist_id: int, db_path: str) -> None:
    """Delete a playlist. Its media files are kept."""
    _run(db_path, lambda conn: remove_playlist(conn, playlist_id))
    click.echo(f"Deleted playlist {playlist_id}")


@playlist_group.command("add")
@click.argument("playlist_id", type=int)
@click.argument("media_id", type=int)
@db_path_option
def playlist_add_cmd(playlist_id: int, media_id: int, db_path: str) -> None:
    """Append a media file to a playlist."""
    position = _run(db_path, lambda conn: append_to_playlist(conn, playlist_id, media_id))
    click.echo(f"Added media {media_id} to playlist {playlist_id} at position {position}")


@playlist_group.command("remove")
@click.argument("playlist_id", type=int)
@click.argument("media_id", type=int)
@db_path_option
def playlist_remove_cmd(playlist_id: int, media_id: int, db_path: str) -> None:
    """Remove a media file from a playlist."""
    _run(db_path, lambda conn: drop_from_playlist(conn, playlist_id, media_id))
    click.echo(f"Removed media {media_id} from playlist {playlist_id}")


@playlist_group.command("reorder")
@click.argument("playlist_id", type=int)
@click.argument("media_ids", type=int, nargs=-1, required=True)
@db_path_option
def playlist_reorder_cmd(playlist_id: int, media_ids: tuple[int, ...], db_path: str) -> None:
    """Set the playlist order to MEDIA_IDS."""
    result = _run(
        db_path,
        lambda conn: reorder(
            conn, playlist_id, ReorderPlaylistRequest(media_ids=list(media_ids))
        ),
    )
    click.echo(
        f"Reordered playlist {playlist_id}: "
        + " ".join(str(item.media_id) for item in result.items)
    )


if __name__ == "__main__":
    cli()
