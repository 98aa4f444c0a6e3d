"""Library statistics: view concentration and like-state distribution."""

import math
import sqlite3
from typing import Any


def gini_coefficient(values: list[float]) -> float:
    """
    Gini coefficient of per-file view counts.

    0 means every file has been shown equally often; values near 1 mean
    a handful of files take nearly all views. Empty or all-zero input
    (a library nobody has browsed yet) counts as perfectly even.
    """
    if not values:
        return 0.0

    n = len(values)
    if n == 1:
        return 0.0

    sorted_values = sorted(values)
    cumsum = 0.0
    for i, v in enumerate(sorted_values):
        cumsum += (2 * (i + 1) - n - 1) * v

    mean = sum(values) / n
    if mean == 0:
        return 0.0

    return cumsum / (n * n * mean)


def entropy(counts: list[int]) -> float:
    """
    Shannon entropy, in bits, of files spread over like states.

    With three states (disliked, undecided, liked) the maximum is
    log2(3) ~= 1.585, reached when the library is split evenly. 0 means
    every file sits in one state, typically all undecided.
    """
    total = sum(counts)
    if total == 0:
        return 0.0

    h = 0.0
    for c in counts:
        if c > 0:
            p = c / total
            h -= p * math.log2(p)

    return h


def view_gini(conn: sqlite3.Connection) -> float:
    """
    Calculate Gini coefficient of view_count across the library.

    High values mean a few files receive most of the attention.
    """
    rows = conn.execute(
        "SELECT view_count FROM media_files WHERE is_deleted = 0"
    ).fetchall()
    return gini_coefficient([float(row["view_count"]) for row in rows])


def like_state_counts(conn: sqlite3.Connection) -> dict[str, int]:
    """Count files per like state: disliked, undecided, liked."""
    row = conn.execute(
        """
        SELECT
            COALESCE(SUM(CASE WHEN like_count < 0 THEN 1 ELSE 0 END), 0) AS disliked,
            COALESCE(SUM(CASE WHEN like_count = 0 THEN 1 ELSE 0 END), 0) AS undecided,
            COALESCE(SUM(CASE WHEN like_count > 0 THEN 1 ELSE 0 END), 0) AS liked
        FROM media_files
        WHERE is_deleted = 0
        """
    ).fetchone()
    return {
        "disliked": row["disliked"],
        "undecided": row["undecided"],
        "liked": row["liked"],
    }


def compute_stats(conn: sqlite3.Connection) -> dict[str, Any]:
    """Compute all library statistics."""
    totals = conn.execute(
        """
        SELECT
            COUNT(*) AS total,
            COALESCE(SUM(CASE WHEN mime_type LIKE 'image/%' THEN 1 ELSE 0 END), 0) AS images,
            COALESCE(SUM(CASE WHEN mime_type LIKE 'video/%' THEN 1 ELSE 0 END), 0) AS videos,
            COALESCE(SUM(CASE WHEN last_viewed IS NULL THEN 1 ELSE 0 END), 0) AS never_viewed,
            COALESCE(SUM(view_count), 0) AS total_views
        FROM media_files
        WHERE is_deleted = 0
        """
    ).fetchone()
    tag_count = conn.execute("SELECT COUNT(*) FROM tags").fetchone()[0]
    playlist_count = conn.execute("SELECT COUNT(*) FROM playlists").fetchone()[0]
    like_states = like_state_counts(conn)

    return {
        "counts": {
            "media": totals["total"],
            "images": totals["images"],
            "videos": totals["videos"],
            "viewed": totals["total"] - totals["never_viewed"],
            "never_viewed": totals["never_viewed"],
            "tags": tag_count,
            "playlists": playlist_count,
        },
        "likes": like_states,
        "total_views": totals["total_views"],
        "view_gini": view_gini(conn),
        "like_state_entropy": entropy(list(like_states.values())),
    }
