"""Tests for library statistics."""

import pytest

from mediashuffle.api.media import import_media
from mediashuffle.kpis.metrics import compute_stats, entropy, gini_coefficient


def test_gini_equal_values():
    """Test that equal attention has zero inequality."""
    assert gini_coefficient([3.0, 3.0, 3.0]) == 0.0


def test_gini_concentrated():
    """Test that all attention on one item approaches 1."""
    assert gini_coefficient([0.0, 0.0, 0.0, 12.0]) == pytest.approx(0.75)


def test_gini_degenerate_inputs():
    """Test empty, single and all-zero inputs."""
    assert gini_coefficient([]) == 0.0
    assert gini_coefficient([5.0]) == 0.0
    assert gini_coefficient([0.0, 0.0]) == 0.0


def test_entropy():
    """Test entropy in bits."""
    assert entropy([1, 1]) == pytest.approx(1.0)
    assert entropy([4, 0, 0]) == 0.0
    assert entropy([]) == 0.0


def test_compute_stats(db_conn):
    """Test the full statistics payload."""
    import_media(db_conn, [
        {"file_path": "/a.jpg", "mime_type": "image/jpeg", "view_count": 4, "last_viewed": "2024-01-01T00:00:00Z", "like_count": 2},
        {"file_path": "/b.jpg", "mime_type": "image/jpeg", "like_count": -1},
        {"file_path": "/c.mp4", "mime_type": "video/mp4", "tags": ["clips"]},
    ])

    stats = compute_stats(db_conn)

    assert stats["counts"] == {
        "media": 3,
        "images": 2,
        "videos": 1,
        "viewed": 1,
        "never_viewed": 2,
        "tags": 1,
        "playlists": 0,
    }
    assert stats["likes"] == {"disliked": 1, "undecided": 1, "liked": 1}
    assert stats["total_views"] == 4
    assert stats["view_gini"] == pytest.approx(gini_coefficient([4.0, 0.0, 0.0]))
    assert stats["like_state_entropy"] == pytest.approx(entropy([1, 1, 1]))


def test_compute_stats_empty(db_conn):
    """Test statistics on an empty library."""
    stats = compute_stats(db_conn)

    assert stats["counts"]["media"] == 0
    assert stats["likes"] == {"disliked": 0, "undecided": 0, "liked": 0}
    assert stats["view_gini"] == 0.0
    assert stats["like_state_entropy"] == 0.0


def test_entropy_like_states_even_split():
    """Test that an even dislike/undecided/liked split reaches log2(3) bits."""
    assert entropy([2, 2, 2]) == pytest.approx(1.5849625)


def test_gini_view_counts_one_favourite():
    """Test that one file holding all views of two scores one half."""
    assert gini_coefficient([0.0, 10.0]) == pytest.approx(0.5)
