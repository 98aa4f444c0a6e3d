"""Pytest fixtures for tests."""

import tempfile
from pathlib import Path

import pytest

from mediashuffle.core.db import init_db
from mediashuffle.core.models import MediaRecord


@pytest.fixture
def db_path():
    """Path to a fresh, initialized temporary database."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = Path(f.name)
    path.unlink()

    init_db(path).close()

    yield path

    path.unlink(missing_ok=True)
    # Also remove WAL and SHM files
    Path(str(path) + "-wal").unlink(missing_ok=True)
    Path(str(path) + "-shm").unlink(missing_ok=True)


@pytest.fixture
def db_conn(db_path):
    """Create a temporary database for testing."""
    conn = init_db(db_path)
    yield conn
    conn.close()


@pytest.fixture
def make_record():
    """Factory for media records with neutral defaults."""

    def _make(id: int = 1, **overrides) -> MediaRecord:
        fields = {"id": id, "view_count": 0, "last_viewed": None, "like_count": 0}
        fields.update(overrides)
        return MediaRecord(**fields)

    return _make
