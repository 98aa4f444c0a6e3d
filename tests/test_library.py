"""Tests for the media library query layer."""

import sqlite3
import threading

import pytest

from mediashuffle.core.db import get_connection
from mediashuffle.core.library import (
    MediaNotFoundError,
    TagAlreadyAppliedError,
    add_media_file,
    add_media_files,
    add_tag_to_media,
    get_all_tags,
    get_candidate_media,
    get_media_file,
    get_tags_for_media,
    get_view_history,
    list_folders,
    list_media,
    media_exists,
    record_like,
    record_view,
    remove_tag_from_media,
    set_dislike,
)
from mediashuffle.core.models import MediaSort, MediaType, NewMediaFile


def add(conn, path, **fields):
    return add_media_file(conn, NewMediaFile(file_path=path, **fields))


@pytest.fixture
def library(db_conn):
    """A small library spread over two folders and both media types."""
    ids = {
        "cat": add(db_conn, "/photos/cat.jpg", mime_type="image/jpeg", tags=["pets"]),
        "dog": add(db_conn, "/photos/dog.png", mime_type="image/png", tags=["pets", "outdoor"]),
        "beach": add(db_conn, "/videos/beach.mp4", mime_type="video/mp4", tags=["outdoor"]),
        "party": add(db_conn, "/videos/party.mov", mime_type="video/quicktime"),
    }
    return ids


class TestAddMedia:
    """Tests for inserting media files."""

    def test_derives_folder_and_name(self, db_conn):
        """Test that folder_path and file_name default from file_path."""
        media_id = add(db_conn, "/photos/2024/sunset.jpg")

        media = get_media_file(db_conn, media_id)

        assert media.folder_path == "/photos/2024"
        assert media.file_name == "sunset.jpg"
        assert media.view_count == 0
        assert media.last_viewed is None
        assert media.is_deleted is False

    def test_duplicate_path_rejected(self, db_conn):
        """Test that file_path is unique."""
        add(db_conn, "/photos/a.jpg")

        with pytest.raises(sqlite3.IntegrityError):
            add(db_conn, "/photos/a.jpg")

        count = db_conn.execute("SELECT COUNT(*) FROM media_files").fetchone()[0]
        assert count == 1

    def test_tags_created_once(self, db_conn):
        """Test that repeated tag names share one tag row."""
        first = add(db_conn, "/a.jpg", tags=["x", "y", "x"])
        second = add(db_conn, "/b.jpg", tags=["y"])

        assert [t.name for t in get_tags_for_media(db_conn, first)] == ["x", "y"]
        assert [t.name for t in get_tags_for_media(db_conn, second)] == ["y"]
        assert [t.name for t in get_all_tags(db_conn)] == ["x", "y"]


class TestCandidates:
    """Tests for candidate set filtering."""

    def test_all_media(self, db_conn, library):
        """Test that no filter returns every file."""
        records = get_candidate_media(db_conn)
        assert {r.id for r in records} == set(library.values())

    def test_folder_filter(self, db_conn, library):
        """Test filtering by folder."""
        records = get_candidate_media(db_conn, folder="/photos")
        assert {r.id for r in records} == {library["cat"], library["dog"]}

    def test_type_filter(self, db_conn, library):
        """Test filtering by media type."""
        images = get_candidate_media(db_conn, media_type=MediaType.IMAGE)
        videos = get_candidate_media(db_conn, media_type="video")

        assert {r.id for r in images} == {library["cat"], library["dog"]}
        assert {r.id for r in videos} == {library["beach"], library["party"]}

    def test_tag_filter_uses_or(self, db_conn, library):
        """Test that any matching tag selects a file, without duplicates."""
        records = get_candidate_media(db_conn, tags=["pets", "outdoor"])

        ids = [r.id for r in records]
        assert len(ids) == len(set(ids))
        assert set(ids) == {library["cat"], library["dog"], library["beach"]}

    def test_combined_filters(self, db_conn, library):
        """Test folder, type and tag filters together."""
        records = get_candidate_media(
            db_conn, folder="/photos", media_type=MediaType.IMAGE, tags=["outdoor"]
        )
        assert [r.id for r in records] == [library["dog"]]

    def test_soft_deleted_excluded(self, db_conn, library):
        """Test that soft-deleted files never become candidates."""
        db_conn.execute(
            "UPDATE media_files SET is_deleted = 1 WHERE id = ?", (library["cat"],)
        )

        records = get_candidate_media(db_conn)

        assert library["cat"] not in {r.id for r in records}
        assert not media_exists(db_conn, library["cat"])

    def test_records_carry_ranking_fields(self, db_conn):
        """Test that candidates expose view and like state."""
        media_id = add(db_conn, "/x.jpg", view_count=3, like_count=-1, last_viewed="2024-01-05T00:00:00Z")

        (record,) = get_candidate_media(db_conn)

        assert record.id == media_id
        assert record.view_count == 3
        assert record.like_count == -1
        assert record.last_viewed == "2024-01-05T00:00:00Z"
        assert get_media_file(db_conn, media_id).to_record() == record


class TestInteractions:
    """Tests for views, likes and dislikes."""

    def test_record_view(self, db_conn, library):
        """Test that a view bumps the count, stamps last_viewed and logs history."""
        media_id = library["cat"]

        assert record_view(db_conn, media_id, viewed_at="2024-02-01T10:00:00Z") == 1
        assert record_view(db_conn, media_id, viewed_at="2024-02-02T10:00:00Z") == 2

        media = get_media_file(db_conn, media_id)
        assert media.view_count == 2
        assert media.last_viewed == "2024-02-02T10:00:00Z"

        history = get_view_history(db_conn)
        assert [h.viewed_at for h in history] == [
            "2024-02-02T10:00:00Z",
            "2024-02-01T10:00:00Z",
        ]
        assert history[0].file_name == "cat.jpg"

    def test_view_missing_media(self, db_conn):
        """Test that viewing an unknown id raises and writes nothing."""
        with pytest.raises(MediaNotFoundError):
            record_view(db_conn, 999)

        count = db_conn.execute("SELECT COUNT(*) FROM view_history").fetchone()[0]
        assert count == 0

    def test_like_and_dislike(self, db_conn, library):
        """Test like increments and dislike pins like_count to -1."""
        media_id = library["dog"]

        assert record_like(db_conn, media_id) == 1
        assert record_like(db_conn, media_id) == 2
        assert set_dislike(db_conn, media_id) == -1
        assert get_media_file(db_conn, media_id).like_count == -1

        # Liking again climbs back from the dislike marker
        assert record_like(db_conn, media_id) == 0

    def test_like_missing_media(self, db_conn):
        """Test that liking an unknown id raises."""
        with pytest.raises(MediaNotFoundError):
            record_like(db_conn, 12345)
        with pytest.raises(MediaNotFoundError):
            set_dislike(db_conn, 12345)

    def test_history_limit(self, db_conn, library):
        """Test that history honors its limit."""
        for i in range(5):
            record_view(db_conn, library["party"], viewed_at=f"2024-03-0{i + 1}T00:00:00Z")

        assert len(get_view_history(db_conn, limit=3)) == 3


class TestTags:
    """Tests for tagging media files."""

    def test_add_and_remove_tag(self, db_conn, library):
        """Test adding then removing a tag."""
        tag = add_tag_to_media(db_conn, library["party"], "friends")

        assert [t.name for t in get_tags_for_media(db_conn, library["party"])] == ["friends"]
        assert remove_tag_from_media(db_conn, library["party"], tag.id)
        assert get_tags_for_media(db_conn, library["party"]) == []
        assert not remove_tag_from_media(db_conn, library["party"], tag.id)

    def test_tag_applied_twice(self, db_conn, library):
        """Test that applying the same tag twice is rejected."""
        with pytest.raises(TagAlreadyAppliedError):
            add_tag_to_media(db_conn, library["cat"], "pets")

    def test_tag_missing_media(self, db_conn):
        """Test that tagging an unknown id raises."""
        with pytest.raises(MediaNotFoundError):
            add_tag_to_media(db_conn, 42, "anything")

    def test_remove_tag_missing_media(self, db_conn):
        """Test that untagging an unknown id raises."""
        with pytest.raises(MediaNotFoundError):
            remove_tag_from_media(db_conn, 42, 1)


class TestAddMediaFiles:
    """Tests for inserting a batch of media files."""

    def test_batch_inserts_all(self, db_conn):
        """Test that a batch returns ids in input order."""
        ids = add_media_files(db_conn, [
            NewMediaFile(file_path="/a/1.jpg", tags=["x"]),
            NewMediaFile(file_path="/a/2.jpg", tags=["x"]),
        ])

        assert [get_media_file(db_conn, i).file_name for i in ids] == ["1.jpg", "2.jpg"]
        assert [t.name for t in get_all_tags(db_conn)] == ["x"]

    def test_duplicate_path_rolls_back_batch(self, db_conn):
        """Test that a repeated path in the batch leaves no rows behind."""
        files = [
            NewMediaFile(file_path="/a/1.jpg", tags=["new"]),
            NewMediaFile(file_path="/a/2.jpg"),
            NewMediaFile(file_path="/a/1.jpg"),
        ]

        with pytest.raises(sqlite3.IntegrityError):
            add_media_files(db_conn, files)

        assert db_conn.execute("SELECT COUNT(*) FROM media_files").fetchone()[0] == 0
        assert db_conn.execute("SELECT COUNT(*) FROM tags").fetchone()[0] == 0


class TestConcurrentInteractions:
    """Tests for interactions arriving on separate connections at once."""

    def _hammer(self, db_path, action, media_id, threads=4, calls=50):
        results = []
        errors = []
        lock = threading.Lock()
        barrier = threading.Barrier(threads)

        def worker():
            conn = get_connection(db_path)
            try:
                barrier.wait()
                for _ in range(calls):
                    value = action(conn, media_id)
                    with lock:
                        results.append(value)
            except Exception as e:
                with lock:
                    errors.append(e)
            finally:
                conn.close()

        workers = [threading.Thread(target=worker) for _ in range(threads)]
        for t in workers:
            t.start()
        for t in workers:
            t.join()

        assert errors == []
        return results

    def test_likes_are_not_lost(self, db_path):
        """Test that 4 writers x 50 likes end at like_count 200."""
        conn = get_connection(db_path)
        media_id = add(conn, "/race/like.jpg")

        results = self._hammer(db_path, record_like, media_id)

        assert get_media_file(conn, media_id).like_count == 200
        assert sorted(results) == list(range(1, 201))
        conn.close()

    def test_views_report_their_own_count(self, db_path):
        """Test that each concurrent view returns a distinct new count."""
        conn = get_connection(db_path)
        media_id = add(conn, "/race/view.jpg")

        results = self._hammer(db_path, record_view, media_id, calls=25)

        assert get_media_file(conn, media_id).view_count == 100
        assert sorted(results) == list(range(1, 101))
        assert conn.execute("SELECT COUNT(*) FROM view_history").fetchone()[0] == 100
        conn.close()

    def test_like_resets_imported_negative_count(self, db_conn):
        """Test that liking any disliked value lands on undecided."""
        media_id = add(db_conn, "/neg.jpg", like_count=-5)

        assert record_like(db_conn, media_id) == 0
        assert record_like(db_conn, media_id) == 1


class TestListMedia:
    """Tests for sorted, paged media listings."""

    @pytest.fixture
    def dated(self, db_conn):
        return [
            add(db_conn, "/d/b.jpg", mime_type="image/jpeg", created_date="2024-01-02", view_count=5, tags=["t"]),
            add(db_conn, "/d/a.jpg", mime_type="image/jpeg", created_date="2024-01-03", view_count=1),
            add(db_conn, "/e/c.mp4", mime_type="video/mp4", created_date="2024-01-01", view_count=3),
        ]

    def test_default_sort_newest_first(self, db_conn, dated):
        """Test that created_date descending is the default order."""
        b, a, c = dated
        assert [m.id for m in list_media(db_conn)] == [a, b, c]

    @pytest.mark.parametrize(
        "sort,expected",
        [
            (MediaSort.VIEW_COUNT_ASC, ["a.jpg", "c.mp4", "b.jpg"]),
            (MediaSort.VIEW_COUNT_DESC, ["b.jpg", "c.mp4", "a.jpg"]),
            (MediaSort.FILE_NAME_ASC, ["a.jpg", "b.jpg", "c.mp4"]),
            (MediaSort.CREATED_DATE_ASC, ["c.mp4", "b.jpg", "a.jpg"]),
        ],
    )
    def test_sort_orders(self, db_conn, dated, sort, expected):
        """Test each sort column."""
        assert [m.file_name for m in list_media(db_conn, sort=sort)] == expected

    def test_limit_and_offset(self, db_conn, dated):
        """Test paging through a sorted listing."""
        first = list_media(db_conn, sort="file_name_asc", limit=2)
        rest = list_media(db_conn, sort="file_name_asc", limit=2, offset=2)

        assert [m.file_name for m in first] == ["a.jpg", "b.jpg"]
        assert [m.file_name for m in rest] == ["c.mp4"]

    def test_filters_and_tags_attached(self, db_conn, dated):
        """Test that listing honors candidate filters and returns tags."""
        b, _, _ = dated

        (tagged,) = list_media(db_conn, tags=["t"])
        images = list_media(db_conn, media_type=MediaType.IMAGE)

        assert tagged.id == b
        assert [t.name for t in tagged.tags] == ["t"]
        assert {m.folder_path for m in images} == {"/d"}

    def test_list_folders(self, db_conn, dated):
        """Test distinct folders with their file counts."""
        db_conn.execute("UPDATE media_files SET is_deleted = 1 WHERE id = ?", (dated[2],))

        folders = list_folders(db_conn)

        assert [(f.folder_path, f.media_count) for f in folders] == [("/d", 2)]
