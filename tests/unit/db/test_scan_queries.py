"""Tests for schema setup, library path and scan lifecycle queries."""

import sqlite3

import pytest

from optimarr.db import (
    DatabaseLockedError,
    SCHEMA_VERSION,
    FailureType,
    OriginSystem,
    ScanStatus,
    get_schema_version,
    handle_database_locked,
    initialize_database,
)
from optimarr.db.queries import (
    delete_library_path,
    fail_orphaned_scans,
    finish_scan,
    get_active_scan,
    get_library_path,
    get_library_path_by_path,
    get_scan,
    insert_failed_file,
    insert_library_path,
    insert_scan,
    link_library_path,
    list_failed_files,
    list_library_paths,
    list_scans,
    mark_scan_running,
    request_scan_cancellation,
    update_library_path_stats,
    update_scan_progress,
)


@pytest.fixture
def library_id(db_conn) -> int:
    library_id = insert_library_path(db_conn, "/media/movies", "Movies", "movies")
    db_conn.commit()
    return library_id


class TestSchema:
    """Tests for schema creation."""

    def test_version_recorded(self, db_conn):
        """The schema version is stored in _meta."""
        assert get_schema_version(db_conn) == SCHEMA_VERSION

    def test_initialize_is_idempotent(self, db_conn):
        """Initializing an existing database changes nothing."""
        insert_library_path(db_conn, "/media/tv", "TV")
        db_conn.commit()

        initialize_database(db_conn)

        assert len(list_library_paths(db_conn)) == 1

    def test_empty_database_has_no_version(self):
        """A blank database reports no schema version."""
        conn = sqlite3.connect(":memory:")
        try:
            assert get_schema_version(conn) is None
        finally:
            conn.close()


class TestLibraryPaths:
    """Tests for library path CRUD."""

    def test_insert_and_get(self, db_conn, library_id):
        """Inserted paths can be read back by id and by path."""
        record = get_library_path(db_conn, library_id)

        assert record.path == "/media/movies"
        assert record.name == "Movies"
        assert record.category == "movies"
        assert record.file_count == 0
        assert get_library_path_by_path(db_conn, "/media/movies").id == library_id

    def test_duplicate_path_rejected(self, db_conn, library_id):
        """A root can only be registered once."""
        with pytest.raises(sqlite3.IntegrityError):
            insert_library_path(db_conn, "/media/movies", "Again")

    def test_list_ordered_by_name(self, db_conn):
        """Paths are listed by name, case-insensitively."""
        insert_library_path(db_conn, "/b", "beta")
        insert_library_path(db_conn, "/a", "Alpha")

        assert [p.name for p in list_library_paths(db_conn)] == ["Alpha", "beta"]

    def test_update_stats(self, db_conn, library_id):
        """Scan results are stored on the library path."""
        update_library_path_stats(db_conn, library_id, 3, 3072, "2024-01-01T00:00:00+00:00")

        record = get_library_path(db_conn, library_id)
        assert record.file_count == 3
        assert record.total_size_bytes == 3072
        assert record.last_scanned_at == "2024-01-01T00:00:00+00:00"

    def test_link_to_origin(self, db_conn, library_id):
        """Linking stores the origin system, its id and the sync time."""
        assert link_library_path(
            db_conn, library_id, OriginSystem.SONARR, 12, "2024-02-01T00:00:00+00:00"
        )

        record = get_library_path(db_conn, library_id)
        assert record.origin_system is OriginSystem.SONARR
        assert record.origin_id == 12
        assert record.last_synced_at == "2024-02-01T00:00:00+00:00"
        assert not link_library_path(db_conn, 999, OriginSystem.RADARR, None)

    def test_delete_cascades(self, db_conn, library_id):
        """Deleting a library path removes its scans and failures."""
        scan_id = insert_scan(db_conn, library_id)
        insert_failed_file(db_conn, scan_id, "/media/movies/x", FailureType.DISCOVERY, "denied")

        assert delete_library_path(db_conn, library_id)

        assert get_scan(db_conn, scan_id) is None
        assert list_failed_files(db_conn, scan_id) == []


class TestScanLifecycle:
    """Tests for scan status transitions."""

    def test_new_scan_is_pending(self, db_conn, library_id):
        """Scans start pending and active."""
        scan_id = insert_scan(db_conn, library_id)

        scan = get_scan(db_conn, scan_id)
        assert scan.status is ScanStatus.PENDING
        assert scan.total_files is None
        assert get_active_scan(db_conn, library_id).id == scan_id

    def test_running_then_completed(self, db_conn, library_id):
        """A scan moves pending, running, completed."""
        scan_id = insert_scan(db_conn, library_id)

        assert mark_scan_running(db_conn, scan_id)
        assert get_scan(db_conn, scan_id).started_at is not None
        assert finish_scan(db_conn, scan_id, ScanStatus.COMPLETED)

        scan = get_scan(db_conn, scan_id)
        assert scan.status is ScanStatus.COMPLETED
        assert scan.completed_at is not None
        assert get_active_scan(db_conn, library_id) is None

    def test_terminal_scan_is_immutable(self, db_conn, library_id):
        """Terminal scans reject further transitions and progress."""
        scan_id = insert_scan(db_conn, library_id)
        finish_scan(db_conn, scan_id, ScanStatus.CANCELLED)

        assert not finish_scan(db_conn, scan_id, ScanStatus.COMPLETED)
        assert not mark_scan_running(db_conn, scan_id)
        assert not update_scan_progress(db_conn, scan_id, 5, 0)
        assert not request_scan_cancellation(db_conn, scan_id)
        assert get_scan(db_conn, scan_id).status is ScanStatus.CANCELLED

    def test_finish_requires_terminal_status(self, db_conn, library_id):
        """finish_scan only accepts terminal statuses."""
        scan_id = insert_scan(db_conn, library_id)

        with pytest.raises(ValueError):
            finish_scan(db_conn, scan_id, ScanStatus.RUNNING)

    def test_progress_keeps_total(self, db_conn, library_id):
        """total_files is only written when given."""
        scan_id = insert_scan(db_conn, library_id)
        mark_scan_running(db_conn, scan_id)

        update_scan_progress(db_conn, scan_id, 0, 0, total_files=10)
        update_scan_progress(db_conn, scan_id, 4, 1, current_file="/media/movies/d.mkv")

        scan = get_scan(db_conn, scan_id)
        assert scan.total_files == 10
        assert scan.processed_files == 4
        assert scan.failed_files == 1
        assert scan.current_file == "/media/movies/d.mkv"

    def test_one_active_scan_per_library(self, db_conn, library_id):
        """The database rejects a second pending or running scan of one library path."""
        first = insert_scan(db_conn, library_id)
        mark_scan_running(db_conn, first)
        other_library = insert_library_path(db_conn, "/media/tv", "TV")

        with pytest.raises(sqlite3.IntegrityError):
            insert_scan(db_conn, library_id)
        assert insert_scan(db_conn, other_library)

        finish_scan(db_conn, first, ScanStatus.COMPLETED)
        assert get_active_scan(db_conn, library_id) is None
        assert insert_scan(db_conn, library_id) != first

    def test_cancellation_flag(self, db_conn, library_id):
        """Cancellation requests are recorded on active scans."""
        scan_id = insert_scan(db_conn, library_id)

        assert request_scan_cancellation(db_conn, scan_id)
        assert get_scan(db_conn, scan_id).cancellation_requested

    def test_fail_orphaned_scans(self, db_conn, library_id):
        """Active scans left by a dead process are marked failed."""
        pending = insert_scan(db_conn, library_id)
        other_library = insert_library_path(db_conn, "/media/tv", "TV")
        running = insert_scan(db_conn, other_library)
        mark_scan_running(db_conn, running)
        done = insert_scan(db_conn, other_library)
        finish_scan(db_conn, done, ScanStatus.COMPLETED)

        assert fail_orphaned_scans(db_conn) == 2

        assert get_scan(db_conn, pending).status is ScanStatus.FAILED
        assert get_scan(db_conn, running).error_message == "Scan orphaned by process restart"
        assert get_scan(db_conn, done).status is ScanStatus.COMPLETED

    def test_list_scans_newest_first(self, db_conn, library_id):
        """Scans are listed newest first."""
        first = insert_scan(db_conn, library_id)
        finish_scan(db_conn, first, ScanStatus.FAILED)
        second = insert_scan(db_conn, library_id)

        assert [s.id for s in list_scans(db_conn, library_id)] == [second, first]
        assert [s.id for s in list_scans(db_conn, limit=1)] == [second]


class TestFailedFiles:
    """Tests for failed file entries."""

    def test_repeat_failure_bumps_retry_count(self, db_conn, library_id):
        """A second failure of one path in one scan updates the same row."""
        scan_id = insert_scan(db_conn, library_id)

        first = insert_failed_file(
            db_conn, scan_id, "/media/movies/a.mkv", FailureType.DISCOVERY, "denied"
        )
        second = insert_failed_file(
            db_conn, scan_id, "/media/movies/a.mkv", FailureType.PERSISTENCE, "locked"
        )

        assert first == second
        [failure] = list_failed_files(db_conn, scan_id)
        assert failure.retry_count == 1
        assert failure.error_type is FailureType.PERSISTENCE
        assert failure.message == "locked"

    def test_filter_by_type(self, db_conn, library_id):
        """Failures can be filtered by type."""
        scan_id = insert_scan(db_conn, library_id)
        insert_failed_file(db_conn, scan_id, "/a", FailureType.DISCOVERY, "denied")
        insert_failed_file(db_conn, scan_id, "/b", FailureType.PERSISTENCE, "locked")

        failures = list_failed_files(db_conn, scan_id, FailureType.PERSISTENCE)

        assert [f.path for f in failures] == ["/b"]


class TestDatabaseLocked:
    """Tests for handle_database_locked()."""

    def test_locked_error_converted(self):
        """A locked database surfaces as DatabaseLockedError."""

        @handle_database_locked
        def write():
            raise sqlite3.OperationalError("database is locked")

        with pytest.raises(DatabaseLockedError, match="Database is locked"):
            write()

    def test_other_errors_propagate(self):
        """Other operational errors are not converted."""

        @handle_database_locked
        def write():
            raise sqlite3.OperationalError("no such table: nope")

        with pytest.raises(sqlite3.OperationalError, match="no such table"):
            write()
