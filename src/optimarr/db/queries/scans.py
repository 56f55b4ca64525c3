"""Library scan operations.

Terminal scans (completed, failed, cancelled) are never modified: every
UPDATE here is guarded by the active-status predicate and reports whether
a row changed.
"""

import sqlite3

from optimarr.db.types import ACTIVE_SCAN_STATUSES, LibraryScanRecord, ScanStatus

from .helpers import _row_to_scan, utc_now_iso

_ACTIVE = tuple(s.value for s in ACTIVE_SCAN_STATUSES)
_ACTIVE_PREDICATE = f"status IN ({', '.join('?' for _ in _ACTIVE)})"


def insert_scan(
    conn: sqlite3.Connection,
    library_path_id: int,
    status: ScanStatus = ScanStatus.PENDING,
) -> int:
    """Insert a new scan row.

    Returns:
        The ID of the inserted scan.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        "INSERT INTO library_scans (library_path_id, status) VALUES (?, ?)",
        (library_path_id, status.value),
    )
    return cursor.lastrowid


def get_scan(conn: sqlite3.Connection, scan_id: int) -> LibraryScanRecord | None:
    """Get a scan by ID."""
    row = conn.execute(
        "SELECT * FROM library_scans WHERE id = ?", (scan_id,)
    ).fetchone()
    return _row_to_scan(row) if row else None


def get_active_scan(
    conn: sqlite3.Connection, library_path_id: int
) -> LibraryScanRecord | None:
    """Get the pending or running scan of a library path, if any."""
    row = conn.execute(
        f"""
        SELECT * FROM library_scans
        WHERE library_path_id = ? AND {_ACTIVE_PREDICATE}
        ORDER BY id DESC LIMIT 1
        """,
        (library_path_id, *_ACTIVE),
    ).fetchone()
    return _row_to_scan(row) if row else None


def mark_scan_running(
    conn: sqlite3.Connection, scan_id: int, started_at: str | None = None
) -> bool:
    """Move a pending scan to running.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        UPDATE library_scans SET status = ?, started_at = ?
        WHERE id = ? AND status = ?
        """,
        (
            ScanStatus.RUNNING.value,
            started_at or utc_now_iso(),
            scan_id,
            ScanStatus.PENDING.value,
        ),
    )
    return cursor.rowcount > 0


def update_scan_progress(
    conn: sqlite3.Connection,
    scan_id: int,
    processed_files: int,
    failed_files: int,
    current_file: str | None = None,
    files_per_second: float | None = None,
    total_files: int | None = None,
) -> bool:
    """Update the counters of an active scan.

    ``total_files`` is only written when given, so it can be set once
    discovery has finished.

    Returns:
        False if the scan does not exist or is already terminal.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        f"""
        UPDATE library_scans
        SET processed_files = ?,
            failed_files = ?,
            current_file = ?,
            files_per_second = ?,
            total_files = COALESCE(?, total_files)
        WHERE id = ? AND {_ACTIVE_PREDICATE}
        """,
        (
            processed_files,
            failed_files,
            current_file,
            files_per_second,
            total_files,
            scan_id,
            *_ACTIVE,
        ),
    )
    return cursor.rowcount > 0


def finish_scan(
    conn: sqlite3.Connection,
    scan_id: int,
    status: ScanStatus,
    error_message: str | None = None,
    completed_at: str | None = None,
) -> bool:
    """Move an active scan to a terminal status.

    Returns:
        False if the scan does not exist or was already terminal.

    Raises:
        ValueError: If status is not terminal.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    if not status.is_terminal:
        raise ValueError(f"{status.value} is not a terminal scan status")
    cursor = conn.execute(
        f"""
        UPDATE library_scans
        SET status = ?, completed_at = ?, error_message = ?, current_file = NULL
        WHERE id = ? AND {_ACTIVE_PREDICATE}
        """,
        (status.value, completed_at or utc_now_iso(), error_message, scan_id, *_ACTIVE),
    )
    return cursor.rowcount > 0


def request_scan_cancellation(conn: sqlite3.Connection, scan_id: int) -> bool:
    """Set the cancellation flag on an active scan.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        f"""
        UPDATE library_scans SET cancellation_requested = 1
        WHERE id = ? AND {_ACTIVE_PREDICATE}
        """,
        (scan_id, *_ACTIVE),
    )
    return cursor.rowcount > 0


def list_scans(
    conn: sqlite3.Connection,
    library_path_id: int | None = None,
    limit: int = 50,
) -> list[LibraryScanRecord]:
    """List scans, newest first, optionally for one library path."""
    if library_path_id is None:
        rows = conn.execute(
            "SELECT * FROM library_scans ORDER BY id DESC LIMIT ?", (limit,)
        ).fetchall()
    else:
        rows = conn.execute(
            """
            SELECT * FROM library_scans WHERE library_path_id = ?
            ORDER BY id DESC LIMIT ?
            """,
            (library_path_id, limit),
        ).fetchall()
    return [_row_to_scan(row) for row in rows]


def fail_orphaned_scans(
    conn: sqlite3.Connection,
    message: str = "Scan orphaned by process restart",
    completed_at: str | None = None,
) -> int:
    """Mark every pending or running scan as failed.

    Used at startup: progress is in-memory only, so an active scan found in
    the database belongs to a process that no longer exists.

    Returns:
        Number of scans marked failed.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        f"""
        UPDATE library_scans
        SET status = ?, completed_at = ?, error_message = ?, current_file = NULL
        WHERE {_ACTIVE_PREDICATE}
        """,
        (ScanStatus.FAILED.value, completed_at or utc_now_iso(), message, *_ACTIVE),
    )
    return cursor.rowcount
