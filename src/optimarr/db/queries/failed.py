"""Failed file operations.

A path that fails again within the same scan bumps ``retry_count`` on its
existing row instead of adding another.
"""

import sqlite3

from optimarr.db.types import FailedFileRecord, FailureType

from .helpers import _row_to_failed_file, utc_now_iso


def insert_failed_file(
    conn: sqlite3.Connection,
    scan_id: int,
    path: str,
    error_type: FailureType,
    message: str,
    created_at: str | None = None,
) -> int:
    """Record a failure for a path within a scan.

    Returns:
        The ID of the failed file row.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        INSERT INTO failed_files (scan_id, path, error_type, message, created_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(scan_id, path) DO UPDATE SET
            error_type = excluded.error_type,
            message = excluded.message,
            retry_count = failed_files.retry_count + 1
        RETURNING id
        """,
        (scan_id, path, error_type.value, message, created_at or utc_now_iso()),
    )
    return cursor.fetchone()[0]


def list_failed_files(
    conn: sqlite3.Connection,
    scan_id: int,
    error_type: FailureType | None = None,
) -> list[FailedFileRecord]:
    """List the failures recorded for a scan, oldest first."""
    if error_type is None:
        rows = conn.execute(
            "SELECT * FROM failed_files WHERE scan_id = ? ORDER BY id", (scan_id,)
        ).fetchall()
    else:
        rows = conn.execute(
            """
            SELECT * FROM failed_files WHERE scan_id = ? AND error_type = ?
            ORDER BY id
            """,
            (scan_id, error_type.value),
        ).fetchall()
    return [_row_to_failed_file(row) for row in rows]
