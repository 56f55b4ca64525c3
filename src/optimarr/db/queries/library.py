"""Library path CRUD operations."""

import sqlite3

from optimarr.db.types import LibraryPathRecord, OriginSystem

from .helpers import _row_to_library_path, utc_now_iso


def insert_library_path(
    conn: sqlite3.Connection,
    path: str,
    name: str,
    category: str = "other",
    created_at: str | None = None,
) -> int:
    """Insert a new library path.

    Returns:
        The ID of the inserted library path.

    Raises:
        sqlite3.IntegrityError: If the path is already registered.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        INSERT INTO library_paths (path, name, category, created_at)
        VALUES (?, ?, ?, ?)
        """,
        (path, name, category, created_at or utc_now_iso()),
    )
    return cursor.lastrowid


def get_library_path(
    conn: sqlite3.Connection, library_path_id: int
) -> LibraryPathRecord | None:
    """Get a library path by ID."""
    row = conn.execute(
        "SELECT * FROM library_paths WHERE id = ?", (library_path_id,)
    ).fetchone()
    return _row_to_library_path(row) if row else None


def get_library_path_by_path(
    conn: sqlite3.Connection, path: str
) -> LibraryPathRecord | None:
    """Get a library path by its filesystem root."""
    row = conn.execute(
        "SELECT * FROM library_paths WHERE path = ?", (path,)
    ).fetchone()
    return _row_to_library_path(row) if row else None


def list_library_paths(conn: sqlite3.Connection) -> list[LibraryPathRecord]:
    """List all library paths ordered by name."""
    rows = conn.execute(
        "SELECT * FROM library_paths ORDER BY name COLLATE NOCASE, id"
    ).fetchall()
    return [_row_to_library_path(row) for row in rows]


def delete_library_path(conn: sqlite3.Connection, library_path_id: int) -> bool:
    """Delete a library path; its scans, analyses and failed files cascade.

    Returns:
        True if a row was deleted.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        "DELETE FROM library_paths WHERE id = ?", (library_path_id,)
    )
    return cursor.rowcount > 0


def update_library_path_stats(
    conn: sqlite3.Connection,
    library_path_id: int,
    file_count: int,
    total_size_bytes: int,
    scanned_at: str,
) -> bool:
    """Record the outcome of a completed scan on its library path.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        UPDATE library_paths
        SET last_scanned_at = ?, file_count = ?, total_size_bytes = ?
        WHERE id = ?
        """,
        (scanned_at, file_count, total_size_bytes, library_path_id),
    )
    return cursor.rowcount > 0


def link_library_path(
    conn: sqlite3.Connection,
    library_path_id: int,
    origin_system: OriginSystem,
    origin_id: int | None,
    synced_at: str | None = None,
) -> bool:
    """Link a library path to a series/movie root in an origin system.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        UPDATE library_paths
        SET origin_system = ?, origin_id = ?, last_synced_at = ?
        WHERE id = ?
        """,
        (origin_system.value, origin_id, synced_at or utc_now_iso(), library_path_id),
    )
    return cursor.rowcount > 0
