"""Database connection management for optimarr."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from functools import wraps
from pathlib import Path

logger = logging.getLogger(__name__)


class DatabaseLockedError(Exception):
    """Raised when the database is locked and cannot be accessed."""


def ensure_db_directory(db_path: Path) -> None:
    """Ensure the database directory exists, creating it if necessary."""
    db_path.parent.mkdir(parents=True, exist_ok=True)


def open_connection(db_path: Path, timeout: float = 30.0) -> sqlite3.Connection:
    """Open a connection with the standard PRAGMAs applied.

    The caller owns the connection and must close it. Prefer
    ``get_connection`` unless the connection outlives a single block.
    """
    ensure_db_directory(db_path)

    conn = sqlite3.connect(str(db_path), timeout=timeout)

    # Enable foreign keys (LibraryPath deletion cascades)
    conn.execute("PRAGMA foreign_keys = ON")

    # WAL lets request handlers read while a scan worker writes
    conn.execute("PRAGMA journal_mode = WAL")

    # NORMAL is safe with WAL mode
    conn.execute("PRAGMA synchronous = NORMAL")

    conn.execute("PRAGMA busy_timeout = 10000")
    conn.execute("PRAGMA temp_store = MEMORY")

    # Return rows as dictionaries
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_connection(
    db_path: Path, timeout: float = 30.0
) -> Iterator[sqlite3.Connection]:
    """Get a database connection with proper settings.

    Args:
        db_path: Path to the database file.
        timeout: How long to wait for locks (seconds). Default 30s.

    Yields:
        An sqlite3 Connection object, closed on exit.

    Raises:
        sqlite3.OperationalError: If database is locked and timeout exceeded.
    """
    conn = open_connection(db_path, timeout=timeout)
    try:
        yield conn
    finally:
        conn.close()


def handle_database_locked(func):
    """Decorator to convert sqlite3.OperationalError to DatabaseLockedError."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except sqlite3.OperationalError as e:
            if "locked" in str(e).casefold():
                raise DatabaseLockedError(
                    "Database is locked. Another process may be using it."
                ) from e
            raise

    return wrapper
