"""SQLite persistence for library paths, scans, analyses and failures."""

from optimarr.db.connection import (
    DatabaseLockedError,
    get_connection,
    handle_database_locked,
    open_connection,
)
from optimarr.db.schema import (
    SCHEMA_VERSION,
    create_schema,
    get_schema_version,
    initialize_database,
)
from optimarr.db.types import (
    ACTIVE_SCAN_STATUSES,
    FailedFileRecord,
    FailureType,
    LibraryPathRecord,
    LibraryScanRecord,
    OriginSystem,
    ProcessingStatus,
    ScanStatus,
    VideoAnalysisRecord,
)

__all__ = [
    "ACTIVE_SCAN_STATUSES",
    "DatabaseLockedError",
    "FailedFileRecord",
    "FailureType",
    "LibraryPathRecord",
    "LibraryScanRecord",
    "OriginSystem",
    "ProcessingStatus",
    "SCHEMA_VERSION",
    "ScanStatus",
    "VideoAnalysisRecord",
    "create_schema",
    "get_connection",
    "get_schema_version",
    "handle_database_locked",
    "initialize_database",
    "open_connection",
]
