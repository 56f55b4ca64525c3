"""Progress tracking and error types for long-running operations.

- progress: in-memory ProgressTracker shared by scans and match runs
- exceptions: scan, library path and record errors
"""

from optimarr.jobs.exceptions import (
    DiscoveryError,
    LibraryPathNotFoundError,
    RecordNotFoundError,
    ScanConflictError,
    ScanError,
    ScanNotFoundError,
    ScanStateError,
)
from optimarr.jobs.progress import (
    DEFAULT_RETENTION_SECONDS,
    OperationProgress,
    OperationStatus,
    ProgressTracker,
)

__all__ = [
    "DEFAULT_RETENTION_SECONDS",
    "DiscoveryError",
    "LibraryPathNotFoundError",
    "OperationProgress",
    "OperationStatus",
    "ProgressTracker",
    "RecordNotFoundError",
    "ScanConflictError",
    "ScanError",
    "ScanNotFoundError",
    "ScanStateError",
]
