"""Custom exceptions for scan and maintenance operations.

These let callers tell a rejected request (conflict, unknown id) apart from
an operation that failed while running.
"""


class ScanError(Exception):
    """Base exception for scan errors.

    All scan-related exceptions inherit from this class, allowing callers
    to catch all scan errors with a single except clause if desired.
    """


class ScanConflictError(ScanError):
    """Raised when a library path already has a pending or running scan.

    Attributes:
        library_path_id: The library path that is already being scanned.
        scan_id: The ID of the active scan.
    """

    def __init__(self, library_path_id: int, scan_id: int) -> None:
        self.library_path_id = library_path_id
        self.scan_id = scan_id
        super().__init__(
            f"Library path {library_path_id} already has an active scan ({scan_id})"
        )


class ScanNotFoundError(ScanError):
    """Raised when a scan doesn't exist."""

    def __init__(self, scan_id: int) -> None:
        self.scan_id = scan_id
        super().__init__(f"Scan {scan_id} not found")


class ScanStateError(ScanError):
    """Raised when a terminal scan would be modified.

    Attributes:
        scan_id: The ID of the scan.
        status: Its current (terminal) status value.
    """

    def __init__(self, scan_id: int, status: str) -> None:
        self.scan_id = scan_id
        self.status = status
        super().__init__(f"Scan {scan_id} is {status} and can no longer change")


class LibraryPathNotFoundError(ScanError):
    """Raised when a library path doesn't exist."""

    def __init__(self, library_path_id: int) -> None:
        self.library_path_id = library_path_id
        super().__init__(f"Library path {library_path_id} not found")


class DiscoveryError(ScanError):
    """Raised when a library root is missing or unreadable."""

    def __init__(self, root: str, reason: str) -> None:
        self.root = root
        self.reason = reason
        super().__init__(f"Cannot scan {root}: {reason}")


class RecordNotFoundError(Exception):
    """Raised when an analysis record doesn't exist."""

    def __init__(self, record_id: int) -> None:
        self.record_id = record_id
        super().__init__(f"Analysis record {record_id} not found")
