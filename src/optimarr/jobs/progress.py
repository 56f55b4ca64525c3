"""In-memory progress registry for long-running operations.

Scans and match runs report through the same ProgressTracker so callers
have one polling contract for both. Entries live only in memory and are
lost on restart; finished entries are dropped after a retention window.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 3600.0


class OperationStatus(Enum):
    """Status of a tracked operation."""

    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class OperationProgress:
    """Snapshot of one operation's progress.

    ``secondary`` counts the operation-specific success (files analyzed
    without error for scans, records matched for match runs). ``errors``
    counts operation errors only, never broken or unmatched files.
    """

    operation_id: str
    status: OperationStatus
    created_at: float
    updated_at: float
    processed: int = 0
    total: int | None = None
    secondary: int = 0
    errors: int = 0
    current_item: str | None = None
    message: str | None = None
    finished_at: float | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not OperationStatus.RUNNING

    @property
    def elapsed_seconds(self) -> float:
        end = self.finished_at if self.finished_at is not None else self.updated_at
        return max(0.0, end - self.created_at)

    @property
    def items_per_second(self) -> float | None:
        elapsed = self.elapsed_seconds
        if elapsed <= 0 or self.processed == 0:
            return None
        return self.processed / elapsed

    @property
    def eta_seconds(self) -> float | None:
        rate = self.items_per_second
        if self.is_terminal or rate is None or self.total is None:
            return None
        return max(0, self.total - self.processed) / rate

    @property
    def percent(self) -> float | None:
        if not self.total:
            return None
        return min(100.0, 100.0 * self.processed / self.total)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "status": self.status.value,
            "processed": self.processed,
            "total": self.total,
            "secondary": self.secondary,
            "errors": self.errors,
            "current_item": self.current_item,
            "message": self.message,
            "percent": self.percent,
            "items_per_second": self.items_per_second,
            "eta_seconds": self.eta_seconds,
        }


class ProgressTracker:
    """Thread-safe registry of OperationProgress entries keyed by id.

    Workers write entries and request handlers read them concurrently;
    ``get`` returns a copy so callers never observe a half-applied update.
    Terminal entries older than ``retention_seconds`` are swept whenever a
    new operation is created.

    Example:
        tracker = ProgressTracker()
        tracker.create("scan-12", total=40)
        tracker.update("scan-12", processed=10, current_item="a.mkv")
        tracker.complete("scan-12", secondary=39, errors=1)
    """

    def __init__(
        self,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if retention_seconds < 0:
            raise ValueError("retention_seconds must be >= 0")
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._entries: dict[str, OperationProgress] = {}
        self._lock = threading.Lock()

    def create(self, operation_id: str, total: int | None = None) -> OperationProgress:
        """Register a running operation, replacing any entry with that id."""
        self.sweep()
        now = self._clock()
        entry = OperationProgress(
            operation_id=operation_id,
            status=OperationStatus.RUNNING,
            created_at=now,
            updated_at=now,
            total=total,
        )
        with self._lock:
            self._entries[operation_id] = entry
            return replace(entry)

    def update(
        self,
        operation_id: str,
        processed: int | None = None,
        total: int | None = None,
        secondary: int | None = None,
        errors: int | None = None,
        current_item: str | None = None,
    ) -> bool:
        """Update counters of a running operation; None leaves a field as is.

        Returns:
            False if the operation is unknown or already finished.
        """
        with self._lock:
            entry = self._entries.get(operation_id)
            if entry is None or entry.is_terminal:
                return False
            if processed is not None:
                entry.processed = processed
            if total is not None:
                entry.total = total
            if secondary is not None:
                entry.secondary = secondary
            if errors is not None:
                entry.errors = errors
            if current_item is not None:
                entry.current_item = current_item
            entry.updated_at = self._clock()
            return True

    def _finish(
        self,
        operation_id: str,
        status: OperationStatus,
        message: str | None = None,
        secondary: int | None = None,
        errors: int | None = None,
    ) -> bool:
        with self._lock:
            entry = self._entries.get(operation_id)
            if entry is None or entry.is_terminal:
                return False
            if secondary is not None:
                entry.secondary = secondary
            if errors is not None:
                entry.errors = errors
            entry.status = status
            entry.message = message
            entry.current_item = None
            entry.updated_at = entry.finished_at = self._clock()
            return True

    def complete(
        self,
        operation_id: str,
        secondary: int | None = None,
        errors: int | None = None,
        message: str | None = None,
    ) -> bool:
        """Mark an operation completed."""
        return self._finish(
            operation_id, OperationStatus.COMPLETED, message, secondary, errors
        )

    def fail(self, operation_id: str, message: str) -> bool:
        """Mark an operation failed with a message."""
        return self._finish(operation_id, OperationStatus.ERROR, message)

    def get(self, operation_id: str) -> OperationProgress | None:
        """Get a copy of an entry, or None if unknown or swept."""
        with self._lock:
            entry = self._entries.get(operation_id)
            return replace(entry) if entry is not None else None

    def sweep(self) -> int:
        """Drop terminal entries that finished more than the retention ago.

        Returns:
            Number of entries removed.
        """
        cutoff = self._clock() - self.retention_seconds
        with self._lock:
            expired = [
                key
                for key, entry in self._entries.items()
                if entry.finished_at is not None and entry.finished_at <= cutoff
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Swept %d finished progress entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
