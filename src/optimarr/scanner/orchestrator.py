"""Scan orchestrator: discovery → extraction → rating → persistence.

One background thread runs per active scan. Each worker owns its own
database connection and commits after every file, so a cancelled scan
leaves exactly the records of the files it finished. Scans of different
library paths run concurrently; a second scan of the same library path is
rejected while one is pending or running.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from optimarr.db.connection import get_connection, open_connection
from optimarr.db.queries import (
    finish_scan,
    get_active_scan,
    get_library_path,
    get_scan,
    insert_failed_file,
    insert_scan,
    mark_scan_running,
    request_scan_cancellation,
    summarize_library_path,
    update_library_path_stats,
    update_scan_progress,
    upsert_analysis,
    utc_now_iso,
)
from optimarr.db.types import FailureType, LibraryPathRecord, ScanStatus
from optimarr.introspector.interface import MediaExtractor
from optimarr.jobs.exceptions import (
    DiscoveryError,
    LibraryPathNotFoundError,
    ScanConflictError,
    ScanNotFoundError,
    ScanStateError,
)
from optimarr.jobs.progress import ProgressTracker
from optimarr.logging.context import format_item_id, operation_context
from optimarr.rating.config import RatingConfigError
from optimarr.scanner.analysis import RatingConfigLoader, analyze_file
from optimarr.scanner.cancellation import CancellationToken
from optimarr.scanner.discovery import DiscoveredFile, FileDiscovery

logger = logging.getLogger(__name__)


def scan_progress_id(scan_id: int) -> str:
    """Progress tracker id of a scan."""
    return f"scan-{scan_id}"


@dataclass
class ScanSummary:
    """Counters of a finished scan run."""

    scan_id: int
    status: ScanStatus
    total: int = 0
    processed: int = 0
    failed: int = 0
    broken: int = 0
    discovery_warnings: int = 0
    error_message: str | None = None


@dataclass
class _ScanHandle:
    token: CancellationToken
    thread: threading.Thread


class ScanOrchestrator:
    """Start, cancel and run library scans.

    Example:
        orchestrator = ScanOrchestrator(db_path, extractor, tracker, loader)
        scan_id = orchestrator.start(library_path_id=1)
        orchestrator.wait(scan_id)
    """

    def __init__(
        self,
        db_path: Path,
        extractor: MediaExtractor,
        tracker: ProgressTracker,
        load_rating_config: RatingConfigLoader,
    ) -> None:
        self.db_path = db_path
        self.extractor = extractor
        self.tracker = tracker
        self.load_rating_config = load_rating_config
        self._lock = threading.Lock()
        self._active: dict[int, _ScanHandle] = {}

    def start(self, library_path_id: int) -> int:
        """Create a scan for a library path and run it in the background.

        Returns:
            The new scan's ID.

        Raises:
            LibraryPathNotFoundError: If the library path does not exist.
            ScanConflictError: If the library path already has an active scan.
        """
        with self._lock:
            with get_connection(self.db_path) as conn:
                library_path = get_library_path(conn, library_path_id)
                if library_path is None:
                    raise LibraryPathNotFoundError(library_path_id)
                active = get_active_scan(conn, library_path_id)
                if active is not None:
                    raise ScanConflictError(library_path_id, active.id)
                try:
                    scan_id = insert_scan(conn, library_path_id)
                except sqlite3.IntegrityError as e:
                    # Another process started a scan after the check above
                    conn.rollback()
                    active = get_active_scan(conn, library_path_id)
                    if active is None:
                        raise
                    raise ScanConflictError(library_path_id, active.id) from e
                mark_scan_running(conn, scan_id)
                conn.commit()

            token = CancellationToken()
            self.tracker.create(scan_progress_id(scan_id))
            thread = threading.Thread(
                target=self._run_worker,
                args=(scan_id, library_path, token),
                name=scan_progress_id(scan_id),
                daemon=True,
            )
            self._active[scan_id] = _ScanHandle(token=token, thread=thread)
            thread.start()

        logger.info(
            "Started scan %d of %s (library path %d)",
            scan_id,
            library_path.path,
            library_path_id,
        )
        return scan_id

    def cancel(self, scan_id: int) -> None:
        """Request cancellation of an active scan.

        A scan with no worker in this process (left over from a previous
        run) is moved to Cancelled directly.

        Raises:
            ScanNotFoundError: If the scan does not exist.
            ScanStateError: If the scan is already terminal.
        """
        with self._lock:
            handle = self._active.get(scan_id)
            with get_connection(self.db_path) as conn:
                scan = get_scan(conn, scan_id)
                if scan is None:
                    raise ScanNotFoundError(scan_id)
                if scan.status.is_terminal:
                    raise ScanStateError(scan_id, scan.status.value)
                request_scan_cancellation(conn, scan_id)
                if handle is None:
                    finish_scan(conn, scan_id, ScanStatus.CANCELLED)
                    self.tracker.complete(scan_progress_id(scan_id), message="Cancelled")
                conn.commit()
            if handle is not None:
                handle.token.cancel()
        logger.info("Cancellation requested for scan %d", scan_id)

    def is_active(self, scan_id: int) -> bool:
        with self._lock:
            return scan_id in self._active

    def wait(self, scan_id: int | None = None, timeout: float | None = None) -> None:
        """Join one scan worker, or all of them when scan_id is None."""
        with self._lock:
            if scan_id is None:
                threads = [h.thread for h in self._active.values()]
            else:
                handle = self._active.get(scan_id)
                threads = [handle.thread] if handle else []
        for thread in threads:
            thread.join(timeout)

    def _run_worker(
        self, scan_id: int, library_path: LibraryPathRecord, token: CancellationToken
    ) -> None:
        try:
            self.run(scan_id, library_path, token)
        finally:
            with self._lock:
                self._active.pop(scan_id, None)

    def run(
        self,
        scan_id: int,
        library_path: LibraryPathRecord,
        token: CancellationToken | None = None,
    ) -> ScanSummary:
        """Run a scan to a terminal state in the calling thread.

        No exception escapes: scan-level errors move the scan to Failed
        and the progress entry to error.
        """
        token = token or CancellationToken()
        progress_id = scan_progress_id(scan_id)
        conn = open_connection(self.db_path)
        try:
            with operation_context(progress_id):
                try:
                    return self._scan(conn, scan_id, library_path, token)
                except ScanStateError as e:
                    conn.rollback()
                    logger.warning("Scan %d stopped: %s", scan_id, e)
                    self.tracker.fail(progress_id, str(e))
                    status = next(
                        (s for s in ScanStatus if s.value == e.status), ScanStatus.FAILED
                    )
                    return ScanSummary(scan_id, status, error_message=str(e))
                except Exception as e:
                    # Worker boundary: nothing may escape the thread
                    logger.exception("Scan %d failed: %s", scan_id, e)
                    conn.rollback()
                    message = str(e) or type(e).__name__
                    finish_scan(conn, scan_id, ScanStatus.FAILED, error_message=message)
                    conn.commit()
                    self.tracker.fail(progress_id, message)
                    return ScanSummary(scan_id, ScanStatus.FAILED, error_message=message)
        finally:
            conn.close()

    def _discover(
        self,
        conn: sqlite3.Connection,
        scan_id: int,
        library_path: LibraryPathRecord,
        token: CancellationToken,
    ) -> tuple[list[DiscoveredFile], int]:
        discovery = FileDiscovery(Path(library_path.path))
        items: list[DiscoveredFile] = []
        for item in discovery:
            if token.cancelled:
                break
            items.append(item)
        for warning in discovery.warnings:
            insert_failed_file(
                conn, scan_id, warning.path, FailureType.DISCOVERY, warning.message
            )
        return items, len(discovery.warnings)

    @staticmethod
    def _state_error(conn: sqlite3.Connection, scan_id: int) -> ScanStateError:
        """Describe a scan that was made terminal outside this worker."""
        current = get_scan(conn, scan_id)
        return ScanStateError(scan_id, current.status.value if current else "missing")

    def _finish(
        self, conn: sqlite3.Connection, summary: ScanSummary, message: str | None = None
    ) -> None:
        if not finish_scan(conn, summary.scan_id, summary.status, error_message=message):
            raise self._state_error(conn, summary.scan_id)

    def _scan(
        self,
        conn: sqlite3.Connection,
        scan_id: int,
        library_path: LibraryPathRecord,
        token: CancellationToken,
    ) -> ScanSummary:
        progress_id = scan_progress_id(scan_id)
        summary = ScanSummary(scan_id, ScanStatus.RUNNING)

        try:
            items, summary.discovery_warnings = self._discover(
                conn, scan_id, library_path, token
            )
        except DiscoveryError as e:
            logger.error("Discovery failed: %s", e)
            summary.status = ScanStatus.FAILED
            summary.error_message = str(e)
            self._finish(conn, summary, str(e))
            conn.commit()
            self.tracker.fail(progress_id, str(e))
            return summary

        summary.total = len(items)
        if not update_scan_progress(conn, scan_id, 0, 0, total_files=summary.total):
            raise self._state_error(conn, scan_id)
        conn.commit()
        self.tracker.update(progress_id, processed=0, total=summary.total)
        logger.info(
            "Discovered %d video file(s) under %s", summary.total, library_path.path
        )

        started = time.monotonic()
        for index, item in enumerate(items, start=1):
            if token.cancelled:
                break
            with operation_context(progress_id, format_item_id(index), item.path):
                self.tracker.update(progress_id, current_item=item.path.name)
                self._process_item(conn, scan_id, library_path, item, summary)

            elapsed = time.monotonic() - started
            handled = summary.processed + summary.failed
            rate = handled / elapsed if elapsed > 0 else None
            if not update_scan_progress(
                conn,
                scan_id,
                summary.processed,
                summary.failed,
                current_file=item.path.name,
                files_per_second=rate,
            ):
                raise self._state_error(conn, scan_id)
            conn.commit()
            self.tracker.update(
                progress_id,
                processed=handled,
                secondary=summary.processed - summary.broken,
                errors=summary.failed,
            )

        if token.cancelled:
            summary.status = ScanStatus.CANCELLED
            self._finish(conn, summary)
            conn.commit()
            self.tracker.complete(
                progress_id,
                secondary=summary.processed - summary.broken,
                errors=summary.failed,
                message="Cancelled",
            )
            logger.info(
                "Scan cancelled after %d of %d file(s)", summary.processed, summary.total
            )
            return summary

        summary.status = ScanStatus.COMPLETED
        self._finish(conn, summary)
        file_count, total_size = summarize_library_path(conn, library_path.id)
        update_library_path_stats(
            conn, library_path.id, file_count, total_size, utc_now_iso()
        )
        conn.commit()
        self.tracker.complete(
            progress_id,
            secondary=summary.processed - summary.broken,
            errors=summary.failed,
        )
        logger.info(
            "Scan completed: %d processed (%d broken), %d failed",
            summary.processed,
            summary.broken,
            summary.failed,
        )
        return summary

    def _process_item(
        self,
        conn: sqlite3.Connection,
        scan_id: int,
        library_path: LibraryPathRecord,
        item: DiscoveredFile,
        summary: ScanSummary,
    ) -> None:
        """Analyze and persist one file, recording per-file failures."""
        try:
            record = analyze_file(
                self.extractor,
                self.load_rating_config,
                item.path,
                subtitle_path=item.subtitle_path,
                library_path_id=library_path.id,
                scan_id=scan_id,
                file_size=item.size,
            )
        except RatingConfigError as e:
            logger.error("Cannot rate %s: %s", item.path, e)
            summary.failed += 1
            insert_failed_file(
                conn, scan_id, str(item.path), FailureType.CONFIGURATION, str(e)
            )
            return

        try:
            upsert_analysis(conn, record)
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("Cannot save analysis of %s: %s", item.path, e)
            summary.failed += 1
            insert_failed_file(
                conn, scan_id, str(item.path), FailureType.PERSISTENCE, str(e)
            )
            return

        summary.processed += 1
        if record.is_broken:
            summary.broken += 1
