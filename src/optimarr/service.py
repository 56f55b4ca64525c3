"""Operations exposed to request handlers and the CLI.

MediaPipeline wires the scan orchestrator, the matcher and maintenance
tasks to one database and one progress tracker. The ``start_*`` calls
return an operation id immediately; progress is polled with the
``get_*_progress`` calls.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Sequence
from pathlib import Path

from optimarr.db.connection import get_connection, open_connection
from optimarr.db.queries import (
    count_analyses_for_scan,
    fail_orphaned_scans,
    get_analysis,
    get_library_path,
    get_scan,
    upsert_analysis,
)
from optimarr.db.types import ScanStatus, VideoAnalysisRecord
from optimarr.introspector.interface import MediaExtractor
from optimarr.jobs.exceptions import LibraryPathNotFoundError, RecordNotFoundError
from optimarr.jobs.progress import OperationProgress, OperationStatus, ProgressTracker
from optimarr.matching.matcher import MatchSummary, MediaSource, ServarrMatcher
from optimarr.rating.engine import RatingResult
from optimarr.scanner.analysis import (
    RatingConfigLoader,
    RecalculationSummary,
    analyze_file,
    find_sidecar_subtitle,
    recalculate_all,
    recalculate_record,
)
from optimarr.scanner.orchestrator import ScanOrchestrator, scan_progress_id
from optimarr.scanner.processing import ProcessingRescanSummary, rescan_stale_processing

logger = logging.getLogger(__name__)

_SCAN_TO_OPERATION = {
    ScanStatus.PENDING: OperationStatus.RUNNING,
    ScanStatus.RUNNING: OperationStatus.RUNNING,
    ScanStatus.COMPLETED: OperationStatus.COMPLETED,
    ScanStatus.CANCELLED: OperationStatus.COMPLETED,
    ScanStatus.FAILED: OperationStatus.ERROR,
}


def match_progress_id() -> str:
    """New progress tracker id for a match run."""
    return f"match-{uuid.uuid4().hex}"


class MediaPipeline:
    """Facade over scanning, matching and rating maintenance.

    Example:
        pipeline = MediaPipeline(db_path, FFprobeExtractor(), ProgressTracker(),
                                 load_rating_config, build_clients(config.servarr))
        pipeline.reconcile_startup()
        scan_id = pipeline.start_scan(library_path_id=1)
        progress = pipeline.get_scan_progress(scan_id)
    """

    def __init__(
        self,
        db_path: Path,
        extractor: MediaExtractor,
        tracker: ProgressTracker,
        rating_config_loader: RatingConfigLoader,
        servarr_sources: Sequence[MediaSource] = (),
        processing_rescan_hours: int = 24,
    ) -> None:
        self.db_path = db_path
        self.extractor = extractor
        self.tracker = tracker
        self.rating_config_loader = rating_config_loader
        self.servarr_sources = list(servarr_sources)
        self.processing_rescan_hours = processing_rescan_hours
        self.orchestrator = ScanOrchestrator(
            db_path, extractor, tracker, rating_config_loader
        )
        self._match_lock = threading.Lock()
        self._match_threads: dict[str, threading.Thread] = {}

    # Scans

    def start_scan(self, library_path_id: int) -> int:
        """Start a background scan; returns the scan id."""
        return self.orchestrator.start(library_path_id)

    def cancel_scan(self, scan_id: int) -> None:
        self.orchestrator.cancel(scan_id)

    def get_scan_progress(self, scan_id: int) -> OperationProgress | None:
        """Progress of a scan.

        Falls back to the persisted scan row once the in-memory entry has
        been swept or was lost to a restart. Returns None for unknown scans.
        """
        progress = self.tracker.get(scan_progress_id(scan_id))
        if progress is not None:
            return progress

        with get_connection(self.db_path) as conn:
            scan = get_scan(conn, scan_id)
            if scan is None:
                return None
            healthy = count_analyses_for_scan(conn, scan_id, include_broken=False)

        status = _SCAN_TO_OPERATION[scan.status]
        message = scan.error_message
        if scan.status == ScanStatus.CANCELLED:
            message = "Cancelled"
        return OperationProgress(
            operation_id=scan_progress_id(scan_id),
            status=status,
            created_at=0.0,
            updated_at=0.0,
            processed=scan.processed_files + scan.failed_files,
            total=scan.total_files,
            secondary=healthy,
            errors=scan.failed_files,
            current_item=scan.current_file,
            message=message,
            finished_at=0.0 if status is not OperationStatus.RUNNING else None,
        )

    def rescan_file(self, record_id: int) -> VideoAnalysisRecord:
        """Re-extract and re-rate one stored record in the calling thread.

        Origin match and processing fields of the record are preserved.

        Raises:
            RecordNotFoundError: If the record does not exist.
            FileNotFoundError: If the file is no longer on disk.
            RatingConfigError: If the rating configuration is malformed.
        """
        with get_connection(self.db_path) as conn:
            record = get_analysis(conn, record_id)
            if record is None:
                raise RecordNotFoundError(record_id)
            path = Path(record.path)
            if not path.is_file():
                raise FileNotFoundError(f"File no longer exists: {path}")

            fresh = analyze_file(
                self.extractor,
                self.rating_config_loader,
                path,
                subtitle_path=find_sidecar_subtitle(path),
                library_path_id=record.library_path_id,
                scan_id=record.scan_id,
                file_size=path.stat().st_size,
            )
            upsert_analysis(conn, fresh)
            conn.commit()
            logger.info("Rescanned record %d (%s)", record_id, path)
            return get_analysis(conn, record_id)

    # Matching

    def start_match(self, library_path_id: int | None = None) -> str:
        """Start a background match run; returns its progress id.

        Raises:
            LibraryPathNotFoundError: If library_path_id names no library path.
        """
        if library_path_id is not None:
            with get_connection(self.db_path) as conn:
                if get_library_path(conn, library_path_id) is None:
                    raise LibraryPathNotFoundError(library_path_id)
        if not self.servarr_sources:
            logger.warning("No Sonarr or Radarr connection configured")

        progress_id = match_progress_id()
        self.tracker.create(progress_id)
        thread = threading.Thread(
            target=self._run_match,
            args=(progress_id, library_path_id),
            name=progress_id,
            daemon=True,
        )
        with self._match_lock:
            self._match_threads[progress_id] = thread
        thread.start()
        logger.info("Started match run %s", progress_id)
        return progress_id

    def run_match(
        self, progress_id: str | None = None, library_path_id: int | None = None
    ) -> MatchSummary:
        """Run a match in the calling thread."""
        conn = open_connection(self.db_path)
        try:
            matcher = ServarrMatcher(conn, self.servarr_sources, self.tracker)
            return matcher.match_all(progress_id, library_path_id=library_path_id)
        finally:
            conn.close()

    def _run_match(self, progress_id: str, library_path_id: int | None) -> None:
        try:
            self.run_match(progress_id, library_path_id)
        except Exception as e:
            # Worker boundary: nothing may escape the thread
            logger.exception("Match run %s failed: %s", progress_id, e)
            self.tracker.fail(progress_id, str(e) or type(e).__name__)
        finally:
            with self._match_lock:
                self._match_threads.pop(progress_id, None)

    def get_match_progress(self, match_id: str) -> OperationProgress | None:
        return self.tracker.get(match_id)

    # Maintenance

    def recalculate_rating(self, record_id: int) -> RatingResult | None:
        """Re-rate one record from stored attributes without re-extracting.

        Raises:
            RecordNotFoundError: If the record does not exist.
            RatingConfigError: If the rating configuration is malformed.
        """
        config = self.rating_config_loader()
        with get_connection(self.db_path) as conn:
            result = recalculate_record(conn, record_id, config)
            conn.commit()
        return result

    def recalculate_all(self, library_path_id: int | None = None) -> RecalculationSummary:
        config = self.rating_config_loader()
        with get_connection(self.db_path) as conn:
            return recalculate_all(conn, config, library_path_id=library_path_id)

    def rescan_stale_processing(self) -> ProcessingRescanSummary:
        with get_connection(self.db_path) as conn:
            return rescan_stale_processing(
                conn,
                self.extractor,
                self.rating_config_loader,
                older_than_hours=self.processing_rescan_hours,
            )

    def reconcile_startup(self) -> int:
        """Mark scans left active by a previous process as failed."""
        with get_connection(self.db_path) as conn:
            count = fail_orphaned_scans(conn)
            conn.commit()
        if count:
            logger.warning("Marked %d orphaned scan(s) as failed", count)
        return count

    def wait(self, timeout: float | None = None) -> None:
        """Join every background scan and match worker."""
        self.orchestrator.wait(timeout=timeout)
        with self._match_lock:
            threads = list(self._match_threads.values())
        for thread in threads:
            thread.join(timeout)
