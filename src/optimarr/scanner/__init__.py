"""Library scanning: discovery, per-file analysis and the scan orchestrator."""

from optimarr.scanner.analysis import (
    RatingConfigLoader,
    analyze_file,
    find_sidecar_subtitle,
    recalculate_all,
    recalculate_record,
)
from optimarr.scanner.cancellation import CancellationToken
from optimarr.scanner.discovery import (
    SUBTITLE_EXTENSIONS,
    VIDEO_EXTENSIONS,
    DiscoveredFile,
    DiscoveryWarning,
    FileDiscovery,
)
from optimarr.scanner.orchestrator import ScanOrchestrator, ScanSummary, scan_progress_id
from optimarr.scanner.processing import ProcessingRescanSummary, rescan_stale_processing

__all__ = [
    "CancellationToken",
    "DiscoveredFile",
    "DiscoveryWarning",
    "FileDiscovery",
    "ProcessingRescanSummary",
    "RatingConfigLoader",
    "SUBTITLE_EXTENSIONS",
    "ScanOrchestrator",
    "ScanSummary",
    "VIDEO_EXTENSIONS",
    "analyze_file",
    "find_sidecar_subtitle",
    "recalculate_all",
    "recalculate_record",
    "rescan_stale_processing",
    "scan_progress_id",
]
