"""Database query operations package.

Functions are organized by table but re-exported here for convenience.

Module organization:
- helpers.py: timestamps, JSON columns and row mapping functions
- library.py: Library path CRUD
- scans.py: Library scan lifecycle
- analyses.py: Video analysis records
- failed.py: Failed file entries

Usage:
    from optimarr.db.queries import get_analysis, insert_scan
"""

from .analyses import (
    count_analyses_for_scan,
    count_unmatched_analyses,
    delete_analysis,
    get_analysis,
    get_analysis_by_path,
    get_stale_processing,
    list_analyses,
    set_processing_status,
    summarize_library_path,
    update_analysis_match,
    update_analysis_rating,
    upsert_analysis,
)
from .failed import insert_failed_file, list_failed_files
from .helpers import utc_now_iso
from .library import (
    delete_library_path,
    get_library_path,
    get_library_path_by_path,
    insert_library_path,
    link_library_path,
    list_library_paths,
    update_library_path_stats,
)
from .scans import (
    fail_orphaned_scans,
    finish_scan,
    get_active_scan,
    get_scan,
    insert_scan,
    list_scans,
    mark_scan_running,
    request_scan_cancellation,
    update_scan_progress,
)

__all__ = [
    "count_analyses_for_scan",
    "count_unmatched_analyses",
    "delete_analysis",
    "delete_library_path",
    "fail_orphaned_scans",
    "finish_scan",
    "get_active_scan",
    "get_analysis",
    "get_analysis_by_path",
    "get_library_path",
    "get_library_path_by_path",
    "get_scan",
    "get_stale_processing",
    "insert_failed_file",
    "insert_library_path",
    "insert_scan",
    "link_library_path",
    "list_analyses",
    "list_failed_files",
    "list_library_paths",
    "list_scans",
    "mark_scan_running",
    "request_scan_cancellation",
    "set_processing_status",
    "summarize_library_path",
    "update_analysis_match",
    "update_analysis_rating",
    "update_library_path_stats",
    "upsert_analysis",
    "utc_now_iso",
]
