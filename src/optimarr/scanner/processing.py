"""Re-analysis of records left in the Processing state.

A record is marked Processing when its file is sent off for re-acquisition.
Once it has been Processing for the configured number of hours the file
is analyzed again and the record returns to Idle; if the file is gone the
record is removed.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from optimarr.db.queries import (
    delete_analysis,
    get_stale_processing,
    set_processing_status,
    upsert_analysis,
)
from optimarr.db.types import ProcessingStatus
from optimarr.introspector.interface import MediaExtractor
from optimarr.rating.config import RatingConfigError
from optimarr.scanner.analysis import (
    RatingConfigLoader,
    analyze_file,
    find_sidecar_subtitle,
)

logger = logging.getLogger(__name__)


@dataclass
class ProcessingRescanSummary:
    rescanned: int = 0
    removed: int = 0
    failed: int = 0


def rescan_stale_processing(
    conn: sqlite3.Connection,
    extractor: MediaExtractor,
    load_rating_config: RatingConfigLoader,
    older_than_hours: int = 24,
    now: datetime | None = None,
) -> ProcessingRescanSummary:
    """Re-analyze records that have been Processing for too long.

    Commits after each record. A record whose rating configuration fails to
    load stays in Processing and is counted as failed.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = (now - timedelta(hours=older_than_hours)).isoformat()
    summary = ProcessingRescanSummary()

    stale = get_stale_processing(conn, cutoff)
    if stale:
        logger.info(
            "Found %d record(s) in Processing for %d hour(s) or more",
            len(stale),
            older_than_hours,
        )

    for record in stale:
        path = Path(record.path)
        if not path.exists():
            logger.warning("Processing file no longer exists, removing: %s", path)
            delete_analysis(conn, record.id)
            conn.commit()
            summary.removed += 1
            continue

        try:
            fresh = analyze_file(
                extractor,
                load_rating_config,
                path,
                subtitle_path=find_sidecar_subtitle(path),
                library_path_id=record.library_path_id,
                scan_id=record.scan_id,
                file_size=path.stat().st_size,
            )
        except RatingConfigError as e:
            logger.error("Cannot rate %s: %s", path, e)
            summary.failed += 1
            continue

        upsert_analysis(conn, fresh)
        set_processing_status(conn, record.id, ProcessingStatus.IDLE)
        conn.commit()
        summary.rescanned += 1
        logger.info("Rescanned processing file %s", path)

    return summary
