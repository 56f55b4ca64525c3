"""Single-file analysis: extraction, sidecar subtitles and rating.

Shared by the scan loop, single-file rescans, the processing rescan and
rating recalculation so they all build records the same way.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path

from optimarr.db.queries import (
    get_analysis,
    list_analyses,
    update_analysis_rating,
    utc_now_iso,
)
from optimarr.db.types import VideoAnalysisRecord
from optimarr.introspector.interface import (
    BrokenResult,
    MediaExtractor,
    TechnicalAttributes,
)
from optimarr.introspector.parsers import parse_sidecar_subtitle
from optimarr.jobs.exceptions import RecordNotFoundError
from optimarr.rating.config import RatingConfig
from optimarr.rating.engine import RatingResult, rate
from optimarr.scanner.discovery import SUBTITLE_EXTENSIONS, match_subtitle

logger = logging.getLogger(__name__)

# Returns the rating configuration currently in effect; called per rating
RatingConfigLoader = Callable[[], RatingConfig]

RECALCULATE_BATCH_SIZE = 200


def find_sidecar_subtitle(video_path: Path) -> Path | None:
    """Find the sidecar subtitle next to a video, as discovery would."""
    try:
        names = [
            p.name
            for p in video_path.parent.iterdir()
            if p.suffix.casefold() in SUBTITLE_EXTENSIONS and p.is_file()
        ]
    except OSError:
        return None
    match = match_subtitle(video_path.name, names)
    return video_path.parent / match if match else None


def with_sidecar(
    attributes: TechnicalAttributes, video_path: Path, subtitle_path: Path | None
) -> TechnicalAttributes:
    """Append the sidecar subtitle track to extracted attributes."""
    if subtitle_path is None:
        return attributes
    track = parse_sidecar_subtitle(subtitle_path, video_path)
    return replace(attributes, subtitle_tracks=attributes.subtitle_tracks + (track,))


def analyze_file(
    extractor: MediaExtractor,
    load_rating_config: RatingConfigLoader,
    path: Path,
    subtitle_path: Path | None = None,
    library_path_id: int | None = None,
    scan_id: int | None = None,
    file_size: int = 0,
) -> VideoAnalysisRecord:
    """Extract and rate one file, returning an unsaved record.

    A broken extraction yields a record with the broken flag set and no
    rating. The rating configuration is loaded only for files that are
    actually rated.

    Raises:
        RatingConfigError: If the rating configuration is malformed.
        ExtractorUnavailableError: If the inspection tool cannot run.
    """
    result = extractor.extract(path)
    analyzed_at = utc_now_iso()

    if isinstance(result, BrokenResult):
        logger.info("Broken file %s: %s", path, result.reason)
        return VideoAnalysisRecord.from_broken(
            str(path),
            result,
            analyzed_at,
            file_size=file_size,
            library_path_id=library_path_id,
            scan_id=scan_id,
        )

    attributes = with_sidecar(result, path, subtitle_path)
    rating = rate(attributes, load_rating_config())
    logger.debug(
        "Rated %s: score=%d category=%s", path, rating.score, rating.category.value
    )
    return VideoAnalysisRecord.from_attributes(
        str(path),
        attributes,
        analyzed_at,
        library_path_id=library_path_id,
        scan_id=scan_id,
        rating=rating,
    )


def recalculate_record(
    conn: sqlite3.Connection, record_id: int, config: RatingConfig
) -> RatingResult | None:
    """Re-rate a stored record from its stored attributes.

    Returns:
        The new rating, or None for broken records (which are never rated).

    Raises:
        RecordNotFoundError: If the record does not exist.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    record = get_analysis(conn, record_id)
    if record is None:
        raise RecordNotFoundError(record_id)
    attributes = record.attributes()
    if record.is_broken or attributes is None:
        logger.debug("Skipping recalculation of broken record %d", record_id)
        return None
    rating = rate(attributes, config)
    update_analysis_rating(conn, record_id, rating)
    return rating


@dataclass
class RecalculationSummary:
    """Outcome of re-rating every stored record."""

    recalculated: int = 0
    changed: int = 0


def recalculate_all(
    conn: sqlite3.Connection,
    config: RatingConfig,
    library_path_id: int | None = None,
) -> RecalculationSummary:
    """Re-rate every non-broken record, committing after each batch."""
    summary = RecalculationSummary()
    after_id = 0
    while True:
        batch = list_analyses(
            conn,
            library_path_id=library_path_id,
            include_broken=False,
            after_id=after_id,
            limit=RECALCULATE_BATCH_SIZE,
        )
        if not batch:
            break
        for record in batch:
            attributes = record.attributes()
            if attributes is None:
                continue
            rating = rate(attributes, config)
            if rating.score != record.score or rating.verdicts_as_dict() != record.client_verdicts:
                summary.changed += 1
            update_analysis_rating(conn, record.id, rating)
            summary.recalculated += 1
        conn.commit()
        after_id = batch[-1].id

    logger.info(
        "Recalculated %d record(s), %d changed", summary.recalculated, summary.changed
    )
    return summary
