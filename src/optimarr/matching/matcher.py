"""Match analysis records to Sonarr episodes and Radarr movies by file path.

Entries reported by each origin system are translated through that
system's path mappings and indexed by normalized path. Only exact matches
are recorded; a record without one stays unmatched and is counted.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from optimarr.config.models import PathMapping
from optimarr.db.queries import (
    count_unmatched_analyses,
    list_analyses,
    update_analysis_match,
    utc_now_iso,
)
from optimarr.db.types import OriginSystem, VideoAnalysisRecord
from optimarr.jobs.progress import ProgressTracker
from optimarr.logging.context import operation_context
from optimarr.matching.paths import apply_path_mappings, extract_year, normalize_path
from optimarr.servarr.models import MediaEntry, ServarrConnectionError

logger = logging.getLogger(__name__)

BATCH_SIZE = 50
PROGRESS_INTERVAL = 10

ProgressCallback = Callable[[int, int], None]


class MediaSource(Protocol):
    """Anything that lists origin-system files (SonarrClient, RadarrClient)."""

    origin_system: OriginSystem
    path_mappings: Sequence[PathMapping]

    def get_media_entries(self) -> list[MediaEntry]: ...


@dataclass(frozen=True)
class MatchResult:
    """Origin fields to store on a matched record."""

    origin_system: OriginSystem
    origin_id: int
    title: str
    season_number: int | None = None
    episode_number: int | None = None
    year: int | None = None

    @classmethod
    def from_entry(cls, entry: MediaEntry) -> MatchResult:
        year = entry.year
        if year is None and entry.origin_system == OriginSystem.RADARR:
            year = extract_year(entry.path)
        return cls(
            origin_system=entry.origin_system,
            origin_id=entry.origin_id,
            title=entry.title,
            season_number=entry.season_number,
            episode_number=entry.episode_number,
            year=year,
        )


@dataclass
class MatchSummary:
    """Counters of a match run.

    ``errors`` counts unreachable origin systems and records that could not
    be saved; it never includes records that simply had no match.
    """

    processed: int = 0
    matched: int = 0
    unmatched: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "matched": self.matched,
            "unmatched": self.unmatched,
            "errors": self.errors,
        }


class ServarrMatcher:
    """Associate unmatched analysis records with origin-system entries.

    Sonarr is consulted before Radarr regardless of the order sources are
    given in; within a system the first entry listed for a path wins.

    Example:
        matcher = ServarrMatcher(conn, build_clients(config.servarr), tracker)
        summary = matcher.match_all("match-1f2e")
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        sources: Sequence[MediaSource],
        tracker: ProgressTracker | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.conn = conn
        self.sources = sorted(
            sources, key=lambda s: s.origin_system != OriginSystem.SONARR
        )
        self.tracker = tracker
        self.progress_callback = progress_callback
        self._index: dict[str, MatchResult] | None = None
        self._source_errors = 0

    def build_index(self) -> int:
        """Fetch entries from every source and index them by local path.

        An unreachable source is logged and counted as an error; the other
        sources are still indexed.

        Returns:
            Number of distinct indexed paths.
        """
        index: dict[str, MatchResult] = {}
        self._source_errors = 0
        for source in self.sources:
            name = source.origin_system.value
            try:
                entries = source.get_media_entries()
            except ServarrConnectionError as e:
                logger.error("Cannot fetch files from %s: %s", name, e)
                self._source_errors += 1
                continue
            added = 0
            for entry in entries:
                local = apply_path_mappings(entry.path, source.path_mappings)
                key = normalize_path(local)
                if key not in index:
                    index[key] = MatchResult.from_entry(entry)
                    added += 1
            logger.info("Indexed %d path(s) from %s", added, name)
        self._index = index
        return len(index)

    def match_one(self, record: VideoAnalysisRecord) -> MatchResult | None:
        """Find the origin entry for a record's path; nothing is saved."""
        if self._index is None:
            self.build_index()
        return self._index.get(normalize_path(record.path))

    def match_library_path(
        self, library_path_id: int, progress_id: str | None = None
    ) -> MatchSummary:
        """Match only the records under one library path."""
        return self.match_all(progress_id, library_path_id=library_path_id)

    def match_all(
        self, progress_id: str | None = None, library_path_id: int | None = None
    ) -> MatchSummary:
        """Match every unmatched record, committing after each batch.

        Already matched records are never touched, so a second run with
        unchanged inputs matches nothing new.

        Args:
            progress_id: Progress tracker entry to update, if any.
            library_path_id: Restrict matching to one library path.

        Returns:
            MatchSummary of this run.
        """
        summary = MatchSummary()
        if progress_id is None:
            return self._match(summary, None, library_path_id)
        with operation_context(progress_id):
            return self._match(summary, progress_id, library_path_id)

    def _match(
        self,
        summary: MatchSummary,
        progress_id: str | None,
        library_path_id: int | None,
    ) -> MatchSummary:
        total = count_unmatched_analyses(self.conn, library_path_id)
        self._update_progress(progress_id, summary, total=total)

        self.build_index()
        summary.errors = self._source_errors
        if self.sources and self._source_errors == len(self.sources):
            message = "No origin system could be reached"
            logger.error(message)
            if progress_id and self.tracker:
                self.tracker.fail(progress_id, message)
            return summary

        after_id = 0
        while True:
            batch = list_analyses(
                self.conn,
                library_path_id=library_path_id,
                unmatched_only=True,
                after_id=after_id,
                limit=BATCH_SIZE,
            )
            if not batch:
                break
            for record in batch:
                self._match_record(record, summary)
                if summary.processed % PROGRESS_INTERVAL == 0:
                    self._update_progress(
                        progress_id, summary, total=total, current=record.path
                    )
            self.conn.commit()
            after_id = batch[-1].id

        self._update_progress(progress_id, summary, total=total)
        if progress_id and self.tracker:
            self.tracker.complete(
                progress_id, secondary=summary.matched, errors=summary.errors
            )
        logger.info(
            "Matching finished: %d processed, %d matched, %d unmatched, %d error(s)",
            summary.processed,
            summary.matched,
            summary.unmatched,
            summary.errors,
        )
        return summary

    def _match_record(self, record: VideoAnalysisRecord, summary: MatchSummary) -> None:
        summary.processed += 1
        result = self.match_one(record)
        if result is None:
            summary.unmatched += 1
            return
        try:
            update_analysis_match(
                self.conn,
                record.id,
                result.origin_system,
                result.origin_id,
                result.title,
                utc_now_iso(),
                season_number=result.season_number,
                episode_number=result.episode_number,
                year=result.year,
            )
        except sqlite3.Error as e:
            logger.error("Cannot save match for %s: %s", record.path, e)
            summary.errors += 1
            return
        summary.matched += 1
        logger.debug(
            "Matched %s to %s %s",
            record.path,
            result.origin_system.value,
            result.title,
        )

    def _update_progress(
        self,
        progress_id: str | None,
        summary: MatchSummary,
        total: int,
        current: str | None = None,
    ) -> None:
        if progress_id and self.tracker:
            self.tracker.update(
                progress_id,
                processed=summary.processed,
                total=total,
                secondary=summary.matched,
                errors=summary.errors,
                current_item=Path(current).name if current else None,
            )
        if self.progress_callback is not None:
            try:
                self.progress_callback(summary.processed, total)
            except Exception as e:
                logger.warning("Progress callback failed: %s", e)
