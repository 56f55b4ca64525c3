"""Shared helper functions for database queries.

This module provides utility functions used across multiple query modules:
- UTC timestamp formatting
- JSON column (de)serialization
- Row mapping functions to convert database rows to typed dataclasses
"""

import json
import sqlite3
from dataclasses import asdict
from datetime import datetime, timezone

from optimarr.db.types import (
    FailedFileRecord,
    FailureType,
    LibraryPathRecord,
    LibraryScanRecord,
    OriginSystem,
    ProcessingStatus,
    ScanStatus,
    VideoAnalysisRecord,
)
from optimarr.introspector.interface import AudioTrack, SubtitleTrack


def utc_now_iso() -> str:
    """Current time as an ISO 8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


def _dump_tracks(tracks) -> str:
    return json.dumps([asdict(track) for track in tracks])


def _origin(value: str | None) -> OriginSystem | None:
    return OriginSystem(value) if value else None


def _row_to_library_path(row: sqlite3.Row) -> LibraryPathRecord:
    """Convert a library_paths row to LibraryPathRecord."""
    return LibraryPathRecord(
        id=row["id"],
        path=row["path"],
        name=row["name"],
        category=row["category"],
        created_at=row["created_at"],
        origin_system=_origin(row["origin_system"]),
        origin_id=row["origin_id"],
        last_synced_at=row["last_synced_at"],
        last_scanned_at=row["last_scanned_at"],
        file_count=row["file_count"],
        total_size_bytes=row["total_size_bytes"],
    )


def _row_to_scan(row: sqlite3.Row) -> LibraryScanRecord:
    """Convert a library_scans row to LibraryScanRecord."""
    return LibraryScanRecord(
        id=row["id"],
        library_path_id=row["library_path_id"],
        status=ScanStatus(row["status"]),
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        total_files=row["total_files"],
        processed_files=row["processed_files"],
        failed_files=row["failed_files"],
        current_file=row["current_file"],
        files_per_second=row["files_per_second"],
        cancellation_requested=bool(row["cancellation_requested"]),
        error_message=row["error_message"],
    )


def _row_to_analysis(row: sqlite3.Row) -> VideoAnalysisRecord:
    """Convert a video_analyses row to VideoAnalysisRecord.

    JSON columns are decoded; track lists become AudioTrack/SubtitleTrack.
    """
    return VideoAnalysisRecord(
        id=row["id"],
        path=row["path"],
        library_path_id=row["library_path_id"],
        scan_id=row["scan_id"],
        analyzed_at=row["analyzed_at"],
        file_size=row["file_size"],
        container=row["container"],
        video_codec=row["video_codec"],
        video_codec_tag=row["video_codec_tag"],
        codec_tag_correct=bool(row["codec_tag_correct"]),
        width=row["width"],
        height=row["height"],
        frame_rate=row["frame_rate"],
        bit_depth=row["bit_depth"],
        is_hdr=bool(row["is_hdr"]),
        hdr_type=row["hdr_type"],
        duration_seconds=row["duration_seconds"],
        audio_tracks=[AudioTrack(**t) for t in json.loads(row["audio_tracks_json"])],
        subtitle_tracks=[
            SubtitleTrack(**t) for t in json.loads(row["subtitle_tracks_json"])
        ],
        attributes_json=row["attributes_json"],
        client_verdicts=json.loads(row["client_verdicts_json"]),
        direct_play_clients=row["direct_play_clients"],
        remux_clients=row["remux_clients"],
        transcode_clients=row["transcode_clients"],
        score=row["score"],
        category=row["category"],
        issues=json.loads(row["issues_json"]),
        recommendations=json.loads(row["recommendations_json"]),
        is_broken=bool(row["is_broken"]),
        broken_reason=row["broken_reason"],
        processing_status=ProcessingStatus(row["processing_status"]),
        processing_started_at=row["processing_started_at"],
        origin_system=_origin(row["origin_system"]),
        origin_id=row["origin_id"],
        origin_title=row["origin_title"],
        season_number=row["season_number"],
        episode_number=row["episode_number"],
        year=row["year"],
        matched_at=row["matched_at"],
    )


def _row_to_failed_file(row: sqlite3.Row) -> FailedFileRecord:
    """Convert a failed_files row to FailedFileRecord."""
    return FailedFileRecord(
        id=row["id"],
        scan_id=row["scan_id"],
        path=row["path"],
        error_type=FailureType(row["error_type"]),
        message=row["message"],
        created_at=row["created_at"],
        retry_count=row["retry_count"],
    )
