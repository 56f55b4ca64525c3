"""Video analysis record operations.

Records are keyed by absolute path. Re-analysis overwrites the technical
and rating columns but keeps origin match and processing-status columns,
which are owned by the matcher and the re-acquisition workflow.
"""

import json
import sqlite3

from optimarr.db.types import (
    OriginSystem,
    ProcessingStatus,
    VideoAnalysisRecord,
)
from optimarr.rating.engine import RatingResult

from .helpers import _dump_tracks, _row_to_analysis


def upsert_analysis(conn: sqlite3.Connection, record: VideoAnalysisRecord) -> int:
    """Insert or update an analysis record (upsert by path).

    Returns:
        The ID of the inserted/updated record.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        INSERT INTO video_analyses (
            path, library_path_id, scan_id, analyzed_at, file_size,
            container, video_codec, video_codec_tag, codec_tag_correct,
            width, height, frame_rate, bit_depth, is_hdr, hdr_type,
            duration_seconds, audio_tracks_json, subtitle_tracks_json,
            attributes_json, client_verdicts_json, direct_play_clients,
            remux_clients, transcode_clients, score, category, issues_json,
            recommendations_json, is_broken, broken_reason
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                  ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(path) DO UPDATE SET
            library_path_id = COALESCE(excluded.library_path_id,
                                       video_analyses.library_path_id),
            scan_id = excluded.scan_id,
            analyzed_at = excluded.analyzed_at,
            file_size = excluded.file_size,
            container = excluded.container,
            video_codec = excluded.video_codec,
            video_codec_tag = excluded.video_codec_tag,
            codec_tag_correct = excluded.codec_tag_correct,
            width = excluded.width,
            height = excluded.height,
            frame_rate = excluded.frame_rate,
            bit_depth = excluded.bit_depth,
            is_hdr = excluded.is_hdr,
            hdr_type = excluded.hdr_type,
            duration_seconds = excluded.duration_seconds,
            audio_tracks_json = excluded.audio_tracks_json,
            subtitle_tracks_json = excluded.subtitle_tracks_json,
            attributes_json = excluded.attributes_json,
            client_verdicts_json = excluded.client_verdicts_json,
            direct_play_clients = excluded.direct_play_clients,
            remux_clients = excluded.remux_clients,
            transcode_clients = excluded.transcode_clients,
            score = excluded.score,
            category = excluded.category,
            issues_json = excluded.issues_json,
            recommendations_json = excluded.recommendations_json,
            is_broken = excluded.is_broken,
            broken_reason = excluded.broken_reason
        RETURNING id
        """,
        (
            record.path,
            record.library_path_id,
            record.scan_id,
            record.analyzed_at,
            record.file_size,
            record.container,
            record.video_codec,
            record.video_codec_tag,
            int(record.codec_tag_correct),
            record.width,
            record.height,
            record.frame_rate,
            record.bit_depth,
            int(record.is_hdr),
            record.hdr_type,
            record.duration_seconds,
            _dump_tracks(record.audio_tracks),
            _dump_tracks(record.subtitle_tracks),
            record.attributes_json,
            json.dumps(record.client_verdicts),
            record.direct_play_clients,
            record.remux_clients,
            record.transcode_clients,
            record.score,
            record.category,
            json.dumps(record.issues),
            json.dumps(record.recommendations),
            int(record.is_broken),
            record.broken_reason,
        ),
    )
    result = cursor.fetchone()
    if result is None:
        raise sqlite3.IntegrityError(
            f"RETURNING clause failed to return analysis ID for path: {record.path}"
        )
    return result[0]


def get_analysis(
    conn: sqlite3.Connection, analysis_id: int
) -> VideoAnalysisRecord | None:
    """Get an analysis record by ID."""
    row = conn.execute(
        "SELECT * FROM video_analyses WHERE id = ?", (analysis_id,)
    ).fetchone()
    return _row_to_analysis(row) if row else None


def get_analysis_by_path(
    conn: sqlite3.Connection, path: str
) -> VideoAnalysisRecord | None:
    """Get an analysis record by absolute file path."""
    row = conn.execute(
        "SELECT * FROM video_analyses WHERE path = ?", (path,)
    ).fetchone()
    return _row_to_analysis(row) if row else None


def list_analyses(
    conn: sqlite3.Connection,
    library_path_id: int | None = None,
    unmatched_only: bool = False,
    include_broken: bool = True,
    after_id: int = 0,
    limit: int | None = None,
) -> list[VideoAnalysisRecord]:
    """List analysis records ordered by ID.

    Args:
        conn: Database connection.
        library_path_id: Restrict to one library path.
        unmatched_only: Only records without an origin match.
        include_broken: Include records flagged broken.
        after_id: Keyset pagination cursor; only IDs greater than this.
        limit: Maximum number of records (None = all).
    """
    conditions = ["id > ?"]
    params: list = [after_id]
    if library_path_id is not None:
        conditions.append("library_path_id = ?")
        params.append(library_path_id)
    if unmatched_only:
        conditions.append("origin_system IS NULL")
    if not include_broken:
        conditions.append("is_broken = 0")

    query = f"SELECT * FROM video_analyses WHERE {' AND '.join(conditions)} ORDER BY id"
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)

    rows = conn.execute(query, params).fetchall()
    return [_row_to_analysis(row) for row in rows]


def count_analyses_for_scan(
    conn: sqlite3.Connection, scan_id: int, include_broken: bool = True
) -> int:
    """Count records last written by a scan."""
    query = "SELECT COUNT(*) FROM video_analyses WHERE scan_id = ?"
    if not include_broken:
        query += " AND is_broken = 0"
    return conn.execute(query, (scan_id,)).fetchone()[0]


def count_unmatched_analyses(
    conn: sqlite3.Connection, library_path_id: int | None = None
) -> int:
    """Count records with no origin match, optionally under one library path."""
    if library_path_id is None:
        row = conn.execute(
            "SELECT COUNT(*) FROM video_analyses WHERE origin_system IS NULL"
        ).fetchone()
    else:
        row = conn.execute(
            """
            SELECT COUNT(*) FROM video_analyses
            WHERE origin_system IS NULL AND library_path_id = ?
            """,
            (library_path_id,),
        ).fetchone()
    return row[0]


def summarize_library_path(
    conn: sqlite3.Connection, library_path_id: int
) -> tuple[int, int]:
    """Return (file count, total bytes) of the records under a library path."""
    row = conn.execute(
        """
        SELECT COUNT(*), COALESCE(SUM(file_size), 0)
        FROM video_analyses WHERE library_path_id = ?
        """,
        (library_path_id,),
    ).fetchone()
    return row[0], row[1]


def update_analysis_rating(
    conn: sqlite3.Connection, analysis_id: int, rating: RatingResult
) -> bool:
    """Replace the stored rating of a record.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        UPDATE video_analyses
        SET client_verdicts_json = ?, direct_play_clients = ?, remux_clients = ?,
            transcode_clients = ?, score = ?, category = ?, issues_json = ?,
            recommendations_json = ?
        WHERE id = ?
        """,
        (
            json.dumps(rating.verdicts_as_dict()),
            rating.direct_play_clients,
            rating.remux_clients,
            rating.transcode_clients,
            rating.score,
            rating.category.value,
            json.dumps(list(rating.issues)),
            json.dumps(list(rating.recommendations)),
            analysis_id,
        ),
    )
    return cursor.rowcount > 0


def update_analysis_match(
    conn: sqlite3.Connection,
    analysis_id: int,
    origin_system: OriginSystem,
    origin_id: int,
    origin_title: str,
    matched_at: str,
    season_number: int | None = None,
    episode_number: int | None = None,
    year: int | None = None,
) -> bool:
    """Store an origin match on a record.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        UPDATE video_analyses
        SET origin_system = ?, origin_id = ?, origin_title = ?,
            season_number = ?, episode_number = ?, year = ?, matched_at = ?
        WHERE id = ?
        """,
        (
            origin_system.value,
            origin_id,
            origin_title,
            season_number,
            episode_number,
            year,
            matched_at,
            analysis_id,
        ),
    )
    return cursor.rowcount > 0


def set_processing_status(
    conn: sqlite3.Connection,
    analysis_id: int,
    status: ProcessingStatus,
    started_at: str | None = None,
) -> bool:
    """Set the processing status; ``started_at`` is cleared for Idle.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        UPDATE video_analyses SET processing_status = ?, processing_started_at = ?
        WHERE id = ?
        """,
        (
            status.value,
            started_at if status is ProcessingStatus.PROCESSING else None,
            analysis_id,
        ),
    )
    return cursor.rowcount > 0


def get_stale_processing(
    conn: sqlite3.Connection, started_before: str
) -> list[VideoAnalysisRecord]:
    """Records in Processing whose processing began before a timestamp."""
    rows = conn.execute(
        """
        SELECT * FROM video_analyses
        WHERE processing_status = ? AND processing_started_at IS NOT NULL
              AND processing_started_at <= ?
        ORDER BY id
        """,
        (ProcessingStatus.PROCESSING.value, started_before),
    ).fetchall()
    return [_row_to_analysis(row) for row in rows]


def delete_analysis(conn: sqlite3.Connection, analysis_id: int) -> bool:
    """Delete an analysis record.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute("DELETE FROM video_analyses WHERE id = ?", (analysis_id,))
    return cursor.rowcount > 0
