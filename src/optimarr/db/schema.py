"""Database schema definition for optimarr.

Timestamps are ISO 8601 UTC strings. JSON columns hold serialized lists and
dicts (track lists, verdict maps, issues).
"""

import sqlite3

SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS _meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- Scanned library roots
CREATE TABLE IF NOT EXISTS library_paths (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT UNIQUE NOT NULL,
    name TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT 'other',
    origin_system TEXT,      -- 'sonarr' or 'radarr' when linked
    origin_id INTEGER,       -- series/movie root id in the origin system
    last_synced_at TEXT,
    last_scanned_at TEXT,
    file_count INTEGER NOT NULL DEFAULT 0,
    total_size_bytes INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

-- One row per scan attempt
CREATE TABLE IF NOT EXISTS library_scans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    library_path_id INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    started_at TEXT,
    completed_at TEXT,
    total_files INTEGER,  -- NULL until discovery finishes
    processed_files INTEGER NOT NULL DEFAULT 0,
    failed_files INTEGER NOT NULL DEFAULT 0,
    current_file TEXT,
    files_per_second REAL,
    cancellation_requested INTEGER NOT NULL DEFAULT 0,
    error_message TEXT,
    FOREIGN KEY (library_path_id) REFERENCES library_paths(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_scans_library_status
    ON library_scans(library_path_id, status);

-- At most one pending or running scan per library path, across processes
CREATE UNIQUE INDEX IF NOT EXISTS idx_scans_one_active
    ON library_scans(library_path_id) WHERE status IN ('pending', 'running');

-- One row per analyzed file, keyed by absolute path
CREATE TABLE IF NOT EXISTS video_analyses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT UNIQUE NOT NULL,
    library_path_id INTEGER,
    scan_id INTEGER,
    analyzed_at TEXT NOT NULL,
    file_size INTEGER NOT NULL DEFAULT 0,
    container TEXT,
    video_codec TEXT,
    video_codec_tag TEXT,
    codec_tag_correct INTEGER NOT NULL DEFAULT 1,
    width INTEGER,
    height INTEGER,
    frame_rate REAL,
    bit_depth INTEGER,
    is_hdr INTEGER NOT NULL DEFAULT 0,
    hdr_type TEXT,
    duration_seconds REAL,
    audio_tracks_json TEXT NOT NULL DEFAULT '[]',
    subtitle_tracks_json TEXT NOT NULL DEFAULT '[]',
    -- Full extracted attributes; re-rating reads these instead of re-extracting
    attributes_json TEXT,
    client_verdicts_json TEXT NOT NULL DEFAULT '{}',
    direct_play_clients INTEGER NOT NULL DEFAULT 0,
    remux_clients INTEGER NOT NULL DEFAULT 0,
    transcode_clients INTEGER NOT NULL DEFAULT 0,
    score INTEGER CHECK (score IS NULL OR score BETWEEN 0 AND 100),
    category TEXT NOT NULL DEFAULT 'unknown',
    issues_json TEXT NOT NULL DEFAULT '[]',
    recommendations_json TEXT NOT NULL DEFAULT '[]',
    is_broken INTEGER NOT NULL DEFAULT 0,
    broken_reason TEXT,
    processing_status TEXT NOT NULL DEFAULT 'idle',
    processing_started_at TEXT,
    -- Origin match
    origin_system TEXT,
    origin_id INTEGER,
    origin_title TEXT,
    season_number INTEGER,
    episode_number INTEGER,
    year INTEGER,
    matched_at TEXT,
    FOREIGN KEY (library_path_id) REFERENCES library_paths(id) ON DELETE CASCADE,
    FOREIGN KEY (scan_id) REFERENCES library_scans(id) ON DELETE SET NULL
);

CREATE INDEX IF NOT EXISTS idx_analyses_library ON video_analyses(library_path_id);
CREATE INDEX IF NOT EXISTS idx_analyses_scan ON video_analyses(scan_id);
CREATE INDEX IF NOT EXISTS idx_analyses_processing
    ON video_analyses(processing_status, processing_started_at);

-- Discovery and persistence failures; media parse failures are not stored here
CREATE TABLE IF NOT EXISTS failed_files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    scan_id INTEGER NOT NULL,
    path TEXT NOT NULL,
    error_type TEXT NOT NULL,
    message TEXT NOT NULL,
    retry_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    FOREIGN KEY (scan_id) REFERENCES library_scans(id) ON DELETE CASCADE,
    UNIQUE(scan_id, path)
);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the database schema if it doesn't exist.

    Args:
        conn: An open database connection.
    """
    conn.executescript(SCHEMA_SQL)

    # Set schema version if not already set
    conn.execute(
        "INSERT OR IGNORE INTO _meta (key, value) VALUES ('schema_version', ?)",
        (str(SCHEMA_VERSION),),
    )
    # executescript() commits implicitly; the INSERT above opens a new
    # transaction that must be committed too.
    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Get the current schema version from the database.

    Returns:
        The schema version number, or None if not set.
    """
    try:
        cursor = conn.execute("SELECT value FROM _meta WHERE key = 'schema_version'")
        row = cursor.fetchone()
        return int(row[0]) if row else None
    except sqlite3.OperationalError:
        # Table doesn't exist
        return None


def initialize_database(conn: sqlite3.Connection) -> None:
    """Create the schema on a fresh database; existing ones are left as is."""
    if get_schema_version(conn) is None:
        create_schema(conn)
