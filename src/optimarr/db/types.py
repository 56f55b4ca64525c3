"""Data type definitions for the optimarr database.

Records mirror table rows; JSON columns are decoded into Python values by
the row mappers in ``optimarr.db.queries.helpers``.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from optimarr.introspector.interface import (
    AudioTrack,
    BrokenResult,
    SubtitleTrack,
    TechnicalAttributes,
)

if TYPE_CHECKING:
    from optimarr.rating.engine import RatingResult


class ScanStatus(Enum):
    """Status of a library scan.

    State transitions:
        pending → running
        running → completed | failed | cancelled
        pending → failed | cancelled

    Terminal states: completed, failed, cancelled
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.FAILED, ScanStatus.CANCELLED)


ACTIVE_SCAN_STATUSES = (ScanStatus.PENDING, ScanStatus.RUNNING)


class ProcessingStatus(Enum):
    """Whether a record is queued for external re-acquisition."""

    IDLE = "idle"
    PROCESSING = "processing"


class OriginSystem(Enum):
    """External catalog a record or library path is linked to."""

    SONARR = "sonarr"
    RADARR = "radarr"


class FailureType(Enum):
    """Classification of a FailedFile entry."""

    DISCOVERY = "discovery"
    PERSISTENCE = "persistence"
    CONFIGURATION = "configuration"


@dataclass
class LibraryPathRecord:
    """Database record for library_paths table."""

    id: int | None
    path: str
    name: str
    category: str
    created_at: str  # ISO 8601
    origin_system: OriginSystem | None = None
    origin_id: int | None = None
    last_synced_at: str | None = None
    last_scanned_at: str | None = None
    file_count: int = 0
    total_size_bytes: int = 0


@dataclass
class LibraryScanRecord:
    """Database record for library_scans table."""

    id: int | None
    library_path_id: int
    status: ScanStatus
    started_at: str | None = None
    completed_at: str | None = None
    total_files: int | None = None  # None until discovery finishes
    processed_files: int = 0
    failed_files: int = 0
    current_file: str | None = None
    files_per_second: float | None = None
    cancellation_requested: bool = False
    error_message: str | None = None


@dataclass
class VideoAnalysisRecord:
    """Database record for video_analyses table."""

    id: int | None
    path: str
    library_path_id: int | None
    scan_id: int | None
    analyzed_at: str  # ISO 8601
    file_size: int = 0

    # Technical attributes (None for broken files)
    container: str | None = None
    video_codec: str | None = None
    video_codec_tag: str | None = None
    codec_tag_correct: bool = True
    width: int | None = None
    height: int | None = None
    frame_rate: float | None = None
    bit_depth: int | None = None
    is_hdr: bool = False
    hdr_type: str | None = None
    duration_seconds: float | None = None
    audio_tracks: list[AudioTrack] = field(default_factory=list)
    subtitle_tracks: list[SubtitleTrack] = field(default_factory=list)
    attributes_json: str | None = None

    # Rating
    client_verdicts: dict[str, str] = field(default_factory=dict)
    direct_play_clients: int = 0
    remux_clients: int = 0
    transcode_clients: int = 0
    score: int | None = None
    category: str = "unknown"
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    is_broken: bool = False
    broken_reason: str | None = None

    processing_status: ProcessingStatus = ProcessingStatus.IDLE
    processing_started_at: str | None = None

    # Origin match
    origin_system: OriginSystem | None = None
    origin_id: int | None = None
    origin_title: str | None = None
    season_number: int | None = None
    episode_number: int | None = None
    year: int | None = None
    matched_at: str | None = None

    @property
    def resolution(self) -> str | None:
        if self.width is None or self.height is None:
            return None
        return f"{self.width}x{self.height}"

    @property
    def is_matched(self) -> bool:
        return self.origin_system is not None

    def attributes(self) -> TechnicalAttributes | None:
        """Decode the stored technical attributes (None for broken files)."""
        if self.attributes_json is None:
            return None
        return TechnicalAttributes.from_dict(json.loads(self.attributes_json))

    @classmethod
    def from_attributes(
        cls,
        path: str,
        attributes: TechnicalAttributes,
        analyzed_at: str,
        library_path_id: int | None = None,
        scan_id: int | None = None,
        rating: RatingResult | None = None,
    ) -> VideoAnalysisRecord:
        """Create a record from successfully extracted attributes."""
        record = cls(
            id=None,
            path=path,
            library_path_id=library_path_id,
            scan_id=scan_id,
            analyzed_at=analyzed_at,
            file_size=attributes.file_size,
            container=attributes.container,
            video_codec=attributes.video_codec,
            video_codec_tag=attributes.video_codec_tag,
            codec_tag_correct=attributes.codec_tag_correct,
            width=attributes.width,
            height=attributes.height,
            frame_rate=attributes.frame_rate,
            bit_depth=attributes.bit_depth,
            is_hdr=attributes.is_hdr,
            hdr_type=attributes.hdr_type,
            duration_seconds=attributes.duration_seconds,
            audio_tracks=list(attributes.audio_tracks),
            subtitle_tracks=list(attributes.subtitle_tracks),
            attributes_json=json.dumps(attributes.to_dict()),
        )
        if rating is not None:
            record.apply_rating(rating)
        return record

    @classmethod
    def from_broken(
        cls,
        path: str,
        broken: BrokenResult,
        analyzed_at: str,
        file_size: int = 0,
        library_path_id: int | None = None,
        scan_id: int | None = None,
    ) -> VideoAnalysisRecord:
        """Create a record for a file whose metadata could not be extracted."""
        return cls(
            id=None,
            path=path,
            library_path_id=library_path_id,
            scan_id=scan_id,
            analyzed_at=analyzed_at,
            file_size=file_size,
            is_broken=True,
            broken_reason=broken.reason,
        )

    def apply_rating(self, rating: RatingResult) -> None:
        """Copy a rating result onto this record."""
        self.client_verdicts = rating.verdicts_as_dict()
        self.direct_play_clients = rating.direct_play_clients
        self.remux_clients = rating.remux_clients
        self.transcode_clients = rating.transcode_clients
        self.score = rating.score
        self.category = rating.category.value
        self.issues = list(rating.issues)
        self.recommendations = list(rating.recommendations)

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible view used by the CLI."""
        return {
            "id": self.id,
            "path": self.path,
            "library_path_id": self.library_path_id,
            "scan_id": self.scan_id,
            "analyzed_at": self.analyzed_at,
            "file_size": self.file_size,
            "container": self.container,
            "video_codec": self.video_codec,
            "codec_tag_correct": self.codec_tag_correct,
            "resolution": self.resolution,
            "frame_rate": self.frame_rate,
            "bit_depth": self.bit_depth,
            "is_hdr": self.is_hdr,
            "hdr_type": self.hdr_type,
            "duration_seconds": self.duration_seconds,
            "audio_tracks": [asdict(t) for t in self.audio_tracks],
            "subtitle_tracks": [asdict(t) for t in self.subtitle_tracks],
            "client_verdicts": self.client_verdicts,
            "direct_play_clients": self.direct_play_clients,
            "remux_clients": self.remux_clients,
            "transcode_clients": self.transcode_clients,
            "score": self.score,
            "category": self.category,
            "issues": self.issues,
            "recommendations": self.recommendations,
            "is_broken": self.is_broken,
            "broken_reason": self.broken_reason,
            "processing_status": self.processing_status.value,
            "origin_system": self.origin_system.value if self.origin_system else None,
            "origin_id": self.origin_id,
            "origin_title": self.origin_title,
            "season_number": self.season_number,
            "episode_number": self.episode_number,
            "year": self.year,
            "matched_at": self.matched_at,
        }


@dataclass
class FailedFileRecord:
    """Database record for failed_files table."""

    id: int | None
    scan_id: int
    path: str
    error_type: FailureType
    message: str
    created_at: str  # ISO 8601
    retry_count: int = 0
