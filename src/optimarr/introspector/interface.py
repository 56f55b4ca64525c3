"""Media extraction interface and the technical-attribute types it produces."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Protocol, Union


class ExtractorUnavailableError(Exception):
    """Raised when the external inspection tool cannot be run at all."""


@dataclass(frozen=True)
class AudioTrack:
    """An audio stream of a media file."""

    codec: str
    channels: int = 0
    sample_rate: int | None = None
    language: str = "Unknown"


@dataclass(frozen=True)
class SubtitleTrack:
    """An embedded subtitle stream or an external sidecar file."""

    format: str
    language: str = "Unknown"
    embedded: bool = True
    path: str | None = None


@dataclass(frozen=True)
class TechnicalAttributes:
    """Technical attributes of a media file, as consumed by the rating engine.

    All codec, container and subtitle names are canonical (see
    ``optimarr.introspector.mappings``). Instances are immutable so a rating
    computed from them is reproducible.
    """

    container: str
    video_codec: str
    bit_depth: int = 8
    video_codec_tag: str | None = None
    codec_tag_correct: bool = True
    width: int = 0
    height: int = 0
    frame_rate: float | None = None
    is_hdr: bool = False
    hdr_type: str | None = None
    duration_seconds: float = 0.0
    file_size: int = 0
    overall_bitrate: int | None = None
    fast_start: bool | None = None
    audio_tracks: tuple[AudioTrack, ...] = field(default_factory=tuple)
    subtitle_tracks: tuple[SubtitleTrack, ...] = field(default_factory=tuple)

    @property
    def resolution(self) -> str:
        """Resolution as ``WIDTHxHEIGHT``."""
        return f"{self.width}x{self.height}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TechnicalAttributes:
        """Rebuild attributes stored with to_dict()."""
        values = dict(data)
        values["audio_tracks"] = tuple(
            AudioTrack(**track) for track in values.get("audio_tracks", ())
        )
        values["subtitle_tracks"] = tuple(
            SubtitleTrack(**track) for track in values.get("subtitle_tracks", ())
        )
        return cls(**values)


@dataclass(frozen=True)
class BrokenResult:
    """Extraction outcome for a file whose metadata could not be read.

    Attributes:
        reason: Human-readable reason, never empty.
        exit_code: Exit code of the inspection tool, when it ran.
    """

    reason: str
    exit_code: int | None = None


ExtractionResult = Union[TechnicalAttributes, BrokenResult]


class MediaExtractor(Protocol):
    """Protocol for technical-attribute extraction implementations."""

    def extract(self, path: Path) -> ExtractionResult:
        """Extract technical attributes from a media file.

        Unreadable or malformed media yields a BrokenResult; only a missing
        or unusable tool raises (ExtractorUnavailableError).
        """
        ...
