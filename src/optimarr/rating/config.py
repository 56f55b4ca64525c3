"""Immutable rating configuration values.

A RatingConfig is built fresh for every rating call (see
``optimarr.config.rating.load_rating_config``) and never cached by the
engine, so administrator changes to weights or thresholds take effect on
the next file that is rated.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from optimarr.rating.matrix import ClientCompatibilityMatrix, default_matrix


class RatingConfigError(ValueError):
    """Raised when rating configuration values are malformed."""


class CategoryMode(Enum):
    """How the Optimal/Good/Poor category is derived."""

    SCORE = "score"
    CLIENTS = "clients"


def _frozen(mapping: Mapping[str, bool]) -> Mapping[str, bool]:
    """Copy a support table into a read-only, case-insensitive mapping."""
    return MappingProxyType({str(k).casefold(): bool(v) for k, v in mapping.items()})


@dataclass(frozen=True)
class RatingWeights:
    """Score deductions applied by the rating engine."""

    surround_sound: int = 3
    hdr: int = 8
    high_bitrate: int = 5
    incorrect_codec_tag: int = 12
    unsupported_video_codec: int = 35
    unsupported_audio_codec: int = 25
    unsupported_container: int = 30
    unsupported_subtitle_format: int = 8
    unsupported_bit_depth: int = 18
    fast_start: int = 5
    high_bitrate_threshold_mbps: float = 40.0

    def __post_init__(self) -> None:
        for name, value in vars(self).items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise RatingConfigError(f"weight {name} must be a number, got {value!r}")
            if value < 0:
                raise RatingConfigError(f"weight {name} must be >= 0, got {value}")
        if self.high_bitrate_threshold_mbps <= 0:
            raise RatingConfigError("high_bitrate_threshold_mbps must be > 0")


@dataclass(frozen=True)
class RatingThresholds:
    """Boundaries between the Optimal, Good and Poor categories."""

    optimal: int = 80
    good: int = 60
    mode: CategoryMode = CategoryMode.SCORE
    optimal_direct_play: int = 8
    good_direct_play: int = 5
    good_combined: int = 8

    def __post_init__(self) -> None:
        if not 0 <= self.good <= self.optimal <= 100:
            raise RatingConfigError(
                f"thresholds must satisfy 0 <= good <= optimal <= 100, "
                f"got good={self.good} optimal={self.optimal}"
            )
        if min(self.optimal_direct_play, self.good_direct_play, self.good_combined) < 0:
            raise RatingConfigError("client-count thresholds must be >= 0")


DEFAULT_SUPPORTED_VIDEO: dict[str, bool] = {
    "H.264": True,
    "H.264 8-bit": True,
    "H.265": True,
    "H.265 8-bit": True,
    "H.265 10-bit": False,
    "VP9": True,
    "AV1": False,
}
DEFAULT_SUPPORTED_AUDIO: dict[str, bool] = {
    "AAC": True,
    "MP3": True,
    "FLAC": True,
    "Opus": True,
    "AC3": False,
    "EAC3": False,
    "DTS": False,
}
DEFAULT_SUPPORTED_CONTAINERS: dict[str, bool] = {
    "MP4": True,
    "M4V": True,
    "MOV": True,
    "WebM": True,
    "MKV": False,
    "TS": False,
}
DEFAULT_SUPPORTED_SUBTITLES: dict[str, bool] = {
    "SRT": True,
    "VTT": True,
    "ASS": False,
    "SSA": False,
}
DEFAULT_SUPPORTED_BIT_DEPTHS: dict[str, bool] = {
    "8": True,
    "10": False,
    "12": False,
}


@dataclass(frozen=True)
class SupportedSets:
    """The "globally supported" property values used for scoring.

    Lookups are case-insensitive; values missing from a table are
    unsupported. Video codecs are looked up as ``"<codec> <n>-bit"`` first
    and then as the bare codec name.
    """

    video: Mapping[str, bool] = field(default_factory=lambda: _frozen(DEFAULT_SUPPORTED_VIDEO))
    audio: Mapping[str, bool] = field(default_factory=lambda: _frozen(DEFAULT_SUPPORTED_AUDIO))
    containers: Mapping[str, bool] = field(
        default_factory=lambda: _frozen(DEFAULT_SUPPORTED_CONTAINERS)
    )
    subtitles: Mapping[str, bool] = field(
        default_factory=lambda: _frozen(DEFAULT_SUPPORTED_SUBTITLES)
    )
    bit_depths: Mapping[str, bool] = field(
        default_factory=lambda: _frozen(DEFAULT_SUPPORTED_BIT_DEPTHS)
    )

    @classmethod
    def from_tables(
        cls,
        video: Mapping[str, bool] | None = None,
        audio: Mapping[str, bool] | None = None,
        containers: Mapping[str, bool] | None = None,
        subtitles: Mapping[str, bool] | None = None,
        bit_depths: Mapping[str, bool] | None = None,
    ) -> SupportedSets:
        """Build from plain dicts; omitted tables keep their defaults."""
        return cls(
            video=_frozen(DEFAULT_SUPPORTED_VIDEO if video is None else video),
            audio=_frozen(DEFAULT_SUPPORTED_AUDIO if audio is None else audio),
            containers=_frozen(
                DEFAULT_SUPPORTED_CONTAINERS if containers is None else containers
            ),
            subtitles=_frozen(
                DEFAULT_SUPPORTED_SUBTITLES if subtitles is None else subtitles
            ),
            bit_depths=_frozen(
                DEFAULT_SUPPORTED_BIT_DEPTHS if bit_depths is None else bit_depths
            ),
        )

    def video_supported(self, codec: str, bit_depth: int) -> bool:
        specific = f"{codec} {bit_depth}-bit".casefold()
        if specific in self.video:
            return self.video[specific]
        return self.video.get(codec.casefold(), False)

    def audio_supported(self, codec: str) -> bool:
        return self.audio.get(codec.casefold(), False)

    def container_supported(self, container: str) -> bool:
        return self.containers.get(container.casefold(), False)

    def subtitle_supported(self, subtitle_format: str) -> bool:
        if not subtitle_format:
            return True
        return self.subtitles.get(subtitle_format.casefold(), False)

    def bit_depth_supported(self, bit_depth: int) -> bool:
        return self.bit_depths.get(str(bit_depth), False)


@dataclass(frozen=True)
class RatingConfig:
    """Everything the rating engine needs besides the file's attributes."""

    weights: RatingWeights = field(default_factory=RatingWeights)
    thresholds: RatingThresholds = field(default_factory=RatingThresholds)
    supported: SupportedSets = field(default_factory=SupportedSets)
    matrix: ClientCompatibilityMatrix = field(default_factory=default_matrix)
