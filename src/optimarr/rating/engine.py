"""Compatibility rating engine.

``rate()`` turns a file's technical attributes into a 0-100 score, a
Direct Play / Remux / Transcode verdict for every configured client, and
human-readable issues with matching recommendations.

The engine is a pure function of its two arguments: it performs no I/O,
reads no globals and keeps no state between calls. Re-rating stored
attributes with the same configuration always yields the same result.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from optimarr.introspector.interface import TechnicalAttributes
from optimarr.introspector.mappings import (
    MP4_FAMILY,
    normalize_audio_codec,
    normalize_subtitle_format,
    normalize_video_codec,
)
from optimarr.rating.config import CategoryMode, RatingConfig, RatingThresholds
from optimarr.rating.matrix import (
    EXTERNAL_SUBTITLE_CONTAINER,
    ClientCompatibilityMatrix,
    SupportLevel,
)

# Bitrates at or above this are treated as corrupt metadata, not as "high"
IMPLAUSIBLE_BITRATE_MBPS = 1000.0


class Verdict(Enum):
    """How a client will play a file."""

    DIRECT_PLAY = "direct_play"
    REMUX = "remux"
    TRANSCODE = "transcode"


class Category(Enum):
    """Coarse compatibility label."""

    OPTIMAL = "optimal"
    GOOD = "good"
    POOR = "poor"
    UNKNOWN = "unknown"  # broken files are never rated


class IssueKind(Enum):
    """Kinds of scoring issues; each maps to at most one recommendation."""

    VIDEO_CODEC = "video_codec"
    CONTAINER = "container"
    AUDIO_CODEC = "audio_codec"
    SUBTITLE_FORMAT = "subtitle_format"
    BIT_DEPTH = "bit_depth"
    NO_SURROUND = "no_surround"
    SDR = "sdr"
    HIGH_BITRATE = "high_bitrate"
    CODEC_TAG = "codec_tag"
    FAST_START = "fast_start"


RECOMMENDATIONS: dict[IssueKind, str] = {
    IssueKind.VIDEO_CODEC: "Re-encode to a supported video codec (e.g., H.264 8-bit)",
    IssueKind.CONTAINER: "Use a supported container (e.g., MP4)",
    IssueKind.AUDIO_CODEC: "Use supported audio codecs (e.g., AAC)",
    IssueKind.SUBTITLE_FORMAT: "Use supported subtitle formats (e.g., SRT, VTT)",
    IssueKind.BIT_DEPTH: "Use 8-bit depth for maximum compatibility",
    IssueKind.SDR: "Consider HDR version for better visual quality",
    IssueKind.HIGH_BITRATE: "Consider reducing bitrate for better streaming performance",
    IssueKind.CODEC_TAG: "Fix codec tag to ensure proper playback",
    IssueKind.FAST_START: (
        "Re-encode with fast start flag (-movflags +faststart) "
        "for better streaming performance"
    ),
}


@dataclass(frozen=True)
class Issue:
    kind: IssueKind
    message: str


@dataclass(frozen=True)
class RatingResult:
    """Outcome of rating one file."""

    score: int
    category: Category
    client_verdicts: Mapping[str, Verdict]
    issues: tuple[str, ...]
    recommendations: tuple[str, ...]

    def _count(self, verdict: Verdict) -> int:
        return sum(1 for v in self.client_verdicts.values() if v is verdict)

    @property
    def direct_play_clients(self) -> int:
        return self._count(Verdict.DIRECT_PLAY)

    @property
    def remux_clients(self) -> int:
        return self._count(Verdict.REMUX)

    @property
    def transcode_clients(self) -> int:
        return self._count(Verdict.TRANSCODE)

    def verdicts_as_dict(self) -> dict[str, str]:
        return {client: verdict.value for client, verdict in self.client_verdicts.items()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "category": self.category.value,
            "client_verdicts": self.verdicts_as_dict(),
            "direct_play_clients": self.direct_play_clients,
            "remux_clients": self.remux_clients,
            "transcode_clients": self.transcode_clients,
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
        }


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def estimate_bitrate_mbps(file_size: int, duration_seconds: float) -> float | None:
    """Estimate the overall bitrate from file size and duration."""
    if file_size <= 0 or duration_seconds <= 0:
        return None
    return file_size * 8 / (duration_seconds * 1_000_000)


def _score_issues(attributes: TechnicalAttributes, config: RatingConfig) -> list[Issue]:
    """Collect every deductible issue for a file, in a fixed order."""
    supported = config.supported
    issues: list[Issue] = []

    video_codec = normalize_video_codec(attributes.video_codec)
    bit_depth = attributes.bit_depth

    if not supported.video_supported(video_codec, bit_depth):
        issues.append(
            Issue(
                IssueKind.VIDEO_CODEC,
                f"{video_codec} {bit_depth}-bit video codec is not supported",
            )
        )

    if not supported.container_supported(attributes.container):
        issues.append(
            Issue(IssueKind.CONTAINER, f"{attributes.container} container is not supported")
        )

    bad_audio = _unique(
        [
            codec
            for codec in (normalize_audio_codec(t.codec) for t in attributes.audio_tracks)
            if not supported.audio_supported(codec)
        ]
    )
    if bad_audio:
        issues.append(
            Issue(
                IssueKind.AUDIO_CODEC,
                f"{', '.join(bad_audio)} audio codec(s) are not supported",
            )
        )

    bad_subtitles = _unique(
        [
            fmt
            for fmt in (
                normalize_subtitle_format(t.format) if t.format else ""
                for t in attributes.subtitle_tracks
            )
            if not supported.subtitle_supported(fmt)
        ]
    )
    if bad_subtitles:
        issues.append(
            Issue(
                IssueKind.SUBTITLE_FORMAT,
                f"{', '.join(bad_subtitles)} subtitle format(s) are not supported",
            )
        )

    if not supported.bit_depth_supported(bit_depth):
        issues.append(Issue(IssueKind.BIT_DEPTH, f"{bit_depth}-bit depth is not supported"))

    if attributes.audio_tracks and all(t.channels <= 2 for t in attributes.audio_tracks):
        max_channels = max(t.channels for t in attributes.audio_tracks)
        issues.append(
            Issue(
                IssueKind.NO_SURROUND,
                f"All audio tracks are stereo or mono ({max_channels} channels)",
            )
        )

    if not attributes.is_hdr:
        issues.append(
            Issue(IssueKind.SDR, "SDR content may have reduced visual quality compared to HDR")
        )

    bitrate = estimate_bitrate_mbps(attributes.file_size, attributes.duration_seconds)
    threshold = config.weights.high_bitrate_threshold_mbps
    if bitrate is not None and threshold < bitrate < IMPLAUSIBLE_BITRATE_MBPS:
        issues.append(
            Issue(
                IssueKind.HIGH_BITRATE,
                f"High bitrate ({bitrate:.2f} Mbps) may cause buffering on slower connections",
            )
        )

    if not attributes.codec_tag_correct and attributes.video_codec_tag:
        issues.append(
            Issue(
                IssueKind.CODEC_TAG,
                f"Incorrect codec tag ({attributes.video_codec_tag}) for {video_codec}",
            )
        )

    if attributes.container.upper() in MP4_FAMILY and not attributes.fast_start:
        issues.append(
            Issue(
                IssueKind.FAST_START,
                "MP4 file lacks fast start optimization (moov atom not at beginning)",
            )
        )

    return issues


def _weight_for(kind: IssueKind, config: RatingConfig) -> float:
    weights = config.weights
    return {
        IssueKind.VIDEO_CODEC: weights.unsupported_video_codec,
        IssueKind.CONTAINER: weights.unsupported_container,
        IssueKind.AUDIO_CODEC: weights.unsupported_audio_codec,
        IssueKind.SUBTITLE_FORMAT: weights.unsupported_subtitle_format,
        IssueKind.BIT_DEPTH: weights.unsupported_bit_depth,
        IssueKind.NO_SURROUND: weights.surround_sound,
        IssueKind.SDR: weights.hdr,
        IssueKind.HIGH_BITRATE: weights.high_bitrate,
        IssueKind.CODEC_TAG: weights.incorrect_codec_tag,
        IssueKind.FAST_START: weights.fast_start,
    }[kind]


def client_verdict(
    attributes: TechnicalAttributes,
    matrix: ClientCompatibilityMatrix,
    client: str,
) -> Verdict:
    """Decide how one client will play a file.

    Direct Play needs every checked property Supported. Remux applies when
    the container is the only property that is not Supported: rewriting the
    container cannot change codecs, bit depth or subtitle formats, so any
    other shortfall means Transcode.
    """
    video_codec = normalize_video_codec(attributes.video_codec)
    levels = [matrix.video_support(video_codec, attributes.bit_depth, client)]
    levels.extend(
        matrix.audio_support(codec, client)
        for codec in _unique([normalize_audio_codec(t.codec) for t in attributes.audio_tracks])
    )
    levels.extend(
        matrix.subtitle_support(
            normalize_subtitle_format(track.format),
            attributes.container if track.embedded else EXTERNAL_SUBTITLE_CONTAINER,
            client,
        )
        for track in attributes.subtitle_tracks
        if track.format
    )

    non_container_ok = all(level is SupportLevel.SUPPORTED for level in levels)
    container_level = matrix.container_support(attributes.container, client)

    if non_container_ok and container_level is SupportLevel.SUPPORTED:
        return Verdict.DIRECT_PLAY
    if non_container_ok:
        return Verdict.REMUX
    return Verdict.TRANSCODE


def categorize(score: int, direct_play: int, remux: int, thresholds: RatingThresholds) -> Category:
    """Derive the Optimal/Good/Poor label from the score or client counts."""
    if thresholds.mode is CategoryMode.CLIENTS:
        if direct_play >= thresholds.optimal_direct_play:
            return Category.OPTIMAL
        if (
            direct_play >= thresholds.good_direct_play
            or direct_play + remux >= thresholds.good_combined
        ):
            return Category.GOOD
        return Category.POOR

    if score >= thresholds.optimal:
        return Category.OPTIMAL
    if score >= thresholds.good:
        return Category.GOOD
    return Category.POOR


def rate(attributes: TechnicalAttributes, config: RatingConfig) -> RatingResult:
    """Rate a file's compatibility.

    Args:
        attributes: Technical attributes of the file.
        config: Weights, thresholds, supported sets and client matrix.

    Returns:
        RatingResult with a score clamped to [0, 100] and one verdict per
        configured client.
    """
    issues = _score_issues(attributes, config)

    score = 100.0
    for issue in issues:
        score -= _weight_for(issue.kind, config)
    clamped = int(max(0, min(100, round(score))))

    verdicts = {
        client: client_verdict(attributes, config.matrix, client)
        for client in config.matrix.clients
    }
    direct_play = sum(1 for v in verdicts.values() if v is Verdict.DIRECT_PLAY)
    remux = sum(1 for v in verdicts.values() if v is Verdict.REMUX)

    recommendations = _unique(
        [RECOMMENDATIONS[i.kind] for i in issues if i.kind in RECOMMENDATIONS]
    )

    return RatingResult(
        score=clamped,
        category=categorize(clamped, direct_play, remux, config.thresholds),
        client_verdicts=MappingProxyType(verdicts),
        issues=tuple(issue.message for issue in issues),
        recommendations=tuple(recommendations),
    )
