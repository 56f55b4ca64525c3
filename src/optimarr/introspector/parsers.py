"""Pure parsing functions for ffprobe JSON output.

These functions transform ffprobe JSON data into TechnicalAttributes.
All functions are pure (no I/O, no side effects) for easy testing.
"""

from __future__ import annotations

import logging
import re
import struct
from pathlib import Path

from optimarr.introspector.interface import (
    AudioTrack,
    BrokenResult,
    ExtractionResult,
    SubtitleTrack,
    TechnicalAttributes,
)
from optimarr.introspector.mappings import (
    HDR_TRANSFERS,
    SUBTITLE_EXTENSION_FORMATS,
    UNKNOWN,
    is_codec_tag_correct,
    language_from_filename,
    map_container,
    map_language_tag,
    normalize_audio_codec,
    normalize_subtitle_format,
    normalize_video_codec,
)

logger = logging.getLogger(__name__)

_PIX_FMT_DEPTH = re.compile(r"p(\d{2})(?:le|be)?$")


def sanitize_string(value: str | None) -> str | None:
    """Replace invalid UTF-8 characters in a string."""
    if value is None:
        return None
    return value.encode("utf-8", errors="replace").decode("utf-8")


def validate_positive_int(
    value: object,
    field_name: str,
    file_path: str | None = None,
) -> int | None:
    """Validate that a value is a non-negative integer.

    ffprobe reports some integers as strings (``sample_rate``,
    ``bits_per_raw_sample``), so numeric strings are accepted.

    Args:
        value: Value to validate.
        field_name: Field name for warning messages.
        file_path: File path context for warnings.

    Returns:
        Validated value or None if invalid.
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = int(value)
        except ValueError:
            logger.warning("Non-numeric %s in %s: %r", field_name, file_path, value)
            return None
    if not isinstance(value, int) or isinstance(value, bool):
        logger.warning(
            "Expected int for %s in %s, got %s",
            field_name,
            file_path,
            type(value).__name__,
        )
        return None
    if value < 0:
        logger.warning("Invalid negative %s in %s: %d", field_name, file_path, value)
        return None
    return value


def parse_duration(value: str | float | None) -> float | None:
    """Parse an ffprobe duration string (e.g. ``"3600.000"``) into seconds."""
    if value is None:
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def parse_frame_rate(value: str | None) -> float | None:
    """Parse an ffprobe rational frame rate (``"24000/1001"``) into fps."""
    if not value or value == "0/0":
        return None
    numerator, sep, denominator = value.partition("/")
    try:
        if not sep:
            return round(float(numerator), 3)
        den = float(denominator)
        if den == 0:
            return None
        return round(float(numerator) / den, 3)
    except ValueError:
        return None


def parse_bit_depth(stream: dict) -> int:
    """Determine the bit depth of a video stream.

    Uses ``bits_per_raw_sample`` when present, otherwise the pixel format
    suffix (``yuv420p10le`` is 10-bit). Defaults to 8.
    """
    raw = validate_positive_int(stream.get("bits_per_raw_sample"), "bits_per_raw_sample")
    if raw:
        return raw
    pix_fmt = stream.get("pix_fmt") or ""
    match = _PIX_FMT_DEPTH.search(pix_fmt)
    if match:
        return int(match.group(1))
    return 8


def detect_hdr(stream: dict) -> str | None:
    """Return the HDR type of a video stream, or None for SDR.

    Dolby Vision is signalled through stream side data; HDR10 and HLG
    through the transfer characteristics.
    """
    for side_data in stream.get("side_data_list") or []:
        if "DOVI" in str(side_data.get("side_data_type", "")).upper():
            return "Dolby Vision"
    transfer = (stream.get("color_transfer") or "").casefold()
    return HDR_TRANSFERS.get(transfer)


def is_fast_start(header: bytes) -> bool:
    """Check whether an MP4 header has its ``moov`` atom before ``mdat``.

    Args:
        header: The first bytes of the file (32 KiB is plenty).

    Returns:
        True when ``moov`` is found before ``mdat``.
    """
    offset = 0
    while offset + 8 <= len(header):
        (box_size,) = struct.unpack(">I", header[offset : offset + 4])
        box_type = header[offset + 4 : offset + 8]
        if box_type == b"moov":
            return True
        if box_type == b"mdat":
            return False
        if box_size == 1:
            if offset + 16 > len(header):
                break
            (box_size,) = struct.unpack(">Q", header[offset + 8 : offset + 16])
        elif box_size == 0:
            break
        if box_size < 8:
            break
        offset += box_size
    return False


def parse_audio_stream(stream: dict, file_path: str | None = None) -> AudioTrack:
    """Parse an ffprobe audio stream into an AudioTrack."""
    tags = stream.get("tags") or {}
    return AudioTrack(
        codec=normalize_audio_codec(stream.get("codec_name")),
        channels=validate_positive_int(stream.get("channels"), "channels", file_path)
        or 0,
        sample_rate=validate_positive_int(
            stream.get("sample_rate"), "sample_rate", file_path
        ),
        language=map_language_tag(sanitize_string(tags.get("language"))),
    )


def parse_subtitle_stream(stream: dict) -> SubtitleTrack:
    """Parse an ffprobe subtitle stream into an embedded SubtitleTrack."""
    tags = stream.get("tags") or {}
    return SubtitleTrack(
        format=normalize_subtitle_format(stream.get("codec_name")),
        language=map_language_tag(sanitize_string(tags.get("language"))),
        embedded=True,
    )


def parse_sidecar_subtitle(subtitle_path: Path, video_path: Path) -> SubtitleTrack:
    """Describe an external subtitle file paired with a video.

    The language is read from whatever follows the video's base name,
    e.g. ``Movie.en.srt`` next to ``Movie.mkv`` is English.
    """
    suffix = subtitle_path.suffix.lstrip(".").casefold()
    stem = subtitle_path.stem
    if stem.casefold().startswith(video_path.stem.casefold()):
        stem = stem[len(video_path.stem) :]
    return SubtitleTrack(
        format=SUBTITLE_EXTENSION_FORMATS.get(suffix, suffix.upper()),
        language=language_from_filename(stem),
        embedded=False,
        path=str(subtitle_path),
    )


def find_broken_reason(attributes: TechnicalAttributes) -> str | None:
    """Apply the broken-file heuristics to successfully parsed attributes.

    Returns:
        The reason the file is considered broken, or None if it looks sound.
    """
    if attributes.video_codec == UNKNOWN and attributes.container == UNKNOWN:
        return "No video codec or container detected"
    if attributes.width == 0 or attributes.height == 0:
        return f"Invalid resolution: {attributes.resolution}"
    if attributes.duration_seconds <= 0:
        return "Invalid or missing duration"
    if attributes.file_size == 0:
        return "File is empty"
    return None


def parse_ffprobe_output(
    path: Path,
    data: dict,
    file_size: int,
    fast_start: bool | None = None,
) -> ExtractionResult:
    """Convert ffprobe JSON output into TechnicalAttributes.

    Args:
        path: Path of the probed file.
        data: Parsed ffprobe JSON (``-show_streams -show_format``).
        file_size: Size of the file in bytes.
        fast_start: Fast-start flag for MP4-family files, if checked.

    Returns:
        TechnicalAttributes, or a BrokenResult when the output describes an
        unusable file.
    """
    file_path = str(path)
    streams = data.get("streams")
    format_info = data.get("format")
    if not isinstance(streams, list) or not isinstance(format_info, dict):
        return BrokenResult("ffprobe output is missing streams or format")

    video_stream = next(
        (
            s
            for s in streams
            if s.get("codec_type") == "video"
            and not (s.get("disposition") or {}).get("attached_pic")
        ),
        None,
    )

    audio_tracks = tuple(
        parse_audio_stream(s, file_path)
        for s in streams
        if s.get("codec_type") == "audio"
    )
    subtitle_tracks = tuple(
        parse_subtitle_stream(s) for s in streams if s.get("codec_type") == "subtitle"
    )

    duration = parse_duration(format_info.get("duration"))
    if duration is None and video_stream is not None:
        duration = parse_duration(video_stream.get("duration"))

    overall_bitrate = validate_positive_int(
        format_info.get("bit_rate"), "bit_rate", file_path
    )

    video_codec = UNKNOWN
    codec_tag = None
    width = height = 0
    frame_rate = None
    bit_depth = 8
    hdr_type = None
    if video_stream is not None:
        video_codec = normalize_video_codec(
            video_stream.get("codec_name"), video_stream.get("profile")
        )
        codec_tag = video_stream.get("codec_tag_string")
        if codec_tag and codec_tag.startswith("["):
            # ffprobe prints unset tags as "[0][0][0][0]"
            codec_tag = None
        width = validate_positive_int(video_stream.get("width"), "width", file_path) or 0
        height = (
            validate_positive_int(video_stream.get("height"), "height", file_path) or 0
        )
        frame_rate = parse_frame_rate(
            video_stream.get("r_frame_rate") or video_stream.get("avg_frame_rate")
        )
        bit_depth = parse_bit_depth(video_stream)
        hdr_type = detect_hdr(video_stream)

    attributes = TechnicalAttributes(
        container=map_container(format_info.get("format_name"), path),
        video_codec=video_codec,
        bit_depth=bit_depth,
        video_codec_tag=codec_tag,
        codec_tag_correct=is_codec_tag_correct(video_codec, codec_tag),
        width=width,
        height=height,
        frame_rate=frame_rate,
        is_hdr=hdr_type is not None,
        hdr_type=hdr_type,
        duration_seconds=duration or 0.0,
        file_size=file_size,
        overall_bitrate=overall_bitrate,
        fast_start=fast_start,
        audio_tracks=audio_tracks,
        subtitle_tracks=subtitle_tracks,
    )

    reason = find_broken_reason(attributes)
    if reason is not None:
        return BrokenResult(reason)
    return attributes
