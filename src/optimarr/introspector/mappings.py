"""Pure mapping functions from ffprobe names to optimarr's canonical names.

The rating engine and the client matrix key everything on canonical names
("H.265", "EAC3", "MKV", "PGSSUB"), so every value coming out of ffprobe or
a sidecar filename passes through one of these functions first.
"""

from __future__ import annotations

from pathlib import PurePath

UNKNOWN = "Unknown"

# Container name by file extension (lowercase, without dot)
EXTENSION_TO_CONTAINER: dict[str, str] = {
    "mp4": "MP4",
    "m4v": "MP4",
    "mov": "MP4",
    "mkv": "MKV",
    "mka": "MKV",
    "webm": "WebM",
    "ts": "TS",
    "m2ts": "TS",
    "ogg": "OGG",
    "ogv": "OGG",
    "avi": "AVI",
}

# Containers that carry a moov atom and can be fast-start optimized
MP4_FAMILY = frozenset({"MP4", "M4V", "MOV"})

# Subtitle format by sidecar extension
SUBTITLE_EXTENSION_FORMATS: dict[str, str] = {
    "srt": "SRT",
    "vtt": "VTT",
    "ass": "ASS",
    "ssa": "SSA",
    "sub": "VobSub",
    "idx": "VobSub",
    "sup": "PGSSUB",
}

# Acceptable codec tags per canonical codec; codecs not listed accept any tag
VALID_CODEC_TAGS: dict[str, frozenset[str]] = {
    "H.265": frozenset({"hvc1", "hevc"}),
    "H.264": frozenset({"avc1", "avc3", "h264"}),
    "VP9": frozenset({"vp09"}),
    "AV1": frozenset({"av01"}),
}

# Transfer characteristics that mark HDR content
HDR_TRANSFERS: dict[str, str] = {
    "smpte2084": "HDR10",
    "arib-std-b67": "HLG",
}

ISO_639_1: dict[str, str] = {
    "en": "English",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "zh": "Chinese",
    "ko": "Korean",
    "ar": "Arabic",
    "hi": "Hindi",
    "nl": "Dutch",
    "pl": "Polish",
    "tr": "Turkish",
    "sv": "Swedish",
    "da": "Danish",
    "no": "Norwegian",
    "fi": "Finnish",
    "cs": "Czech",
    "hu": "Hungarian",
    "ro": "Romanian",
    "th": "Thai",
    "vi": "Vietnamese",
    "he": "Hebrew",
    "el": "Greek",
    "ms": "Malay",
    "nb": "Norwegian Bokmal",
    "id": "Indonesian",
    "is": "Icelandic",
    "hr": "Croatian",
}

ISO_639_2: dict[str, str] = {
    "eng": "English",
    "deu": "German",
    "ger": "German",
    "fra": "French",
    "fre": "French",
    "spa": "Spanish",
    "ita": "Italian",
    "por": "Portuguese",
    "rus": "Russian",
    "jpn": "Japanese",
    "chi": "Chinese",
    "zho": "Chinese",
    "kor": "Korean",
    "ara": "Arabic",
    "hin": "Hindi",
    "nld": "Dutch",
    "dut": "Dutch",
    "pol": "Polish",
    "tur": "Turkish",
    "swe": "Swedish",
    "dan": "Danish",
    "nor": "Norwegian",
    "fin": "Finnish",
    "ces": "Czech",
    "cze": "Czech",
    "hun": "Hungarian",
    "ron": "Romanian",
    "rum": "Romanian",
    "tha": "Thai",
    "vie": "Vietnamese",
    "heb": "Hebrew",
    "ell": "Greek",
    "gre": "Greek",
    "may": "Malay",
    "msa": "Malay",
    "nob": "Norwegian Bokmal",
    "ind": "Indonesian",
    "ice": "Icelandic",
    "isl": "Icelandic",
    "hrv": "Croatian",
}

LANGUAGE_NAMES: dict[str, str] = {
    name.casefold(): name for name in {*ISO_639_1.values(), *ISO_639_2.values()}
}
LANGUAGE_NAMES["bokmal"] = "Norwegian Bokmal"


def map_container(format_name: str | None, path: PurePath | str | None = None) -> str:
    """Map a file to its canonical container name.

    The file extension wins because ffprobe reports the whole demuxer family
    (``mov,mp4,m4a,3gp,3g2,mj2``) for MP4-like files. The ffprobe format name
    is only consulted for unknown extensions.

    Args:
        format_name: ffprobe ``format.format_name`` value.
        path: Path of the media file.

    Returns:
        Canonical container name, or "Unknown".
    """
    if path is not None:
        suffix = PurePath(path).suffix.lstrip(".").casefold()
        if suffix in EXTENSION_TO_CONTAINER:
            return EXTENSION_TO_CONTAINER[suffix]

    if not format_name:
        return UNKNOWN
    names = [name.strip().casefold() for name in format_name.split(",")]
    if "matroska" in names:
        return "MKV"
    if "webm" in names:
        return "WebM"
    if "mpegts" in names:
        return "TS"
    if "avi" in names:
        return "AVI"
    if "ogg" in names:
        return "OGG"
    if "mp4" in names or "mov" in names:
        return "MP4"
    return UNKNOWN


def normalize_video_codec(codec: str | None, profile: str | None = None) -> str:
    """Normalize a video codec name (``hevc`` -> ``H.265``)."""
    if not codec:
        return UNKNOWN

    upper = codec.upper()
    if "AVC" in upper or "H264" in upper or "H.264" in upper or "X264" in upper:
        return "H.264"
    if "HEVC" in upper or "H265" in upper or "H.265" in upper or "X265" in upper:
        return "H.265"
    if "VP9" in upper:
        return "VP9"
    if "AV1" in upper:
        return "AV1"
    if "MPEG4" in upper or "MPEG-4" in upper:
        profile_upper = (profile or upper).upper()
        if "ADVANCED SIMPLE" in profile_upper or "ASP" in profile_upper:
            return "MPEG-4 ASP"
        if "SIMPLE" in profile_upper or "SP" in profile_upper:
            return "MPEG-4 SP"
        return "MPEG-4"
    return codec


def normalize_audio_codec(codec: str | None) -> str:
    """Normalize an audio codec name (``eac3`` -> ``EAC3``)."""
    if not codec:
        return UNKNOWN

    upper = codec.upper()
    if "AAC" in upper or "MP4A" in upper:
        return "AAC"
    if "MP3" in upper:
        return "MP3"
    # E-AC-3 names contain "AC3"; test them first
    if "EAC3" in upper or "E-AC-3" in upper or "DD+" in upper:
        return "EAC3"
    if "AC3" in upper or "AC-3" in upper:
        return "AC3"
    if "DTS" in upper or "DCA" in upper:
        return "DTS"
    if "FLAC" in upper:
        return "FLAC"
    if "OPUS" in upper:
        return "Opus"
    if "VORBIS" in upper:
        return "Vorbis"
    if "ALAC" in upper:
        return "ALAC"
    return codec


def normalize_subtitle_format(format_name: str | None) -> str:
    """Normalize a subtitle format name (``hdmv_pgs_subtitle`` -> ``PGSSUB``)."""
    if not format_name:
        return UNKNOWN

    upper = format_name.upper()
    if "SRT" in upper or "SUBRIP" in upper:
        return "SRT"
    if "VTT" in upper:
        return "VTT"
    if "ASS" in upper:
        return "ASS"
    if "SSA" in upper:
        return "SSA"
    if "PGS" in upper:
        return "PGSSUB"
    if "DVD_SUB" in upper or "VOBSUB" in upper:
        return "VobSub"
    if "MOV_TEXT" in upper or "TX3G" in upper or "MP4TT" in upper or "TTXT" in upper:
        return "MP4TT"
    if "TXTT" in upper:
        return "TXTT"
    if "608" in upper:
        return "EIA-608"
    if "708" in upper:
        return "EIA-708"
    return format_name


def is_codec_tag_correct(codec: str, codec_tag: str | None) -> bool:
    """Check whether a container codec tag is valid for the canonical codec.

    A missing tag cannot be validated and counts as correct.
    """
    if not codec_tag:
        return True
    accepted = VALID_CODEC_TAGS.get(codec)
    if accepted is None:
        return True
    return codec_tag.casefold() in accepted


def language_from_filename(stem: str) -> str:
    """Guess the language of a sidecar subtitle from its filename.

    Recognizes dot-separated parts such as ``movie.en``, ``movie.eng``,
    ``movie.en-US`` and ``movie.english``.

    Args:
        stem: Filename without the subtitle extension.

    Returns:
        Language name (with locale suffix when one is present), or "Unknown".
    """
    for part in stem.split("."):
        if not part.strip():
            continue
        lowered = part.casefold()

        if "-" in lowered:
            base, _, region = lowered.partition("-")
            if base in ISO_639_1:
                if len(region) == 2:
                    return f"{ISO_639_1[base]} ({part})"
                return ISO_639_1[base]

        if len(lowered) == 2 and lowered in ISO_639_1:
            return ISO_639_1[lowered]
        if len(lowered) == 3 and lowered in ISO_639_2:
            return ISO_639_2[lowered]
        if lowered in LANGUAGE_NAMES:
            return LANGUAGE_NAMES[lowered]

    return UNKNOWN


def map_language_tag(tag: str | None) -> str:
    """Map an ffprobe stream language tag to a language name."""
    if not tag or tag.casefold() == "und":
        return UNKNOWN
    lowered = tag.casefold()
    return ISO_639_2.get(lowered) or ISO_639_1.get(lowered) or tag
