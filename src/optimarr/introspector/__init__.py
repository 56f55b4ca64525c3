"""Technical-attribute extraction for media files."""

from optimarr.introspector.ffprobe import FFprobeExtractor
from optimarr.introspector.interface import (
    AudioTrack,
    BrokenResult,
    ExtractionResult,
    ExtractorUnavailableError,
    MediaExtractor,
    SubtitleTrack,
    TechnicalAttributes,
)

__all__ = [
    "AudioTrack",
    "BrokenResult",
    "ExtractionResult",
    "ExtractorUnavailableError",
    "FFprobeExtractor",
    "MediaExtractor",
    "SubtitleTrack",
    "TechnicalAttributes",
]
