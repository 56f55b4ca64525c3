"""Matching of analysis records to Sonarr/Radarr files."""

from optimarr.matching.matcher import (
    BATCH_SIZE,
    MatchResult,
    MatchSummary,
    MediaSource,
    ServarrMatcher,
)
from optimarr.matching.paths import apply_path_mappings, extract_year, normalize_path

__all__ = [
    "BATCH_SIZE",
    "MatchResult",
    "MatchSummary",
    "MediaSource",
    "ServarrMatcher",
    "apply_path_mappings",
    "extract_year",
    "normalize_path",
]
