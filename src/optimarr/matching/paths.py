"""Path translation and comparison for origin-system matching."""

from __future__ import annotations

import re
from collections.abc import Iterable

from optimarr.config.models import PathMapping

_YEAR_PATTERN = re.compile(r"\b(19|20)\d{2}\b")


def normalize_path(path: str) -> str:
    """Comparable form of a path.

    Separators become ``/``, trailing separators are dropped and the result
    is case-folded. The filesystem is never consulted, so paths reported by
    a remote host compare the same as local ones.

    Example:
        >>> normalize_path("D:\\\\TV\\\\Show\\\\S01E01.MKV")
        'd:/tv/show/s01e01.mkv'
    """
    normalized = path.replace("\\", "/")
    if len(normalized) > 1:
        normalized = normalized.rstrip("/")
    return normalized.casefold()


def apply_path_mappings(path: str, mappings: Iterable[PathMapping]) -> str:
    """Translate an origin-reported path into its local form.

    Mappings are tried in order and the first whose source prefix matches
    wins. Prefixes match on whole path components and ignore case and
    separator style. Unmapped paths are returned unchanged.
    """
    candidate = path.replace("\\", "/")
    folded = candidate.casefold()
    for mapping in mappings:
        source = mapping.source.replace("\\", "/").rstrip("/")
        source_folded = source.casefold()
        if folded == source_folded or folded.startswith(source_folded + "/"):
            target = mapping.target.replace("\\", "/").rstrip("/")
            return target + candidate[len(source):]
    return path


def extract_year(path: str) -> int | None:
    """First plausible release year (1900-2099) in a path, if any."""
    match = _YEAR_PATTERN.search(path)
    return int(match.group(0)) if match else None
