"""Build RatingConfig values from the ``[rating]`` section of config.toml.

Example::

    [rating]
    category_mode = "score"          # or "clients"
    clients = ["Chrome", "Roku"]     # optional subset of the matrix clients

    [rating.weights]
    unsupported_container = 30

    [rating.thresholds]
    optimal = 80
    good = 60

    [rating.supported.video]
    "H.265 10-bit" = true

    [[rating.overrides]]
    category = "container"
    value = "MKV"
    client = "Chrome"
    level = "supported"
"""

from __future__ import annotations

import logging
from dataclasses import fields
from pathlib import Path
from typing import Any

from optimarr.config.loader import ConfigParseError, load_config_file
from optimarr.rating.config import (
    CategoryMode,
    RatingConfig,
    RatingConfigError,
    RatingThresholds,
    RatingWeights,
    SupportedSets,
)
from optimarr.rating.matrix import (
    ClientCompatibilityMatrix,
    CompatibilityOverride,
    PropertyCategory,
    SupportLevel,
    default_matrix,
)

logger = logging.getLogger(__name__)

_SUPPORTED_TABLES = ("video", "audio", "containers", "subtitles", "bit_depths")


def _table(section: dict[str, Any], key: str) -> dict[str, Any]:
    value = section.get(key, {})
    if not isinstance(value, dict):
        raise RatingConfigError(f"[rating.{key}] must be a table")
    return value


def _parse_weights(raw: dict[str, Any]) -> RatingWeights:
    known = {f.name for f in fields(RatingWeights)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise RatingConfigError(f"Unknown rating weight(s): {', '.join(unknown)}")
    return RatingWeights(**raw)


def _parse_thresholds(raw: dict[str, Any], mode_value: Any) -> RatingThresholds:
    known = {f.name for f in fields(RatingThresholds)} - {"mode"}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise RatingConfigError(f"Unknown rating threshold(s): {', '.join(unknown)}")
    for name, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise RatingConfigError(f"threshold {name} must be an integer, got {value!r}")
    try:
        mode = CategoryMode(str(mode_value).lower())
    except ValueError as e:
        raise RatingConfigError(
            f"category_mode must be 'score' or 'clients', got {mode_value!r}"
        ) from e
    return RatingThresholds(mode=mode, **raw)


def _parse_supported(raw: dict[str, Any]) -> SupportedSets:
    unknown = sorted(set(raw) - set(_SUPPORTED_TABLES))
    if unknown:
        raise RatingConfigError(f"Unknown supported table(s): {', '.join(unknown)}")
    tables: dict[str, dict[str, bool]] = {}
    for name, table in raw.items():
        if not isinstance(table, dict):
            raise RatingConfigError(f"[rating.supported.{name}] must be a table")
        for key, value in table.items():
            if not isinstance(value, bool):
                raise RatingConfigError(
                    f"[rating.supported.{name}] {key} must be true or false"
                )
        tables[name] = table
    return SupportedSets.from_tables(**tables)


def _parse_override(entry: Any, index: int) -> CompatibilityOverride:
    if not isinstance(entry, dict):
        raise RatingConfigError(f"rating override #{index} must be a table")
    missing = [k for k in ("category", "value", "client", "level") if k not in entry]
    if missing:
        raise RatingConfigError(
            f"rating override #{index} is missing {', '.join(missing)}"
        )
    try:
        category = PropertyCategory(str(entry["category"]).lower())
        level = SupportLevel(str(entry["level"]).lower())
    except ValueError as e:
        raise RatingConfigError(f"rating override #{index}: {e}") from e
    return CompatibilityOverride(
        category=category,
        value=str(entry["value"]),
        client=str(entry["client"]),
        level=level,
    )


def build_rating_config(section: dict[str, Any]) -> RatingConfig:
    """Build a RatingConfig from an already-parsed ``[rating]`` table.

    Raises:
        RatingConfigError: If any value is malformed.
    """
    weights = _parse_weights(_table(section, "weights"))
    thresholds = _parse_thresholds(
        _table(section, "thresholds"), section.get("category_mode", "score")
    )
    supported = _parse_supported(_table(section, "supported"))

    raw_overrides = section.get("overrides", [])
    if not isinstance(raw_overrides, list):
        raise RatingConfigError("[[rating.overrides]] must be an array of tables")
    overrides = [_parse_override(entry, i) for i, entry in enumerate(raw_overrides, 1)]

    matrix = default_matrix(overrides)
    clients = section.get("clients")
    if clients is not None:
        if not isinstance(clients, list) or not all(isinstance(c, str) for c in clients):
            raise RatingConfigError("rating clients must be a list of names")
        if not clients:
            raise RatingConfigError("rating clients must not be empty")
        matrix = ClientCompatibilityMatrix.from_tables(
            clients=clients,
            video=matrix.video,
            audio=matrix.audio,
            containers=matrix.containers,
            subtitles=matrix.subtitles,
            overrides=matrix.overrides,
        )

    return RatingConfig(
        weights=weights,
        thresholds=thresholds,
        supported=supported,
        matrix=matrix,
    )


def load_rating_config(path: Path | None = None) -> RatingConfig:
    """Load the rating configuration currently on disk.

    Called once per rating so edits are picked up between files; the file
    itself is cached until its mtime changes.

    Raises:
        RatingConfigError: If the file cannot be parsed or holds bad values.
    """
    try:
        data = load_config_file(path, strict=True)
    except ConfigParseError as e:
        raise RatingConfigError(str(e)) from e

    section = data.get("rating", {})
    if not isinstance(section, dict):
        raise RatingConfigError("[rating] must be a table")
    return build_rating_config(section)
