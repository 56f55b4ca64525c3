"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. CLI arguments (passed directly to functions)
2. Environment variables (OPTIMARR_*)
3. Config file (~/.optimarr/config.toml)
4. Default values

Environment variables:
- OPTIMARR_CONFIG_PATH: Path to config file (overrides default location)
- OPTIMARR_DATA_DIR: Path to data directory (overrides ~/.optimarr/)
- OPTIMARR_DATABASE_PATH: Path to database file
- OPTIMARR_FFPROBE_PATH: Path to ffprobe executable
- OPTIMARR_LOG_LEVEL / OPTIMARR_LOG_FILE / OPTIMARR_LOG_FORMAT: Logging overrides
- OPTIMARR_SCAN_TIMEOUT: Per-file extraction timeout in seconds
- OPTIMARR_SONARR_URL / OPTIMARR_SONARR_API_KEY: Sonarr connection
- OPTIMARR_RADARR_URL / OPTIMARR_RADARR_API_KEY: Radarr connection
"""

from __future__ import annotations

import logging
import os
import threading
import tomllib
from dataclasses import replace
from pathlib import Path
from typing import Any

from optimarr.config.env import EnvReader
from optimarr.config.models import (
    LoggingConfig,
    OptimarrConfig,
    PathMapping,
    ScanConfig,
    ServarrConfig,
    ServarrConnectionConfig,
    ToolPathsConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".optimarr"
CONFIG_FILE_NAME = "config.toml"
DATABASE_FILE_NAME = "library.db"

# path -> (parsed dict, mtime); reloaded automatically when the file changes
_config_cache: dict[Path, tuple[dict[str, Any], float]] = {}
_config_cache_lock = threading.Lock()


class ConfigParseError(Exception):
    """Raised when a configuration file cannot be parsed."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"Cannot parse {path}: {message}")


def get_data_dir() -> Path:
    """Get the optimarr data directory (database, config, logs).

    Can be overridden by OPTIMARR_DATA_DIR. Supports tilde expansion.
    """
    env_path = os.environ.get("OPTIMARR_DATA_DIR")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_DATA_DIR


def get_default_config_path() -> Path:
    """Get the config file path; OPTIMARR_CONFIG_PATH overrides it."""
    env_path = os.environ.get("OPTIMARR_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return get_data_dir() / CONFIG_FILE_NAME


def _read_toml(path: Path) -> dict[str, Any]:
    """Parse a TOML file; a missing file yields an empty dict.

    Raises:
        ConfigParseError: If the file exists but cannot be read or parsed.
    """
    if not path.exists():
        logger.debug("Config file not found: %s", path)
        return {}
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as e:
        raise ConfigParseError(path, str(e)) from e
    logger.debug("Loaded config from %s", path)
    return data


def load_config_file(path: Path | None = None, *, strict: bool = False) -> dict[str, Any]:
    """Load configuration from a TOML file.

    Results are cached per path and reloaded when the file's mtime changes.
    Thread-safe.

    Args:
        path: Path to config file. If None, uses the default location.
        strict: If True, raise ConfigParseError on parse failures instead of
            returning an empty dict.

    Returns:
        Parsed configuration dict. Empty dict if the file doesn't exist.

    Raises:
        ConfigParseError: When strict=True and the file cannot be parsed.
    """
    if path is None:
        path = get_default_config_path()

    try:
        current_mtime = path.stat().st_mtime
    except FileNotFoundError:
        current_mtime = 0.0

    with _config_cache_lock:
        cached = _config_cache.get(path)
        if cached is not None and cached[1] == current_mtime:
            return cached[0]

        try:
            result = _read_toml(path)
        except ConfigParseError as e:
            # Broken files are not cached so a later strict call still raises
            if strict:
                raise
            logger.warning("Failed to load config file %s: %s", path, e)
            return {}
        _config_cache[path] = (result, current_mtime)
        return result


def clear_config_cache() -> None:
    """Forget every cached config file. Primarily useful for testing."""
    with _config_cache_lock:
        _config_cache.clear()


def _parse_path_mappings(raw: Any, section: str) -> tuple[PathMapping, ...]:
    """Parse ``path_mappings = [{from = "...", to = "..."}]``."""
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError(f"[{section}] path_mappings must be a list of tables")
    mappings = []
    for entry in raw:
        if not isinstance(entry, dict) or "from" not in entry or "to" not in entry:
            raise ValueError(f"[{section}] each path mapping needs 'from' and 'to'")
        mappings.append(PathMapping(source=str(entry["from"]), target=str(entry["to"])))
    return tuple(mappings)


def _build_connection(
    section: dict[str, Any],
    name: str,
    reader: EnvReader,
) -> ServarrConnectionConfig | None:
    """Build a Sonarr/Radarr connection from file and env values.

    Returns None when the service is not configured at all.

    Raises:
        ValueError: If the service is configured but invalid.
    """
    prefix = f"OPTIMARR_{name.upper()}"
    url = reader.get_str(f"{prefix}_URL", section.get("url"))
    api_key = reader.get_str(f"{prefix}_API_KEY", section.get("api_key"))
    if not url and not api_key:
        return None
    return ServarrConnectionConfig(
        url=url or "",
        api_key=api_key or "",
        enabled=bool(section.get("enabled", True)),
        timeout_seconds=int(section.get("timeout_seconds", 30)),
        path_mappings=_parse_path_mappings(
            section.get("path_mappings"), f"servarr.{name}"
        ),
    )


def get_config(
    config_path: Path | None = None,
    # CLI overrides (highest precedence)
    database_path: Path | None = None,
    ffprobe_path: Path | None = None,
    log_level: str | None = None,
    log_file: Path | None = None,
    log_format: str | None = None,
    # Optional dependency injection for testing
    env_reader: EnvReader | None = None,
    *,
    strict: bool = False,
) -> OptimarrConfig:
    """Get configuration with full precedence handling.

    Args:
        config_path: Path to config file (overrides OPTIMARR_CONFIG_PATH).
        database_path: CLI override for the database path.
        ffprobe_path: CLI override for the ffprobe path.
        log_level: CLI override for the log level.
        log_file: CLI override for the log file.
        log_format: CLI override for the log format ("text" or "json").
        env_reader: Optional EnvReader for testing (uses os.environ if None).
        strict: If True, parse errors and invalid sections raise instead of
            falling back to defaults.

    Returns:
        OptimarrConfig with merged configuration.

    Raises:
        ConfigParseError: When strict=True and the config file is malformed.
        ValueError: When strict=True and a section holds invalid values.
    """
    reader = env_reader or EnvReader()
    path = config_path or get_default_config_path()
    file_config = load_config_file(path, strict=strict)

    tools_section = file_config.get("tools", {})
    file_ffprobe = tools_section.get("ffprobe")
    tools = ToolPathsConfig(
        ffprobe=ffprobe_path
        or reader.get_path("OPTIMARR_FFPROBE_PATH")
        or (Path(file_ffprobe).expanduser() if file_ffprobe else None)
    )

    db_section = file_config.get("database", {})
    file_db = db_section.get("path")
    resolved_db = (
        database_path
        or reader.get_path("OPTIMARR_DATABASE_PATH")
        or (Path(file_db).expanduser() if file_db else None)
        or get_data_dir() / DATABASE_FILE_NAME
    )

    log_section = file_config.get("logging", {})
    file_log_file = log_section.get("file")
    logging_config = LoggingConfig(
        level=log_level or reader.get_str("OPTIMARR_LOG_LEVEL", log_section.get("level", "info")),
        file=log_file
        or reader.get_path("OPTIMARR_LOG_FILE")
        or (Path(file_log_file).expanduser() if file_log_file else None),
        format=log_format
        or reader.get_str("OPTIMARR_LOG_FORMAT", log_section.get("format", "text")),
        include_stderr=bool(log_section.get("include_stderr", False)),
        max_bytes=int(log_section.get("max_bytes", 10_485_760)),
        backup_count=int(log_section.get("backup_count", 5)),
    )

    scan_section = file_config.get("scan", {})
    scan_config = ScanConfig(
        extraction_timeout_seconds=reader.get_float(
            "OPTIMARR_SCAN_TIMEOUT",
            float(scan_section.get("extraction_timeout_seconds", 60.0)),
        ),
        processing_rescan_hours=int(scan_section.get("processing_rescan_hours", 24)),
        progress_retention_seconds=int(
            scan_section.get("progress_retention_seconds", 3600)
        ),
    )

    servarr_section = file_config.get("servarr", {})
    servarr = ServarrConfig()
    for name in ("sonarr", "radarr"):
        try:
            connection = _build_connection(servarr_section.get(name, {}), name, reader)
        except ValueError as e:
            if strict:
                raise
            logger.warning("Ignoring invalid [servarr.%s] configuration: %s", name, e)
            connection = None
        servarr = replace(servarr, **{name: connection})

    return OptimarrConfig(
        tools=tools,
        database_path=resolved_db,
        logging=logging_config,
        scan=scan_config,
        servarr=servarr,
        config_path=path,
    )


def validate_config(config: OptimarrConfig) -> list[str]:
    """Validate cross-field configuration constraints.

    Returns:
        List of error strings. Empty list means configuration is valid.
    """
    errors: list[str] = []

    if config.tools.ffprobe is not None and not config.tools.ffprobe.exists():
        errors.append(f"Configured ffprobe does not exist: {config.tools.ffprobe}")

    if config.database_path is not None and config.database_path.parent.is_file():
        errors.append(
            f"Database directory is a file: {config.database_path.parent}"
        )

    for name in ("sonarr", "radarr"):
        connection = getattr(config.servarr, name)
        if connection is None:
            continue
        sources = [m.source.rstrip("/\\").casefold() for m in connection.path_mappings]
        duplicates = sorted({s for s in sources if sources.count(s) > 1})
        for source in duplicates:
            errors.append(
                f"{name.capitalize()} path mapping for '{source}' is defined more than "
                "once; only the first is used"
            )

    sonarr, radarr = config.servarr.sonarr, config.servarr.radarr
    if sonarr and radarr and sonarr.url.rstrip("/") == radarr.url.rstrip("/"):
        errors.append("Sonarr and Radarr are configured with the same URL")

    return errors
