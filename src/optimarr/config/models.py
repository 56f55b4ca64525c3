"""Configuration dataclasses for optimarr."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ToolPathsConfig:
    """Paths to external tools."""

    ffprobe: Path | None = None  # None = look up on PATH


@dataclass
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error
    level: str = "info"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )
        if self.max_bytes <= 0:
            raise ValueError("max_bytes must be positive")
        if self.backup_count < 0:
            raise ValueError("backup_count must be >= 0")


@dataclass
class ScanConfig:
    """Scanner behavior."""

    # Per-file timeout for the inspection tool
    extraction_timeout_seconds: float = 60.0

    # Records left in Processing for this long are re-analyzed
    processing_rescan_hours: int = 24

    # Terminal progress entries are dropped after this long
    progress_retention_seconds: int = 3600

    def __post_init__(self) -> None:
        if self.extraction_timeout_seconds <= 0:
            raise ValueError("extraction_timeout_seconds must be positive")
        if self.processing_rescan_hours < 0:
            raise ValueError("processing_rescan_hours must be >= 0")
        if self.progress_retention_seconds < 0:
            raise ValueError("progress_retention_seconds must be >= 0")


@dataclass(frozen=True)
class PathMapping:
    """Translate a path prefix reported by Sonarr/Radarr into a local prefix."""

    source: str
    target: str

    def __post_init__(self) -> None:
        if not self.source:
            raise ValueError("path mapping source must not be empty")


@dataclass(frozen=True)
class ServarrConnectionConfig:
    """Configuration for connecting to a Sonarr or Radarr instance.

    This dataclass is frozen; build a new one to change settings.
    """

    url: str
    """Base URL of the service (e.g., "http://localhost:8989")."""

    api_key: str
    """API key (Settings > General > Security)."""

    enabled: bool = True

    timeout_seconds: int = 30
    """Request timeout in seconds (1-300)."""

    path_mappings: tuple[PathMapping, ...] = field(default_factory=tuple)
    """Applied in order to reported file paths; the first match wins."""

    def __post_init__(self) -> None:
        if not self.url.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        if not self.api_key or not self.api_key.strip():
            raise ValueError("API key is required")
        if " " in self.api_key:
            raise ValueError("API key must not contain whitespace")
        if not 1 <= self.timeout_seconds <= 300:
            raise ValueError("Timeout must be between 1 and 300 seconds")


@dataclass
class ServarrConfig:
    """Sonarr (series) and Radarr (movie) connections."""

    sonarr: ServarrConnectionConfig | None = None
    radarr: ServarrConnectionConfig | None = None


@dataclass
class OptimarrConfig:
    """Top-level configuration."""

    tools: ToolPathsConfig = field(default_factory=ToolPathsConfig)
    database_path: Path | None = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    servarr: ServarrConfig = field(default_factory=ServarrConfig)
    config_path: Path | None = None
