"""Configuration management for optimarr.

Configuration is loaded with precedence handling:
1. CLI flags (highest priority)
2. Environment variables (OPTIMARR_*)
3. Config file (~/.optimarr/config.toml)
4. Default values (lowest priority)
"""

from optimarr.config.env import EnvReader
from optimarr.config.loader import (
    ConfigParseError,
    clear_config_cache,
    get_config,
    get_data_dir,
    get_default_config_path,
    load_config_file,
    validate_config,
)
from optimarr.config.models import (
    LoggingConfig,
    OptimarrConfig,
    PathMapping,
    ScanConfig,
    ServarrConfig,
    ServarrConnectionConfig,
    ToolPathsConfig,
)
from optimarr.config.rating import build_rating_config, load_rating_config

__all__ = [
    "ConfigParseError",
    "EnvReader",
    "LoggingConfig",
    "OptimarrConfig",
    "PathMapping",
    "ScanConfig",
    "ServarrConfig",
    "ServarrConnectionConfig",
    "ToolPathsConfig",
    "build_rating_config",
    "clear_config_cache",
    "get_config",
    "get_data_dir",
    "get_default_config_path",
    "load_config_file",
    "load_rating_config",
    "validate_config",
]
