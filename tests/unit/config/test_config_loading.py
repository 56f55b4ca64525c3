"""Tests for configuration loading and precedence."""

import os
from pathlib import Path

import pytest

from optimarr.config import (
    ConfigParseError,
    EnvReader,
    OptimarrConfig,
    PathMapping,
    ServarrConfig,
    ServarrConnectionConfig,
    ToolPathsConfig,
    clear_config_cache,
    get_config,
    get_data_dir,
    get_default_config_path,
    load_config_file,
    validate_config,
)
from optimarr.config.models import LoggingConfig, ScanConfig


@pytest.fixture(autouse=True)
def _clear_cache():
    clear_config_cache()
    yield
    clear_config_cache()


def _write(path: Path, text: str, mtime: float | None = None) -> Path:
    path.write_text(text)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


class TestDataDir:
    """Tests for data directory and config path resolution."""

    def test_data_dir_env_override(self, monkeypatch, temp_dir):
        """OPTIMARR_DATA_DIR replaces the default data directory."""
        monkeypatch.setenv("OPTIMARR_DATA_DIR", str(temp_dir))
        assert get_data_dir() == temp_dir

    def test_config_path_env_override(self, monkeypatch, temp_dir):
        """OPTIMARR_CONFIG_PATH wins over the data directory."""
        monkeypatch.setenv("OPTIMARR_DATA_DIR", str(temp_dir))
        monkeypatch.setenv("OPTIMARR_CONFIG_PATH", str(temp_dir / "other.toml"))
        assert get_default_config_path() == temp_dir / "other.toml"

    def test_config_path_defaults_to_data_dir(self, monkeypatch, temp_dir):
        """Without an override the config lives in the data directory."""
        monkeypatch.setenv("OPTIMARR_DATA_DIR", str(temp_dir))
        monkeypatch.delenv("OPTIMARR_CONFIG_PATH", raising=False)
        assert get_default_config_path() == temp_dir / "config.toml"


class TestLoadConfigFile:
    """Tests for load_config_file()."""

    def test_missing_file_is_empty(self, temp_dir):
        """A missing file yields an empty dict."""
        assert load_config_file(temp_dir / "missing.toml") == {}

    def test_parses_toml(self, temp_dir):
        """Reads the tables of a TOML file."""
        path = _write(temp_dir / "config.toml", '[tools]\nffprobe = "/usr/bin/ffprobe"\n')
        assert load_config_file(path) == {"tools": {"ffprobe": "/usr/bin/ffprobe"}}

    def test_cached_until_mtime_changes(self, temp_dir):
        """Edits are picked up once the modification time changes."""
        path = _write(temp_dir / "config.toml", "[scan]\nprocessing_rescan_hours = 1\n", 1000)
        assert load_config_file(path)["scan"]["processing_rescan_hours"] == 1

        _write(path, "[scan]\nprocessing_rescan_hours = 2\n", 1000)
        assert load_config_file(path)["scan"]["processing_rescan_hours"] == 1

        _write(path, "[scan]\nprocessing_rescan_hours = 3\n", 2000)
        assert load_config_file(path)["scan"]["processing_rescan_hours"] == 3

    def test_malformed_lenient(self, temp_dir):
        """Parse errors fall back to an empty dict by default."""
        path = _write(temp_dir / "config.toml", "[tools\n")
        assert load_config_file(path) == {}

    def test_malformed_strict(self, temp_dir):
        """Parse errors raise in strict mode."""
        path = _write(temp_dir / "config.toml", "[tools\n")
        with pytest.raises(ConfigParseError) as exc_info:
            load_config_file(path, strict=True)
        assert exc_info.value.path == path


class TestGetConfig:
    """Tests for get_config() precedence."""

    def test_defaults(self, temp_dir, monkeypatch):
        """Without file or env the defaults apply."""
        monkeypatch.setenv("OPTIMARR_DATA_DIR", str(temp_dir))
        config = get_config(temp_dir / "none.toml", env_reader=EnvReader(env={}))

        assert config.tools.ffprobe is None
        assert config.database_path == temp_dir / "library.db"
        assert config.logging.level == "info"
        assert config.scan.extraction_timeout_seconds == 60.0
        assert config.servarr.sonarr is None
        assert config.servarr.radarr is None

    def test_file_values(self, temp_dir):
        """Values from the config file are used."""
        path = _write(
            temp_dir / "config.toml",
            """
[database]
path = "/data/optimarr.db"

[logging]
level = "debug"
format = "json"

[scan]
extraction_timeout_seconds = 30
processing_rescan_hours = 6

[servarr.sonarr]
url = "http://sonarr:8989"
api_key = "abc123"
path_mappings = [{ from = "/tv", to = "/mnt/tv" }]
""",
        )

        config = get_config(path, env_reader=EnvReader(env={}))

        assert config.database_path == Path("/data/optimarr.db")
        assert config.logging.level == "debug"
        assert config.logging.format == "json"
        assert config.scan.extraction_timeout_seconds == 30.0
        assert config.scan.processing_rescan_hours == 6
        assert config.servarr.sonarr.url == "http://sonarr:8989"
        assert config.servarr.sonarr.path_mappings == (PathMapping("/tv", "/mnt/tv"),)
        assert config.config_path == path

    def test_env_beats_file(self, temp_dir):
        """Environment variables override the file."""
        path = _write(temp_dir / "config.toml", '[logging]\nlevel = "debug"\n')
        env = EnvReader(
            env={
                "OPTIMARR_LOG_LEVEL": "warning",
                "OPTIMARR_SCAN_TIMEOUT": "15",
                "OPTIMARR_RADARR_URL": "http://radarr:7878",
                "OPTIMARR_RADARR_API_KEY": "key",
            }
        )

        config = get_config(path, env_reader=env)

        assert config.logging.level == "warning"
        assert config.scan.extraction_timeout_seconds == 15.0
        assert config.servarr.radarr.url == "http://radarr:7878"

    def test_cli_beats_env(self, temp_dir):
        """Explicit arguments override environment variables."""
        env = EnvReader(env={"OPTIMARR_LOG_LEVEL": "warning"})

        config = get_config(
            temp_dir / "none.toml",
            log_level="error",
            database_path=temp_dir / "cli.db",
            env_reader=env,
        )

        assert config.logging.level == "error"
        assert config.database_path == temp_dir / "cli.db"

    def test_invalid_servarr_ignored_when_lenient(self, temp_dir):
        """A bad Sonarr section is dropped with a warning."""
        path = _write(
            temp_dir / "config.toml",
            '[servarr.sonarr]\nurl = "sonarr:8989"\napi_key = "abc"\n',
        )

        config = get_config(path, env_reader=EnvReader(env={}))

        assert config.servarr.sonarr is None

    def test_invalid_servarr_raises_when_strict(self, temp_dir):
        """Strict loading surfaces bad Sonarr sections."""
        path = _write(
            temp_dir / "config.toml",
            '[servarr.sonarr]\nurl = "sonarr:8989"\napi_key = "abc"\n',
        )

        with pytest.raises(ValueError, match="http"):
            get_config(path, env_reader=EnvReader(env={}), strict=True)


class TestModels:
    """Tests for configuration dataclass validation."""

    def test_invalid_log_level(self):
        """Unknown log levels are rejected."""
        with pytest.raises(ValueError, match="level"):
            LoggingConfig(level="verbose")

    def test_invalid_timeout(self):
        """Extraction timeouts must be positive."""
        with pytest.raises(ValueError):
            ScanConfig(extraction_timeout_seconds=0)

    def test_connection_requires_api_key(self):
        """Connections need an API key."""
        with pytest.raises(ValueError, match="API key"):
            ServarrConnectionConfig(url="http://localhost:8989", api_key="")

    def test_connection_timeout_range(self):
        """Timeouts must be between 1 and 300 seconds."""
        with pytest.raises(ValueError, match="Timeout"):
            ServarrConnectionConfig(
                url="http://localhost:8989", api_key="abc", timeout_seconds=0
            )

    def test_empty_mapping_source(self):
        """Path mappings need a source prefix."""
        with pytest.raises(ValueError):
            PathMapping(source="", target="/mnt")


class TestValidateConfig:
    """Tests for validate_config()."""

    def test_valid(self):
        """Defaults are valid."""
        assert validate_config(OptimarrConfig()) == []

    def test_missing_ffprobe(self, temp_dir):
        """A configured ffprobe that does not exist is reported."""
        config = OptimarrConfig(tools=ToolPathsConfig(ffprobe=temp_dir / "ffprobe"))

        errors = validate_config(config)

        assert len(errors) == 1
        assert "ffprobe" in errors[0]

    def test_duplicate_mapping(self):
        """The same mapping source twice is reported."""
        connection = ServarrConnectionConfig(
            url="http://localhost:8989",
            api_key="abc",
            path_mappings=(PathMapping("/tv", "/a"), PathMapping("/TV/", "/b")),
        )
        config = OptimarrConfig(servarr=ServarrConfig(sonarr=connection))

        errors = validate_config(config)

        assert errors == [
            "Sonarr path mapping for '/tv' is defined more than once; only the first is used"
        ]

    def test_same_url(self):
        """Sonarr and Radarr pointing at one URL is reported."""
        connection = ServarrConnectionConfig(url="http://localhost:8989/", api_key="abc")
        config = OptimarrConfig(
            servarr=ServarrConfig(
                sonarr=connection,
                radarr=ServarrConnectionConfig(url="http://localhost:8989", api_key="abc"),
            )
        )

        assert "Sonarr and Radarr are configured with the same URL" in validate_config(config)
