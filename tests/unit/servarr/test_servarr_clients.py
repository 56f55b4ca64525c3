"""Unit tests for the Sonarr and Radarr API clients."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from optimarr.config.models import PathMapping, ServarrConfig, ServarrConnectionConfig
from optimarr.db import OriginSystem
from optimarr.servarr import (
    MediaEntry,
    RadarrAuthError,
    RadarrClient,
    RadarrConnectionError,
    SonarrAuthError,
    SonarrClient,
    SonarrConnectionError,
    build_clients,
)
from optimarr.servarr.base import ServarrClient

CLIENT_CLASS = "optimarr.servarr.base.httpx.Client"


def _response(payload, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def _route(responses: dict):
    """side_effect for client.get that answers by (path, seriesId)."""

    def get(path, params=None):
        key = (path, (params or {}).get("seriesId"))
        return _response(responses[key])

    return get


@pytest.fixture
def sonarr_config() -> ServarrConnectionConfig:
    return ServarrConnectionConfig(
        url="http://localhost:8989/",
        api_key="sonarr-key-123",  # pragma: allowlist secret
        path_mappings=(PathMapping("/tv", "/mnt/media/tv"),),
    )


@pytest.fixture
def radarr_config() -> ServarrConnectionConfig:
    return ServarrConnectionConfig(
        url="http://localhost:7878",
        api_key="radarr-key-456",  # pragma: allowlist secret
        timeout_seconds=10,
    )


class TestClientSetup:
    """Tests for client construction and the lazy HTTP client."""

    def test_init(self, sonarr_config):
        """Trailing slashes are stripped and mappings are exposed."""
        client = SonarrClient(sonarr_config)

        assert client._base_url == "http://localhost:8989"
        assert client._client is None
        assert client.path_mappings == (PathMapping("/tv", "/mnt/media/tv"),)
        assert client.origin_system is OriginSystem.SONARR

    def test_entries_required_of_subclasses(self, sonarr_config):
        """A client for a new service must say how it lists media entries."""

        class IncompleteClient(ServarrClient):
            app_name = "Lidarr"
            origin_system = OriginSystem.SONARR
            connection_error = SonarrConnectionError
            auth_error = SonarrAuthError

        with pytest.raises(TypeError, match="get_media_entries"):
            IncompleteClient(sonarr_config)
        with pytest.raises(TypeError):
            ServarrClient(sonarr_config)

    @patch(CLIENT_CLASS)
    def test_creates_client_once(self, mock_client_class: MagicMock, radarr_config):
        """The HTTP client is created lazily and reused."""
        client = RadarrClient(radarr_config)

        client._get_client()
        client._get_client()

        mock_client_class.assert_called_once_with(
            base_url="http://localhost:7878",
            timeout=10,
            headers={"X-Api-Key": "radarr-key-456"},
        )

    @patch(CLIENT_CLASS)
    def test_close(self, mock_client_class: MagicMock, radarr_config):
        """Closing releases the HTTP client."""
        mock_http_client = MagicMock()
        mock_client_class.return_value = mock_http_client

        with RadarrClient(radarr_config) as client:
            client._get_client()

        mock_http_client.close.assert_called_once()
        assert client._client is None


class TestGetStatus:
    """Tests for status requests and error mapping."""

    @patch(CLIENT_CLASS)
    def test_success(self, mock_client_class: MagicMock, radarr_config):
        """The decoded status body is returned."""
        mock_http_client = MagicMock()
        mock_client_class.return_value = mock_http_client
        mock_http_client.get.return_value = _response({"appName": "Radarr", "version": "5.2"})

        result = RadarrClient(radarr_config).get_status()

        assert result == {"appName": "Radarr", "version": "5.2"}
        mock_http_client.get.assert_called_once_with("/api/v3/system/status", params=None)

    @patch(CLIENT_CLASS)
    def test_auth_error(self, mock_client_class: MagicMock, sonarr_config):
        """401 raises the service's auth error."""
        mock_client_class.return_value.get.return_value = _response({}, status_code=401)

        with pytest.raises(SonarrAuthError, match="Invalid API key"):
            SonarrClient(sonarr_config).get_status()

    @patch(CLIENT_CLASS)
    def test_connect_error(self, mock_client_class: MagicMock, sonarr_config):
        """Unreachable services raise a connection error naming the service."""
        mock_client_class.return_value.get.side_effect = httpx.ConnectError("refused")

        with pytest.raises(SonarrConnectionError, match="Cannot connect to Sonarr"):
            SonarrClient(sonarr_config).get_status()

    @patch(CLIENT_CLASS)
    def test_timeout(self, mock_client_class: MagicMock, radarr_config):
        """Timeouts raise a connection error."""
        mock_client_class.return_value.get.side_effect = httpx.TimeoutException("slow")

        with pytest.raises(RadarrConnectionError, match="Connection timeout"):
            RadarrClient(radarr_config).get_status()

    @patch(CLIENT_CLASS)
    def test_http_error(self, mock_client_class: MagicMock, radarr_config):
        """Error statuses raise a connection error."""
        response = _response({}, status_code=500)
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Server Error", request=MagicMock(), response=response
        )
        mock_client_class.return_value.get.return_value = response

        with pytest.raises(RadarrConnectionError, match="HTTP error"):
            RadarrClient(radarr_config).get_status()

    @patch(CLIENT_CLASS)
    def test_invalid_json(self, mock_client_class: MagicMock, radarr_config):
        """Bodies that are not JSON raise a connection error."""
        response = _response(None)
        response.json.side_effect = ValueError("Expecting value")
        mock_client_class.return_value.get.return_value = response

        with pytest.raises(RadarrConnectionError, match="Invalid JSON"):
            RadarrClient(radarr_config).get_status()


class TestValidateConnection:
    """Tests for validate_connection()."""

    @patch(CLIENT_CLASS)
    def test_matching_app(self, mock_client_class: MagicMock, sonarr_config):
        """The expected application validates."""
        mock_client_class.return_value.get.return_value = _response(
            {"appName": "Sonarr", "version": "4.0.0"}
        )

        assert SonarrClient(sonarr_config).validate_connection() is True

    @patch(CLIENT_CLASS)
    def test_wrong_app(self, mock_client_class: MagicMock, radarr_config):
        """A URL pointing at the other service is rejected."""
        mock_client_class.return_value.get.return_value = _response(
            {"appName": "Sonarr", "version": "4.0.0"}
        )

        with pytest.raises(RadarrConnectionError, match="Expected Radarr, got Sonarr"):
            RadarrClient(radarr_config).validate_connection()


class TestSonarrMediaEntries:
    """Tests for SonarrClient.get_media_entries()."""

    @patch(CLIENT_CLASS)
    def test_entries_per_episode_with_file(self, mock_client_class: MagicMock, sonarr_config):
        """Episodes with files become entries carrying series and episode numbers."""
        mock_client_class.return_value.get.side_effect = _route(
            {
                ("/api/v3/series", None): [
                    {"id": 1, "title": "Show", "year": 2019, "path": "/tv/Show"},
                    {"id": 2, "title": "Empty", "year": 2020, "path": "/tv/Empty"},
                ],
                ("/api/v3/episodefile", 1): [
                    {"id": 10, "seriesId": 1, "seasonNumber": 1, "path": "/tv/Show/S01E01.mkv"},
                ],
                ("/api/v3/episodefile", 2): [],
                ("/api/v3/episode", 1): [
                    {
                        "id": 100,
                        "seriesId": 1,
                        "seasonNumber": 1,
                        "episodeNumber": 1,
                        "title": "Pilot",
                        "hasFile": True,
                        "episodeFileId": 10,
                    },
                    {
                        "id": 101,
                        "seriesId": 1,
                        "seasonNumber": 1,
                        "episodeNumber": 2,
                        "title": "Second",
                        "hasFile": False,
                        "episodeFileId": 0,
                    },
                ],
            }
        )

        entries = SonarrClient(sonarr_config).get_media_entries()

        assert entries == [
            MediaEntry(
                origin_system=OriginSystem.SONARR,
                origin_id=1,
                title="Show",
                path="/tv/Show/S01E01.mkv",
                season_number=1,
                episode_number=1,
                year=2019,
            )
        ]

    @patch(CLIENT_CLASS)
    def test_failure_propagates(self, mock_client_class: MagicMock, sonarr_config):
        """A failing request aborts the listing."""
        mock_client_class.return_value.get.side_effect = httpx.ConnectError("refused")

        with pytest.raises(SonarrConnectionError):
            SonarrClient(sonarr_config).get_media_entries()


class TestRadarrMediaEntries:
    """Tests for RadarrClient.get_media_entries()."""

    @patch(CLIENT_CLASS)
    def test_entries_for_movies_with_files(self, mock_client_class: MagicMock, radarr_config):
        """Only movies with a file are listed; a missing year stays unset."""
        mock_client_class.return_value.get.return_value = _response(
            [
                {
                    "id": 5,
                    "title": "Film",
                    "year": 0,
                    "path": "/movies/Film (2001)",
                    "hasFile": True,
                    "movieFile": {"id": 50, "path": "/movies/Film (2001)/Film.mkv", "size": 10},
                },
                {"id": 6, "title": "Wanted", "year": 2024, "path": "/movies/Wanted"},
            ]
        )

        entries = RadarrClient(radarr_config).get_media_entries()

        assert entries == [
            MediaEntry(
                origin_system=OriginSystem.RADARR,
                origin_id=5,
                title="Film",
                path="/movies/Film (2001)/Film.mkv",
                year=None,
            )
        ]

    @patch(CLIENT_CLASS)
    def test_auth_error(self, mock_client_class: MagicMock, radarr_config):
        """A rejected API key raises RadarrAuthError."""
        mock_client_class.return_value.get.return_value = _response({}, status_code=401)

        with pytest.raises(RadarrAuthError):
            RadarrClient(radarr_config).get_media_entries()


class TestBuildClients:
    """Tests for build_clients()."""

    def test_sonarr_first(self, sonarr_config, radarr_config):
        """Sonarr is consulted before Radarr."""
        clients = build_clients(ServarrConfig(sonarr=sonarr_config, radarr=radarr_config))

        assert [type(c) for c in clients] == [SonarrClient, RadarrClient]

    def test_disabled_skipped(self, radarr_config):
        """Disabled connections get no client."""
        disabled = ServarrConnectionConfig(
            url="http://localhost:8989",
            api_key="key",  # pragma: allowlist secret
            enabled=False,
        )

        clients = build_clients(ServarrConfig(sonarr=disabled, radarr=radarr_config))

        assert [type(c) for c in clients] == [RadarrClient]

    def test_none(self):
        """No configuration means no clients."""
        assert build_clients(None) == []
        assert build_clients(ServarrConfig()) == []
