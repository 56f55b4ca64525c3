"""Shared HTTP plumbing for the Sonarr and Radarr v3 API clients."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx

from optimarr.config.models import PathMapping, ServarrConnectionConfig
from optimarr.db.types import OriginSystem
from optimarr.servarr.models import MediaEntry, ServarrConnectionError

logger = logging.getLogger(__name__)


class ServarrClient(ABC):
    """Base HTTP client for a *arr v3 API.

    Subclasses set the application name, origin system and the error
    classes raised for connection and authentication failures.
    """

    app_name: ClassVar[str]
    origin_system: ClassVar[OriginSystem]
    connection_error: ClassVar[type[ServarrConnectionError]]
    auth_error: ClassVar[type[ServarrConnectionError]]

    def __init__(self, config: ServarrConnectionConfig) -> None:
        """Initialize the client.

        Args:
            config: Connection configuration with URL, API key and path
                mappings.
        """
        self._base_url = config.url.rstrip("/")
        self._api_key = config.api_key
        self._timeout = config.timeout_seconds
        self.path_mappings: tuple[PathMapping, ...] = config.path_mappings
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=self._headers(),
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        return {"X-Api-Key": self._api_key}

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET an API path and decode the JSON body.

        Raises:
            auth_error: If the API key is rejected (401).
            connection_error: On connection, timeout, HTTP or decode errors.
        """
        client = self._get_client()
        try:
            response = client.get(path, params=params)
            if response.status_code == 401:
                raise self.auth_error("Invalid API key")
            response.raise_for_status()
            return response.json()
        except httpx.ConnectError as e:
            raise self.connection_error(f"Cannot connect to {self.app_name}: {e}") from e
        except httpx.TimeoutException as e:
            raise self.connection_error(f"Connection timeout: {e}") from e
        except httpx.HTTPStatusError as e:
            raise self.connection_error(f"HTTP error: {e}") from e
        except httpx.HTTPError as e:
            raise self.connection_error(f"Request failed: {e}") from e
        except ValueError as e:
            raise self.connection_error(f"Invalid JSON from {path}: {e}") from e

    def get_status(self) -> dict[str, Any]:
        """Get system status from /api/v3/system/status."""
        return self._get_json("/api/v3/system/status")

    def validate_connection(self) -> bool:
        """Validate the connection by calling the status endpoint.

        Returns:
            True if connection is valid.

        Raises:
            auth_error: If API key is invalid.
            connection_error: If connection fails or the URL points at
                another application.
        """
        status = self.get_status()
        app_name = status.get("appName", "")
        if app_name != self.app_name:
            raise self.connection_error(
                f"Expected {self.app_name}, got {app_name}. Check the URL."
            )
        logger.info("Connected to %s %s", self.app_name, status.get("version", "unknown"))
        return True

    @abstractmethod
    def get_media_entries(self) -> list[MediaEntry]:
        """Every file the service knows about, as matchable entries."""
