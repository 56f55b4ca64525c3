"""Radarr API client for movie file lookup."""

from __future__ import annotations

import logging
from typing import Any

from optimarr.db.types import OriginSystem
from optimarr.servarr.base import ServarrClient
from optimarr.servarr.models import (
    MediaEntry,
    RadarrMovie,
    RadarrMovieFile,
    ServarrConnectionError,
)

logger = logging.getLogger(__name__)


class RadarrConnectionError(ServarrConnectionError):
    """Raised when connection to Radarr fails."""


class RadarrAuthError(RadarrConnectionError):
    """Raised when Radarr API key is invalid."""


def _parse_movie_file(data: dict[str, Any], movie_id: int) -> RadarrMovieFile:
    return RadarrMovieFile(
        id=data.get("id", 0),
        movie_id=data.get("movieId", movie_id),
        path=data.get("path", ""),
        size=data.get("size", 0),
    )


def _parse_movie(data: dict[str, Any]) -> RadarrMovie:
    movie_file = None
    if data.get("movieFile"):
        movie_file = _parse_movie_file(data["movieFile"], data["id"])
    return RadarrMovie(
        id=data["id"],
        title=data.get("title", ""),
        year=data.get("year") or None,
        path=data.get("path", ""),
        has_file=data.get("hasFile", False),
        movie_file=movie_file,
    )


class RadarrClient(ServarrClient):
    """HTTP client for Radarr API v3."""

    app_name = "Radarr"
    origin_system = OriginSystem.RADARR
    connection_error = RadarrConnectionError
    auth_error = RadarrAuthError

    def get_movies(self) -> list[RadarrMovie]:
        """Get all movies from /api/v3/movie, with their files embedded."""
        return [_parse_movie(item) for item in self._get_json("/api/v3/movie")]

    def get_media_entries(self) -> list[MediaEntry]:
        """One entry per movie that has a file.

        The year is left unset when Radarr reports none; the matcher falls
        back to a year found in the file path.
        """
        entries = [
            MediaEntry(
                origin_system=OriginSystem.RADARR,
                origin_id=movie.id,
                title=movie.title,
                path=movie.movie_file.path,
                year=movie.year,
            )
            for movie in self.get_movies()
            if movie.movie_file is not None and movie.movie_file.path
        ]
        logger.info("Fetched %d movie file(s) from Radarr", len(entries))
        return entries
