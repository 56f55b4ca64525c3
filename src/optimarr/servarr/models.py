"""Data models for Sonarr and Radarr API responses."""

from __future__ import annotations

from dataclasses import dataclass

from optimarr.db.types import OriginSystem


class ServarrConnectionError(Exception):
    """Raised when a Sonarr or Radarr request fails."""


@dataclass(frozen=True)
class SonarrSeries:
    """Series summary from /api/v3/series."""

    id: int
    title: str
    year: int
    path: str  # Series folder path


@dataclass(frozen=True)
class SonarrEpisode:
    """Episode from /api/v3/episode."""

    id: int
    series_id: int
    season_number: int
    episode_number: int
    title: str
    has_file: bool = False
    episode_file_id: int | None = None


@dataclass(frozen=True)
class SonarrEpisodeFile:
    """Episode file from /api/v3/episodefile."""

    id: int
    series_id: int
    season_number: int
    path: str


@dataclass(frozen=True)
class RadarrMovieFile:
    """Movie file embedded in /api/v3/movie responses."""

    id: int
    movie_id: int
    path: str
    size: int = 0


@dataclass(frozen=True)
class RadarrMovie:
    """Movie from /api/v3/movie."""

    id: int
    title: str
    year: int | None
    path: str  # Movie folder path
    has_file: bool = False
    movie_file: RadarrMovieFile | None = None


@dataclass(frozen=True)
class MediaEntry:
    """A file reported by an origin system, ready for path matching.

    ``path`` is the path as the origin system reports it; path mappings are
    applied by the matcher.
    """

    origin_system: OriginSystem
    origin_id: int  # series id (Sonarr) or movie id (Radarr)
    title: str
    path: str
    season_number: int | None = None
    episode_number: int | None = None
    year: int | None = None
