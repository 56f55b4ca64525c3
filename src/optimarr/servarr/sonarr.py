"""Sonarr API client for episode file lookup."""

from __future__ import annotations

import logging
from typing import Any

from optimarr.db.types import OriginSystem
from optimarr.servarr.base import ServarrClient
from optimarr.servarr.models import (
    MediaEntry,
    ServarrConnectionError,
    SonarrEpisode,
    SonarrEpisodeFile,
    SonarrSeries,
)

logger = logging.getLogger(__name__)


class SonarrConnectionError(ServarrConnectionError):
    """Raised when connection to Sonarr fails."""


class SonarrAuthError(SonarrConnectionError):
    """Raised when Sonarr API key is invalid."""


def _parse_series(data: dict[str, Any]) -> SonarrSeries:
    return SonarrSeries(
        id=data["id"],
        title=data.get("title", ""),
        year=data.get("year", 0),
        path=data.get("path", ""),
    )


def _parse_episode(data: dict[str, Any]) -> SonarrEpisode:
    return SonarrEpisode(
        id=data["id"],
        series_id=data.get("seriesId", 0),
        season_number=data.get("seasonNumber", 0),
        episode_number=data.get("episodeNumber", 0),
        title=data.get("title", ""),
        has_file=data.get("hasFile", False),
        episode_file_id=data.get("episodeFileId") or None,
    )


def _parse_episode_file(data: dict[str, Any]) -> SonarrEpisodeFile:
    return SonarrEpisodeFile(
        id=data["id"],
        series_id=data.get("seriesId", 0),
        season_number=data.get("seasonNumber", 0),
        path=data.get("path", ""),
    )


class SonarrClient(ServarrClient):
    """HTTP client for Sonarr API v3."""

    app_name = "Sonarr"
    origin_system = OriginSystem.SONARR
    connection_error = SonarrConnectionError
    auth_error = SonarrAuthError

    def get_series(self) -> list[SonarrSeries]:
        """Get all series from /api/v3/series."""
        return [_parse_series(item) for item in self._get_json("/api/v3/series")]

    def get_episodes(self, series_id: int) -> list[SonarrEpisode]:
        """Get the episodes of one series."""
        data = self._get_json("/api/v3/episode", params={"seriesId": series_id})
        return [_parse_episode(item) for item in data]

    def get_episode_files(self, series_id: int) -> list[SonarrEpisodeFile]:
        """Get the episode files of one series."""
        data = self._get_json("/api/v3/episodefile", params={"seriesId": series_id})
        return [_parse_episode_file(item) for item in data]

    def get_media_entries(self) -> list[MediaEntry]:
        """One entry per episode that has a file.

        A multi-episode file yields one entry per episode; the first one
        listed wins when matching.
        """
        entries: list[MediaEntry] = []
        series_list = self.get_series()
        for series in series_list:
            files = {f.id: f for f in self.get_episode_files(series.id)}
            if not files:
                continue
            for episode in self.get_episodes(series.id):
                if episode.episode_file_id is None:
                    continue
                episode_file = files.get(episode.episode_file_id)
                if episode_file is None or not episode_file.path:
                    continue
                entries.append(
                    MediaEntry(
                        origin_system=OriginSystem.SONARR,
                        origin_id=series.id,
                        title=series.title,
                        path=episode_file.path,
                        season_number=episode.season_number,
                        episode_number=episode.episode_number,
                        year=series.year or None,
                    )
                )
        logger.info(
            "Fetched %d episode file(s) across %d series from Sonarr",
            len(entries),
            len(series_list),
        )
        return entries
