"""Sonarr and Radarr API clients."""

from optimarr.config.models import ServarrConfig
from optimarr.servarr.base import ServarrClient
from optimarr.servarr.models import (
    MediaEntry,
    RadarrMovie,
    RadarrMovieFile,
    ServarrConnectionError,
    SonarrEpisode,
    SonarrEpisodeFile,
    SonarrSeries,
)
from optimarr.servarr.radarr import RadarrAuthError, RadarrClient, RadarrConnectionError
from optimarr.servarr.sonarr import SonarrAuthError, SonarrClient, SonarrConnectionError


def build_clients(config: ServarrConfig | None) -> list[ServarrClient]:
    """Clients for every enabled connection, Sonarr first."""
    if config is None:
        return []
    clients: list[ServarrClient] = []
    if config.sonarr is not None and config.sonarr.enabled:
        clients.append(SonarrClient(config.sonarr))
    if config.radarr is not None and config.radarr.enabled:
        clients.append(RadarrClient(config.radarr))
    return clients


__all__ = [
    "MediaEntry",
    "RadarrAuthError",
    "RadarrClient",
    "RadarrConnectionError",
    "RadarrMovie",
    "RadarrMovieFile",
    "ServarrClient",
    "ServarrConnectionError",
    "SonarrAuthError",
    "SonarrClient",
    "SonarrConnectionError",
    "SonarrEpisode",
    "SonarrEpisodeFile",
    "SonarrSeries",
    "build_clients",
]
