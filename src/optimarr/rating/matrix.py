"""Client compatibility matrix.

Maps (client, property category, value) to a support level. The default
matrix describes the stock Jellyfin clients; a sparse override table,
configured by the administrator, wins over the defaults wherever an entry
exists.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


class SupportLevel(Enum):
    """How well a client handles a property value."""

    SUPPORTED = "supported"
    PARTIAL = "partial"
    UNSUPPORTED = "unsupported"


class PropertyCategory(Enum):
    """Property dimensions checked per client."""

    VIDEO = "video"
    AUDIO = "audio"
    CONTAINER = "container"
    SUBTITLE = "subtitle"


# Pseudo-container used for sidecar subtitle files
EXTERNAL_SUBTITLE_CONTAINER = "External"

DEFAULT_CLIENTS: tuple[str, ...] = (
    "Chrome",
    "Edge",
    "Firefox",
    "Safari",
    "Android",
    "AndroidTV",
    "iOS",
    "SwiftFin",
    "Roku",
    "Kodi",
    "Desktop",
)

_CODES = {
    "S": SupportLevel.SUPPORTED,
    "P": SupportLevel.PARTIAL,
    "U": SupportLevel.UNSUPPORTED,
}


def _row(codes: str) -> dict[str, SupportLevel]:
    """Expand a compact row ("SSUP...") in DEFAULT_CLIENTS order."""
    if len(codes) != len(DEFAULT_CLIENTS):
        raise ValueError(f"row {codes!r} does not cover {len(DEFAULT_CLIENTS)} clients")
    return {client: _CODES[code] for client, code in zip(DEFAULT_CLIENTS, codes)}


# Client order: Chrome Edge Firefox Safari Android AndroidTV iOS SwiftFin Roku Kodi Desktop
DEFAULT_VIDEO_SUPPORT: dict[str, dict[str, SupportLevel]] = {
    "MPEG-4 SP": _row("UUUUUUUSSSS"),
    "MPEG-4 ASP": _row("UUUUUUUSUSS"),
    "H.264 8-bit": _row("SSSSSSSSSSS"),
    "H.264 10-bit": _row("SSUPSSUSUSS"),
    "H.265 8-bit": _row("PSSPPSSUPSS"),
    "H.265 10-bit": _row("PSSPPPSPPSS"),
    "VP9": _row("SSSSPPUSSSS"),
    "AV1": _row("SSSPPPUUUSS"),
}

DEFAULT_AUDIO_SUPPORT: dict[str, dict[str, SupportLevel]] = {
    "FLAC": _row("SSSSSSSSSSS"),
    "MP3": _row("PSPSSSSSSSS"),
    "AAC": _row("SSSSSSSSSSS"),
    "AC3": _row("SSUSSSSSUSS"),
    "EAC3": _row("SSSSSSSSUSS"),
    "Vorbis": _row("SSSPSUPSSSS"),
    "DTS": _row("UUUUSSUSSSS"),
    "Opus": _row("SSSSSSPSSSS"),
    "ALAC": _row("UUUSUUUUUUS"),
}

DEFAULT_CONTAINER_SUPPORT: dict[str, dict[str, SupportLevel]] = {
    "MP4": _row("SSSSSSSSSSS"),
    "MKV": _row("USUUSSUUSSS"),
    "WebM": _row("SSSSSSSSSSS"),
    "TS": _row("SSSSSSSSSSS"),
    "OGG": _row("SSSPSSPSSSS"),
    "AVI": _row("PPPPPPPPPPP"),
}

_S, _P, _U = SupportLevel.SUPPORTED, SupportLevel.PARTIAL, SupportLevel.UNSUPPORTED

# Subtitle support depends on the carrying container, not on the client
DEFAULT_SUBTITLE_SUPPORT: dict[str, dict[str, SupportLevel]] = {
    "SRT": {"MKV": _S, "MP4": _U, "TS": _U, "AVI": _P, "WebM": _S, "OGG": _S, "External": _S},
    "VTT": {"MKV": _S, "MP4": _U, "TS": _U, "AVI": _U, "WebM": _S, "OGG": _S, "External": _S},
    "ASS": {"MKV": _S, "MP4": _U, "TS": _U, "AVI": _U, "WebM": _U, "OGG": _U, "External": _S},
    "SSA": {"MKV": _S, "MP4": _U, "TS": _U, "AVI": _U, "WebM": _U, "OGG": _U, "External": _S},
    "VobSub": {"MKV": _S, "MP4": _S, "TS": _S, "AVI": _P, "WebM": _U, "OGG": _U},
    "MP4TT": {"MKV": _U, "MP4": _S, "TS": _U, "AVI": _U, "WebM": _U, "OGG": _U},
    "TXTT": {"MKV": _U, "MP4": _S, "TS": _U, "AVI": _U, "WebM": _U, "OGG": _U},
    "PGSSUB": {"MKV": _S, "MP4": _U, "TS": _U, "AVI": _U, "WebM": _U, "OGG": _U},
    "EIA-608": {"MKV": _S, "MP4": _S, "TS": _S, "AVI": _U, "WebM": _U, "OGG": _U},
    "EIA-708": {"MKV": _S, "MP4": _S, "TS": _S, "AVI": _U, "WebM": _U, "OGG": _U},
}


def _fold(table: Mapping[str, Mapping[str, SupportLevel]]) -> Mapping[str, Mapping[str, SupportLevel]]:
    """Casefold the outer and inner keys of a support table, read-only."""
    return MappingProxyType(
        {
            key.casefold(): MappingProxyType(
                {inner.casefold(): level for inner, level in row.items()}
            )
            for key, row in table.items()
        }
    )


@dataclass(frozen=True)
class CompatibilityOverride:
    """One administrator-provided correction to the default matrix.

    For the subtitle category ``client`` may be ``"*"`` to apply to every
    client.
    """

    category: PropertyCategory
    value: str
    client: str
    level: SupportLevel


@dataclass(frozen=True)
class ClientCompatibilityMatrix:
    """Support levels per client for video, audio, container and subtitles.

    Every lookup is case-insensitive. Values absent from the matrix are
    treated as unsupported. Build instances with ``from_tables`` so the
    tables are normalized.
    """

    clients: tuple[str, ...]
    video: Mapping[str, Mapping[str, SupportLevel]]
    audio: Mapping[str, Mapping[str, SupportLevel]]
    containers: Mapping[str, Mapping[str, SupportLevel]]
    subtitles: Mapping[str, Mapping[str, SupportLevel]]
    overrides: tuple[CompatibilityOverride, ...] = field(default_factory=tuple)

    @classmethod
    def from_tables(
        cls,
        clients: Iterable[str],
        video: Mapping[str, Mapping[str, SupportLevel]],
        audio: Mapping[str, Mapping[str, SupportLevel]],
        containers: Mapping[str, Mapping[str, SupportLevel]],
        subtitles: Mapping[str, Mapping[str, SupportLevel]] | None = None,
        overrides: Iterable[CompatibilityOverride] = (),
    ) -> ClientCompatibilityMatrix:
        return cls(
            clients=tuple(dict.fromkeys(clients)),
            video=_fold(video),
            audio=_fold(audio),
            containers=_fold(containers),
            subtitles=_fold(subtitles or {}),
            overrides=tuple(overrides),
        )

    def _override(
        self, category: PropertyCategory, values: Iterable[str], client: str
    ) -> SupportLevel | None:
        client_key = client.casefold()
        for value in values:
            value_key = value.casefold()
            for override in self.overrides:
                if (
                    override.category is category
                    and override.value.casefold() == value_key
                    and override.client.casefold() in (client_key, "*")
                ):
                    return override.level
        return None

    @staticmethod
    def _lookup(
        table: Mapping[str, Mapping[str, SupportLevel]], keys: Iterable[str], column: str
    ) -> SupportLevel:
        for key in keys:
            row = table.get(key.casefold())
            if row is not None:
                return row.get(column.casefold(), SupportLevel.UNSUPPORTED)
        return SupportLevel.UNSUPPORTED

    def video_support(self, codec: str, bit_depth: int, client: str) -> SupportLevel:
        """Support level of a video codec at a bit depth.

        ``"<codec> <n>-bit"`` is consulted before the bare codec name.
        """
        keys = (f"{codec} {bit_depth}-bit", codec)
        override = self._override(PropertyCategory.VIDEO, keys, client)
        if override is not None:
            return override
        return self._lookup(self.video, keys, client)

    def audio_support(self, codec: str, client: str) -> SupportLevel:
        override = self._override(PropertyCategory.AUDIO, (codec,), client)
        if override is not None:
            return override
        return self._lookup(self.audio, (codec,), client)

    def container_support(self, container: str, client: str) -> SupportLevel:
        override = self._override(PropertyCategory.CONTAINER, (container,), client)
        if override is not None:
            return override
        return self._lookup(self.containers, (container,), client)

    def subtitle_support(
        self, subtitle_format: str, container: str, client: str
    ) -> SupportLevel:
        """Support level of a subtitle format carried in a container.

        Sidecar files are looked up under the ``External`` container.
        """
        override = self._override(PropertyCategory.SUBTITLE, (subtitle_format,), client)
        if override is not None:
            return override
        return self._lookup(self.subtitles, (subtitle_format,), container)


def default_matrix(
    overrides: Iterable[CompatibilityOverride] = (),
) -> ClientCompatibilityMatrix:
    """Build the stock client matrix, optionally with overrides."""
    return ClientCompatibilityMatrix.from_tables(
        clients=DEFAULT_CLIENTS,
        video=DEFAULT_VIDEO_SUPPORT,
        audio=DEFAULT_AUDIO_SUPPORT,
        containers=DEFAULT_CONTAINER_SUPPORT,
        subtitles=DEFAULT_SUBTITLE_SUPPORT,
        overrides=overrides,
    )
