"""Recursive discovery of video files and their sidecar subtitles."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from optimarr.jobs.exceptions import DiscoveryError

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = frozenset(
    {".mp4", ".mkv", ".avi", ".ts", ".m2ts", ".webm", ".ogg", ".mov", ".m4v"}
)
SUBTITLE_EXTENSIONS = frozenset({".srt", ".vtt", ".ass", ".ssa", ".sub", ".idx", ".sup"})


@dataclass(frozen=True)
class DiscoveredFile:
    """A video file and the sidecar subtitle paired with it, if any."""

    path: Path
    subtitle_path: Path | None = None
    size: int = 0


@dataclass(frozen=True)
class DiscoveryWarning:
    """A directory that was skipped during discovery."""

    path: str
    message: str


def _suffix(name: str) -> str:
    return os.path.splitext(name)[1].casefold()


def match_subtitle(video_name: str, subtitle_names: list[str]) -> str | None:
    """Pick the sidecar subtitle for a video from names in its directory.

    A subtitle matches when its base name equals the video's base name or
    extends it after a dot (``Movie.en.srt`` for ``Movie.mkv``), compared
    case-insensitively. An exact base-name match is preferred; otherwise
    the first candidate in name order wins.
    """
    stem = os.path.splitext(video_name)[0].casefold()
    prefix = stem + "."
    candidates = sorted(subtitle_names)
    for name in candidates:
        if os.path.splitext(name)[0].casefold() == stem:
            return name
    for name in candidates:
        if os.path.splitext(name)[0].casefold().startswith(prefix):
            return name
    return None


class FileDiscovery:
    """Lazy, restartable walk of a library root.

    Each iteration walks the tree afresh and yields DiscoveredFile items in
    a stable (sorted) order. Directories that cannot be read are skipped
    and recorded in ``warnings``; a missing or unreadable root raises
    DiscoveryError. Directory symlinks are followed, but a directory whose
    canonical path was already visited is not entered again.

    Example:
        discovery = FileDiscovery(Path("/media/movies"))
        for item in discovery:
            print(item.path, item.subtitle_path)
    """

    def __init__(self, root: Path, follow_symlinks: bool = True) -> None:
        self.root = Path(root)
        self.follow_symlinks = follow_symlinks
        self.warnings: list[DiscoveryWarning] = []

    def _warn(self, path: str, message: str) -> None:
        logger.warning("Skipping %s: %s", path, message)
        self.warnings.append(DiscoveryWarning(path=path, message=message))

    def _list_dir(self, directory: str) -> list[os.DirEntry] | None:
        try:
            with os.scandir(directory) as it:
                return sorted(it, key=lambda e: e.name)
        except PermissionError as e:
            if directory == str(self.root):
                raise DiscoveryError(str(self.root), f"permission denied: {e}") from e
            self._warn(directory, "permission denied")
        except FileNotFoundError:
            if directory == str(self.root):
                raise DiscoveryError(str(self.root), "directory does not exist")
            # Removed while walking
            self._warn(directory, "directory disappeared during scan")
        except OSError as e:
            if directory == str(self.root):
                raise DiscoveryError(str(self.root), str(e)) from e
            self._warn(directory, str(e))
        return None

    def __iter__(self) -> Iterator[DiscoveredFile]:
        self.warnings = []
        if not self.root.exists():
            raise DiscoveryError(str(self.root), "directory does not exist")
        if not self.root.is_dir():
            raise DiscoveryError(str(self.root), "not a directory")

        visited: set[str] = set()
        stack = [str(self.root)]

        while stack:
            directory = stack.pop()
            canonical = os.path.realpath(directory)
            if canonical in visited:
                logger.debug("Not re-entering %s (already visited)", directory)
                continue
            visited.add(canonical)

            entries = self._list_dir(directory)
            if entries is None:
                continue

            videos: list[os.DirEntry] = []
            subtitles: list[str] = []
            subdirs: list[str] = []
            for entry in entries:
                try:
                    if entry.is_dir(follow_symlinks=self.follow_symlinks):
                        subdirs.append(entry.path)
                        continue
                    if not entry.is_file(follow_symlinks=self.follow_symlinks):
                        continue
                except OSError as e:
                    self._warn(entry.path, str(e))
                    continue
                suffix = _suffix(entry.name)
                if suffix in VIDEO_EXTENSIONS:
                    videos.append(entry)
                elif suffix in SUBTITLE_EXTENSIONS:
                    subtitles.append(entry.name)

            for entry in videos:
                subtitle = match_subtitle(entry.name, subtitles)
                try:
                    size = entry.stat(follow_symlinks=self.follow_symlinks).st_size
                except OSError:
                    size = 0
                yield DiscoveredFile(
                    path=Path(entry.path),
                    subtitle_path=Path(directory, subtitle) if subtitle else None,
                    size=size,
                )

            # Reversed so the stack pops subdirectories in name order
            stack.extend(reversed(subdirs))
