"""Tests for recursive video file discovery."""

import os
from pathlib import Path

import pytest

from optimarr.jobs import DiscoveryError
from optimarr.scanner import FileDiscovery
from optimarr.scanner.discovery import match_subtitle


def _touch(path: Path, size: int = 0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x00" * size)
    return path


class TestFileDiscovery:
    """Tests for FileDiscovery iteration."""

    def test_sorted_recursive_order(self, temp_dir):
        """Files come out in name order, each directory before its subdirectories."""
        _touch(temp_dir / "b.mkv")
        _touch(temp_dir / "a.mp4")
        _touch(temp_dir / "z" / "d.avi")
        _touch(temp_dir / "sub" / "c.mkv")
        _touch(temp_dir / "notes.txt")

        paths = [item.path for item in FileDiscovery(temp_dir)]

        assert paths == [
            temp_dir / "a.mp4",
            temp_dir / "b.mkv",
            temp_dir / "sub" / "c.mkv",
            temp_dir / "z" / "d.avi",
        ]

    def test_extensions_case_insensitive(self, temp_dir):
        """Upper-case extensions are recognized."""
        _touch(temp_dir / "MOVIE.MKV")

        assert [item.path.name for item in FileDiscovery(temp_dir)] == ["MOVIE.MKV"]

    def test_sizes(self, temp_dir):
        """Discovered files carry their size."""
        _touch(temp_dir / "a.mkv", size=2048)

        [item] = list(FileDiscovery(temp_dir))

        assert item.size == 2048

    def test_sidecar_pairing(self, library_dir):
        """Sidecar subtitles are paired with the video of the same base name."""
        items = {item.path.name: item for item in FileDiscovery(library_dir)}

        assert items["a.mkv"].subtitle_path == library_dir / "a.en.srt"
        assert items["b.mkv"].subtitle_path is None

    def test_restartable(self, library_dir):
        """Iterating twice walks the tree twice."""
        discovery = FileDiscovery(library_dir)

        assert list(discovery) == list(discovery)

    def test_lazy(self, library_dir):
        """Discovery yields before the whole tree is walked."""
        iterator = iter(FileDiscovery(library_dir))

        assert next(iterator).path.name == "a.mkv"

    def test_symlink_cycle(self, temp_dir):
        """A directory symlink pointing at an ancestor is not walked twice."""
        _touch(temp_dir / "show" / "e01.mkv")
        os.symlink(temp_dir, temp_dir / "show" / "loop")

        paths = [item.path for item in FileDiscovery(temp_dir)]

        assert paths == [temp_dir / "show" / "e01.mkv"]

    def test_missing_root(self, temp_dir):
        """A missing root raises DiscoveryError."""
        with pytest.raises(DiscoveryError, match="does not exist"):
            list(FileDiscovery(temp_dir / "missing"))

    def test_root_is_file(self, temp_dir):
        """A root that is a file raises DiscoveryError."""
        root = _touch(temp_dir / "a.mkv")

        with pytest.raises(DiscoveryError, match="not a directory"):
            list(FileDiscovery(root))

    @pytest.mark.skipif(
        hasattr(os, "geteuid") and os.geteuid() == 0, reason="root ignores permissions"
    )
    def test_unreadable_subdirectory_skipped(self, temp_dir):
        """Unreadable subdirectories are recorded as warnings and skipped."""
        _touch(temp_dir / "a.mkv")
        locked = temp_dir / "locked"
        _touch(locked / "b.mkv")
        locked.chmod(0o000)
        try:
            discovery = FileDiscovery(temp_dir)
            paths = [item.path.name for item in discovery]
        finally:
            locked.chmod(0o755)

        assert paths == ["a.mkv"]
        assert [w.path for w in discovery.warnings] == [str(locked)]


class TestMatchSubtitle:
    """Tests for match_subtitle()."""

    def test_exact_base_name_preferred(self):
        """Movie.srt wins over Movie.en.srt."""
        assert match_subtitle("Movie.mkv", ["Movie.en.srt", "Movie.srt"]) == "Movie.srt"

    def test_language_suffix(self):
        """Movie.en.srt matches Movie.mkv."""
        assert match_subtitle("Movie.mkv", ["Movie.en.srt"]) == "Movie.en.srt"

    def test_case_insensitive(self):
        """Base names are compared case-insensitively."""
        assert match_subtitle("movie.mkv", ["MOVIE.EN.SRT"]) == "MOVIE.EN.SRT"

    def test_prefix_must_end_at_dot(self):
        """Movie2.srt does not belong to Movie.mkv."""
        assert match_subtitle("Movie.mkv", ["Movie2.srt"]) is None
