"""Shared test fixtures for optimarr."""

import shutil
import tempfile
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

import pytest

from optimarr.db.connection import open_connection
from optimarr.db.schema import initialize_database
from optimarr.introspector.interface import (
    AudioTrack,
    BrokenResult,
    ExtractionResult,
    SubtitleTrack,
    TechnicalAttributes,
)
from optimarr.rating.config import RatingConfig

# Direct play on every default client with no scoring issues
GOOD_ATTRIBUTES = TechnicalAttributes(
    container="MP4",
    video_codec="H.264",
    bit_depth=8,
    video_codec_tag="avc1",
    codec_tag_correct=True,
    width=1920,
    height=1080,
    frame_rate=23.976,
    is_hdr=True,
    hdr_type="HDR10",
    duration_seconds=3600.0,
    file_size=4_000_000_000,
    fast_start=True,
    audio_tracks=(AudioTrack(codec="AAC", channels=6, sample_rate=48000, language="English"),),
    subtitle_tracks=(SubtitleTrack(format="SRT", language="English", embedded=False),),
)


class FakeExtractor:
    """MediaExtractor test double.

    Returns ``results[path.name]`` when present, otherwise the default
    attributes. ``on_extract`` is called with (call number, path) before
    each result is returned.
    """

    def __init__(
        self,
        results: dict[str, ExtractionResult] | None = None,
        default: ExtractionResult = GOOD_ATTRIBUTES,
        on_extract: Callable[[int, Path], None] | None = None,
    ) -> None:
        self.results = results or {}
        self.default = default
        self.on_extract = on_extract
        self.calls: list[Path] = []

    def extract(self, path: Path) -> ExtractionResult:
        self.calls.append(path)
        if self.on_extract is not None:
            self.on_extract(len(self.calls), path)
        return self.results.get(path.name, self.default)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test isolation."""
    dir_path = tempfile.mkdtemp()
    yield Path(dir_path)
    shutil.rmtree(dir_path, ignore_errors=True)


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    """Path of an initialized database file."""
    path = temp_dir / "library.db"
    conn = open_connection(path)
    initialize_database(conn)
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def db_conn(db_path: Path):
    """Connection to the initialized database file."""
    conn = open_connection(db_path)
    yield conn
    conn.close()


@pytest.fixture
def good_attributes() -> TechnicalAttributes:
    return GOOD_ATTRIBUTES


@pytest.fixture
def make_attributes() -> Callable[..., TechnicalAttributes]:
    """Factory for attributes that differ from the fully compatible ones."""

    def _make(**changes) -> TechnicalAttributes:
        return replace(GOOD_ATTRIBUTES, **changes)

    return _make


@pytest.fixture
def broken_result() -> BrokenResult:
    return BrokenResult("ffprobe exited with code 1: Invalid data found", exit_code=1)


@pytest.fixture
def rating_config() -> RatingConfig:
    return RatingConfig()


@pytest.fixture
def library_dir(temp_dir: Path) -> Path:
    """A library root with five videos (a.mkv .. e.mkv) and one sidecar."""
    root = temp_dir / "media"
    root.mkdir()
    for name in ("a.mkv", "b.mkv", "c.mkv", "d.mkv", "e.mkv"):
        (root / name).write_bytes(b"\x00" * 1024)
    (root / "a.en.srt").write_text("1\n00:00:01,000 --> 00:00:02,000\nHi\n")
    return root


@pytest.fixture
def fake_extractor_class() -> type[FakeExtractor]:
    """The FakeExtractor class, for tests that configure their own."""
    return FakeExtractor


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()
