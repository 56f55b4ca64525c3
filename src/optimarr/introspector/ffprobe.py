"""FFprobe-based implementation of the MediaExtractor protocol."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess  # nosec B404 - subprocess is required for ffprobe invocation
from collections.abc import Callable, Sequence
from pathlib import Path

from optimarr.introspector.interface import (
    BrokenResult,
    ExtractionResult,
    ExtractorUnavailableError,
)
from optimarr.introspector.mappings import MP4_FAMILY, map_container
from optimarr.introspector.parsers import is_fast_start, parse_ffprobe_output

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0

# Bytes read from the start of MP4 files to locate the moov atom
FAST_START_PROBE_BYTES = 32768

# (argv, timeout_seconds) -> CompletedProcess; raises TimeoutExpired on timeout
ProcessRunner = Callable[[Sequence[str], float], "subprocess.CompletedProcess[str]"]


def run_process(args: Sequence[str], timeout: float) -> subprocess.CompletedProcess[str]:
    """Run an external process, capturing text output without raising on exit code."""
    return subprocess.run(  # nosec B603 - argv is built from a resolved tool path
        list(args),
        capture_output=True,
        text=True,
        errors="replace",
        check=False,
        timeout=timeout,
    )


class FFprobeExtractor:
    """ffprobe-based implementation of the MediaExtractor protocol.

    Every media-level failure (non-zero exit, timeout, empty or unparseable
    output, implausible attributes) is returned as a BrokenResult. Only a
    missing ffprobe binary raises.
    """

    def __init__(
        self,
        ffprobe_path: Path | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        runner: ProcessRunner | None = None,
    ) -> None:
        """Initialize the extractor.

        Args:
            ffprobe_path: Explicit path to ffprobe. Looked up on PATH if None.
            timeout_seconds: Per-file timeout for the ffprobe invocation.
            runner: Process runner, replaceable for testing.

        Raises:
            ExtractorUnavailableError: If ffprobe cannot be found.
        """
        if ffprobe_path is None:
            found = shutil.which("ffprobe")
            ffprobe_path = Path(found) if found else None
        if ffprobe_path is None:
            raise ExtractorUnavailableError(
                "ffprobe is not installed or not in PATH. Install ffmpeg or set "
                "OPTIMARR_FFPROBE_PATH / [tools] ffprobe in config.toml"
            )
        self._ffprobe_path = ffprobe_path
        self._timeout = timeout_seconds
        self._run = runner or run_process

    @property
    def ffprobe_path(self) -> Path:
        return self._ffprobe_path

    def extract(self, path: Path) -> ExtractionResult:
        """Extract technical attributes from a media file.

        Args:
            path: Path to the media file.

        Returns:
            TechnicalAttributes or BrokenResult.

        Raises:
            ExtractorUnavailableError: If ffprobe cannot be executed.
        """
        try:
            file_size = path.stat().st_size
        except OSError as e:
            return BrokenResult(f"Cannot stat file: {e}")

        args = [
            str(self._ffprobe_path),
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
            "-show_format",
            str(path),
        ]
        try:
            completed = self._run(args, self._timeout)
        except subprocess.TimeoutExpired:
            logger.warning("ffprobe timed out after %ss: %s", self._timeout, path)
            return BrokenResult(f"ffprobe timed out after {self._timeout:g}s")
        except OSError as e:
            raise ExtractorUnavailableError(
                f"Cannot execute {self._ffprobe_path}: {e}"
            ) from e

        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()
            reason = f"ffprobe exited with code {completed.returncode}"
            if stderr:
                reason = f"{reason}: {stderr.splitlines()[-1]}"
            return BrokenResult(reason, exit_code=completed.returncode)

        if not (completed.stdout or "").strip():
            return BrokenResult("ffprobe produced no output", exit_code=0)

        try:
            data = json.loads(completed.stdout)
        except json.JSONDecodeError as e:
            return BrokenResult(f"Unparseable ffprobe output: {e}", exit_code=0)
        if not isinstance(data, dict):
            return BrokenResult("Unexpected ffprobe output structure", exit_code=0)

        # Well-formed JSON with the wrong shape (null streams, scalar format)
        # is a broken file like any other unreadable output
        try:
            fast_start = None
            container = map_container((data.get("format") or {}).get("format_name"), path)
            if container in MP4_FAMILY:
                fast_start = self._check_fast_start(path)
            return parse_ffprobe_output(path, data, file_size, fast_start)
        except (AttributeError, TypeError, ValueError, KeyError) as e:
            logger.warning("Unexpected ffprobe output structure for %s: %s", path, e)
            return BrokenResult(f"Unexpected ffprobe output structure: {e}", exit_code=0)

    @staticmethod
    def _check_fast_start(path: Path) -> bool | None:
        """Read the file header and report fast-start, or None if unreadable."""
        try:
            with path.open("rb") as f:
                header = f.read(FAST_START_PROBE_BYTES)
        except OSError as e:
            logger.warning("Cannot read header of %s: %s", path, e)
            return None
        return is_fast_start(header)
