"""Root logger setup for optimarr.

Every handler installed here carries an OperationContextFilter, so records
emitted by scan and match workers are tagged with their operation (text
format) or carry it in ``context`` (JSON format).
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from optimarr.logging.context import OperationContextFilter
from optimarr.logging.handlers import JSONFormatter

if TYPE_CHECKING:
    from optimarr.config.models import LoggingConfig

logger = logging.getLogger(__name__)

_LEVEL_MAP: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# operation_tag is "[scan-4:F0001] " inside a worker, "" elsewhere
TEXT_FORMAT = "%(asctime)s - %(operation_tag)s%(name)s - %(levelname)s - %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Client libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def build_formatter(log_format: str) -> logging.Formatter:
    """Return the formatter for ``"json"`` or ``"text"`` output."""
    if log_format.casefold() == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATE_FORMAT)


def _open_log_file(config: LoggingConfig) -> tuple[logging.Handler | None, str | None]:
    """Open the rotating log file, or return the reason it cannot be opened."""
    file_path = Path(config.file).expanduser()
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            file_path,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        return None, f"Could not open log file {file_path}: {e}"
    return handler, None


def configure_logging(config: LoggingConfig) -> list[logging.Handler]:
    """Replace the root logger's handlers according to ``config``.

    A rotating file handler is installed when ``config.file`` is set. The
    stderr handler is installed when ``include_stderr`` is set or when no
    file handler could be installed; a log file that cannot be opened is
    reported as a warning on stderr.

    Args:
        config: Logging configuration.

    Returns:
        The handlers now attached to the root logger.
    """
    level = _LEVEL_MAP.get(config.level.casefold(), logging.INFO)
    formatter = build_formatter(config.format)
    context_filter = OperationContextFilter()

    handlers: list[logging.Handler] = []
    file_error = None
    if config.file:
        file_handler, file_error = _open_log_file(config)
        if file_handler is not None:
            handlers.append(file_handler)
    if config.include_stderr or not handlers:
        handlers.append(logging.StreamHandler(sys.stderr))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if file_error is not None:
        logger.warning("%s; logging to stderr", file_error)
    return handlers
