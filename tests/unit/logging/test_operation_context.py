"""Unit tests for operation context logging and the JSON formatter."""

import json
import logging
import sys
import threading
from pathlib import Path

import pytest

from optimarr.config.models import LoggingConfig
from optimarr.logging import (
    QUIET_LOGGERS,
    JSONFormatter,
    OperationContextFilter,
    clear_operation_context,
    configure_logging,
    format_item_id,
    get_operation_context,
    operation_context,
    set_operation_context,
)


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="optimarr.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestOperationContext:
    """Tests for setting, scoping and clearing the operation context."""

    def test_set_and_get(self) -> None:
        """Test setting and getting all context values."""
        set_operation_context("scan-1", "F0001", Path("/media/a.mkv"))

        assert get_operation_context() == ("scan-1", "F0001", "/media/a.mkv")

        clear_operation_context()
        assert get_operation_context() == (None, None, None)

    def test_nested_scopes_restore(self) -> None:
        """Test that leaving an item scope restores the operation scope."""
        with operation_context("scan-4"):
            with operation_context("scan-4", "F0002", "/media/b.mkv"):
                assert get_operation_context() == ("scan-4", "F0002", "/media/b.mkv")
            assert get_operation_context() == ("scan-4", None, None)
        assert get_operation_context() == (None, None, None)

    def test_threads_are_isolated(self) -> None:
        """Test that a worker thread does not see another thread's context."""
        seen: list[tuple] = []

        def worker() -> None:
            seen.append(get_operation_context())

        with operation_context("match-abc"):
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

        assert seen == [(None, None, None)]

    def test_format_item_id(self) -> None:
        """Test the compact item id format."""
        assert format_item_id(3) == "F0003"
        assert format_item_id(12345) == "F12345"


class TestOperationContextFilter:
    """Tests for OperationContextFilter."""

    def test_tag_with_item(self) -> None:
        """Test the text tag includes operation and item ids."""
        record = _record()
        with operation_context("scan-2", "F0007"):
            assert OperationContextFilter().filter(record)

        assert record.operation_tag == "[scan-2:F0007] "
        assert record.operation_id == "scan-2"

    def test_tag_without_context(self) -> None:
        """Test records outside an operation get an empty tag."""
        record = _record()
        OperationContextFilter().filter(record)

        assert record.operation_tag == ""
        assert record.operation_id is None


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self) -> None:
        """Test timestamp, level, message and logger are emitted."""
        entry = json.loads(JSONFormatter().format(_record("scan done")))

        assert entry["level"] == "INFO"
        assert entry["message"] == "scan done"
        assert entry["logger"] == "optimarr.test"
        assert entry["timestamp"].endswith("+00:00")
        assert "context" not in entry

    def test_extra_and_operation_context(self) -> None:
        """Test extra values and the operation context land in context."""
        record = _record(scan_id=5)
        with operation_context("scan-5", "F0001", "/media/a.mkv"):
            OperationContextFilter().filter(record)

        entry = json.loads(JSONFormatter().format(record))

        assert entry["context"] == {
            "scan_id": 5,
            "operation_id": "scan-5",
            "item_id": "F0001",
            "item_path": "/media/a.mkv",
        }

    def test_exception(self) -> None:
        """Test exceptions are formatted into the entry."""
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()

        entry = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in entry["exception"]


@pytest.fixture
def restore_root_logger():
    """Put the root logger and quieted loggers back after configure_logging()."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    saved_quiet = {name: logging.getLogger(name).level for name in QUIET_LOGGERS}
    yield root
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    for name, level in saved_quiet.items():
        logging.getLogger(name).setLevel(level)


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_file_handler(self, temp_dir, restore_root_logger) -> None:
        """Test that a configured log file receives records."""
        log_file = temp_dir / "logs" / "optimarr.log"

        handlers = configure_logging(LoggingConfig(level="debug", file=log_file, format="json"))
        logging.getLogger("optimarr.test").info("written")
        for handler in handlers:
            handler.flush()

        assert len(handlers) == 1
        lines = log_file.read_text().splitlines()
        assert json.loads(lines[-1])["message"] == "written"

    def test_text_format_carries_operation_tag(self, capsys, restore_root_logger) -> None:
        """Test that worker records are tagged with operation and item ids."""
        configure_logging(LoggingConfig(level="info"))

        with operation_context("scan-3", "F0002"):
            logging.getLogger("optimarr.test").info("extracting")
        logging.getLogger("optimarr.test").info("idle")

        err = capsys.readouterr().err.splitlines()
        assert err[0].endswith(" - [scan-3:F0002] optimarr.test - INFO - extracting")
        assert err[1].endswith(" - optimarr.test - INFO - idle")

    def test_unopenable_file_falls_back_to_stderr(
        self, temp_dir, capsys, restore_root_logger
    ) -> None:
        """Test that a log file that cannot be created is reported on stderr."""
        blocker = temp_dir / "not-a-dir"
        blocker.write_text("")

        handlers = configure_logging(LoggingConfig(file=blocker / "optimarr.log"))

        assert [type(h) for h in handlers] == [logging.StreamHandler]
        assert "Could not open log file" in capsys.readouterr().err

    def test_client_loggers_quieted(self, restore_root_logger) -> None:
        """Test that request logging from HTTP clients stays at WARNING or above."""
        configure_logging(LoggingConfig(level="debug"))

        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
