"""Operation context for structured logging.

Background scan and match workers run on their own threads. The context
variables here let every log record emitted inside a worker carry the
operation id and the item currently being processed without threading
those values through every call.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_operation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation_id", default=None
)
_item_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "item_id", default=None
)
_item_path: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "item_path", default=None
)


def format_item_id(index: int) -> str:
    """Format a 1-based item index as a compact id (e.g. ``F0003``)."""
    return f"F{index:04d}"


def set_operation_context(
    operation_id: str,
    item_id: str | None = None,
    item_path: Path | str | None = None,
) -> None:
    """Set the current operation context.

    Args:
        operation_id: Operation identifier (e.g., "scan-12", "match-3fa2").
        item_id: Item identifier within the operation (e.g., "F0001").
        item_path: Path of the file being processed, or None.
    """
    _operation_id.set(operation_id)
    _item_id.set(item_id)
    _item_path.set(str(item_path) if item_path is not None else None)


def clear_operation_context() -> None:
    """Clear the current operation context."""
    _operation_id.set(None)
    _item_id.set(None)
    _item_path.set(None)


@contextmanager
def operation_context(
    operation_id: str,
    item_id: str | None = None,
    item_path: Path | str | None = None,
) -> Generator[None, None, None]:
    """Scope log records to an operation (and optionally one item of it).

    The previous context is restored on exit, so item scopes can be nested
    inside an operation scope.

    Example:
        with operation_context("scan-4"):
            with operation_context("scan-4", "F0001", "/media/a.mkv"):
                logger.info("Extracting")  # tagged [scan-4:F0001]
    """
    old_operation_id = _operation_id.get()
    old_item_id = _item_id.get()
    old_item_path = _item_path.get()
    try:
        set_operation_context(operation_id, item_id, item_path)
        yield
    finally:
        _operation_id.set(old_operation_id)
        _item_id.set(old_item_id)
        _item_path.set(old_item_path)


def get_operation_context() -> tuple[str | None, str | None, str | None]:
    """Get current operation context.

    Returns:
        Tuple of (operation_id, item_id, item_path), any may be None.
    """
    return _operation_id.get(), _item_id.get(), _item_path.get()


class OperationContextFilter(logging.Filter):
    """Logging filter that injects operation context into log records.

    Adds operation_id, item_id and item_path attributes for the JSON
    formatter, plus an ``operation_tag`` such as ``[scan-4:F0001] `` used
    by the text format.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        operation_id, item_id, item_path = get_operation_context()

        record.operation_id = operation_id
        record.item_id = item_id
        record.item_path = item_path

        if operation_id:
            if item_id:
                record.operation_tag = f"[{operation_id}:{item_id}] "
            else:
                record.operation_tag = f"[{operation_id}] "
        else:
            record.operation_tag = ""

        return True
