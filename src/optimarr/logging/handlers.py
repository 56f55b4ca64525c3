"""Log formatters for optimarr.

Provides JSONFormatter for structured log output.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

# Fields injected by OperationContextFilter
_CONTEXT_FIELDS = ("operation_id", "item_id", "item_path")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Each entry contains ``timestamp`` (ISO-8601 UTC), ``level``, ``message``,
    the ``logger`` name, a ``context`` object built from ``extra=`` values
    and the operation context, and ``exception`` when exc_info is set.
    """

    _RESERVED: frozenset[str] = frozenset(
        vars(logging.LogRecord("", 0, "", 0, "", None, None))
    ) | frozenset({"message", "asctime", "taskName", "operation_tag", *_CONTEXT_FIELDS})

    def format(self, record: logging.LogRecord) -> str:
        record_time = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": record_time.isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }

        if record.name and record.name != "root":
            entry["logger"] = record.name

        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._RESERVED and not key.startswith("_")
        }
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value:
                context[name] = value
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)
