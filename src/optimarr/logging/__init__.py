"""Structured logging for optimarr.

Provides configurable logging with JSON format support, file rotation and
per-operation context for background scan and match workers.
"""

from optimarr.logging.config import QUIET_LOGGERS, configure_logging
from optimarr.logging.context import (
    OperationContextFilter,
    clear_operation_context,
    format_item_id,
    get_operation_context,
    operation_context,
    set_operation_context,
)
from optimarr.logging.handlers import JSONFormatter

__all__ = [
    "QUIET_LOGGERS",
    "JSONFormatter",
    "OperationContextFilter",
    "clear_operation_context",
    "configure_logging",
    "format_item_id",
    "get_operation_context",
    "operation_context",
    "set_operation_context",
]
