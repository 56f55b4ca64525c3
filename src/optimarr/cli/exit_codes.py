"""Exit codes shared by all CLI commands.

Exit code ranges:
    0: Success
    1-9: General errors
    10-19: Validation errors (config, input)
    20-29: Target errors
    30-39: Tool/dependency errors
    40-49: Operation errors
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes for optimarr CLI commands."""

    SUCCESS = 0

    GENERAL_ERROR = 1
    INTERRUPTED = 2

    CONFIG_ERROR = 11

    TARGET_NOT_FOUND = 20

    TOOL_NOT_AVAILABLE = 30
    SERVICE_UNAVAILABLE = 31

    OPERATION_FAILED = 40
    CONFLICT = 41
    DATABASE_ERROR = 42
