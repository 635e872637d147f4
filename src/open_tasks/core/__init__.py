"""
Core primitives shared by every open-tasks layer: errors and configuration.
"""

from open_tasks.core.errors import (
    CommandError,
    CommandNotFoundError,
    CommandTimeoutError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    InputValidationError,
    OpenTasksError,
    OutputWriteError,
    ReferenceNotFoundError,
    TokenConflictError,
    categorize_error,
    exit_code_for,
)

__all__ = [
    "OpenTasksError",
    "ErrorCategory",
    "ErrorContext",
    "InputValidationError",
    "ReferenceNotFoundError",
    "TokenConflictError",
    "OutputWriteError",
    "CommandError",
    "CommandNotFoundError",
    "CommandTimeoutError",
    "ConfigError",
    "exit_code_for",
    "categorize_error",
]
