"""
Structured error types for open-tasks.

Every failure the runtime can classify is an ``OpenTasksError`` subclass
carrying a category, a process exit code, structured context, and an
optional chained cause.  The CLI maps errors to exit codes through
:func:`exit_code_for`; anything it cannot classify exits with ``1``.

Manifesto:
    - **Typed Error Hierarchy:** One error type per failure the user can act on
    - **Stable Exit Codes:** Shell pipelines can branch on the failure class
    - **Rich Context:** Errors carry the command, token and path involved
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                       OpenTasksError                          │
        │              (category, exit_code, context, cause)            │
        ├──────────────────────────────────────────────────────────────┤
        │  InputValidationError   ReferenceNotFoundError   OutputWriteError
        │  (VALIDATION, 2)        (REFERENCE, 3)           (STORAGE, 4)
        │                         TokenConflictError
        │                         (REFERENCE, 3)
        │
        │  CommandError           CommandNotFoundError     ConfigError
        │  (COMMAND, 1)           (COMMAND, 5)             (CONFIG, 6)
        │  CommandTimeoutError
        │  (TIMEOUT, 124)
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ReferenceNotFoundError("summary", available=["raw"])
    >>> error.exit_code
    3
    >>> error.context.token
    'summary'

Tags:
    error-handling, exception-hierarchy, exit-codes, error-context, open-tasks

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class ErrorCategory(str, Enum):
    """Standard error categories for classification and reporting."""

    VALIDATION = "VALIDATION"     # Bad arguments or input values
    REFERENCE = "REFERENCE"       # Unknown or conflicting tokens
    STORAGE = "STORAGE"           # Output directory / file writes
    COMMAND = "COMMAND"           # Command lookup and execution
    TIMEOUT = "TIMEOUT"           # Command exceeded its time budget
    CONFIG = "CONFIG"             # Missing or invalid settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        command: Name of the command that was running
        token: Token being resolved or registered
        path: File system path involved in the failure
        run_id: Pipeline run identifier
        metadata: Additional key-value pairs
    """

    command: str | None = None
    token: str | None = None
    path: str | None = None
    run_id: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["command", "token", "path", "run_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class OpenTasksError(Exception):
    """
    Base exception for all open-tasks errors.

    Subclasses set ``default_category`` and ``exit_code`` so callers only
    pass what differs.  ``with_context`` returns ``self`` so context can be
    added fluently while re-raising.

    Examples:
        >>> error = OpenTasksError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(command="extract").context.command
        'extract'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    exit_code: int = EXIT_FAILURE

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> OpenTasksError:
        """Add context fields; unknown keys go to ``context.metadata``."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging and error reports."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "exit_code": self.exit_code,
        }
        ctx = self.context.to_dict()
        if ctx:
            result["context"] = ctx
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


# =============================================================================
# INPUT
# =============================================================================


class InputValidationError(OpenTasksError):
    """A command received arguments it cannot work with."""

    default_category = ErrorCategory.VALIDATION
    exit_code = 2


# =============================================================================
# REFERENCES
# =============================================================================


class ReferenceNotFoundError(OpenTasksError):
    """A ``--ref`` token is not registered in the current run.

    Raised before the requesting command starts, so no command-start
    event is ever emitted for it.
    """

    default_category = ErrorCategory.REFERENCE
    exit_code = 3

    def __init__(self, token: str, *, available: list[str] | None = None, **kwargs: Any):
        self.token = token
        self.available = sorted(available or [])
        known = ", ".join(self.available) or "none"
        super().__init__(f"Reference not found: {token!r} (known tokens: {known})", **kwargs)
        self.context.token = token


class TokenConflictError(OpenTasksError):
    """A token is already registered and the token policy rejects overwrites."""

    default_category = ErrorCategory.REFERENCE
    exit_code = 3

    def __init__(self, token: str, **kwargs: Any):
        self.token = token
        super().__init__(f"Token already registered: {token!r}", **kwargs)
        self.context.token = token


# =============================================================================
# STORAGE
# =============================================================================


class OutputWriteError(OpenTasksError):
    """Writing a stored value or report to disk failed."""

    default_category = ErrorCategory.STORAGE
    exit_code = 4

    def __init__(self, message: str, *, path: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        if path is not None:
            self.context.path = str(path)

    @property
    def path(self) -> str | None:
        return self.context.path


# =============================================================================
# COMMANDS
# =============================================================================


class CommandError(OpenTasksError):
    """A command failed or violated its contract."""

    default_category = ErrorCategory.COMMAND


class CommandNotFoundError(CommandError):
    """No command is registered under the requested name."""

    exit_code = 5

    def __init__(self, name: str, *, available: list[str] | None = None, **kwargs: Any):
        self.name = name
        self.available = sorted(available or [])
        known = ", ".join(self.available) or "none"
        super().__init__(f"Unknown command: {name!r}. Available commands: {known}", **kwargs)
        self.context.command = name


class CommandTimeoutError(CommandError):
    """A command was cancelled after exceeding its time budget."""

    default_category = ErrorCategory.TIMEOUT
    exit_code = 124

    def __init__(self, command: str, timeout_seconds: float, **kwargs: Any):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Command {command!r} timed out after {timeout_seconds:g}s", **kwargs)
        self.context.command = command


# =============================================================================
# CONFIGURATION
# =============================================================================


class ConfigError(OpenTasksError):
    """Configuration files or environment values are invalid."""

    default_category = ErrorCategory.CONFIG
    exit_code = 6


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def exit_code_for(error: BaseException | None) -> int:
    """Map an exception to the process exit code.

    ``None`` means success.  Unclassified exceptions map to ``1``.
    """
    if error is None:
        return EXIT_SUCCESS
    if isinstance(error, OpenTasksError):
        return error.exit_code
    return EXIT_FAILURE


def categorize_error(error: BaseException) -> ErrorCategory:
    """Best-effort category for any exception."""
    if isinstance(error, OpenTasksError):
        return error.category
    if isinstance(error, OSError):
        return ErrorCategory.STORAGE
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN
