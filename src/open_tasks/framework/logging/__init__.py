"""
open-tasks diagnostic logging - structured, run-aware logging.

This module provides:
- Structured logging with structlog
- Run/command context propagation via contextvars
- Timing utilities for duration tracking
- Environment-based configuration

Usage:
    from open_tasks.framework.logging import get_logger, configure_logging, log_step, bind_context

    configure_logging()
    log = get_logger(__name__)

    bind_context(run_id="abc-123", command="extract")

    with log_step("store.write"):
        write_file()
"""

from open_tasks.framework.logging.config import configure_logging, is_configured, is_debug_enabled
from open_tasks.framework.logging.context import (
    LogContext,
    bind_context,
    clear_context,
    get_context,
    get_logger,
    push_context,
    set_context,
)
from open_tasks.framework.logging.timing import TimingResult, log_step, timed_block

__all__ = [
    # Configuration
    "configure_logging",
    "is_configured",
    "is_debug_enabled",
    # Context
    "get_logger",
    "set_context",
    "clear_context",
    "get_context",
    "bind_context",
    "push_context",
    "LogContext",
    # Timing
    "TimingResult",
    "log_step",
    "timed_block",
]
