"""
Logging configuration.

Provides a single entry point for configuring diagnostic logging.
Diagnostic logs go to stderr and are independent of the user-facing
output synk, so ``--quiet`` never hides a developer's DEBUG trace.

Configuration is read from arguments or environment variables:
- OPEN_TASKS_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: WARNING)
- OPEN_TASKS_LOG_FORMAT: json | console (default: console)

Usage:
    from open_tasks.framework.logging import configure_logging
    configure_logging()

    # Or with explicit settings
    configure_logging(level="DEBUG", format="json")
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Literal

import structlog
from structlog.types import Processor

from open_tasks.framework.logging.context import add_context_processor

_configured = False


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | str | None = None,
    format: Literal["json", "console"] | str | None = None,
    force: bool = False,
) -> None:
    """
    Configure structured logging for the application.

    Should be called once at startup (CLI entry).  Subsequent calls are
    no-ops unless force=True.

    Args:
        level: Log level (overrides OPEN_TASKS_LOG_LEVEL env var)
        format: Output format (overrides OPEN_TASKS_LOG_FORMAT env var)
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("OPEN_TASKS_LOG_LEVEL", "WARNING")).upper()
    log_format = (format or os.environ.get("OPEN_TASKS_LOG_FORMAT", "console")).lower()
    level_num = getattr(logging, log_level, logging.WARNING)

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_context_processor,
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level_num,
        force=True,
    )
    logging.getLogger("open_tasks").setLevel(level_num)

    _configured = True


def is_debug_enabled() -> bool:
    """Check if DEBUG level logging is enabled."""
    return logging.getLogger("open_tasks").isEnabledFor(logging.DEBUG)


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured
