"""
Output handler - files that live beside stored references.

Commands occasionally need to write a file that is not a reference
(a rendered report, a copy at a user-chosen location).  The runtime
also uses the handler to write an error report when a command fails.
Both go through the same exclusive-create write as ``store``.
"""

from __future__ import annotations

import asyncio
import json
import traceback
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from open_tasks.core.errors import OpenTasksError
from open_tasks.framework.logging import get_logger
from open_tasks.orchestration.workflow_context import WorkflowContext, validate_output_path, write_exclusive

logger = get_logger(__name__)


class OutputHandler:
    """Writes auxiliary files for one command invocation."""

    def __init__(self, workflow_context: WorkflowContext):
        self.workflow_context = workflow_context

    async def write_output(self, content: str, file_name: str, custom_path: Path | str | None = None) -> Path:
        """Write *content* to ``file_name`` inside the invocation directory.

        With *custom_path* the file goes to that directory instead.

        Raises:
            OutputWriteError: If the name is invalid or the file exists
        """
        validate_output_path(file_name)
        directory = Path(custom_path) if custom_path is not None else self.workflow_context.invocation_dir
        target = directory / file_name
        await asyncio.to_thread(write_exclusive, target, content)

        task = self.workflow_context.logger
        if task is not None:
            task.file_created(target)
        return target

    def write_error(self, error: BaseException, metadata: dict[str, Any] | None = None) -> Path:
        """Write a ``{timestamp}-error.txt`` report for *error* and return its path.

        Called from the runtime's failure path, so it writes synchronously
        and does not emit a file-created event.

        Raises:
            OutputWriteError: If the report cannot be written
        """
        now = datetime.now(UTC)
        name = f"{now:%Y%m%dT%H%M%S}-{now.microsecond // 1000:03d}-error.txt"
        target = self.workflow_context.invocation_dir / name
        write_exclusive(target, format_error_report(error, metadata, now))
        logger.debug("output.error_report", path=str(target), error_type=type(error).__name__)
        return target


def format_error_report(error: BaseException, metadata: dict[str, Any] | None, when: datetime) -> str:
    """Plain-text error report: summary, structured details, traceback."""
    lines = [
        f"Error: {type(error).__name__}",
        f"Message: {error}",
        f"Time: {when.isoformat()}",
    ]
    if isinstance(error, OpenTasksError):
        lines.append(f"Category: {error.category.value}")
        lines.append(f"Exit code: {error.exit_code}")
        ctx = error.context.to_dict()
        if ctx:
            lines.append("")
            lines.append("Context:")
            lines.append(json.dumps(ctx, indent=2, default=str))
    if metadata:
        lines.append("")
        lines.append("Details:")
        lines.append(json.dumps(metadata, indent=2, default=str))
    tb = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    lines.append("")
    lines.append("Traceback:")
    lines.append(tb.rstrip())
    return "\n".join(lines) + "\n"
