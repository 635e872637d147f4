"""``load`` - register a file's content as a reference without copying it."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from open_tasks.commands.base import ExecutionContext
from open_tasks.core.errors import InputValidationError
from open_tasks.framework.output import KeyValueCard
from open_tasks.orchestration import ReferenceHandle


class LoadCommand:
    name = "load"
    description = "Load content from a file"
    examples = [
        "open-tasks run load ./file.txt",
        "open-tasks run load ./file.txt --token myfile",
    ]

    async def execute(
        self,
        args: list[str],
        refs: Mapping[str, ReferenceHandle],
        context: ExecutionContext,
    ) -> ReferenceHandle:
        if not args:
            raise InputValidationError("load requires a file path argument")

        path = Path(args[0]).expanduser()
        if not path.is_absolute():
            path = context.cwd / path

        context.reference_manager.ensure_token_available(context.token)
        context.logger.progress(f"Reading {path}")
        memory = await context.workflow_context.load(path, context.token)
        handle = context.reference_manager.create_reference(
            memory.id, memory.content, token=context.token, output_file=memory.path
        )

        context.logger.card(
            KeyValueCard(
                "Loaded",
                {
                    "File": str(path),
                    "Token": handle.token or "none",
                    "Length": f"{len(memory.content)} chars",
                    "Metadata": ", ".join(memory.metadata) or "none",
                },
                style="info",
            )
        )
        return handle
