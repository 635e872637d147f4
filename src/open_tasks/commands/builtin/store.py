"""``store`` - store a literal value and return a reference to it."""

from __future__ import annotations

from collections.abc import Mapping

from open_tasks.commands.base import ExecutionContext
from open_tasks.commands.builtin._args import parse_pairs, pop_flag, pop_option, preview
from open_tasks.core.errors import InputValidationError
from open_tasks.framework.output import KeyValueCard
from open_tasks.orchestration import (
    Decorator,
    FileNameDecorator,
    MetadataDecorator,
    ReferenceHandle,
    TimestampedFileNameDecorator,
)


class StoreCommand:
    name = "store"
    description = "Store a value and return a reference to it"
    examples = [
        'open-tasks run store "Hello World"',
        'open-tasks run store "Hello World" --token greeting',
        'open-tasks run store "a,b" --file data.csv --meta source=manual',
    ]

    async def execute(
        self,
        args: list[str],
        refs: Mapping[str, ReferenceHandle],
        context: ExecutionContext,
    ) -> ReferenceHandle:
        file_names, args = pop_option(args, "--file")
        meta_pairs, args = pop_option(args, "--meta")
        timestamped, args = pop_flag(args, "--timestamped")

        if not args:
            raise InputValidationError("store requires a value argument")
        value = args[0]

        decorators: list[Decorator] = []
        if timestamped:
            decorators.append(TimestampedFileNameDecorator(extension=context.config.get("default_file_extension", "txt")))
        if file_names:
            decorators.append(FileNameDecorator(file_names[-1]))
        if meta_pairs:
            decorators.append(MetadataDecorator(parse_pairs(meta_pairs, "--meta")))

        handle = await context.store_reference(value, *decorators)

        context.logger.card(
            KeyValueCard(
                "Stored",
                {
                    "Token": handle.token or "none",
                    "Reference": handle.id[:8],
                    "Length": f"{len(value)} chars",
                    "Value": preview(value),
                },
                style="success",
            )
        )
        return handle
