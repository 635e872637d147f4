"""``replace`` - fill ``{{token}}`` placeholders in a template from references."""

from __future__ import annotations

import re
from collections.abc import Mapping

from open_tasks.commands.base import ExecutionContext
from open_tasks.commands.builtin._args import parse_pairs, pop_option
from open_tasks.core.errors import InputValidationError
from open_tasks.framework.output import ListCard
from open_tasks.orchestration import ReferenceHandle, TransformMetadataDecorator

PLACEHOLDER = re.compile(r"\{\{([^}]+)\}\}")


def fill_template(template: str, values: Mapping[str, str]) -> tuple[str, list[str]]:
    """Replace ``{{key}}`` for every key in *values*.

    Returns the filled text and the placeholders left unreplaced.
    """

    def _sub(match: re.Match[str]) -> str:
        key = match.group(1).strip()
        return values[key] if key in values else match.group(0)

    filled = PLACEHOLDER.sub(_sub, template)
    leftover = [m.group(0) for m in PLACEHOLDER.finditer(filled)]
    return filled, leftover


class ReplaceCommand:
    name = "replace"
    description = "Replace tokens in a template string with referenced values"
    examples = [
        'open-tasks run replace "Hello {{name}}" --ref name',
        'open-tasks run replace "{{greeting}} {{name}}" --ref greeting --ref name --token message',
        'open-tasks run replace "Hi {{who}}" --set who=World',
    ]

    async def execute(
        self,
        args: list[str],
        refs: Mapping[str, ReferenceHandle],
        context: ExecutionContext,
    ) -> ReferenceHandle:
        set_pairs, args = pop_option(args, "--set")
        if not args:
            raise InputValidationError("replace requires a template string argument")

        values = {token: ref.text for token, ref in refs.items()}
        overrides = parse_pairs(set_pairs, "--set")
        values.update(overrides)

        result, leftover = fill_template(args[0], values)
        if leftover:
            context.logger.warning(f"Unreplaced tokens: {', '.join(leftover)}")

        lineage = TransformMetadataDecorator(
            "TokenReplace",
            inputs=tuple(refs),
            params={"template": args[0], "set": overrides, "output_token": context.token},
        )
        handle = await context.store_reference(result, lineage)
        context.logger.card(
            ListCard(
                "Replacements",
                [f"{{{{{key}}}}} ← {len(value)} chars" for key, value in values.items()],
                style="warning" if leftover else "success",
            )
        )
        return handle
