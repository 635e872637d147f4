"""``extract`` - pull text out of a referenced value with a regular expression."""

from __future__ import annotations

import re
from collections.abc import Mapping

from open_tasks.commands.base import ExecutionContext
from open_tasks.commands.builtin._args import pop_flag, preview
from open_tasks.core.errors import InputValidationError
from open_tasks.framework.output import KeyValueCard
from open_tasks.orchestration import ReferenceHandle, TransformMetadataDecorator

NO_MATCH = "No match found"
NO_MATCHES = "No matches found"


def _render_match(match: re.Match[str]) -> str:
    if match.re.groups:
        return ", ".join(g if g is not None else "" for g in match.groups())
    return match.group(0)


def extract_text(text: str, pattern: re.Pattern[str], *, all_matches: bool) -> tuple[str, int]:
    """Return (result, match_count).

    With capture groups the groups are joined with ``", "``; with
    ``all_matches`` each match is one line.
    """
    if all_matches:
        matches = list(pattern.finditer(text))
        if not matches:
            return NO_MATCHES, 0
        return "\n".join(_render_match(m) for m in matches), len(matches)

    match = pattern.search(text)
    if match is None:
        return NO_MATCH, 0
    return _render_match(match), 1


class ExtractCommand:
    name = "extract"
    description = "Extract text using regex patterns"
    examples = [
        'open-tasks run extract "\\d+" --ref input',
        'open-tasks run extract "\\w+@\\w+\\.\\w+" --ref text --all --token emails',
    ]

    async def execute(
        self,
        args: list[str],
        refs: Mapping[str, ReferenceHandle],
        context: ExecutionContext,
    ) -> ReferenceHandle:
        all_matches, args = pop_flag(args, "--all")
        if not args:
            raise InputValidationError("extract requires a regex pattern argument")
        if not refs:
            raise InputValidationError("extract requires at least one --ref argument")

        source_token, source = next(iter(refs.items()))
        text = source.text

        try:
            pattern = re.compile(args[0])
        except re.error as e:
            raise InputValidationError(f"Invalid regex pattern {args[0]!r}: {e}", cause=e)

        context.logger.progress(f"Applying pattern: {args[0]}")
        result, count = extract_text(text, pattern, all_matches=all_matches)
        lineage = TransformMetadataDecorator(
            "RegexExtract",
            inputs=(source_token,),
            params={"pattern": args[0], "all": all_matches, "output_token": context.token},
        )
        handle = await context.store_reference(result, lineage)

        context.logger.card(
            KeyValueCard(
                "Text Extraction",
                {
                    "Pattern": args[0],
                    "Mode": "all matches" if all_matches else "first match",
                    "Input": f"{len(text)} chars",
                    "Matches": count,
                    "Token": handle.token or "none",
                    "Extracted": preview(result),
                },
                style="success" if count else "warning",
            )
        )
        return handle
