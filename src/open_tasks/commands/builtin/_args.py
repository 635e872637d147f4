"""Tiny helpers for commands that parse their own flags out of ``args``."""

from __future__ import annotations

from open_tasks.core.errors import InputValidationError


def pop_flag(args: list[str], flag: str) -> tuple[bool, list[str]]:
    """Remove every occurrence of a boolean *flag*."""
    remaining = [a for a in args if a != flag]
    return len(remaining) != len(args), remaining


def pop_option(args: list[str], option: str) -> tuple[list[str], list[str]]:
    """Remove every ``option VALUE`` pair (and ``option=VALUE``), returning all values."""
    values: list[str] = []
    remaining: list[str] = []
    it = iter(args)
    for arg in it:
        if arg == option:
            value = next(it, None)
            if value is None:
                raise InputValidationError(f"Option {option} requires a value")
            values.append(value)
        elif arg.startswith(f"{option}="):
            values.append(arg.split("=", 1)[1])
        else:
            remaining.append(arg)
    return values, remaining


def parse_pairs(pairs: list[str], option: str) -> dict[str, str]:
    """``["a=1", "b=2"]`` → ``{"a": "1", "b": "2"}``."""
    result = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise InputValidationError(f"{option} expects KEY=VALUE, got {pair!r}")
        result[key] = value
    return result


def preview(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else text[:limit] + "..."
