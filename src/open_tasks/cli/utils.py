"""
CLI utility helpers: console handles, output formatting, error exits.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.traceback import Traceback

from open_tasks.core.config import OpenTasksSettings, get_settings
from open_tasks.core.errors import InputValidationError, OpenTasksError, exit_code_for
from open_tasks.framework.logging import configure_logging, is_debug_enabled
from open_tasks.framework.output import Verbosity

console = Console()
err_console = Console(stderr=True)


# ── Settings / verbosity ─────────────────────────────────────────────────


def load_settings() -> OpenTasksSettings:
    """Load settings and configure diagnostic logging, exiting on bad config."""
    try:
        settings = get_settings()
    except OpenTasksError as e:
        fail(e)
    configure_logging(level=settings.log_level, format=settings.log_format)
    return settings


def resolve_verbosity(quiet: bool, summary: bool, verbose: bool) -> Verbosity | None:
    """The verbosity picked by mutually exclusive flags, or ``None`` if none was given."""
    chosen = [level for flag, level in ((quiet, Verbosity.QUIET), (summary, Verbosity.SUMMARY), (verbose, Verbosity.VERBOSE)) if flag]
    if len(chosen) > 1:
        fail(InputValidationError("Only one of --quiet, --summary, --verbose may be given"))
    return chosen[0] if chosen else None


# ── Errors ───────────────────────────────────────────────────────────────


def fail(error: BaseException, *, reported: bool = False) -> NoReturn:
    """Print *error* (unless the output synk already did) and exit with its code.

    With DEBUG logging enabled the traceback is printed as well.
    """
    if not reported:
        label = type(error).__name__
        err_console.print(f"[bold red]Error[/bold red] ({label}): {escape(str(error))}", highlight=False)
    if is_debug_enabled() and error.__traceback__ is not None:
        err_console.print(Traceback.from_exception(type(error), error, error.__traceback__))
    raise typer.Exit(code=exit_code_for(error))


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / dict to plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def _print_table(items: list, *, title: str = "") -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    if not items:
        console.print("[dim]No items.[/dim]")
        return
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(str(v) for v in d.values()))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {escape(str(v))}", highlight=False)
