"""
Output synk - the single destination for user-visible output.

Every line a user sees while commands run passes through an
``OutputSynk``.  Events are tagged with the minimum verbosity at which
they appear and dropped by the synk when the run's verbosity is lower.

Verbosity levels are cumulative::

    QUIET    command-start, command-end (with duration), file-created, failures
    SUMMARY  QUIET   + cards
    VERBOSE  SUMMARY + progress / info / warning / error text

Manifesto:
    Commands never print.  They talk to their TaskLogger, which talks to
    the synk that was created at run start and is closed at run end.
    Swapping the synk (console, recording) changes where output goes
    without touching a single command.

Architecture:
    ::

        TaskLogger ──► OutputSynk.emit(OutputEvent)
                            │  level gate (verbosity)
                            ▼
                      _write(event)
                 ┌──────────┴──────────┐
         ConsoleOutputSynk     RecordingOutputSynk
           (Rich console)        (in-memory list)

Tags:
    open-tasks, output, verbosity, console, rich

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, IntEnum
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from open_tasks.framework.output.cards import Card


class Verbosity(IntEnum):
    """Cumulative output levels; a higher level shows everything a lower one does."""

    QUIET = 0
    SUMMARY = 1
    VERBOSE = 2

    @classmethod
    def parse(cls, value: str | int | Verbosity) -> Verbosity:
        """Accept a level, its name (any case), or its integer value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            names = ", ".join(v.name.lower() for v in cls)
            raise ValueError(f"Unknown verbosity {value!r} (expected one of: {names})") from None


class EventKind(str, Enum):
    COMMAND_START = "command_start"
    COMMAND_END = "command_end"
    FILE_CREATED = "file_created"
    FAILURE = "failure"
    CARD = "card"
    PROGRESS = "progress"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


EVENT_LEVELS: dict[EventKind, Verbosity] = {
    EventKind.COMMAND_START: Verbosity.QUIET,
    EventKind.COMMAND_END: Verbosity.QUIET,
    EventKind.FILE_CREATED: Verbosity.QUIET,
    EventKind.FAILURE: Verbosity.QUIET,
    EventKind.CARD: Verbosity.SUMMARY,
    EventKind.PROGRESS: Verbosity.VERBOSE,
    EventKind.INFO: Verbosity.VERBOSE,
    EventKind.WARNING: Verbosity.VERBOSE,
    EventKind.ERROR: Verbosity.VERBOSE,
}


@dataclass(frozen=True)
class OutputEvent:
    """One user-visible event."""

    kind: EventKind
    command: str
    message: str = ""
    payload: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    @property
    def level(self) -> Verbosity:
        return EVENT_LEVELS[self.kind]


def format_duration(duration_ms: float) -> str:
    """``"Xms"`` under one second, ``"X.Xs"`` otherwise."""
    if duration_ms < 1000:
        return f"{round(duration_ms)}ms"
    return f"{duration_ms / 1000:.1f}s"


class OutputSynk:
    """Base synk: level gating, ordering, and lifecycle.

    Subclasses implement :meth:`_write`.  Events are written in the order
    they are emitted; nothing is buffered or reordered.
    """

    def __init__(self, verbosity: Verbosity | str = Verbosity.SUMMARY):
        self.verbosity = Verbosity.parse(verbosity)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def enabled(self, kind: EventKind) -> bool:
        """Whether events of *kind* are shown at the current verbosity."""
        return EVENT_LEVELS[kind] <= self.verbosity

    def emit(self, event: OutputEvent) -> bool:
        """Write *event* if its level is enabled.  Returns whether it was written."""
        if self.closed:
            raise RuntimeError("OutputSynk is closed")
        if not self.enabled(event.kind):
            return False
        self._write(event)
        return True

    def scoped(self, verbosity: Verbosity | str | None) -> OutputSynk:
        """This synk gated at *verbosity* instead of the run level.

        ``None`` returns the synk itself.  The view writes to the same
        destination, in the same order, and closes with it.
        """
        if verbosity is None or Verbosity.parse(verbosity) == self.verbosity:
            return self
        return ScopedOutputSynk(self, verbosity)

    def _write(self, event: OutputEvent) -> None:
        raise NotImplementedError

    # ── Lifecycle events (QUIET) ─────────────────────────────────

    def write_command_start(self, command: str, args: list[str] | None = None) -> bool:
        return self.emit(OutputEvent(EventKind.COMMAND_START, command, payload={"args": list(args or [])}))

    def write_command_end(self, command: str, duration_ms: float, status: str = "ok") -> bool:
        return self.emit(
            OutputEvent(
                EventKind.COMMAND_END,
                command,
                message=format_duration(duration_ms),
                payload={"duration_ms": duration_ms, "status": status},
            )
        )

    def write_file_created(self, command: str, path: Path | str, token: str | None = None) -> bool:
        return self.emit(
            OutputEvent(EventKind.FILE_CREATED, command, message=str(path), payload={"path": str(path), "token": token})
        )

    def write_failure(self, command: str, error: BaseException, duration_ms: float) -> bool:
        """Report a failed command with its elapsed time.  Shown at every level."""
        return self.emit(
            OutputEvent(
                EventKind.FAILURE,
                command,
                message=str(error),
                payload={
                    "error_type": type(error).__name__,
                    "duration_ms": duration_ms,
                },
            )
        )

    # ── Cards (SUMMARY) ──────────────────────────────────────────

    def write_card(self, command: str, card: Card) -> bool:
        return self.emit(OutputEvent(EventKind.CARD, command, message=card.title, payload={"card": card}))

    # ── Free text (VERBOSE) ──────────────────────────────────────

    def write_progress(self, command: str, message: str) -> bool:
        return self.emit(OutputEvent(EventKind.PROGRESS, command, message=message))

    def write_info(self, command: str, message: str) -> bool:
        return self.emit(OutputEvent(EventKind.INFO, command, message=message))

    def write_warning(self, command: str, message: str) -> bool:
        return self.emit(OutputEvent(EventKind.WARNING, command, message=message))

    def write_error(self, command: str, message: str) -> bool:
        return self.emit(OutputEvent(EventKind.ERROR, command, message=message))

    # ── Lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        """Flush and close.  Idempotent."""
        self._closed = True

    def __enter__(self) -> OutputSynk:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ScopedOutputSynk(OutputSynk):
    """A second level gate in front of another synk's destination.

    Used for commands that declare their own ``default_verbosity``.
    """

    def __init__(self, parent: OutputSynk, verbosity: Verbosity | str):
        super().__init__(verbosity)
        self.parent = parent

    @property
    def closed(self) -> bool:
        return self.parent.closed

    def _write(self, event: OutputEvent) -> None:
        self.parent._write(event)

    def close(self) -> None:
        # The parent owns the run lifecycle.
        pass


class ConsoleOutputSynk(OutputSynk):
    """Renders events to the terminal with Rich.

    Failures go to the error console (stderr); everything else to stdout.
    """

    def __init__(
        self,
        verbosity: Verbosity | str = Verbosity.SUMMARY,
        *,
        console: Console | None = None,
        err_console: Console | None = None,
    ):
        super().__init__(verbosity)
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def _write(self, event: OutputEvent) -> None:
        match event.kind:
            case EventKind.COMMAND_START:
                self.console.print(f"[bold cyan]▶[/bold cyan] [bold]{escape(event.command)}[/bold]")
            case EventKind.COMMAND_END:
                if event.payload.get("status") == "ok":
                    self.console.print(f"[green]✓[/green] {escape(event.command)} [dim]({event.message})[/dim]")
                else:
                    self.console.print(f"[red]✗[/red] {escape(event.command)} [dim]({event.message})[/dim]")
            case EventKind.FILE_CREATED:
                token = event.payload.get("token")
                suffix = f" [magenta]@{escape(token)}[/magenta]" if token else ""
                self.console.print(f"  [dim]→ {escape(event.message)}[/dim]{suffix}")
            case EventKind.FAILURE:
                elapsed = format_duration(event.payload.get("duration_ms", 0.0))
                self.err_console.print(
                    f"[bold red]Error[/bold red] ({event.payload.get('error_type')}) "
                    f"in {escape(event.command)} after {elapsed}: {escape(event.message)}",
                    highlight=False,
                )
            case EventKind.CARD:
                self.console.print(event.payload["card"].render())
            case EventKind.PROGRESS:
                self.console.print(f"  [dim]… {escape(event.message)}[/dim]")
            case EventKind.INFO:
                self.console.print(f"  {escape(event.message)}", highlight=False)
            case EventKind.WARNING:
                self.console.print(f"  [yellow]⚠ {escape(event.message)}[/yellow]")
            case EventKind.ERROR:
                self.console.print(f"  [red]✗ {escape(event.message)}[/red]")

    def close(self) -> None:
        if not self._closed:
            self.console.file.flush()
            self.err_console.file.flush()
        super().close()


class RecordingOutputSynk(OutputSynk):
    """Keeps written events in memory, in emission order."""

    def __init__(self, verbosity: Verbosity | str = Verbosity.VERBOSE):
        super().__init__(verbosity)
        self.events: list[OutputEvent] = []

    def _write(self, event: OutputEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[EventKind]:
        return [e.kind for e in self.events]

    def of_kind(self, kind: EventKind) -> list[OutputEvent]:
        return [e for e in self.events if e.kind == kind]

    def for_command(self, command: str) -> list[OutputEvent]:
        return [e for e in self.events if e.command == command]
