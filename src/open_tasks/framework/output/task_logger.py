"""
Per-invocation logger facade over the output synk.

A ``TaskLogger`` is created by the runtime right before a command runs.
Construction emits *command-start* and starts the clock; ``complete()``
emits *command-end* with the elapsed duration exactly once.

States::

    RUNNING ──complete()──► FINISHED

Leveled calls made after completion are dropped and reported as a
diagnostic warning, never forwarded to the synk.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from open_tasks.framework.logging import TimingResult, get_logger
from open_tasks.framework.output.synk import OutputSynk

if TYPE_CHECKING:
    from open_tasks.framework.output.cards import Card

log = get_logger(__name__)


class TaskState(str, Enum):
    RUNNING = "running"
    FINISHED = "finished"


class TaskLogger:
    """Start/end lifecycle plus leveled output for one command invocation.

    Example:
        >>> task = TaskLogger(synk, "extract")      # command-start
        >>> task.info("scanning 3 references")      # VERBOSE only
        >>> task.complete()                          # command-end, returns ms
        12.7
    """

    def __init__(self, synk: OutputSynk, command_name: str, *, args: list[str] | None = None):
        self.synk = synk
        self.command_name = command_name
        self._timer = TimingResult(step=f"command.{command_name}")
        self._state = TaskState.RUNNING
        self._status = "ok"
        self.synk.write_command_start(command_name, args)

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is TaskState.RUNNING

    @property
    def status(self) -> str:
        return self._status

    @property
    def duration_ms(self) -> float:
        """Elapsed time so far, or the final duration once complete."""
        return self._timer.duration_ms

    # ── Leveled output ───────────────────────────────────────────

    def _accepting(self, kind: str) -> bool:
        if self._state is TaskState.FINISHED:
            log.warning("task_logger.after_complete", command=self.command_name, kind=kind)
            return False
        return True

    def file_created(self, path: Path | str, token: str | None = None) -> None:
        if self._accepting("file_created"):
            self.synk.write_file_created(self.command_name, path, token)

    def card(self, card: Card) -> None:
        if self._accepting("card"):
            self.synk.write_card(self.command_name, card)

    def progress(self, message: str) -> None:
        if self._accepting("progress"):
            self.synk.write_progress(self.command_name, message)

    def info(self, message: str) -> None:
        if self._accepting("info"):
            self.synk.write_info(self.command_name, message)

    def warning(self, message: str) -> None:
        if self._accepting("warning"):
            self.synk.write_warning(self.command_name, message)

    def error(self, message: str) -> None:
        if self._accepting("error"):
            self.synk.write_error(self.command_name, message)

    # ── Lifecycle ────────────────────────────────────────────────

    def mark_failed(self, error: BaseException) -> None:
        """Record that the command failed; command-end will carry status ``error``."""
        if self._state is TaskState.RUNNING:
            self._status = "error"
            self._timer.set_error(error)

    def complete(self) -> float:
        """Emit command-end once and return the duration in milliseconds.

        Repeated calls emit nothing and return the first duration.
        """
        if self._state is TaskState.FINISHED:
            return self._timer.duration_ms

        self._timer.stop()
        self._state = TaskState.FINISHED
        duration = self._timer.duration_ms
        self.synk.write_command_end(self.command_name, duration, status=self._status)
        log.debug("command.end", command=self.command_name, status=self._status, **self._timer.to_log_dict())
        return duration

    def __enter__(self) -> TaskLogger:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            self.mark_failed(exc)
        self.complete()
