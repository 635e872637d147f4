"""
User-facing output: leveled synks, per-command task loggers, and cards.

Usage:
    from open_tasks.framework.output import ConsoleOutputSynk, TaskLogger, Verbosity

    with ConsoleOutputSynk(Verbosity.SUMMARY) as synk:
        with TaskLogger(synk, "store") as task:
            task.file_created("outputs/20250101-120000-000-store/out.txt")
"""

from open_tasks.framework.output.cards import (
    Card,
    KeyValueCard,
    ListCard,
    MessageCard,
    TableCard,
    TreeCard,
    TreeNode,
)
from open_tasks.framework.output.synk import (
    ConsoleOutputSynk,
    EventKind,
    OutputEvent,
    OutputSynk,
    RecordingOutputSynk,
    ScopedOutputSynk,
    Verbosity,
    format_duration,
)
from open_tasks.framework.output.task_logger import TaskLogger, TaskState

__all__ = [
    # Synks
    "OutputSynk",
    "ConsoleOutputSynk",
    "RecordingOutputSynk",
    "ScopedOutputSynk",
    "OutputEvent",
    "EventKind",
    "Verbosity",
    "format_duration",
    # Task logger
    "TaskLogger",
    "TaskState",
    # Cards
    "Card",
    "MessageCard",
    "KeyValueCard",
    "ListCard",
    "TableCard",
    "TreeCard",
    "TreeNode",
]
