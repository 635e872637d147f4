"""
Immutable records produced by storing a value.

``MemoryReference`` is what :meth:`WorkflowContext.store` returns: the
stored snapshot plus where it was written.  ``ReferenceHandle`` is what
commands hand to each other: an id, an optional token, and a content
snapshot that cannot change after creation.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import InitVar, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class MemoryReference:
    """A stored value and the file backing it.

    Attributes:
        id: Unique id (uuid4) within the run
        content: Snapshot of the value taken at store time
        token: Token assigned by the decorator chain, if any
        file_name: Final file name, relative to the invocation directory
        path: Absolute path of the written (or loaded) file
        metadata: Metadata assigned by the decorator chain
        created_at: When the store call started
        command: Command that stored the value
    """

    id: str
    content: Any
    token: str | None
    file_name: str
    path: Path
    metadata: Mapping[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    command: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "token": self.token,
            "file_name": self.file_name,
            "path": str(self.path),
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
            "command": self.command,
        }


@dataclass(frozen=True)
class ReferenceHandle:
    """Immutable pointer to a stored value, passed between commands.

    The value is deep-copied into a private snapshot on creation and
    ``content`` returns a fresh copy on every access; neither the
    producer nor any consumer can reach the snapshot itself.
    """

    id: str
    value: InitVar[Any]
    token: str | None = None
    output_file: Path | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    _snapshot: Any = field(init=False, repr=False, compare=False)

    def __post_init__(self, value: Any) -> None:
        object.__setattr__(self, "_snapshot", copy.deepcopy(value))
        if self.output_file is not None and not isinstance(self.output_file, Path):
            object.__setattr__(self, "output_file", Path(self.output_file))

    @property
    def content(self) -> Any:
        return copy.deepcopy(self._snapshot)

    @property
    def text(self) -> str:
        """Content as text: strings verbatim, anything else via ``str``."""
        value = self._snapshot
        return value if isinstance(value, str) else str(value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "token": self.token,
            "output_file": str(self.output_file) if self.output_file else None,
            "created_at": self.created_at.isoformat(),
        }
