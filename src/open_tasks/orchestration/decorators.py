"""
Store decorators - pure transformations applied before a value is written.

A decorator is any callable ``PendingRecord -> PendingRecord``.
:meth:`WorkflowContext.store` folds the decorators it receives strictly
in order, so later decorators see the effects of earlier ones and the
last write to a field wins.  Decorators never perform I/O and never see
the reference id, which is assigned after the fold.

Example:
    >>> record = PendingRecord(content="42")
    >>> apply_decorators(record, [FileNameDecorator("a.txt"), FileNameDecorator("b.txt")]).file_name
    'b.txt'

Tags:
    open-tasks, orchestration, decorators, pipeline, immutable

Doc-Types:
    api-reference
"""

from __future__ import annotations

import dataclasses
import functools
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class PendingRecord:
    """The in-progress record a value becomes before it is persisted.

    Attributes:
        content: Snapshot of the stored value
        token: Optional human-readable alias
        file_name: Explicit output file name (``None`` means use the default)
        metadata: Read-only key/value metadata, written as front-matter
        created_at: When the store call started
    """

    content: Any
    token: str | None = None
    file_name: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if not isinstance(self.metadata, MappingProxyType):
            object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def evolve(self, **changes: Any) -> PendingRecord:
        """Return a copy with *changes* applied."""
        return dataclasses.replace(self, **changes)


Decorator = Callable[[PendingRecord], PendingRecord]


@dataclass(frozen=True)
class TokenDecorator:
    """Assign a token.  Leaves the file name alone."""

    token: str

    def __post_init__(self) -> None:
        if not self.token or not self.token.strip():
            raise ValueError("Token must be a non-empty string")

    def __call__(self, record: PendingRecord) -> PendingRecord:
        return record.evolve(token=self.token)


@dataclass(frozen=True)
class FileNameDecorator:
    """Set the output file name, relative to the invocation directory."""

    file_name: str

    def __post_init__(self) -> None:
        if not self.file_name or not self.file_name.strip():
            raise ValueError("File name must be a non-empty string")

    def __call__(self, record: PendingRecord) -> PendingRecord:
        return record.evolve(file_name=self.file_name)


@dataclass(frozen=True)
class MetadataDecorator:
    """Shallow-merge metadata; keys from this decorator win."""

    metadata: Mapping[str, Any]

    def __call__(self, record: PendingRecord) -> PendingRecord:
        return record.evolve(metadata={**record.metadata, **self.metadata})


@dataclass(frozen=True)
class TimestampedFileNameDecorator:
    """File name ``YYYYMMDDTHHMMSS-mmm-{stem}.{extension}`` from the record's creation time.

    The stem defaults to the record's token at the time the decorator runs,
    then to ``output``.
    """

    stem: str | None = None
    extension: str = "txt"

    def __call__(self, record: PendingRecord) -> PendingRecord:
        ts = record.created_at
        stem = self.stem or record.token or "output"
        ext = self.extension.lstrip(".")
        name = f"{ts:%Y%m%dT%H%M%S}-{ts.microsecond // 1000:03d}-{stem}.{ext}"
        return record.evolve(file_name=name)


@dataclass(frozen=True)
class TransformMetadataDecorator:
    """Record how a derived value was produced.

    Merges ``{"transform": {type, inputs, params, timestamp}}`` into the
    metadata, so the written file carries its lineage as front-matter.
    ``inputs`` are the tokens the value was derived from.
    """

    transform: str
    inputs: tuple[str, ...] = ()
    params: Mapping[str, Any] = field(default_factory=dict)

    def __call__(self, record: PendingRecord) -> PendingRecord:
        lineage = {
            "type": self.transform,
            "inputs": list(self.inputs),
            "params": dict(self.params),
            "timestamp": record.created_at.isoformat(),
        }
        return MetadataDecorator({"transform": lineage})(record)

def apply_decorators(record: PendingRecord, decorators: Iterable[Decorator]) -> PendingRecord:
    """Fold *decorators* over *record*, in order.

    Raises:
        TypeError: If a decorator does not return a PendingRecord
    """

    def _step(current: PendingRecord, decorator: Decorator) -> PendingRecord:
        result = decorator(current)
        if not isinstance(result, PendingRecord):
            raise TypeError(f"Decorator {decorator!r} returned {type(result).__name__}, expected PendingRecord")
        return result

    return functools.reduce(_step, decorators, record)
