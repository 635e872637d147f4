"""
Workflow Context - the run-scoped store commands persist values through.

One ``WorkflowContext`` is bound to one command invocation.  Its
``store()`` folds the decorator chain, assigns an id, writes exactly one
file inside the invocation's exclusive output directory, and returns a
``MemoryReference``.  Contexts created with :meth:`for_command` share the
run-wide memory index, so values stored by an earlier command remain
reachable by id or token from later ones.

Output layout::

    <output_root>/
        20250101-120000-123-store/
            greeting-1a2b3c4d.txt
        20250101-120001-456-extract/
            numbers.json

Example:
    ctx = WorkflowContext(Path(".open-tasks/outputs"), command_name="store")
    ref = await ctx.store("hello", [TokenDecorator("greeting")])
    ref.path        # .../20250101-120000-123-store/greeting-1a2b3c4d.txt

Manifesto:
    Commands should never have to think about where output goes or
    whether a name is already taken.  The context owns directory
    allocation and file creation, and it never overwrites: a collision
    is a reported error, not lost data.

Tags:
    open-tasks, orchestration, context, storage, output-directory

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import copy
import json
import re
import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import TYPE_CHECKING, Any

import yaml

from open_tasks.core.errors import InputValidationError, OutputWriteError
from open_tasks.framework.logging import bind_context, get_logger, log_step
from open_tasks.orchestration.decorators import Decorator, PendingRecord, apply_decorators
from open_tasks.orchestration.models import MemoryReference

if TYPE_CHECKING:
    from open_tasks.framework.output.task_logger import TaskLogger

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def safe_name(value: str) -> str:
    """Reduce *value* to characters that are safe in a file or directory name."""
    return _UNSAFE_CHARS.sub("-", value).strip("-.") or "output"


def validate_output_path(file_name: str) -> str:
    """Reject names that are empty, absolute, or climb out of their directory.

    Raises:
        OutputWriteError: If the name would escape the invocation directory
    """
    if not file_name or not file_name.strip():
        raise OutputWriteError("Output file name is empty")
    if PurePosixPath(file_name).is_absolute() or PureWindowsPath(file_name).is_absolute() or file_name.startswith("\\"):
        raise OutputWriteError(f"Output file name must be relative: {file_name!r}", path=file_name)
    parts = re.split(r"[\\/]", file_name)
    if ".." in parts:
        raise OutputWriteError(f"Output file name may not contain '..': {file_name!r}", path=file_name)
    return file_name


def serialize_record(record: PendingRecord) -> str:
    """Render a record as file text.

    Strings are written verbatim, anything else as indented JSON.  Non-empty
    metadata is prepended as YAML front-matter between ``---`` lines.
    """
    content = record.content
    if isinstance(content, str):
        body = content
    else:
        body = json.dumps(content, indent=2, default=str, ensure_ascii=False)

    if not record.metadata:
        return body

    # Round-trip through JSON so safe_dump only ever sees plain types.
    plain = json.loads(json.dumps(dict(record.metadata), default=str))
    front = yaml.safe_dump(plain, sort_keys=False, default_flow_style=False, allow_unicode=True)
    return f"---\n{front}---\n\n{body}"


def strip_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Split a file written by :func:`serialize_record` into (metadata, body)."""
    if not text.startswith("---\n"):
        return {}, text
    end = text.find("\n---\n", 4)
    if end == -1:
        return {}, text
    try:
        meta = yaml.safe_load(text[4 : end + 1]) or {}
    except yaml.YAMLError:
        return {}, text
    if not isinstance(meta, dict):
        return {}, text
    body = text[end + len("\n---\n") :]
    return meta, body.removeprefix("\n")


def write_exclusive(path: Path, data: str) -> None:
    """Create *path* and write *data*; never replaces an existing file."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("x", encoding="utf-8") as f:
            f.write(data)
    except FileExistsError as e:
        raise OutputWriteError(f"Output file already exists: {path}", path=str(path), cause=e) from e
    except OSError as e:
        raise OutputWriteError(f"Failed to write {path}: {e}", path=str(path), cause=e) from e


class WorkflowContext:
    """Run-scoped store bound to one command invocation.

    Attributes:
        output_root: Directory that holds every invocation directory of the run
        command_name: Command this context belongs to
        run_id: Pipeline run identifier shared by all contexts of the run
        logger: TaskLogger that receives file-created events
        default_extension: Extension for default names of string content
    """

    def __init__(
        self,
        output_root: Path | str,
        *,
        command_name: str = "workflow",
        logger: TaskLogger | None = None,
        run_id: str | None = None,
        default_extension: str = "txt",
        _memory: dict[str, MemoryReference] | None = None,
        _tokens: dict[str, str] | None = None,
    ):
        self.output_root = Path(output_root)
        self.command_name = command_name
        self.logger = logger
        self.run_id = run_id or str(uuid.uuid4())
        self.default_extension = default_extension.lstrip(".") or "txt"
        self._memory: dict[str, MemoryReference] = _memory if _memory is not None else {}
        self._tokens: dict[str, str] = _tokens if _tokens is not None else {}
        self._invocation_dir: Path | None = None

    def for_command(self, command_name: str, logger: TaskLogger | None = None) -> WorkflowContext:
        """New context for the next invocation, sharing this run's memory."""
        return WorkflowContext(
            self.output_root,
            command_name=command_name,
            logger=logger,
            run_id=self.run_id,
            default_extension=self.default_extension,
            _memory=self._memory,
            _tokens=self._tokens,
        )

    # ── Invocation directory ─────────────────────────────────────

    @property
    def invocation_dir(self) -> Path:
        """This invocation's exclusive directory, created on first access."""
        if self._invocation_dir is None:
            self._invocation_dir = self._reserve_invocation_dir()
        return self._invocation_dir

    @property
    def has_invocation_dir(self) -> bool:
        return self._invocation_dir is not None

    def _reserve_invocation_dir(self) -> Path:
        now = datetime.now(UTC)
        base = f"{now:%Y%m%d-%H%M%S}-{now.microsecond // 1000:03d}-{safe_name(self.command_name)}"
        try:
            self.output_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputWriteError(
                f"Cannot create output directory {self.output_root}: {e}", path=str(self.output_root), cause=e
            ) from e

        attempt = 1
        while True:
            name = base if attempt == 1 else f"{base}-{attempt}"
            candidate = self.output_root / name
            try:
                candidate.mkdir()
            except FileExistsError:
                attempt += 1
                continue
            except OSError as e:
                raise OutputWriteError(f"Cannot create {candidate}: {e}", path=str(candidate), cause=e) from e
            bind_context(invocation=name)
            logger.debug("context.invocation_dir", path=str(candidate), command=self.command_name)
            return candidate

    # ── Store ────────────────────────────────────────────────────

    async def store(
        self,
        value: Any,
        decorators: Sequence[Decorator] = (),
        *,
        validate: Callable[[PendingRecord], None] | None = None,
    ) -> MemoryReference:
        """Persist *value* through the decorator chain.

        Args:
            value: Any value; strings are written verbatim, others as JSON
            decorators: Applied in order; last write to a field wins
            validate: Called with the fully decorated record before anything
                is written; raise to abort the store

        Raises:
            InputValidationError: If the value cannot be snapshotted
            OutputWriteError: If the file cannot be written, already exists,
                or its name escapes the invocation directory
        """
        record = apply_decorators(PendingRecord(content=self._snapshot(value)), decorators)
        if validate is not None:
            validate(record)

        ref_id = str(uuid.uuid4())
        file_name = validate_output_path(record.file_name or self._default_file_name(record, ref_id))
        target = self.invocation_dir / file_name
        if not target.resolve().is_relative_to(self.invocation_dir.resolve()):
            raise OutputWriteError(f"Output file name escapes the invocation directory: {file_name!r}", path=file_name)

        payload = serialize_record(record)
        with log_step("store.write", level="debug", file_name=file_name, token=record.token) as timer:
            await asyncio.to_thread(write_exclusive, target, payload)
            timer.add_metric("chars", len(payload))

        memory = MemoryReference(
            id=ref_id,
            content=record.content,
            token=record.token,
            file_name=file_name,
            path=target,
            metadata=dict(record.metadata),
            created_at=record.created_at,
            command=self.command_name,
        )
        self._remember(memory)

        if self.logger is not None:
            self.logger.file_created(target, record.token)
        return memory

    def _snapshot(self, value: Any) -> Any:
        try:
            return copy.deepcopy(value)
        except Exception as e:
            raise InputValidationError(
                f"Value of type {type(value).__name__} cannot be stored: {e}", cause=e
            ).with_context(command=self.command_name)

    def _default_file_name(self, record: PendingRecord, ref_id: str) -> str:
        ext = self.default_extension if isinstance(record.content, str) else "json"
        stem = safe_name(record.token or self.command_name)
        return f"{stem}-{ref_id[:8]}.{ext}"

    def _remember(self, memory: MemoryReference) -> None:
        self._memory[memory.id] = memory
        if memory.token:
            self._tokens[memory.token] = memory.id

    # ── Load ─────────────────────────────────────────────────────

    async def load(self, path: Path | str, token: str | None = None) -> MemoryReference:
        """Register an existing file's content without writing anything.

        YAML front-matter, if present, becomes the reference metadata.

        Raises:
            InputValidationError: If the file does not exist or is unreadable
        """
        source = Path(path)
        if not source.is_file():
            raise InputValidationError(f"File not found: {source}").with_context(path=str(source))
        try:
            text = await asyncio.to_thread(source.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise InputValidationError(f"Cannot read {source}: {e}", cause=e).with_context(path=str(source))

        metadata, body = strip_front_matter(text)
        memory = MemoryReference(
            id=str(uuid.uuid4()),
            content=body,
            token=token,
            file_name=source.name,
            path=source.resolve(),
            metadata=metadata,
            command=self.command_name,
        )
        self._remember(memory)
        logger.debug("context.loaded", path=str(source), token=token, chars=len(body))
        return memory

    # ── Lookup ───────────────────────────────────────────────────

    def get(self, id_or_token: str) -> MemoryReference | None:
        """Look up by id first, then by token (latest wins)."""
        if id_or_token in self._memory:
            return self._memory[id_or_token]
        ref_id = self._tokens.get(id_or_token)
        return self._memory.get(ref_id) if ref_id else None

    def token(self, name: str) -> Any:
        """Content most recently stored under token *name*, or ``None``."""
        memory = self.get(name) if name in self._tokens else None
        return copy.deepcopy(memory.content) if memory else None

    def list(self) -> list[MemoryReference]:
        """All references of the run, in store order."""
        return list(self._memory.values())

    def clear(self) -> None:
        """Forget every reference of the run.  Files on disk are kept."""
        self._memory.clear()
        self._tokens.clear()

    def __len__(self) -> int:
        return len(self._memory)
