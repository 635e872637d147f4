"""
Command contract and per-invocation execution context.

Every plugin command is any object with ``name``, ``description``,
``examples`` and an async ``execute(args, refs, context)`` that returns a
:class:`ReferenceHandle`.  No base class is required; the registry checks
the shape when the command is registered.

Example plugin::

    class Shout:
        name = "shout"
        description = "Upper-case a referenced value"
        examples = ["open-tasks run shout --ref greeting --token loud"]

        async def execute(self, args, refs, context):
            (source,) = refs.values()
            return await context.store_reference(source.text.upper())

Tags:
    open-tasks, commands, protocol, plugin, context

Doc-Types:
    api-reference
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from open_tasks.framework.output import OutputSynk, TaskLogger, Verbosity
from open_tasks.orchestration.decorators import Decorator, TokenDecorator
from open_tasks.orchestration.models import ReferenceHandle
from open_tasks.orchestration.references import ReferenceManager
from open_tasks.orchestration.workflow_context import WorkflowContext

if TYPE_CHECKING:
    from open_tasks.runtime.output_handler import OutputHandler


@runtime_checkable
class CommandHandler(Protocol):
    """Capability every command implements."""

    name: str
    description: str
    examples: Sequence[str]

    # Optional: ``default_verbosity`` (a Verbosity or its name) applies when
    # the caller gives no verbosity flag.

    async def execute(
        self,
        args: list[str],
        refs: Mapping[str, ReferenceHandle],
        context: ExecutionContext,
    ) -> ReferenceHandle: ...


def _frozen(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    # Nested sections are copied too; the proxy only guards the top level.
    return MappingProxyType(copy.deepcopy(dict(mapping or {})))


@dataclass(frozen=True)
class ExecutionContext:
    """Everything one command invocation may use.

    Built by the runtime for each invocation and never shared between two.

    Attributes:
        command_name: Name the command was invoked as
        cwd: Working directory of the run
        workflow_context: Store bound to this invocation's output directory
        reference_manager: Run-scoped token registry
        output_synk: Run-scoped output destination
        output_handler: Helper for files outside the reference store
        logger: This invocation's TaskLogger
        config: Read-only configuration mapping
        verbosity: Verbosity of the run
        token: Token requested with ``--token`` (may be ``None``)
        options: Extra options parsed by the runtime
        run_id: Pipeline run identifier
    """

    command_name: str
    cwd: Path
    workflow_context: WorkflowContext
    reference_manager: ReferenceManager
    output_synk: OutputSynk
    output_handler: OutputHandler
    logger: TaskLogger
    config: Mapping[str, Any] = field(default_factory=dict)
    verbosity: Verbosity = Verbosity.SUMMARY
    token: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict)
    run_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "config", _frozen(self.config))
        object.__setattr__(self, "options", _frozen(self.options))

    @property
    def output_dir(self) -> Path:
        """This invocation's exclusive output directory (created on first use)."""
        return self.workflow_context.invocation_dir

    @property
    def command_config(self) -> Mapping[str, Any]:
        """The ``commands.<name>`` section of the configuration."""
        commands = self.config.get("commands") or {}
        return _frozen(commands.get(self.command_name))

    async def store_reference(
        self,
        value: Any,
        *decorators: Decorator,
        token: str | None = None,
    ) -> ReferenceHandle:
        """Store *value* and register a handle for it.

        ``token`` (or the invocation's ``--token``) is applied first, so an
        explicit :class:`TokenDecorator` in *decorators* still wins.

        Raises:
            OutputWriteError: If the value cannot be written
            TokenConflictError: If the token is taken under the ``reject`` policy
        """
        chain: list[Decorator] = list(decorators)
        default_token = token or self.token
        if default_token:
            chain.insert(0, TokenDecorator(default_token))

        memory = await self.workflow_context.store(
            value,
            chain,
            validate=lambda record: self.reference_manager.ensure_token_available(record.token),
        )
        return self.reference_manager.from_memory(memory)
