"""
Pipeline runner - drives commands through one run.

The runner owns everything that lives for the whole run (the output
synk, the reference manager, the shared workflow memory) and builds a
fresh :class:`ExecutionContext` for every command invocation.

Invocation sequence::

    registry.get(name)                 CommandNotFoundError, nothing emitted
    reference_manager.resolve_all()    ReferenceNotFoundError, failure only
    TaskLogger(...)                    command-start
    asyncio.timeout(...)
        command.execute(args, refs, context)
    TaskLogger.complete()              command-end (always, even on timeout)
    on failure:
        synk.write_failure(...)        shown at every verbosity
        output_handler.write_error()   {timestamp}-error.txt
        re-raise

Commands run strictly one after another.  A failed command stops the
pipeline; files written before the failure stay on disk.

Manifesto:
    Failures must be loud and complete: no command starts with a missing
    reference, no started command ends without a command-end event, and
    no failure leaves the user without an error report.

Tags:
    open-tasks, runtime, runner, pipeline, timeout

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from open_tasks.commands.base import ExecutionContext
from open_tasks.commands.builtin import register_builtin_commands
from open_tasks.commands.loader import CommandLoader
from open_tasks.commands.registry import CommandRegistry, command_verbosity
from open_tasks.core.config import OpenTasksSettings
from open_tasks.core.errors import (
    CommandError,
    CommandTimeoutError,
    OpenTasksError,
    OutputWriteError,
    ReferenceNotFoundError,
)
from open_tasks.framework.logging import get_logger, log_step, push_context
from open_tasks.framework.output import OutputSynk, TaskLogger, Verbosity
from open_tasks.orchestration.models import ReferenceHandle
from open_tasks.orchestration.pipeline_yaml import PipelineSpec, PipelineStepSpec
from open_tasks.orchestration.references import ReferenceManager, TokenPolicy
from open_tasks.orchestration.workflow_context import WorkflowContext
from open_tasks.runtime.output_handler import OutputHandler

logger = get_logger(__name__)


@dataclass(frozen=True)
class StepOutcome:
    """Result of one command invocation within a run."""

    command: str
    handle: ReferenceHandle | None
    error: BaseException | None
    duration_ms: float
    error_report: Path | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_registry(settings: OpenTasksSettings | None = None) -> CommandRegistry:
    """Registry with built-ins plus plugins from the configured directories."""
    registry = CommandRegistry()
    register_builtin_commands(registry)
    if settings is not None:
        CommandLoader(registry).load_from_directories(settings.resolve_commands_dirs())
    return registry


class PipelineRunner:
    """Runs commands sequentially within one run.

    Example:
        with PipelineRunner(registry=registry, output_root=out, synk=synk) as runner:
            await runner.run_command("store", ["hello"], token="greeting")
            await runner.run_command("replace", ["{{greeting}}!"], refs=["greeting"])
    """

    def __init__(
        self,
        *,
        registry: CommandRegistry,
        output_root: Path | str,
        synk: OutputSynk,
        cwd: Path | None = None,
        config: Mapping[str, Any] | None = None,
        token_policy: TokenPolicy | str = TokenPolicy.OVERWRITE,
        timeout_seconds: float | None = None,
        default_extension: str = "txt",
        run_id: str | None = None,
        verbosity_override: Verbosity | str | None = None,
    ):
        self.registry = registry
        self.synk = synk
        self.cwd = cwd or Path.cwd()
        self.config = dict(config or {})
        self.timeout_seconds = timeout_seconds
        self.verbosity_override = None if verbosity_override is None else Verbosity.parse(verbosity_override)
        self.run_id = run_id or str(uuid.uuid4())
        self.reference_manager = ReferenceManager(token_policy)
        self.workflow_context = WorkflowContext(
            output_root,
            command_name="run",
            run_id=self.run_id,
            default_extension=default_extension,
        )
        self.outcomes: list[StepOutcome] = []

    @classmethod
    def from_settings(
        cls,
        settings: OpenTasksSettings,
        *,
        synk: OutputSynk,
        registry: CommandRegistry | None = None,
        output_root: Path | None = None,
        timeout_seconds: float | None = None,
        verbosity_override: Verbosity | str | None = None,
    ) -> PipelineRunner:
        return cls(
            registry=registry or build_registry(settings),
            output_root=output_root or settings.resolve_output_dir(),
            synk=synk,
            cwd=Path.cwd(),
            config=settings.model_dump(mode="json"),
            token_policy=settings.token_policy,
            timeout_seconds=timeout_seconds or settings.command_timeout_seconds,
            default_extension=settings.default_file_extension,
            verbosity_override=verbosity_override,
        )

    @property
    def output_root(self) -> Path:
        return self.workflow_context.output_root

    @property
    def verbosity(self) -> Verbosity:
        return self.synk.verbosity

    def synk_for(self, command: Any) -> OutputSynk:
        """The synk one invocation of *command* writes to.

        An explicit verbosity for the run wins, then the command's own
        ``default_verbosity``, then the run synk's level.
        """
        if self.verbosity_override is not None:
            return self.synk.scoped(self.verbosity_override)
        return self.synk.scoped(command_verbosity(command))

    # ── Single command ───────────────────────────────────────────

    async def run_command(
        self,
        name: str,
        args: Sequence[str] = (),
        *,
        refs: Sequence[str] = (),
        token: str | None = None,
        options: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ReferenceHandle:
        """Run one command and return the handle it produced.

        Raises:
            CommandNotFoundError: Unknown command; nothing is emitted
            ReferenceNotFoundError: Unknown ``refs`` token; the command never starts
            CommandTimeoutError: The command exceeded its timeout
            CommandError: The command returned something other than a ReferenceHandle
            OpenTasksError / Exception: Whatever the command raised
        """
        command = self.registry.get(name)

        try:
            resolved = self.reference_manager.resolve_all(refs)
        except ReferenceNotFoundError as e:
            e.with_context(command=name, run_id=self.run_id)
            self.synk.write_failure(name, e, 0.0)
            self.outcomes.append(StepOutcome(name, None, e, 0.0))
            raise

        context_token = push_context(run_id=self.run_id, command=name)
        try:
            return await self._invoke(command, name, list(args), resolved, token, options, timeout)
        finally:
            context_token.restore()

    async def _invoke(
        self,
        command: Any,
        name: str,
        args: list[str],
        refs: dict[str, ReferenceHandle],
        token: str | None,
        options: Mapping[str, Any] | None,
        timeout: float | None,
    ) -> ReferenceHandle:
        limit = timeout if timeout is not None else self.timeout_seconds
        synk = self.synk_for(command)
        task = TaskLogger(synk, name, args=args)
        workflow_context = self.workflow_context.for_command(name, task)
        output_handler = OutputHandler(workflow_context)
        context = ExecutionContext(
            command_name=name,
            cwd=self.cwd,
            workflow_context=workflow_context,
            reference_manager=self.reference_manager,
            output_synk=synk,
            output_handler=output_handler,
            logger=task,
            config=self.config,
            verbosity=synk.verbosity,
            token=token,
            options=options or {},
            run_id=self.run_id,
        )

        scope = asyncio.timeout(limit)
        try:
            with task:
                async with scope:
                    result = await command.execute(args, refs, context)
                if not isinstance(result, ReferenceHandle):
                    raise CommandError(
                        f"Command {name!r} returned {type(result).__name__}, expected ReferenceHandle"
                    )
        except TimeoutError as e:
            if not scope.expired():
                self._fail(name, e, task, output_handler)
                raise
            error = CommandTimeoutError(name, limit, cause=e)
            self._fail(name, error, task, output_handler)
            raise error from e
        except Exception as e:
            self._fail(name, e, task, output_handler)
            raise

        self.outcomes.append(StepOutcome(name, result, None, task.duration_ms))
        logger.info("runner.command_ok", ref_id=result.id, token=result.token, duration_ms=round(task.duration_ms, 2))
        return result

    def _fail(self, name: str, error: BaseException, task: TaskLogger, output_handler: OutputHandler) -> None:
        if isinstance(error, OpenTasksError) and error.context.command is None:
            error.with_context(command=name, run_id=self.run_id)

        duration = task.complete()
        self.synk.write_failure(name, error, duration)

        report = None
        try:
            report = output_handler.write_error(error, {"command": name, "run_id": self.run_id, "duration_ms": duration})
        except OutputWriteError as write_error:
            logger.warning("runner.error_report_failed", error=str(write_error))

        self.outcomes.append(StepOutcome(name, None, error, duration, report))
        logger.error("runner.command_failed", error_type=type(error).__name__, error=str(error), report=str(report))

    # ── Pipelines ────────────────────────────────────────────────

    async def run_steps(self, steps: Sequence[PipelineStepSpec]) -> list[ReferenceHandle]:
        """Run *steps* in order, stopping at the first failure."""
        handles = []
        for index, step in enumerate(steps):
            logger.debug("runner.step", index=index, step=step.display_name)
            handles.append(
                await self.run_command(
                    step.command,
                    step.args,
                    refs=step.refs,
                    token=step.token,
                    options=step.options,
                    timeout=step.timeout_seconds,
                )
            )
        return handles

    async def run_pipeline(self, spec: PipelineSpec) -> list[ReferenceHandle]:
        """Run every step of a pipeline file within this run."""
        with log_step("pipeline.run", pipeline=spec.metadata.name) as timer:
            handles = await self.run_steps(spec.spec.resolved_steps())
            timer.add_metric("steps", len(handles))
        return handles

    # ── Lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        """Close the run's output synk."""
        self.synk.close()

    def __enter__(self) -> PipelineRunner:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
