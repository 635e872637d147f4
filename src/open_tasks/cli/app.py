"""
Root Typer application for the open-tasks CLI.

Every invocation is one run: ``run`` executes a single command,
``pipeline`` executes a YAML file of commands so tokens flow between
them.  Exit codes follow :func:`open_tasks.core.errors.exit_code_for`.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from typer import Typer

from open_tasks.cli.utils import _print_dict, _print_table, console, err_console, fail, load_settings, resolve_verbosity
from open_tasks.core.config import STATE_DIR_NAME, find_project_root, write_default_config
from open_tasks.core.errors import OpenTasksError
from open_tasks.framework.output import ConsoleOutputSynk, Verbosity
from open_tasks.orchestration import PipelineSpec, ReferenceHandle
from open_tasks.runtime import PipelineRunner, build_registry

app = Typer(
    name="open-tasks",
    help="open-tasks: chain commands through stored, token-addressable references.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("open-tasks")
        except PackageNotFoundError:
            from open_tasks import __version__ as v
        typer.echo(f"open-tasks {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """open-tasks CLI: run commands, chain references, inspect plugins."""


# ── Shared options ───────────────────────────────────────────────────────

QuietOpt = typer.Option(False, "--quiet", "-q", help="Only command start/end, files and failures.")
SummaryOpt = typer.Option(False, "--summary", "-s", help="Also show result cards (default).")
VerboseOpt = typer.Option(False, "--verbose", "-v", help="Also show progress and diagnostic text.")
DirOpt = typer.Option(None, "--dir", "-d", help="Output root (default: .open-tasks/outputs).")
TimeoutOpt = typer.Option(None, "--timeout", min=0.001, help="Per-command timeout in seconds.")


def _run(runner: PipelineRunner, coro) -> object:
    """Run *coro* to completion, mapping failures to exit codes."""
    with runner:
        try:
            return asyncio.run(coro)
        except Exception as e:
            fail(e, reported=_reported(runner, e))


def _reported(runner: PipelineRunner, error: BaseException) -> bool:
    return any(outcome.error is error for outcome in runner.outcomes)


def _show_handle(handle: ReferenceHandle) -> None:
    _print_dict(
        {
            "id": handle.id,
            "token": handle.token or "-",
            "file": str(handle.output_file) if handle.output_file else "-",
        },
        title="Reference",
    )


# ── Commands ─────────────────────────────────────────────────────────────


@app.command(
    "run",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def run_command(
    command: str = typer.Argument(..., help="Command name (see 'open-tasks list')."),
    args: list[str] | None = typer.Argument(None, help="Arguments passed to the command."),
    ref: list[str] | None = typer.Option(None, "--ref", "-r", help="Token to pass as a reference (repeatable)."),
    token: str | None = typer.Option(None, "--token", "-t", help="Token for the result."),
    quiet: bool = QuietOpt,
    summary: bool = SummaryOpt,
    verbose: bool = VerboseOpt,
    directory: Path | None = DirOpt,
    timeout: float | None = TimeoutOpt,
) -> None:
    """Run a single command."""
    settings = load_settings()
    flag = resolve_verbosity(quiet, summary, verbose)
    verbosity = flag if flag is not None else Verbosity.parse(settings.default_verbosity)
    synk = ConsoleOutputSynk(verbosity, console=console, err_console=err_console)

    try:
        runner = PipelineRunner.from_settings(
            settings, synk=synk, output_root=directory, timeout_seconds=timeout, verbosity_override=flag
        )
    except OpenTasksError as e:
        fail(e)

    handle = _run(runner, runner.run_command(command, args or [], refs=ref or [], token=token))
    if verbosity > Verbosity.QUIET:
        _show_handle(handle)


@app.command("pipeline")
def run_pipeline(
    file: Path = typer.Argument(..., help="Pipeline YAML file."),
    quiet: bool = QuietOpt,
    summary: bool = SummaryOpt,
    verbose: bool = VerboseOpt,
    directory: Path | None = DirOpt,
    timeout: float | None = TimeoutOpt,
) -> None:
    """Run every step of a pipeline file in one run."""
    settings = load_settings()
    flag = resolve_verbosity(quiet, summary, verbose)
    verbosity = flag if flag is not None else Verbosity.parse(settings.default_verbosity)

    try:
        spec = PipelineSpec.from_yaml_file(file)
    except OpenTasksError as e:
        fail(e)

    synk = ConsoleOutputSynk(verbosity, console=console, err_console=err_console)
    try:
        runner = PipelineRunner.from_settings(
            settings, synk=synk, output_root=directory, timeout_seconds=timeout, verbosity_override=flag
        )
    except OpenTasksError as e:
        fail(e)

    handles = _run(runner, runner.run_pipeline(spec))
    if verbosity > Verbosity.QUIET:
        _print_table(list(handles), title=f"Pipeline: {spec.metadata.name}")


@app.command("list")
def list_commands() -> None:
    """List available commands."""
    settings = load_settings()
    try:
        registry = build_registry(settings)
    except OpenTasksError as e:
        fail(e)
    rows = []
    for name in registry.names():
        meta = registry.get_metadata(name)
        rows.append({"name": meta["name"], "description": meta["description"], "source": meta["source"]})
    _print_table(rows, title="Commands")


@app.command("show")
def show_command(name: str = typer.Argument(..., help="Command name")) -> None:
    """Show a command's description and examples."""
    settings = load_settings()
    try:
        registry = build_registry(settings)
        help_text = registry.get_command_help(name)
    except OpenTasksError as e:
        fail(e)
    console.print(help_text, highlight=False, markup=False)


EXAMPLE_COMMAND = '''"""Example open-tasks plugin command."""


class ExampleCommand:
    name = "example"
    description = "Echo the arguments back as a stored reference"
    examples = ["open-tasks run example hello world --token echoed"]

    async def execute(self, args, refs, context):
        context.logger.info(f"received {len(args)} argument(s)")
        return await context.store_reference(" ".join(args))
'''


@app.command("init")
def init_project(
    path: Path | None = typer.Argument(None, help="Project directory (default: current project root)."),
) -> None:
    """Create the .open-tasks directory, a config file and an example command."""
    root = (path or find_project_root()).resolve()
    state = root / STATE_DIR_NAME
    (state / "outputs").mkdir(parents=True, exist_ok=True)
    commands_dir = state / "commands"
    commands_dir.mkdir(parents=True, exist_ok=True)

    try:
        config_path = write_default_config(
            root,
            {
                "outputDir": f"{STATE_DIR_NAME}/outputs",
                "customCommandsDir": [f"{STATE_DIR_NAME}/commands"],
                "defaultVerbosity": "summary",
                "tokenPolicy": "overwrite",
            },
        )
    except OpenTasksError as e:
        fail(e)

    example = commands_dir / "example.py"
    if not example.exists():
        example.write_text(EXAMPLE_COMMAND, encoding="utf-8")

    _print_dict({"config": str(config_path), "commands": str(commands_dir)}, title="Initialized open-tasks")
