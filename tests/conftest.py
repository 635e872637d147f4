"""
Shared pytest fixtures for open-tasks tests.

This module provides:
- Registry, settings and log-context cleanup for test isolation
- A recording output synk and a runner wired to a temporary output root
- Small fake commands for exercising the runtime
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest
import structlog

from open_tasks.commands import CommandRegistry, reset_default_registry
from open_tasks.commands.builtin import register_builtin_commands
from open_tasks.core.config import clear_settings_cache
from open_tasks.framework.logging import clear_context
from open_tasks.framework.output import MessageCard, RecordingOutputSynk, Verbosity
from open_tasks.orchestration import FileNameDecorator
from open_tasks.runtime import PipelineRunner


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    """Fresh global registry, settings cache and log context per test."""
    for key in list(os.environ):
        if key.startswith("OPEN_TASKS_"):
            monkeypatch.delenv(key, raising=False)
    reset_default_registry()
    clear_settings_cache()
    clear_context()
    yield
    reset_default_registry()
    clear_settings_cache()
    clear_context()


@pytest.fixture(autouse=True)
def _structlog_defaults(monkeypatch):
    """Keep structlog unconfigured so capture_logs sees every logger.

    ``configure_logging`` caches loggers on first use, which would pin
    module-level loggers to the configured processors for later tests.
    """
    calls = []
    monkeypatch.setattr("open_tasks.cli.utils.configure_logging", lambda **kw: calls.append(kw))
    config = structlog.get_config()
    yield calls
    structlog.configure(**config)


# =============================================================================
# Fake commands
# =============================================================================


class EchoCommand:
    """Stores its joined arguments, or the joined texts of its refs."""

    name = "echo"
    description = "Echo arguments or referenced values"
    examples = ["open-tasks run echo hello"]

    def __init__(self):
        self.calls = 0

    async def execute(self, args, refs, context):
        self.calls += 1
        context.logger.info(f"echo with {len(refs)} ref(s)")
        text = " ".join(args) if args else " ".join(r.text for r in refs.values())
        return await context.store_reference(text)


class ChattyCommand:
    """Declares its own default verbosity."""

    name = "chatty"
    description = "Reports progress and a card"
    examples = []
    default_verbosity = Verbosity.VERBOSE

    async def execute(self, args, refs, context):
        context.logger.progress("working")
        context.logger.card(MessageCard("Chatty", "done"))
        return await context.store_reference("chatter")


class CollidingCommand:
    """Stores one file, then tries to write the same name again."""

    name = "collide"
    description = "Second store collides with the first"
    examples = []

    async def execute(self, args, refs, context):
        await context.store_reference("first", FileNameDecorator("same.txt"))
        return await context.store_reference("second", FileNameDecorator("same.txt"))


class SlowCommand:
    name = "slow"
    description = "Sleeps longer than any test timeout"
    examples = []

    async def execute(self, args, refs, context):
        await asyncio.sleep(float(args[0]) if args else 5)
        return await context.store_reference("late")


class BadReturnCommand:
    name = "bad-return"
    description = "Returns a plain string instead of a reference handle"
    examples = []

    async def execute(self, args, refs, context):
        return "not a handle"


class ExplodingCommand:
    name = "explode"
    description = "Raises a plain exception"
    examples = []

    async def execute(self, args, refs, context):
        raise RuntimeError("boom")


# =============================================================================
# Runtime fixtures
# =============================================================================


@pytest.fixture
def output_root(tmp_path: Path) -> Path:
    return tmp_path / "outputs"


@pytest.fixture
def synk() -> RecordingOutputSynk:
    return RecordingOutputSynk(Verbosity.VERBOSE)


@pytest.fixture
def echo() -> EchoCommand:
    return EchoCommand()


@pytest.fixture
def registry(echo) -> CommandRegistry:
    """Built-ins plus the fake commands above."""
    registry = CommandRegistry()
    register_builtin_commands(registry)
    for command in (echo, SlowCommand(), BadReturnCommand(), ExplodingCommand(), ChattyCommand(), CollidingCommand()):
        registry.register(command, source="tests")
    return registry


@pytest.fixture
def runner(registry, output_root, synk, tmp_path) -> PipelineRunner:
    return PipelineRunner(registry=registry, output_root=output_root, synk=synk, cwd=tmp_path)


@pytest.fixture
def project(tmp_path: Path, monkeypatch) -> Path:
    """A project directory with its own home, used as cwd."""
    root = tmp_path / "project"
    home = tmp_path / "home"
    root.mkdir()
    home.mkdir()
    (root / "pyproject.toml").write_text("[project]\nname = 'demo'\n", encoding="utf-8")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(root)
    return root
