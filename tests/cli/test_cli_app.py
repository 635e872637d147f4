"""Tests for open_tasks.cli: end-to-end runs via typer.testing.CliRunner.

Every test runs inside a throwaway project directory (see the ``project``
fixture) so config discovery, plugin loading and output directories are
isolated from the real working tree.
"""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from open_tasks import __version__
from open_tasks.cli.app import app
from open_tasks.orchestration import strip_front_matter

runner = CliRunner()

SLOW_PLUGIN = '''
import asyncio


class Slow:
    name = "slow"
    description = "Sleep, then store"
    examples = []

    async def execute(self, args, refs, context):
        await asyncio.sleep(5)
        return await context.store_reference("late")
'''


HUSHED_PLUGIN = '''
from open_tasks.framework.output import MessageCard


class Hushed:
    name = "hushed"
    description = "Quiet unless asked otherwise"
    examples = []
    default_verbosity = "quiet"

    async def execute(self, args, refs, context):
        context.logger.card(MessageCard("Hushed card", "hi"))
        return await context.store_reference("x")
'''

def _outputs(project):
    return sorted(p for p in (project / ".open-tasks" / "outputs").rglob("*") if p.is_file())


# ─── Root ────────────────────────────────────────────────────────────────


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "open-tasks" in result.output

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "pipeline" in result.output

    def test_version_constant(self):
        assert __version__


# ─── run ─────────────────────────────────────────────────────────────────


class TestRunCommand:
    def test_store_success(self, project, _structlog_defaults):
        result = runner.invoke(app, ["run", "store", "hello", "--token", "greeting"])
        assert result.exit_code == 0, result.output
        assert "store" in result.output
        assert "greeting" in result.output

        (stored,) = _outputs(project)
        assert stored.read_text(encoding="utf-8") == "hello"
        assert stored.name.startswith("greeting-")
        assert _structlog_defaults == [{"level": "WARNING", "format": "console"}]

    def test_command_options_pass_through(self, project):
        result = runner.invoke(app, ["run", "store", "a,b", "--file", "data.csv", "-q"])
        assert result.exit_code == 0, result.output
        assert [p.name for p in _outputs(project)] == ["data.csv"]

    def test_unknown_ref_exit_code(self, project):
        result = runner.invoke(app, ["run", "extract", r"\d+", "--ref", "missing"])
        assert result.exit_code == 3
        assert "ReferenceNotFoundError" in result.output
        assert "missing" in result.output
        assert _outputs(project) == []

    def test_traceback_only_with_debug_logging(self, project, monkeypatch):
        monkeypatch.setattr("open_tasks.cli.utils.is_debug_enabled", lambda: False)
        result = runner.invoke(app, ["run", "extract", r"\d+", "--ref", "missing"])
        assert "Traceback" not in result.output

        monkeypatch.setattr("open_tasks.cli.utils.is_debug_enabled", lambda: True)
        result = runner.invoke(app, ["run", "extract", r"\d+", "--ref", "missing"])
        assert result.exit_code == 3
        assert "Traceback" in result.output

    def test_unknown_command_exit_code(self, project):
        result = runner.invoke(app, ["run", "nope"])
        assert result.exit_code == 5
        assert "Unknown command" in result.output

    def test_missing_argument_exit_code(self, project):
        result = runner.invoke(app, ["run", "store"])
        assert result.exit_code == 2
        assert "InputValidationError" in result.output
        assert any(p.name.endswith("-error.txt") for p in _outputs(project))

    @pytest.mark.parametrize("flags", [["-q", "-v"], ["--summary", "--verbose"], ["-q", "-s", "-v"]])
    def test_multiple_verbosity_flags(self, project, flags):
        result = runner.invoke(app, ["run", "store", "x", *flags])
        assert result.exit_code == 2
        assert "Only one of" in result.output
        assert not (project / ".open-tasks" / "outputs").exists()

    def test_quiet_hides_cards(self, project):
        result = runner.invoke(app, ["run", "store", "hello", "--quiet"])
        assert result.exit_code == 0
        assert "Stored" not in result.output

    def test_verbose_shows_progress(self, project):
        (project / "input.txt").write_text("hello", encoding="utf-8")
        result = runner.invoke(app, ["run", "load", "input.txt", "-v"])
        assert result.exit_code == 0, result.output
        assert "Reading" in result.output

    def test_output_dir_option(self, project, tmp_path):
        target = tmp_path / "custom-out"
        result = runner.invoke(app, ["run", "store", "x", "--dir", str(target)])
        assert result.exit_code == 0, result.output
        assert len([p for p in target.rglob("*") if p.is_file()]) == 1

    def test_timeout_exit_code(self, project):
        plugins = project / ".open-tasks" / "commands"
        plugins.mkdir(parents=True)
        (plugins / "slow.py").write_text(SLOW_PLUGIN, encoding="utf-8")

        result = runner.invoke(app, ["run", "slow", "--timeout", "0.05"])
        assert result.exit_code == 124
        assert "timed out" in result.output

    def test_command_default_verbosity_and_flag(self, project):
        plugins = project / ".open-tasks" / "commands"
        plugins.mkdir(parents=True)
        (plugins / "hushed.py").write_text(HUSHED_PLUGIN, encoding="utf-8")

        result = runner.invoke(app, ["run", "hushed"])
        assert result.exit_code == 0, result.output
        assert "Hushed card" not in result.output

        result = runner.invoke(app, ["run", "hushed", "--summary"])
        assert result.exit_code == 0, result.output
        assert "Hushed card" in result.output

        result = runner.invoke(app, ["show", "hushed"])
        assert "Default verbosity: quiet" in result.output

    def test_invalid_config_exit_code(self, project):
        state = project / ".open-tasks"
        state.mkdir()
        (state / ".config.json").write_text("{broken", encoding="utf-8")
        result = runner.invoke(app, ["run", "store", "x"])
        assert result.exit_code == 6
        assert "ConfigError" in result.output

    def test_config_sets_default_verbosity(self, project):
        state = project / ".open-tasks"
        state.mkdir()
        (state / ".config.json").write_text(json.dumps({"defaultVerbosity": "quiet"}), encoding="utf-8")
        result = runner.invoke(app, ["run", "store", "hello"])
        assert result.exit_code == 0
        assert "Stored" not in result.output


# ─── pipeline ────────────────────────────────────────────────────────────


class TestPipelineCommand:
    def test_pipeline_chains_tokens(self, project):
        (project / "input.txt").write_text("Order 42 and 7", encoding="utf-8")
        (project / "report.yaml").write_text(
            "metadata: {name: report}\n"
            "spec:\n"
            "  steps:\n"
            "    - {command: load, args: [input.txt], token: raw}\n"
            "    - {command: extract, args: ['\\d+', --all], refs: [raw], token: numbers}\n"
            "    - {command: replace, args: ['Found: {{numbers}}'], refs: [numbers], token: report}\n",
            encoding="utf-8",
        )
        result = runner.invoke(app, ["pipeline", "report.yaml"])
        assert result.exit_code == 0, result.output

        report = [p for p in _outputs(project) if p.name.startswith("report-")]
        meta, body = strip_front_matter(report[0].read_text(encoding="utf-8"))
        assert body == "Found: 42\n7"
        assert meta["transform"]["type"] == "TokenReplace"
        assert meta["transform"]["inputs"] == ["numbers"]

    def test_pipeline_missing_ref(self, project):
        (project / "broken.yaml").write_text(
            "metadata: {name: broken}\nspec:\n  steps:\n    - {command: replace, args: ['x'], refs: [nope]}\n",
            encoding="utf-8",
        )
        result = runner.invoke(app, ["pipeline", "broken.yaml"])
        assert result.exit_code == 3

    def test_invalid_pipeline_file(self, project):
        (project / "bad.yaml").write_text("metadata: {name: x}\nspec: {steps: []}\n", encoding="utf-8")
        result = runner.invoke(app, ["pipeline", "bad.yaml"])
        assert result.exit_code == 2

    def test_missing_pipeline_file(self, project):
        result = runner.invoke(app, ["pipeline", "nope.yaml"])
        assert result.exit_code == 2


# ─── list / show / init ──────────────────────────────────────────────────


class TestIntrospection:
    def test_list_builtins(self, project):
        result = runner.invoke(app, ["list"])
        assert result.exit_code == 0
        for name in ("store", "load", "extract", "replace"):
            assert name in result.output

    def test_show(self, project):
        result = runner.invoke(app, ["show", "extract"])
        assert result.exit_code == 0
        assert "extract - Extract text using regex patterns" in result.output
        assert "Examples:" in result.output

    def test_show_unknown(self, project):
        result = runner.invoke(app, ["show", "nope"])
        assert result.exit_code == 5


class TestInit:
    def test_init_creates_layout(self, project):
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0, result.output

        state = project / ".open-tasks"
        assert (state / "outputs").is_dir()
        assert (state / "commands" / "example.py").is_file()
        config = json.loads((state / ".config.json").read_text(encoding="utf-8"))
        assert config["tokenPolicy"] == "overwrite"

    def test_example_plugin_is_loaded(self, project):
        runner.invoke(app, ["init"])
        result = runner.invoke(app, ["list"])
        assert "example" in result.output

        result = runner.invoke(app, ["run", "example", "hi", "there", "--token", "echoed"])
        assert result.exit_code == 0, result.output
        stored = [p for p in _outputs(project) if p.name.startswith("echoed-")]
        assert stored[0].read_text(encoding="utf-8") == "hi there"

    def test_init_twice_fails(self, project):
        assert runner.invoke(app, ["init"]).exit_code == 0
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 6
        assert "already exists" in result.output
