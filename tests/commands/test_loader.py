"""Tests for open_tasks.commands.loader: plugin discovery."""

from __future__ import annotations

from pathlib import Path

from open_tasks.commands import CommandLoader, CommandRegistry
from open_tasks.commands.builtin import register_builtin_commands

CLASS_PLUGIN = '''
class Shout:
    name = "shout"
    description = "Upper-case the arguments"
    examples = ["open-tasks run shout hello"]

    async def execute(self, args, refs, context):
        return await context.store_reference(" ".join(args).upper())


class NotACommand:
    pass
'''

LIST_PLUGIN = '''
class _Reverse:
    name = "reverse"
    description = "Reverse the arguments"
    examples = []

    async def execute(self, args, refs, context):
        return await context.store_reference(" ".join(reversed(args)))


COMMANDS = [_Reverse()]
'''

OVERRIDE_PLUGIN = '''
class Store:
    name = "store"
    description = "Project-specific store"
    examples = []

    async def execute(self, args, refs, context):
        return await context.store_reference("custom")
'''


def _plugin(directory: Path, name: str, source: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(source, encoding="utf-8")
    return path


class TestCommandLoader:
    def test_loads_classes_defined_in_module(self, tmp_path):
        _plugin(tmp_path, "shout.py", CLASS_PLUGIN)
        registry = CommandRegistry()
        report = CommandLoader(registry).load_from_directory(tmp_path)
        assert report.ok
        assert report.loaded == ["shout"]
        assert registry.get_metadata("shout")["source"] == str(tmp_path / "shout.py")

    def test_loads_commands_list(self, tmp_path):
        _plugin(tmp_path, "reverse.py", LIST_PLUGIN)
        registry = CommandRegistry()
        CommandLoader(registry).load_from_directory(tmp_path)
        assert registry.names() == ["reverse"]

    def test_skips_private_files(self, tmp_path):
        _plugin(tmp_path, "_helpers.py", CLASS_PLUGIN)
        registry = CommandRegistry()
        report = CommandLoader(registry).load_from_directory(tmp_path)
        assert report.loaded == []
        assert len(registry) == 0

    def test_broken_plugin_does_not_stop_others(self, tmp_path):
        _plugin(tmp_path, "a_broken.py", "raise RuntimeError('import failed')\n")
        _plugin(tmp_path, "b_empty.py", "VALUE = 1\n")
        _plugin(tmp_path, "c_shout.py", CLASS_PLUGIN)
        registry = CommandRegistry()
        report = CommandLoader(registry).load_from_directory(tmp_path)
        assert registry.names() == ["shout"]
        assert not report.ok
        assert [path.name for path, _ in report.errors] == ["a_broken.py", "b_empty.py"]
        assert "import failed" in report.errors[0][1]

    def test_plugin_overrides_builtin(self, tmp_path):
        _plugin(tmp_path, "store.py", OVERRIDE_PLUGIN)
        registry = register_builtin_commands(CommandRegistry())
        CommandLoader(registry).load_from_directory(tmp_path)
        assert registry.get("store").description == "Project-specific store"

    def test_later_directories_win(self, tmp_path):
        _plugin(tmp_path / "first", "store.py", OVERRIDE_PLUGIN)
        _plugin(tmp_path / "second", "store.py", OVERRIDE_PLUGIN.replace("Project-specific", "User"))
        registry = CommandRegistry()
        report = CommandLoader(registry).load_from_directories([tmp_path / "first", tmp_path / "second"])
        assert report.loaded == ["store", "store"]
        assert registry.get("store").description == "User store"

    def test_missing_directory_is_ignored(self, tmp_path):
        report = CommandLoader(CommandRegistry()).load_from_directory(tmp_path / "missing")
        assert report.ok
        assert report.loaded == []
