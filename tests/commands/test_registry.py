"""Tests for open_tasks.commands.registry."""

from __future__ import annotations

import pytest

from open_tasks.commands import (
    CommandHandler,
    CommandRegistry,
    get_default_registry,
    register_command,
    validate_command,
)
from open_tasks.commands.builtin import BUILTIN_COMMANDS, StoreCommand, register_builtin_commands
from open_tasks.core.errors import CommandError, CommandNotFoundError
from open_tasks.framework.output import Verbosity


class Shout:
    name = "shout"
    description = "Upper-case a value"
    examples = ["open-tasks run shout --ref greeting"]

    async def execute(self, args, refs, context):
        return await context.store_reference(" ".join(args).upper())


class TestValidateCommand:
    def test_valid(self):
        validate_command(Shout())
        assert isinstance(Shout(), CommandHandler)

    def test_missing_name(self):
        class NoName:
            description = "x"
            examples = []

            async def execute(self, args, refs, context): ...

        with pytest.raises(CommandError, match="no command name"):
            validate_command(NoName())

    def test_whitespace_in_name(self):
        command = Shout()
        command.name = "two words"
        with pytest.raises(CommandError, match="whitespace"):
            validate_command(command)

    def test_sync_execute_rejected(self):
        class Sync:
            name = "sync"
            description = "x"
            examples = []

            def execute(self, args, refs, context): ...

        with pytest.raises(CommandError, match="async def execute"):
            validate_command(Sync())

    def test_examples_must_be_strings(self):
        command = Shout()
        command.examples = "one string"
        with pytest.raises(CommandError, match="examples"):
            validate_command(command)


class TestCommandRegistry:
    def test_register_and_get(self):
        registry = CommandRegistry()
        command = Shout()
        registry.register(command)
        assert registry.get("shout") is command
        assert "shout" in registry
        assert registry.has("shout")
        assert len(registry) == 1

    def test_unknown_command(self):
        registry = CommandRegistry()
        registry.register(Shout())
        with pytest.raises(CommandNotFoundError) as exc_info:
            registry.get("whisper")
        assert exc_info.value.available == ["shout"]

    def test_duplicate_requires_replace(self):
        registry = CommandRegistry()
        registry.register(Shout())
        with pytest.raises(CommandError, match="already registered"):
            registry.register(Shout())
        replacement = Shout()
        registry.register(replacement, source="plugins/shout.py", replace=True)
        assert registry.get("shout") is replacement
        assert registry.get_metadata("shout")["source"] == "plugins/shout.py"

    def test_list_sorted(self):
        registry = register_builtin_commands(CommandRegistry())
        assert registry.names() == ["extract", "load", "replace", "store"]
        assert [c.name for c in registry.list_commands()] == registry.names()

    def test_help_text(self):
        registry = CommandRegistry()
        registry.register(Shout(), source="plugins/shout.py")
        help_text = registry.get_command_help("shout")
        assert help_text.startswith("shout - Upper-case a value")
        assert "open-tasks run shout --ref greeting" in help_text
        assert "Source: plugins/shout.py" in help_text

    def test_unregister_and_clear(self):
        registry = register_builtin_commands(CommandRegistry())
        assert registry.unregister("store") is True
        assert registry.unregister("store") is False
        registry.clear()
        assert len(registry) == 0

    def test_default_verbosity_in_metadata_and_help(self):
        shout = Shout()
        shout.default_verbosity = "verbose"
        registry = CommandRegistry()
        registry.register(shout)
        assert registry.get_metadata("shout")["default_verbosity"] is Verbosity.VERBOSE
        assert "Default verbosity: verbose" in registry.get_command_help("shout")

    def test_no_default_verbosity(self):
        registry = CommandRegistry()
        registry.register(Shout())
        assert registry.get_metadata("shout")["default_verbosity"] is None
        assert "Default verbosity" not in registry.get_command_help("shout")

    def test_invalid_default_verbosity_rejected(self):
        shout = Shout()
        shout.default_verbosity = "loud"
        with pytest.raises(CommandError, match="default_verbosity"):
            CommandRegistry().register(shout)


class TestBuiltins:
    def test_every_builtin_is_valid(self):
        for cls in BUILTIN_COMMANDS:
            validate_command(cls())

    def test_register_builtins_keeps_existing(self):
        registry = CommandRegistry()
        custom = Shout()
        custom.name = "store"
        registry.register(custom, source="plugin")
        register_builtin_commands(registry)
        assert registry.get("store") is custom
        assert not isinstance(registry.get("store"), StoreCommand)


class TestDefaultRegistry:
    def test_singleton(self):
        assert get_default_registry() is get_default_registry()

    def test_decorator_registers_instance(self):
        @register_command()
        class Whisper(Shout):
            name = "whisper"

        assert isinstance(get_default_registry().get("whisper"), Whisper)

    def test_decorator_with_explicit_registry(self):
        registry = CommandRegistry()

        @register_command(registry)
        class Whisper(Shout):
            name = "whisper"

        assert "whisper" in registry
        assert "whisper" not in get_default_registry()
