"""
Built-in commands.  They also serve as templates for plugin commands.
"""

from open_tasks.commands.builtin.extract import ExtractCommand
from open_tasks.commands.builtin.load import LoadCommand
from open_tasks.commands.builtin.replace import ReplaceCommand
from open_tasks.commands.builtin.store import StoreCommand
from open_tasks.commands.registry import CommandRegistry

BUILTIN_COMMANDS = (StoreCommand, LoadCommand, ExtractCommand, ReplaceCommand)


def register_builtin_commands(registry: CommandRegistry) -> CommandRegistry:
    """Register every built-in command that is not already registered."""
    for cls in BUILTIN_COMMANDS:
        command = cls()
        if not registry.has(command.name):
            registry.register(command, source="builtin")
    return registry


__all__ = [
    "StoreCommand",
    "LoadCommand",
    "ExtractCommand",
    "ReplaceCommand",
    "BUILTIN_COMMANDS",
    "register_builtin_commands",
]
