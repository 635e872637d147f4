"""
Commands: the plugin contract, the registry, and plugin discovery.
"""

from open_tasks.commands.base import CommandHandler, ExecutionContext
from open_tasks.commands.loader import CommandLoader, LoadReport
from open_tasks.commands.registry import (
    CommandRegistry,
    command_verbosity,
    get_default_registry,
    register_command,
    reset_default_registry,
    validate_command,
)

__all__ = [
    "CommandHandler",
    "ExecutionContext",
    "CommandRegistry",
    "CommandLoader",
    "LoadReport",
    "get_default_registry",
    "reset_default_registry",
    "register_command",
    "validate_command",
    "command_verbosity",
]
