"""Command Registry: injectable name to command lookup.

Manifesto:
The runtime needs to resolve ``"extract"`` to a command object.  The
registry decouples registration (built-ins at startup, plugins at load
time) from resolution (at invocation time), and supports both a global
singleton and injectable instances for testing.

ARCHITECTURE
────────────
::

    CommandRegistry
      ├── .register(command)        ─ validate shape, store by name
      ├── .get(name)                ─ lookup, CommandNotFoundError if absent
      ├── .list_commands()          ─ all commands, sorted by name
      ├── .get_command_help(name)   ─ formatted help text
      └── .has(name)                ─ existence check

    register_command(...)      ─ class decorator (uses global registry)
    get_default_registry()     ─ module-level singleton
    reset_default_registry()   ─ clear for testing

BEST PRACTICES
──────────────
- Pass an explicit ``CommandRegistry`` in tests.
- Call ``reset_default_registry()`` in test fixtures.

Tags:
    open-tasks, commands, registry, lookup, plugins

Doc-Types:
    api-reference
"""

from __future__ import annotations

import inspect
from typing import Any

from open_tasks.commands.base import CommandHandler
from open_tasks.core.errors import CommandError, CommandNotFoundError
from open_tasks.framework.logging import get_logger
from open_tasks.framework.output import Verbosity

logger = get_logger(__name__)


def validate_command(command: Any) -> None:
    """Check that *command* satisfies the :class:`CommandHandler` contract.

    Raises:
        CommandError: Describing the first missing or malformed member
    """
    name = getattr(command, "name", None)
    if not isinstance(name, str) or not name.strip():
        raise CommandError(f"{command!r} has no command name")
    if any(c.isspace() for c in name):
        raise CommandError(f"Command name may not contain whitespace: {name!r}")
    if not isinstance(getattr(command, "description", None), str):
        raise CommandError(f"Command {name!r} has no description")
    examples = getattr(command, "examples", ())
    if isinstance(examples, str) or not all(isinstance(e, str) for e in examples):
        raise CommandError(f"Command {name!r} examples must be a list of strings")
    try:
        command_verbosity(command)
    except ValueError as e:
        raise CommandError(f"Command {name!r} has an invalid default_verbosity: {e}") from e
    execute = getattr(command, "execute", None)
    if execute is None or not inspect.iscoroutinefunction(execute):
        raise CommandError(f"Command {name!r} must define 'async def execute(args, refs, context)'")


def command_verbosity(command: Any) -> Verbosity | None:
    """The command's own ``default_verbosity``, if it declares one."""
    value = getattr(command, "default_verbosity", None)
    return None if value is None else Verbosity.parse(value)


class CommandRegistry:
    """Injectable command registry.

    Example:
        >>> registry = CommandRegistry()
        >>> registry.register(StoreCommand())
        >>> registry.get("store").description
        'Store a value and return a reference to it'
    """

    def __init__(self):
        self._commands: dict[str, CommandHandler] = {}
        self._sources: dict[str, str] = {}

    def register(self, command: CommandHandler, *, source: str = "builtin", replace: bool = False) -> None:
        """Register a command under its ``name``.

        Args:
            command: Object satisfying the CommandHandler contract
            source: Where the command came from (``builtin`` or a file path)
            replace: Allow replacing an existing command of the same name

        Raises:
            CommandError: If the command is malformed, or the name is taken
                and *replace* is False
        """
        validate_command(command)
        name = command.name
        if name in self._commands:
            if not replace:
                raise CommandError(f"Command already registered: {name!r} (from {self._sources[name]})")
            logger.warning("registry.command_replaced", command=name, previous=self._sources[name], source=source)
        self._commands[name] = command
        self._sources[name] = source

    def get(self, name: str) -> CommandHandler:
        """Get a command.

        Raises:
            CommandNotFoundError: If no command is registered under *name*
        """
        if name not in self._commands:
            raise CommandNotFoundError(name, available=list(self._commands))
        return self._commands[name]

    def has(self, name: str) -> bool:
        return name in self._commands

    def names(self) -> list[str]:
        return sorted(self._commands)

    def list_commands(self) -> list[CommandHandler]:
        """All registered commands, sorted by name."""
        return [self._commands[n] for n in self.names()]

    def get_metadata(self, name: str) -> dict[str, Any]:
        """Name, description, examples and source of a command."""
        command = self.get(name)
        return {
            "name": command.name,
            "description": command.description,
            "examples": list(getattr(command, "examples", ())),
            "default_verbosity": command_verbosity(command),
            "source": self._sources[name],
        }

    def get_command_help(self, name: str) -> str:
        """Plain-text help for a command."""
        meta = self.get_metadata(name)
        lines = [f"{meta['name']} - {meta['description']}"]
        if meta["examples"]:
            lines.append("")
            lines.append("Examples:")
            lines.extend(f"  {example}" for example in meta["examples"])
        if meta["default_verbosity"] is not None:
            lines.append("")
            lines.append(f"Default verbosity: {meta['default_verbosity'].name.lower()}")
        if meta["source"] != "builtin":
            lines.append("")
            lines.append(f"Source: {meta['source']}")
        return "\n".join(lines)

    def unregister(self, name: str) -> bool:
        """Remove a command.  Returns False if it was not registered."""
        if name in self._commands:
            del self._commands[name]
            del self._sources[name]
            return True
        return False

    def clear(self) -> None:
        """Clear all commands (for testing)."""
        self._commands.clear()
        self._sources.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)


# === GLOBAL DEFAULT REGISTRY ===

_default_registry: CommandRegistry | None = None


def get_default_registry() -> CommandRegistry:
    """Get the global default registry.

    Creates it lazily on first access.
    """
    global _default_registry
    if _default_registry is None:
        _default_registry = CommandRegistry()
    return _default_registry


def reset_default_registry() -> None:
    """Reset the global registry (for testing)."""
    global _default_registry
    _default_registry = None


# === DECORATOR API ===


def register_command(registry: CommandRegistry | None = None, *, replace: bool = False):
    """Class decorator that instantiates a command and registers it.

    Example:
        >>> @register_command()
        ... class Shout:
        ...     name = "shout"
        ...     description = "Upper-case a value"
        ...     examples = []
        ...     async def execute(self, args, refs, context): ...
    """

    def decorator(cls: type) -> type:
        target = registry or get_default_registry()
        target.register(cls(), source=inspect.getsourcefile(cls) or "builtin", replace=replace)
        return cls

    return decorator
