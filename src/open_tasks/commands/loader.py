"""
Plugin command discovery.

Scans configured directories for ``*.py`` files and registers every
command each one defines.  A module contributes commands through either

* a module-level ``COMMANDS`` list of command objects, or
* classes defined in the module that satisfy the command contract and
  take no constructor arguments.

A file that fails to import or defines a malformed command is skipped
with a warning; one broken plugin never stops the rest from loading.
Later directories override earlier ones, and plugins override
built-ins of the same name.
"""

from __future__ import annotations

import importlib.util
import inspect
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any

from open_tasks.commands.registry import CommandRegistry, validate_command
from open_tasks.core.errors import CommandError
from open_tasks.framework.logging import get_logger

logger = get_logger(__name__)

PLUGIN_PACKAGE = "open_tasks_plugins"


@dataclass
class LoadReport:
    """What one loader pass registered and what it skipped."""

    loaded: list[str] = field(default_factory=list)
    errors: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _looks_like_command(obj: Any) -> bool:
    return all(hasattr(obj, attr) for attr in ("name", "description", "execute"))


class CommandLoader:
    """Loads plugin commands into a registry."""

    def __init__(self, registry: CommandRegistry):
        self.registry = registry

    def load_from_directories(self, directories: Iterable[Path]) -> LoadReport:
        report = LoadReport()
        for directory in directories:
            self.load_from_directory(directory, report)
        return report

    def load_from_directory(self, directory: Path, report: LoadReport | None = None) -> LoadReport:
        report = report if report is not None else LoadReport()
        directory = Path(directory)
        if not directory.is_dir():
            logger.debug("loader.directory_not_found", path=str(directory))
            return report

        for path in sorted(directory.glob("*.py")):
            if path.name.startswith("_"):
                continue
            try:
                module = self._import(path)
                for command in self._commands_in(module):
                    self.registry.register(command, source=str(path), replace=True)
                    report.loaded.append(command.name)
            except Exception as e:
                logger.warning("loader.file_error", path=str(path), error=str(e))
                report.errors.append((path, str(e)))

        logger.info(
            "loader.directory_loaded",
            directory=str(directory),
            loaded=len(report.loaded),
            errors=len(report.errors),
        )
        return report

    def _import(self, path: Path) -> ModuleType:
        module_name = f"{PLUGIN_PACKAGE}.{path.stem}_{abs(hash(str(path.resolve()))):x}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise CommandError(f"Cannot load module from {path}")
        module = importlib.util.module_from_spec(spec)
        # Registered so dataclasses and pickling can resolve __module__.
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        return module

    def _commands_in(self, module: ModuleType) -> list[Any]:
        explicit = getattr(module, "COMMANDS", None)
        if explicit is not None:
            commands = list(explicit)
        else:
            commands = []
            for _, obj in inspect.getmembers(module, inspect.isclass):
                if obj.__module__ != module.__name__ or not _looks_like_command(obj):
                    continue
                commands.append(obj())

        for command in commands:
            validate_command(command)
        if not commands:
            raise CommandError(f"No commands found in {module.__file__}")
        return commands
