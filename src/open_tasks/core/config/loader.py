"""
Config-file discovery and loading.

Manifesto:
    Configuration cascading must be predictable and debuggable.  This
    module implements a strict load order with no hidden magic: the
    project file overrides the user file, and real environment variables
    (applied later by :class:`~open_tasks.core.config.settings.OpenTasksSettings`)
    always win.

Implements the cascading load order::

    ~/.open-tasks/.config.json  →  <project>/.open-tasks/.config.json  →  env vars

Keys may be written in camelCase (``outputDir``) or snake_case
(``output_dir``); both are normalised to snake_case.

Tags:
    open-tasks, configuration, config-files, cascading, loader

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from open_tasks.core.errors import ConfigError
from open_tasks.framework.logging import get_logger

logger = get_logger(__name__)

STATE_DIR_NAME = ".open-tasks"
CONFIG_FILE_NAME = ".config.json"

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

# Singular spellings accepted for list-valued settings.
KEY_ALIASES = {
    "custom_commands_dir": "custom_commands_dirs",
}


def find_project_root(start: Path | None = None) -> Path:
    """Walk upward from *start* to find the project root.

    Recognised root markers (checked in order):

    * ``.open-tasks`` directory
    * ``pyproject.toml``
    * ``.git`` directory

    Falls back to *start* (or cwd) when no marker is found.
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        if (directory / STATE_DIR_NAME).is_dir():
            return directory
        if (directory / "pyproject.toml").exists():
            return directory
        if (directory / ".git").exists():
            return directory
    return current


def discover_config_files(
    project_root: Path | None = None,
    home: Path | None = None,
) -> list[Path]:
    """Return the config files that exist on disk, lowest priority first.

    Load order:

    1. ``~/.open-tasks/.config.json``
    2. ``<project_root>/.open-tasks/.config.json``
    """
    root = project_root or find_project_root()
    home_dir = home or Path.home()

    candidates = [
        home_dir / STATE_DIR_NAME / CONFIG_FILE_NAME,
        root / STATE_DIR_NAME / CONFIG_FILE_NAME,
    ]
    found: list[Path] = []
    for path in candidates:
        if path.is_file() and path.resolve() not in {p.resolve() for p in found}:
            found.append(path)
    return found


def to_snake_case(key: str) -> str:
    """``outputDir`` → ``output_dir``; snake_case keys pass through."""
    return _CAMEL_RE.sub("_", key).lower()


def normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Normalise top-level keys to snake_case.

    Nested mappings (per-command config) keep their keys as written.
    """
    result = {}
    for key, value in data.items():
        name = to_snake_case(key)
        result[KEY_ALIASES.get(name, name)] = value
    return result


def load_config_file(path: Path) -> dict[str, Any]:
    """Parse one JSON config file.

    Raises:
        ConfigError: If the file is unreadable, not JSON, or not an object
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}", cause=e).with_context(path=str(path))

    try:
        data = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {path}: {e}", cause=e).with_context(path=str(path))

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object").with_context(path=str(path))

    return normalize_keys(data)


def load_config_files(paths: list[Path]) -> dict[str, Any]:
    """Merge config files in order; later files override earlier keys.

    The ``commands`` section is merged per command so a project file can
    override one command's settings without repeating the others.
    """
    merged: dict[str, Any] = {}
    for path in paths:
        data = load_config_file(path)
        logger.debug("config.file_loaded", path=str(path), keys=sorted(data))
        commands = data.pop("commands", None)
        merged.update(data)
        if commands is not None:
            if not isinstance(commands, dict):
                raise ConfigError(f"'commands' in {path} must be an object").with_context(path=str(path))
            existing = dict(merged.get("commands", {}))
            for name, section in commands.items():
                existing[name] = {**existing.get(name, {}), **(section or {})}
            merged["commands"] = existing
    return merged


def write_default_config(project_root: Path, data: dict[str, Any]) -> Path:
    """Write *data* as the project config file, refusing to overwrite."""
    path = project_root / STATE_DIR_NAME / CONFIG_FILE_NAME
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with path.open("x", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
    except FileExistsError as e:
        raise ConfigError(f"Config file already exists: {path}", cause=e).with_context(path=str(path))
    return path
