"""
Centralized settings for open-tasks.

Manifesto:
    One validated, cached settings object replaces scattered lookups of
    the same environment variables and config files.
    ``OpenTasksSettings`` cooperates with the config-file loader to
    resolve values in a single place.

:class:`OpenTasksSettings` merges the JSON config cascade from
:mod:`~open_tasks.core.config.loader` with ``OPEN_TASKS_*`` environment
variables.  Environment variables win over files.

Tags:
    open-tasks, configuration, settings, pydantic, caching, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, PrivateAttr, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from open_tasks.core.errors import ConfigError

VerbosityName = Literal["quiet", "summary", "verbose"]
TokenPolicyName = Literal["overwrite", "reject"]


class OpenTasksSettings(BaseSettings):
    """open-tasks centralized configuration.

    All fields can be set via ``OPEN_TASKS_*`` environment variables (e.g.
    ``OPEN_TASKS_TOKEN_POLICY=reject``) or through ``.config.json`` files.
    """

    model_config = SettingsConfigDict(
        env_prefix="OPEN_TASKS_",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # ── Paths ────────────────────────────────────────────────────
    output_dir: str = Field(default=".open-tasks/outputs", description="Root for per-invocation output dirs")
    custom_commands_dirs: list[str] = Field(
        default=[".open-tasks/commands", "~/.open-tasks/commands"],
        description="Directories scanned for plugin command modules",
    )

    # ── Output ───────────────────────────────────────────────────
    default_verbosity: VerbosityName = Field(default="summary")
    default_file_extension: str = Field(default="txt", description="Extension for default text file names")

    # ── References ───────────────────────────────────────────────
    token_policy: TokenPolicyName = Field(default="overwrite", description="Duplicate-token behaviour")

    # ── Execution ────────────────────────────────────────────────
    command_timeout_seconds: float | None = Field(default=None, gt=0)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="WARNING")
    log_format: Literal["json", "console"] = Field(default="console")

    # ── Per-command configuration ────────────────────────────────
    commands: dict[str, dict[str, Any]] = Field(default_factory=dict)

    _project_root: Path | None = PrivateAttr(default=None)
    _config_files: list[Path] = PrivateAttr(default_factory=list)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Config-file values arrive as init kwargs; env vars must beat them.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError(f"Invalid log level: {v!r}")
        return level

    @field_validator("custom_commands_dirs", mode="before")
    @classmethod
    def _wrap_single_dir(cls, v: Any) -> Any:
        return [v] if isinstance(v, str) else v

    @field_validator("default_file_extension")
    @classmethod
    def _strip_dot(cls, v: str) -> str:
        return v.lstrip(".") or "txt"

    # ── Derived properties ───────────────────────────────────────

    @property
    def project_root(self) -> Path:
        return self._project_root or Path.cwd()

    @property
    def config_files(self) -> list[Path]:
        return list(self._config_files)

    def resolve_output_dir(self, root: Path | None = None) -> Path:
        """Absolute output root, relative paths anchored at the project root."""
        path = Path(self.output_dir).expanduser()
        return path if path.is_absolute() else (root or self.project_root) / path

    def resolve_commands_dirs(self, root: Path | None = None) -> list[Path]:
        """Absolute plugin directories, in configured order."""
        base = root or self.project_root
        result = []
        for entry in self.custom_commands_dirs:
            path = Path(entry).expanduser()
            result.append(path if path.is_absolute() else base / path)
        return result

    def command_config(self, name: str) -> dict[str, Any]:
        """Configuration section for a single command (may be empty)."""
        return dict(self.commands.get(name, {}))


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, OpenTasksSettings] = {}


def get_settings(
    *,
    project_root: Path | None = None,
    home: Path | None = None,
    _force_reload: bool = False,
) -> OpenTasksSettings:
    """Load, validate, and cache an :class:`OpenTasksSettings` instance.

    Parameters
    ----------
    project_root:
        Override the auto-detected project root.
    home:
        Override the user home directory (for tests).
    _force_reload:
        Bypass cache and reload from disk.

    Raises
    ------
    ConfigError
        If a config file is malformed or a value fails validation.
    """
    from .loader import discover_config_files, find_project_root, load_config_files

    root = (project_root or find_project_root()).resolve()
    cache_key = f"{root}:{home or ''}"

    if not _force_reload and cache_key in _settings_cache:
        return _settings_cache[cache_key]

    config_files = discover_config_files(root, home)
    file_values = load_config_files(config_files)

    try:
        settings = OpenTasksSettings(**file_values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", cause=e) from e

    settings._project_root = root
    settings._config_files = config_files

    _settings_cache[cache_key] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
