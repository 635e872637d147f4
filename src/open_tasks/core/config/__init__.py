"""
Configuration for open-tasks.

Usage::

    from open_tasks.core.config import get_settings

    settings = get_settings()
    settings.resolve_output_dir()   # <project>/.open-tasks/outputs
    settings.token_policy           # "overwrite" | "reject"
"""

from open_tasks.core.config.loader import (
    CONFIG_FILE_NAME,
    STATE_DIR_NAME,
    discover_config_files,
    find_project_root,
    load_config_file,
    load_config_files,
    normalize_keys,
    to_snake_case,
    write_default_config,
)
from open_tasks.core.config.settings import OpenTasksSettings, clear_settings_cache, get_settings

__all__ = [
    "OpenTasksSettings",
    "get_settings",
    "clear_settings_cache",
    "find_project_root",
    "discover_config_files",
    "load_config_file",
    "load_config_files",
    "normalize_keys",
    "to_snake_case",
    "write_default_config",
    "STATE_DIR_NAME",
    "CONFIG_FILE_NAME",
]
