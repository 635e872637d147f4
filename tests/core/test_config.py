"""Tests for open_tasks.core.config: config cascade and settings."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from open_tasks.core.config import (
    OpenTasksSettings,
    discover_config_files,
    find_project_root,
    get_settings,
    load_config_file,
    load_config_files,
    normalize_keys,
    to_snake_case,
    write_default_config,
)
from open_tasks.core.errors import ConfigError


def _write_config(base: Path, data) -> Path:
    path = base / ".open-tasks" / ".config.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")
    return path


# ── Loader ───────────────────────────────────────────────────────────────


class TestKeyNormalisation:
    def test_camel_case(self):
        assert to_snake_case("outputDir") == "output_dir"
        assert to_snake_case("output_dir") == "output_dir"

    def test_singular_commands_dir_alias(self):
        assert normalize_keys({"customCommandsDir": ["x"]}) == {"custom_commands_dirs": ["x"]}

    def test_nested_keys_untouched(self):
        data = normalize_keys({"commands": {"extract": {"maxMatches": 3}}})
        assert data == {"commands": {"extract": {"maxMatches": 3}}}


class TestFindProjectRoot:
    def test_state_dir_marker(self, tmp_path):
        (tmp_path / ".open-tasks").mkdir()
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_project_root(nested) == tmp_path.resolve()

    def test_pyproject_marker(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text("", encoding="utf-8")
        nested = tmp_path / "src"
        nested.mkdir()
        assert find_project_root(nested) == tmp_path.resolve()


class TestDiscoverConfigFiles:
    def test_home_before_project(self, tmp_path):
        home, root = tmp_path / "home", tmp_path / "root"
        user_file = _write_config(home, {})
        project_file = _write_config(root, {})
        assert discover_config_files(root, home) == [user_file, project_file]

    def test_missing_files_skipped(self, tmp_path):
        assert discover_config_files(tmp_path / "root", tmp_path / "home") == []

    def test_same_file_counted_once(self, tmp_path):
        path = _write_config(tmp_path, {})
        assert discover_config_files(tmp_path, tmp_path) == [path]


class TestLoadConfig:
    def test_invalid_json(self, tmp_path):
        path = _write_config(tmp_path, "{not json")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config_file(path)

    def test_non_object(self, tmp_path):
        path = _write_config(tmp_path, "[1, 2]")
        with pytest.raises(ConfigError, match="JSON object"):
            load_config_file(path)

    def test_empty_file_is_empty_config(self, tmp_path):
        assert load_config_file(_write_config(tmp_path, "")) == {}

    def test_project_overrides_user_and_merges_commands(self, tmp_path):
        user = _write_config(
            tmp_path / "home",
            {"outputDir": "user-out", "commands": {"extract": {"a": 1}, "replace": {"b": 2}}},
        )
        project = _write_config(tmp_path / "root", {"outputDir": "proj-out", "commands": {"extract": {"c": 3}}})
        merged = load_config_files([user, project])
        assert merged["output_dir"] == "proj-out"
        assert merged["commands"] == {"extract": {"a": 1, "c": 3}, "replace": {"b": 2}}

    def test_write_default_config_refuses_overwrite(self, tmp_path):
        path = write_default_config(tmp_path, {"outputDir": "out"})
        assert json.loads(path.read_text(encoding="utf-8")) == {"outputDir": "out"}
        with pytest.raises(ConfigError, match="already exists"):
            write_default_config(tmp_path, {})


# ── Settings ─────────────────────────────────────────────────────────────


class TestSettings:
    def test_defaults(self):
        settings = OpenTasksSettings()
        assert settings.output_dir == ".open-tasks/outputs"
        assert settings.default_verbosity == "summary"
        assert settings.token_policy == "overwrite"
        assert settings.command_timeout_seconds is None
        assert settings.log_level == "WARNING"

    def test_single_commands_dir_string(self):
        settings = OpenTasksSettings(custom_commands_dirs="plugins")
        assert settings.custom_commands_dirs == ["plugins"]

    def test_log_level_normalised(self):
        assert OpenTasksSettings(log_level="debug").log_level == "DEBUG"

    def test_extension_dot_stripped(self):
        assert OpenTasksSettings(default_file_extension=".md").default_file_extension == "md"

    def test_env_overrides_init(self, monkeypatch):
        monkeypatch.setenv("OPEN_TASKS_TOKEN_POLICY", "reject")
        assert OpenTasksSettings(token_policy="overwrite").token_policy == "reject"

    def test_resolve_paths_relative_to_root(self, tmp_path):
        settings = OpenTasksSettings(output_dir="out", custom_commands_dirs=["cmds", str(tmp_path / "abs")])
        assert settings.resolve_output_dir(tmp_path) == tmp_path / "out"
        assert settings.resolve_commands_dirs(tmp_path) == [tmp_path / "cmds", tmp_path / "abs"]

    def test_command_config(self):
        settings = OpenTasksSettings(commands={"extract": {"flags": "i"}})
        assert settings.command_config("extract") == {"flags": "i"}
        assert settings.command_config("store") == {}


class TestGetSettings:
    def test_loads_cascade(self, tmp_path):
        home, root = tmp_path / "home", tmp_path / "root"
        _write_config(home, {"defaultVerbosity": "verbose", "outputDir": "home-out"})
        _write_config(root, {"outputDir": "proj-out", "customCommandsDir": "plugins"})

        settings = get_settings(project_root=root, home=home)
        assert settings.default_verbosity == "verbose"
        assert settings.output_dir == "proj-out"
        assert settings.custom_commands_dirs == ["plugins"]
        assert settings.project_root == root.resolve()
        assert len(settings.config_files) == 2

    def test_env_beats_files(self, tmp_path, monkeypatch):
        _write_config(tmp_path, {"outputDir": "from-file"})
        monkeypatch.setenv("OPEN_TASKS_OUTPUT_DIR", "from-env")
        assert get_settings(project_root=tmp_path, home=tmp_path / "h").output_dir == "from-env"

    def test_cached(self, tmp_path):
        first = get_settings(project_root=tmp_path, home=tmp_path / "h")
        assert get_settings(project_root=tmp_path, home=tmp_path / "h") is first
        assert get_settings(project_root=tmp_path, home=tmp_path / "h", _force_reload=True) is not first

    def test_invalid_value_is_config_error(self, tmp_path):
        _write_config(tmp_path, {"tokenPolicy": "sometimes"})
        with pytest.raises(ConfigError, match="Invalid configuration"):
            get_settings(project_root=tmp_path, home=tmp_path / "h")
