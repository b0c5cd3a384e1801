# CUI // SP-CTI
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

"""Tests for tools.codemod.config — YAML config loading and CLI overrides."""

import pytest
import yaml

from tools.codemod.config import (
    BASE_DIR,
    DEFAULT_CONFIG_PATH,
    DEFAULTS,
    apply_overrides,
    load_config,
    load_settings,
    settings_from_config,
)
from tools.codemod.errors import ConfigurationError


def _write_config(tmp_path, data):
    path = tmp_path / "codemod_config.yaml"
    path.write_text(yaml.dump(data, default_flow_style=False), encoding="utf-8")
    return path


class TestLoadConfig:
    """load_config: YAML merged over built-in defaults."""

    def test_shipped_config_parses(self):
        assert DEFAULT_CONFIG_PATH.exists()
        config = load_config()
        assert config["codemod"]["max_passes"] >= 1
        assert ".tsx" in config["codemod"]["extensions"]

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = _write_config(tmp_path, {"codemod": {"max_passes": 5}})
        config = load_config(str(path))
        assert config["codemod"]["max_passes"] == 5
        assert config["codemod"]["roots"] == DEFAULTS["codemod"]["roots"]
        assert config["type_check"]["enabled"] is False

    def test_empty_file_is_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(str(path)) == DEFAULTS

    def test_explicit_missing_path_raises(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("codemod: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(str(path))

    def test_non_mapping_section_raises(self, tmp_path):
        path = _write_config(tmp_path, {"codemod": ["src"]})
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(str(path))
        assert exc_info.value.config_key == "codemod"

    def test_non_mapping_root_raises(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(str(path))


class TestSettingsFromConfig:
    """settings_from_config: flattening and path resolution."""

    def test_paths_resolve_against_project_dir(self, tmp_path):
        settings = settings_from_config(load_config(), project_dir=str(tmp_path))
        assert settings.roots == [str(tmp_path.resolve() / "src")]
        assert settings.progress_log_path == str(tmp_path.resolve() / "TYPESCRIPT-ERROR-PROGRESS.md")

    def test_catalog_falls_back_to_tool_tree(self, tmp_path):
        settings = settings_from_config(load_config(), project_dir=str(tmp_path))
        assert settings.catalog_path == str(BASE_DIR / "context" / "codemod" / "pattern_catalog.json")

    def test_catalog_prefers_project_copy(self, tmp_path):
        local = tmp_path / "context" / "codemod" / "pattern_catalog.json"
        local.parent.mkdir(parents=True)
        local.write_text("{}", encoding="utf-8")
        settings = settings_from_config(load_config(), project_dir=str(tmp_path))
        assert settings.catalog_path == str(tmp_path.resolve() / "context" / "codemod" / "pattern_catalog.json")

    def test_extensions_get_leading_dot(self, tmp_path):
        config = load_config()
        config["codemod"]["extensions"] = ["ts", ".tsx"]
        settings = settings_from_config(config, project_dir=str(tmp_path))
        assert settings.extensions == [".ts", ".tsx"]

    def test_string_command_is_split(self, tmp_path):
        config = load_config()
        config["type_check"]["command"] = "npx tsc --noEmit -p ."
        settings = settings_from_config(config, project_dir=str(tmp_path))
        assert settings.type_check_command == ["npx", "tsc", "--noEmit", "-p", "."]

    def test_zero_passes_rejected(self, tmp_path):
        config = load_config()
        config["codemod"]["max_passes"] = 0
        with pytest.raises(ConfigurationError):
            settings_from_config(config, project_dir=str(tmp_path))

    def test_non_numeric_rejected(self, tmp_path):
        config = load_config()
        config["codemod"]["max_file_size"] = "big"
        with pytest.raises(ConfigurationError):
            settings_from_config(config, project_dir=str(tmp_path))


class TestOverrides:
    """apply_overrides / load_settings: CLI flags over the file."""

    def test_none_values_ignored(self, tmp_path):
        base = load_settings(project_dir=str(tmp_path))
        updated = apply_overrides(base, dry_run=None, roots=None)
        assert updated.roots == base.roots
        assert updated.dry_run is False

    def test_roots_resolved(self, tmp_path):
        settings = load_settings(project_dir=str(tmp_path), roots=["app", "lib"])
        assert settings.roots == [str(tmp_path.resolve() / "app"), str(tmp_path.resolve() / "lib")]

    def test_original_not_mutated(self, tmp_path):
        base = load_settings(project_dir=str(tmp_path))
        before = base.max_passes
        updated = apply_overrides(base, max_passes=before + 4)
        assert updated.max_passes == before + 4
        assert base.max_passes == before

    def test_unknown_key_raises(self, tmp_path):
        base = load_settings(project_dir=str(tmp_path))
        with pytest.raises(ConfigurationError):
            apply_overrides(base, no_such_setting=True)

    def test_flags_applied(self, tmp_path):
        settings = load_settings(project_dir=str(tmp_path), dry_run=True, show_diff=True,
                                 extensions=["tsx"])
        assert settings.dry_run is True
        assert settings.show_diff is True
        assert settings.extensions == [".tsx"]

    def test_to_dict_roundtrips_keys(self, tmp_path):
        data = load_settings(project_dir=str(tmp_path)).to_dict()
        assert {"roots", "catalog_path", "max_passes", "module_patterns"} <= set(data)
