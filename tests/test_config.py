"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest

from sclscan.config import LintConfig, get_config, reset_config, write_default_config
from sclscan.errors import ConfigError, SclScanError


def write_yaml(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    """No config file present."""

    def test_defaults(self):
        config = LintConfig()
        assert config.config_path is None
        assert config.disabled_rules == []
        assert config.naming_prefixes == {"FUNCTION_BLOCK": "FB_", "FUNCTION": "FC_", "DATA_BLOCK": "DB_"}
        assert config.allowed_name_prefixes == ["UDT_"]
        assert config.file_patterns == ["*.scl"]
        assert config.debounce_seconds == 0.5
        assert config.indent_size == 4
        assert config.uppercase_keywords is True

    def test_defaults_not_shared(self):
        first = LintConfig()
        first.disabled_rules.append("SCL101")
        assert LintConfig().is_rule_enabled("SCL101")

    def test_to_dict(self):
        data = LintConfig().to_dict()
        assert data["config_file"] is None
        assert data["debounce_ms"] == 500


class TestYamlFile:
    """Loading from a file."""

    def test_search_path(self, tmp_path):
        # conftest points the search path at tmp_path/.sclscan.yaml
        path = write_yaml(tmp_path / ".sclscan.yaml", "disabled_rules: [SCL103]\nindent_size: 2\n")
        config = LintConfig()
        assert config.config_path == path
        assert not config.is_rule_enabled("SCL103")
        assert config.indent_size == 2

    def test_explicit_path(self, tmp_path):
        path = write_yaml(tmp_path / "custom.yaml", "severity_overrides:\n  SCL101: HINT\n")
        config = LintConfig(path)
        assert config.severity_overrides == {"SCL101": "hint"}

    def test_explicit_path_missing(self, tmp_path):
        with pytest.raises(ConfigError, match="config file not found"):
            LintConfig(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path):
        path = write_yaml(tmp_path / "empty.yaml", "")
        assert LintConfig(path).disabled_rules == []

    def test_invalid_yaml(self, tmp_path):
        path = write_yaml(tmp_path / "bad.yaml", "disabled_rules: [SCL101\n")
        with pytest.raises(ConfigError, match="invalid YAML"):
            LintConfig(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = write_yaml(tmp_path / "list.yaml", "- SCL101\n")
        with pytest.raises(ConfigError, match="mapping"):
            LintConfig(path)

    def test_wrong_type(self, tmp_path):
        path = write_yaml(tmp_path / "type.yaml", "indent_size: four\n")
        with pytest.raises(ConfigError, match="indent_size must be int"):
            LintConfig(path)

    def test_bool_is_not_int(self, tmp_path):
        path = write_yaml(tmp_path / "bool.yaml", "debounce_ms: true\n")
        with pytest.raises(ConfigError):
            LintConfig(path)

    def test_unknown_severity(self, tmp_path):
        path = write_yaml(tmp_path / "sev.yaml", "severity_overrides:\n  SCL101: loud\n")
        with pytest.raises(ConfigError, match="unknown severity"):
            LintConfig(path)

    def test_unknown_key_ignored(self, tmp_path):
        path = write_yaml(tmp_path / "extra.yaml", "colour: blue\n")
        assert LintConfig(path).config_path == path

    def test_error_names_file(self, tmp_path):
        path = write_yaml(tmp_path / "type.yaml", "file_patterns: '*.scl'\n")
        with pytest.raises(SclScanError) as excinfo:
            LintConfig(path)
        assert excinfo.value.path == path
        assert str(path) in str(excinfo.value)


class TestOverrides:
    """Environment and keyword overrides."""

    def test_env_cache_path(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCLSCAN_CACHE_PATH", str(tmp_path / "c.db"))
        assert LintConfig().cache_path == tmp_path / "c.db"

    def test_env_debounce(self, monkeypatch):
        monkeypatch.setenv("SCLSCAN_DEBOUNCE_MS", "250")
        assert LintConfig().debounce_seconds == 0.25

    def test_env_debounce_invalid(self, monkeypatch):
        monkeypatch.setenv("SCLSCAN_DEBOUNCE_MS", "soon")
        with pytest.raises(ConfigError):
            LintConfig()

    def test_env_beats_file(self, monkeypatch, tmp_path):
        write_yaml(tmp_path / ".sclscan.yaml", "debounce_ms: 100\n")
        monkeypatch.setenv("SCLSCAN_DEBOUNCE_MS", "900")
        assert LintConfig().debounce_seconds == 0.9

    def test_keyword_overrides(self):
        config = LintConfig(overrides={"uppercase_keywords": False})
        assert config.uppercase_keywords is False


class TestGlobalConfig:
    """get_config / reset_config."""

    def test_cached(self):
        assert get_config() is get_config()

    def test_reset(self):
        first = get_config()
        reset_config()
        assert get_config() is not first

    def test_explicit_path_reloads(self, tmp_path):
        first = get_config()
        path = write_yaml(tmp_path / "custom.yaml", "indent_size: 3\n")
        second = get_config(path)
        assert second is not first
        assert second.indent_size == 3
        assert get_config() is second


class TestWriteDefault:
    """Default file generation."""

    def test_round_trip(self, tmp_path):
        path = write_default_config(tmp_path / "nested" / "config.yaml")
        assert path.is_file()

        config = LintConfig(path)
        defaults = LintConfig()
        for key in ("disabled_rules", "naming_prefixes", "allowed_name_prefixes",
                    "file_patterns", "indent_size", "uppercase_keywords"):
            assert getattr(config, key) == getattr(defaults, key)
        assert config.debounce_seconds == defaults.debounce_seconds
