"""
sclscan Configuration

Loads configuration from a YAML file or environment variables.
Controls which lint rules run, their severities, naming conventions and
the formatter/watcher/cache settings.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from sclscan.errors import ConfigError

logger = logging.getLogger(__name__)


# Configuration file locations (checked in order)
CONFIG_SEARCH_PATHS = [
    Path(".sclscan.yaml"),
    Path.home() / ".sclscan" / "config.yaml",
]


DEFAULT_CONFIG: Dict[str, Any] = {
    # Lint settings
    "disabled_rules": [],              # e.g. ["SCL103", "SCL201"]
    "severity_overrides": {},          # e.g. {"SCL101": "hint"}
    "naming_prefixes": {
        "FUNCTION_BLOCK": "FB_",
        "FUNCTION": "FC_",
        "DATA_BLOCK": "DB_",
    },
    "allowed_name_prefixes": ["UDT_"],
    "file_patterns": ["*.scl"],

    # Watcher: quiet window before a changed file is re-linted
    "debounce_ms": 500,

    # Result cache
    "cache_path": str(Path.home() / ".sclscan" / "cache.db"),

    # Formatter
    "indent_size": 4,
    "uppercase_keywords": True,
}

_EXPECTED_TYPES = {
    "disabled_rules": list,
    "severity_overrides": dict,
    "naming_prefixes": dict,
    "allowed_name_prefixes": list,
    "file_patterns": list,
    "debounce_ms": int,
    "cache_path": str,
    "indent_size": int,
    "uppercase_keywords": bool,
}

SEVERITY_NAMES = ("error", "warning", "info", "hint")


class LintConfig:
    """Configuration for scanning, linting and formatting."""

    def __init__(self, config_path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None):
        self._config: Dict[str, Any] = {
            key: (value.copy() if isinstance(value, (dict, list)) else value)
            for key, value in DEFAULT_CONFIG.items()
        }
        self._config_path: Optional[Path] = None

        # Load from file if found
        self._load_config(config_path)

        # Override with environment variables
        self._apply_env_overrides()

        if overrides:
            self._merge(overrides, source=None)

    def _load_config(self, explicit_path: Optional[Path] = None) -> None:
        """Load configuration from YAML file."""
        if explicit_path is not None and not Path(explicit_path).exists():
            raise ConfigError("config file not found", explicit_path)

        search_paths = [Path(explicit_path)] if explicit_path else CONFIG_SEARCH_PATHS

        for config_path in search_paths:
            if not config_path.exists():
                continue
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    user_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"invalid YAML: {e}", config_path) from e
            if not isinstance(user_config, dict):
                raise ConfigError("top level must be a mapping", config_path)
            self._merge(user_config, source=config_path)
            self._config_path = config_path
            logger.info("Loaded config from %s", config_path)
            return

    def _merge(self, values: Dict[str, Any], source: Optional[Path]) -> None:
        for key, value in values.items():
            if key not in DEFAULT_CONFIG:
                logger.warning("Ignoring unknown config key %r", key)
                continue
            expected = _EXPECTED_TYPES[key]
            # bool is an int subclass; don't let "debounce_ms: true" through
            if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
                raise ConfigError(
                    f"{key} must be {expected.__name__}, got {type(value).__name__}", source
                )
            self._config[key] = value

        for code, severity in self._config["severity_overrides"].items():
            if str(severity).lower() not in SEVERITY_NAMES:
                raise ConfigError(f"unknown severity {severity!r} for {code}", source)

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        if "SCLSCAN_CACHE_PATH" in os.environ:
            self._config["cache_path"] = os.environ["SCLSCAN_CACHE_PATH"]

        if "SCLSCAN_DEBOUNCE_MS" in os.environ:
            raw = os.environ["SCLSCAN_DEBOUNCE_MS"]
            try:
                self._config["debounce_ms"] = int(raw)
            except ValueError as e:
                raise ConfigError(f"SCLSCAN_DEBOUNCE_MS must be an integer, got {raw!r}") from e

    @property
    def config_path(self) -> Optional[Path]:
        """Path to loaded config file, or None if using defaults."""
        return self._config_path

    @property
    def disabled_rules(self) -> List[str]:
        return list(self._config["disabled_rules"])

    @property
    def severity_overrides(self) -> Dict[str, str]:
        return {code: str(sev).lower() for code, sev in self._config["severity_overrides"].items()}

    @property
    def naming_prefixes(self) -> Dict[str, str]:
        return dict(self._config["naming_prefixes"])

    @property
    def allowed_name_prefixes(self) -> List[str]:
        return list(self._config["allowed_name_prefixes"])

    @property
    def file_patterns(self) -> List[str]:
        return list(self._config["file_patterns"])

    @property
    def debounce_seconds(self) -> float:
        """Watcher quiet window in seconds."""
        return self._config["debounce_ms"] / 1000.0

    @property
    def cache_path(self) -> Path:
        return Path(self._config["cache_path"]).expanduser()

    @property
    def indent_size(self) -> int:
        return self._config["indent_size"]

    @property
    def uppercase_keywords(self) -> bool:
        return self._config["uppercase_keywords"]

    def is_rule_enabled(self, code: str) -> bool:
        return code not in self._config["disabled_rules"]

    def to_dict(self) -> Dict[str, Any]:
        """Export current configuration as dict."""
        data = dict(self._config)
        data["config_file"] = str(self._config_path) if self._config_path else None
        return data


# Global config instance (lazy-loaded)
_config: Optional[LintConfig] = None


def get_config(config_path: Optional[Path] = None) -> LintConfig:
    """Get the global config instance, loading if needed."""
    global _config
    if _config is None or config_path is not None:
        _config = LintConfig(config_path)
    return _config


def reset_config() -> None:
    """Drop the cached global config (next get_config() reloads)."""
    global _config
    _config = None


def write_default_config(path: Optional[Path] = None) -> Path:
    """
    Write a default configuration file.

    Returns the path where config was written.
    """
    if path is None:
        path = Path.home() / ".sclscan" / "config.yaml"

    path.parent.mkdir(parents=True, exist_ok=True)

    config_content = """# sclscan configuration
#
# Place this file at ./.sclscan.yaml (per project) or ~/.sclscan/config.yaml.
# SCLSCAN_CACHE_PATH and SCLSCAN_DEBOUNCE_MS environment variables override it.

# Rule codes to skip entirely
disabled_rules: []
#  - SCL103   # missing S7_Optimized_Access pragma
#  - SCL201   # naming convention

# Per-rule severity (error / warning / info / hint)
severity_overrides: {}
#  SCL101: hint

# Expected block name prefixes (SCL201)
naming_prefixes:
  FUNCTION_BLOCK: "FB_"
  FUNCTION: "FC_"
  DATA_BLOCK: "DB_"

# Names with these prefixes are always accepted
allowed_name_prefixes:
  - "UDT_"

# Files picked up when linting or watching a directory
file_patterns:
  - "*.scl"

# Watcher quiet window in milliseconds
debounce_ms: 500

# Result cache (sqlite)
# cache_path: "~/.sclscan/cache.db"

# Formatter
indent_size: 4
uppercase_keywords: true
"""

    with open(path, "w", encoding="utf-8") as f:
        f.write(config_content)

    return path
