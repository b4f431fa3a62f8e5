"""Configuration management for Chorus."""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from chorus.errors import InvalidConfigError

from .settings import (
    DelayBand,
    GroupDefaultsConfig,
    LoggingConfig,
    OrchestrationConfig,
    ResponseDelaysConfig,
    Settings,
)

# Singleton instance
_settings: Optional[Settings] = None

# Default config directory
CONFIG_DIR = Path.home() / ".chorus"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

SETTINGS_SECTIONS = ("orchestration", "group_defaults", "logging")


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${ENV_VAR} syntax in strings."""
    if isinstance(value, str):
        pattern = r"\$\{([^}]+)\}"
        matches = re.findall(pattern, value)
        for var_name in matches:
            env_value = os.environ.get(var_name, "")
            value = value.replace(f"${{{var_name}}}", env_value)
        return value if value else None
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_file(path: Path) -> dict:
    """Load a YAML file and return its contents."""
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        content = yaml.safe_load(f)
        return content if content else {}


def _transform_config_to_settings(config: dict) -> dict:
    """Keep only the sections the Settings model knows about."""
    return {section: config[section] for section in SETTINGS_SECTIONS if section in config}


def load_settings(config_path: Optional[Path] = None, force_reload: bool = False) -> Settings:
    """
    Load settings with priority: env vars > user config > defaults.

    Args:
        config_path: Optional path to a custom config file
        force_reload: Force reload even if settings are cached

    Returns:
        Settings instance

    Raises:
        InvalidConfigError: If the merged configuration is invalid
    """
    global _settings

    if _settings is not None and not force_reload:
        return _settings

    defaults = _load_yaml_file(DEFAULTS_FILE)

    user_config_path = config_path or CONFIG_FILE
    user_config = _load_yaml_file(user_config_path)

    merged = _deep_merge(defaults, user_config)
    expanded = _expand_env_vars(merged)
    settings_dict = _transform_config_to_settings(expanded)

    # Environment variables are layered on top by pydantic-settings
    try:
        _settings = Settings(**settings_dict)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "settings"
        raise InvalidConfigError(field, first.get("input"), first.get("msg", str(e))) from e

    return _settings


def get_settings() -> Settings:
    """Get the current settings instance, loading if necessary."""
    if _settings is None:
        return load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton (useful for testing)."""
    global _settings
    _settings = None


__all__ = [
    "Settings",
    "OrchestrationConfig",
    "GroupDefaultsConfig",
    "LoggingConfig",
    "ResponseDelaysConfig",
    "DelayBand",
    "get_settings",
    "load_settings",
    "reset_settings",
    "CONFIG_DIR",
    "CONFIG_FILE",
    "DEFAULTS_FILE",
]
