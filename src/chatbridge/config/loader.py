"""
Configuration loader for chatbridge.

Loads and merges configuration from:
1. Default values
2. Config file (~/.chatbridge/config.yaml)
3. Environment variables (CHATBRIDGE_*)
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from chatbridge.config.merger import deep_merge, set_nested_value
from chatbridge.config.schema import Config
from chatbridge.storage.paths import get_global_config_path

ENV_PREFIX = "CHATBRIDGE_"

# Variables with the prefix that are not configuration keys
_RESERVED_ENV = {"CHATBRIDGE_HOME", "CHATBRIDGE_CONFIG"}


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed configuration dictionary (empty if the file does not exist).

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}")
    return content


def apply_env_overrides(config: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Sections and keys are separated by a double underscore so that keys
    containing underscores survive:

        CHATBRIDGE_MATRIX__ACCESS_TOKEN=syt_...   -> matrix.access_token
        CHATBRIDGE_TELEGRAM__ENABLE=true          -> telegram.enable

    Args:
        config: Configuration dictionary to modify.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        Configuration with environment overrides applied.
    """
    environ = os.environ if environ is None else environ

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or key in _RESERVED_ENV:
            continue

        config_key = key[len(ENV_PREFIX) :].lower().replace("__", ".")
        config = set_nested_value(config, config_key, _parse_env_value(value))

    return config


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to the appropriate type.

    Args:
        value: String value from environment.

    Returns:
        Parsed value (bool, int, float, or string).
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    # Tokens and ids are often numeric-looking; only plain small ints become ints
    if re.match(r"^-?\d{1,9}$", value):
        return int(value)

    if re.match(r"^-?\d+\.\d+$", value):
        return float(value)

    return value


def resolve_config_path() -> Path:
    """Config file in use: CHATBRIDGE_CONFIG if set, else the global one."""
    env_path = os.environ.get("CHATBRIDGE_CONFIG")
    return Path(env_path).expanduser() if env_path else get_global_config_path()


def load_config(path: Path | None = None, skip_env: bool = False) -> Config:
    """
    Load and merge configuration from all sources.

    Args:
        path: Config file to read. Defaults to CHATBRIDGE_CONFIG or
            ~/.chatbridge/config.yaml.
        skip_env: Skip environment variable overrides.

    Returns:
        Merged and validated Config object.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    if path is None:
        path = resolve_config_path()

    config_dict = Config().model_dump()
    config_dict = deep_merge(config_dict, load_yaml_file(path))

    if not skip_env:
        config_dict = apply_env_overrides(config_dict)

    try:
        return Config.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


# Singleton for cached config
_cached_config: Config | None = None


def get_config(reload: bool = False) -> Config:
    """
    Get the global configuration instance.

    Args:
        reload: Force reload configuration from disk.

    Returns:
        Config instance.
    """
    global _cached_config

    if _cached_config is None or reload:
        _cached_config = load_config()

    return _cached_config


def clear_config_cache() -> None:
    """Clear the cached configuration."""
    global _cached_config
    _cached_config = None
