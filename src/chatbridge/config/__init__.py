"""Configuration management for chatbridge."""

from chatbridge.config.loader import (
    ConfigurationError,
    apply_env_overrides,
    clear_config_cache,
    get_config,
    load_config,
    load_yaml_file,
    resolve_config_path,
)
from chatbridge.config.merger import deep_merge, get_nested_value, set_nested_value
from chatbridge.config.schema import (
    Config,
    DatabaseConfig,
    DiscordConfig,
    LoggingConfig,
    MatrixConfig,
    TelegramConfig,
)

__all__ = [
    "Config",
    "ConfigurationError",
    "DatabaseConfig",
    "DiscordConfig",
    "LoggingConfig",
    "MatrixConfig",
    "TelegramConfig",
    "apply_env_overrides",
    "clear_config_cache",
    "deep_merge",
    "get_config",
    "get_nested_value",
    "load_config",
    "load_yaml_file",
    "resolve_config_path",
    "set_nested_value",
]
