"""
Pydantic configuration schema for chatbridge.

This module defines all configuration models with validation.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Platform Configuration
# =============================================================================


class PlatformClientConfig(BaseModel):
    """Base configuration for platform clients."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    enable: bool = False


class TelegramConfig(PlatformClientConfig):
    """Telegram bot configuration.

    Uses long polling, so no webhook, static IP or domain is needed.
    """

    bot_token: str = ""
    polling_interval: float = Field(default=0.0, ge=0.0)


class DiscordConfig(PlatformClientConfig):
    """Discord bot configuration (Gateway WebSocket)."""

    bot_token: str = ""


class MatrixConfig(PlatformClientConfig):
    """Matrix user bot configuration.

    The access token is read as-is; it is not validated before the first
    request is made with it.
    """

    home_server: str = "matrix.org"
    access_token: str = ""
    storage_path: str | None = None  # Defaults to ~/.chatbridge/matrix-bot-storage.json
    sync_timeout_ms: int = Field(default=30000, ge=0)
    whoami_retry_seconds: float = Field(default=5.0, gt=0.0)
    max_media_size: int = Field(default=1024 * 1024, gt=0)
    upload_timeout_seconds: float = Field(default=60.0, gt=0.0)


# =============================================================================
# Storage / Logging Configuration
# =============================================================================


class DatabaseConfig(BaseModel):
    """Link/nickname database configuration."""

    url: str | None = None  # Defaults to sqlite+aiosqlite:///~/.chatbridge/data.db
    echo: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration for ``chatbridge run``."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    rich_tracebacks: bool = True


# =============================================================================
# Root Configuration Model
# =============================================================================


class Config(BaseModel):
    """
    Root configuration model for chatbridge.

    Loaded from ~/.chatbridge/config.yaml and CHATBRIDGE_* environment
    variables, merged in that order.
    """

    model_config = ConfigDict(extra="allow")

    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    matrix: MatrixConfig = Field(default_factory=MatrixConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def enabled_platforms(self) -> list[str]:
        """Names of the platforms switched on in this configuration."""
        return [
            name
            for name, section in (
                ("telegram", self.telegram),
                ("discord", self.discord),
                ("matrix", self.matrix),
            )
            if section.enable
        ]
