"""Platform client implementations."""

from chatbridge.platforms.adapters.discord import DiscordClient
from chatbridge.platforms.adapters.matrix import MatrixApi, MatrixApiError, MatrixClient
from chatbridge.platforms.adapters.telegram import TelegramClient

__all__ = [
    "DiscordClient",
    "MatrixApi",
    "MatrixApiError",
    "MatrixClient",
    "TelegramClient",
]
