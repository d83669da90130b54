"""Storage utilities for chatbridge."""

from chatbridge.storage.database import BridgeStore, DiscordLink, default_database_url
from chatbridge.storage.paths import (
    ensure_directory,
    expand_path,
    get_chatbridge_home,
    get_global_config_path,
    get_matrix_storage_path,
    get_sqlite_db_path,
)

__all__ = [
    "BridgeStore",
    "DiscordLink",
    "default_database_url",
    "ensure_directory",
    "expand_path",
    "get_chatbridge_home",
    "get_global_config_path",
    "get_matrix_storage_path",
    "get_sqlite_db_path",
]
