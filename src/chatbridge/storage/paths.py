"""
Path utilities for chatbridge.

Provides consistent path resolution for configuration and data files.
"""

import os
from pathlib import Path


def get_chatbridge_home() -> Path:
    """
    Get the chatbridge home directory.

    Resolution order:
    1. CHATBRIDGE_HOME environment variable
    2. Default: ~/.chatbridge

    Returns:
        Path to the chatbridge home directory.
    """
    env_home = os.environ.get("CHATBRIDGE_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".chatbridge"


def get_global_config_path() -> Path:
    """
    Get the path to the configuration file.

    Returns:
        Path to ~/.chatbridge/config.yaml
    """
    return get_chatbridge_home() / "config.yaml"


def get_sqlite_db_path() -> Path:
    """
    Get the SQLite database path.

    Returns:
        Path to ~/.chatbridge/data.db
    """
    return get_chatbridge_home() / "data.db"


def get_matrix_storage_path() -> Path:
    """
    Get the file holding the Matrix sync state.

    Returns:
        Path to ~/.chatbridge/matrix-bot-storage.json
    """
    return get_chatbridge_home() / "matrix-bot-storage.json"


def expand_path(path: str | Path) -> Path:
    """
    Expand a path string, handling ~ and environment variables.

    Args:
        path: Path string or Path object.

    Returns:
        Expanded and resolved Path.
    """
    if isinstance(path, str):
        path = os.path.expandvars(path)
        path = os.path.expanduser(path)
    return Path(path).resolve()


def ensure_directory(path: Path, mode: int = 0o755) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path.
        mode: Permission mode for created directories.

    Returns:
        The path (for chaining).
    """
    path.mkdir(parents=True, exist_ok=True, mode=mode)
    return path
