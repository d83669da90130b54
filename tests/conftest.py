"""
Pytest configuration and fixtures for chatbridge tests.
"""

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from chatbridge.config import clear_config_cache


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def chatbridge_home(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Point CHATBRIDGE_HOME at an empty directory and clear env overrides."""
    home = temp_dir / ".chatbridge"
    home.mkdir()

    monkeypatch.setenv("CHATBRIDGE_HOME", str(home))
    monkeypatch.delenv("CHATBRIDGE_CONFIG", raising=False)
    for key in list(os.environ):
        if key.startswith("CHATBRIDGE_") and key != "CHATBRIDGE_HOME":
            monkeypatch.delenv(key, raising=False)

    clear_config_cache()
    yield home
    clear_config_cache()


@pytest.fixture
def sample_config() -> dict:
    """Provide a sample configuration dictionary."""
    return {
        "telegram": {
            "enable": True,
            "bot_token": "123:abc",
        },
        "discord": {
            "enable": False,
            "bot_token": "",
        },
        "matrix": {
            "enable": True,
            "home_server": "example.org",
            "access_token": "syt_secret",
        },
    }
