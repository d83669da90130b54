"""
Shared helpers for CLI commands: loading configuration and opening the store.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer

from chatbridge.cli.output import print_error
from chatbridge.config import Config, ConfigurationError, get_config
from chatbridge.storage import BridgeStore

T = TypeVar("T")


def load_cli_config() -> Config:
    """Load configuration, exiting with a message if it is invalid."""
    try:
        return get_config()
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(1)


def open_store(config: Config) -> BridgeStore:
    """Create the store described by the configuration."""
    return BridgeStore(config.database.url, echo=config.database.echo)


def run_with_store(callback: Callable[[BridgeStore], Awaitable[T]]) -> T:
    """Open the store, run ``callback`` against it, and close it again."""
    config = load_cli_config()

    async def _run() -> T:
        store = open_store(config)
        try:
            await store.init()
            return await callback(store)
        finally:
            await store.close()

    return asyncio.run(_run())
