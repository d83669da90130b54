"""
chatbridge run - Start the enabled platform clients.

Usage:
    chatbridge run
    chatbridge run --platform telegram
"""

import asyncio
import logging
from typing import Annotated, Optional

import typer
from rich.logging import RichHandler

from chatbridge.cli.context import load_cli_config, open_store
from chatbridge.cli.output import console, print_error, print_success, print_warning
from chatbridge.config import Config, LoggingConfig
from chatbridge.describe import describe_message
from chatbridge.platforms import ClientName, CommandClient, GenericClient, GenericMessage
from chatbridge.platforms.adapters import DiscordClient, MatrixClient, TelegramClient
from chatbridge.storage import BridgeStore, expand_path

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="run",
    help="Start the platform clients.",
)


def setup_logging(config: LoggingConfig) -> None:
    """Route log records through rich."""
    logging.basicConfig(
        level=config.level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=config.rich_tracebacks)],
        force=True,
    )


def create_clients(config: Config, platform_filter: Optional[str] = None) -> list[GenericClient]:
    """Create a client for every enabled and configured platform.

    Args:
        config: chatbridge configuration
        platform_filter: Only create this platform's client

    Returns:
        List of clients, not yet started
    """
    clients: list[GenericClient] = []

    enabled = config.enabled_platforms()

    def wanted(name: str) -> bool:
        return name in enabled and (platform_filter is None or platform_filter == name)

    # Telegram
    if wanted("telegram"):
        if config.telegram.bot_token:
            clients.append(
                TelegramClient(
                    bot_token=config.telegram.bot_token,
                    polling_interval=config.telegram.polling_interval,
                )
            )
        else:
            print_warning("Telegram enabled but bot_token not configured")

    # Discord
    if wanted("discord"):
        if config.discord.bot_token:
            clients.append(DiscordClient(bot_token=config.discord.bot_token))
        else:
            print_warning("Discord enabled but bot_token not configured")

    # Matrix
    if wanted("matrix"):
        if config.matrix.access_token:
            matrix = config.matrix
            clients.append(
                MatrixClient(
                    home_server=matrix.home_server,
                    access_token=matrix.access_token,
                    storage_path=expand_path(matrix.storage_path) if matrix.storage_path else None,
                    sync_timeout_ms=matrix.sync_timeout_ms,
                    whoami_retry_seconds=matrix.whoami_retry_seconds,
                    max_media_size=matrix.max_media_size,
                    upload_timeout=matrix.upload_timeout_seconds,
                )
            )
        else:
            print_warning("Matrix enabled but access_token not configured")

    return clients


def register_bridge_commands(client: CommandClient, store: BridgeStore) -> None:
    """Register the /chatid and /link commands on a client."""

    async def chat_id_command(args: str, chat_id: str) -> Optional[str]:
        return chat_id

    async def link_command(args: str, chat_id: str) -> Optional[str]:
        channel_id = args.split()[0] if args.split() else ""
        if not channel_id.isdigit():
            return "Usage: /link <discord_channel_id>"
        await store.set_discord_link(chat_id, channel_id)
        return f"Linked to Discord channel {channel_id}"

    client.register_command("chatid", chat_id_command, "Show the id of this chat")
    client.register_command("link", link_command, "Link this chat to a Discord channel")


async def describe_for_log(client: GenericClient, message: GenericMessage) -> str:
    """One-line description of an incoming message for the console log."""
    if message.client_name == ClientName.TELEGRAM.value and message.raw_message is not None:
        bot_username = client.bot_username if isinstance(client, CommandClient) else None
        return await describe_message(message.raw_message, bot_username=bot_username)
    return str(message)


def _attach_loggers(client: GenericClient) -> None:
    name = client.client_name.value

    async def on_message(message: GenericMessage) -> None:
        logger.info(f"[{name}] {await describe_for_log(client, message)}")

    async def on_edit(message: GenericMessage) -> None:
        logger.info(f"[{name}] (edited) {await describe_for_log(client, message)}")

    client.on("message", on_message)
    client.on("edit-message", on_edit)


async def _run_bridge(config: Config, platform_filter: Optional[str]) -> None:
    clients = create_clients(config, platform_filter)
    if not clients:
        print_error("No platforms enabled and configured")
        console.print("[dim]Set <platform>.enable and its token in config.yaml[/dim]")
        raise typer.Exit(1)

    store = open_store(config)
    await store.init()

    started: list[GenericClient] = []
    try:
        for client in clients:
            _attach_loggers(client)
            if isinstance(client, CommandClient):
                register_bridge_commands(client, store)
            await client.start()
            started.append(client)

            if isinstance(client, CommandClient):
                try:
                    await client.set_command_list(client.commands)
                except Exception as e:
                    logger.warning(f"Could not publish {client.client_name.value} commands: {e}")

        print_success(f"Started {len(started)} client(s)")
        for client in started:
            console.print(f"  [cyan]•[/cyan] {client.client_name.value}")
        console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

        await asyncio.Event().wait()
    finally:
        await asyncio.gather(*(client.stop() for client in started), return_exceptions=True)
        await store.close()


@app.callback(invoke_without_command=True)
def run(
    platform: Annotated[
        Optional[str],
        typer.Option(
            "--platform",
            "-p",
            help="Start only this platform (telegram, discord, matrix).",
        ),
    ] = None,
) -> None:
    """Start every enabled platform client and log incoming messages.

    Runs until stopped with Ctrl+C.
    """
    if platform is not None and platform not in {name.value for name in ClientName}:
        print_error(f"Unknown platform: {platform}")
        raise typer.Exit(1)

    config = load_cli_config()
    setup_logging(config.logging)

    try:
        asyncio.run(_run_bridge(config, platform))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped by user[/yellow]")
    except typer.Exit:
        raise
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(1)
