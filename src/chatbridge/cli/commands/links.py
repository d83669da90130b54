"""
chatbridge links - Manage chat to Discord channel links.

Usage:
    chatbridge links list
    chatbridge links get CHAT_ID
    chatbridge links set CHAT_ID DISCORD_CHANNEL_ID
"""

from typing import Annotated

import typer

from chatbridge.cli.context import run_with_store
from chatbridge.cli.output import console, print_success, print_table, print_warning

app = typer.Typer(
    name="links",
    help="Manage chat to Discord channel links.",
)


@app.command("list")
def list_links() -> None:
    """List every linked chat."""
    links = run_with_store(lambda store: store.get_discord_links())

    if not links:
        print_warning("No links configured")
        return

    print_table(
        ["Chat", "Discord channel"],
        [[link.chat_id, link.discord_channel_id] for link in links],
        title="Discord links",
    )


@app.command("get")
def get_link(
    chat_id: Annotated[str, typer.Argument(help="Chat id on the source platform.")],
) -> None:
    """Show the Discord channel linked to a chat."""
    channel_id = run_with_store(lambda store: store.get_discord_link(chat_id))

    if channel_id is None:
        print_warning(f"Chat {chat_id} is not linked")
        raise typer.Exit(1)

    console.print(channel_id)


@app.command("set")
def set_link(
    chat_id: Annotated[str, typer.Argument(help="Chat id on the source platform.")],
    discord_channel_id: Annotated[str, typer.Argument(help="Discord channel id.")],
) -> None:
    """Link a chat to a Discord channel, replacing any earlier link."""
    run_with_store(lambda store: store.set_discord_link(chat_id, discord_channel_id))
    print_success(f"Linked {chat_id} to Discord channel {discord_channel_id}")
