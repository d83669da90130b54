"""
chatbridge nick - Manage per-chat nicknames.

Usage:
    chatbridge nick get CHAT_ID USER_ID
    chatbridge nick set CHAT_ID USER_ID NICKNAME
"""

from typing import Annotated

import typer

from chatbridge.cli.context import run_with_store
from chatbridge.cli.output import console, print_success, print_warning

app = typer.Typer(
    name="nick",
    help="Manage per-chat nicknames.",
)


@app.command("get")
def get_nick(
    chat_id: Annotated[str, typer.Argument(help="Chat id.")],
    user_id: Annotated[str, typer.Argument(help="User id.")],
) -> None:
    """Show a user's nickname in a chat."""
    nickname = run_with_store(lambda store: store.get_discord_nickname(chat_id, user_id))

    if nickname is None:
        print_warning(f"No nickname for {user_id} in {chat_id}")
        raise typer.Exit(1)

    console.print(nickname)


@app.command("set")
def set_nick(
    chat_id: Annotated[str, typer.Argument(help="Chat id.")],
    user_id: Annotated[str, typer.Argument(help="User id.")],
    nickname: Annotated[str, typer.Argument(help="Nickname to use.")],
) -> None:
    """Set a user's nickname in a chat."""
    run_with_store(lambda store: store.set_discord_nickname(chat_id, user_id, nickname))
    print_success(f"Nickname for {user_id} in {chat_id} is now {nickname}")
