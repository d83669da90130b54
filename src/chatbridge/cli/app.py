"""
Main Typer application for the chatbridge CLI.

This module defines the root CLI application and registers all command groups.
"""

from typing import Annotated

import typer

from chatbridge import __version__
from chatbridge.cli.commands import config, links, nick, run
from chatbridge.cli.output import print_info

app = typer.Typer(
    name="chatbridge",
    help="Telegram, Discord and Matrix bot clients behind one message model.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        print_info(f"chatbridge version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    [bold blue]chatbridge[/bold blue] - multi-platform chat bots

    Start the enabled clients with [bold]chatbridge run[/bold].
    """


# Register command groups
app.add_typer(run.app, name="run")
app.add_typer(config.app, name="config")
app.add_typer(links.app, name="links")
app.add_typer(nick.app, name="nick")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
