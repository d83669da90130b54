"""
chatbridge config - Configuration inspection commands.

Usage:
    chatbridge config show
    chatbridge config show matrix
    chatbridge config show --json
    chatbridge config path
"""

import json
from typing import Annotated

import typer
import yaml
from rich.panel import Panel
from rich.syntax import Syntax

from chatbridge.cli.output import console, print_error
from chatbridge.config import ConfigurationError, get_nested_value, load_config, resolve_config_path

app = typer.Typer(
    name="config",
    help="Configuration inspection.",
)

# Keys whose values are never printed
SECRET_KEYS = {"bot_token", "access_token"}


def _mask_secrets(value):
    if isinstance(value, dict):
        return {
            key: ("***" if key in SECRET_KEYS and item else _mask_secrets(item))
            for key, item in value.items()
        }
    return value


@app.command()
def show(
    section: Annotated[
        str | None,
        typer.Argument(
            help="Config section to show (e.g., 'matrix', 'telegram.enable').",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
    reveal: Annotated[
        bool,
        typer.Option(
            "--reveal",
            help="Print tokens instead of masking them.",
        ),
    ] = False,
) -> None:
    """Show the effective configuration."""
    try:
        config = load_config()
    except ConfigurationError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)

    config_dict = config.model_dump(mode="json")
    if not reveal:
        config_dict = _mask_secrets(config_dict)

    value = config_dict
    if section:
        value = get_nested_value(config_dict, section)
        if value is None:
            print_error(f"Section '{section}' not found in configuration.")
            raise typer.Exit(1)

    if json_output:
        console.print(Syntax(json.dumps(value, indent=2, default=str), "json", theme="monokai"))
        return

    output = yaml.dump(value, default_flow_style=False, sort_keys=False, allow_unicode=True)
    if section:
        console.print(Panel(Syntax(output, "yaml", theme="monokai"), title=f"[cyan]{section}[/cyan]"))
    else:
        console.print(Syntax(output, "yaml", theme="monokai"))


@app.command()
def path() -> None:
    """Print the path of the configuration file."""
    config_path = resolve_config_path()
    status = "[green]exists[/green]" if config_path.exists() else "[dim]not found[/dim]"
    console.print(f"{config_path} ({status})")
