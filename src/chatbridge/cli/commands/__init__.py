"""CLI command modules."""

from chatbridge.cli.commands import config, links, nick, run

__all__ = ["config", "links", "nick", "run"]
