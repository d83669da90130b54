"""
chatbridge - multi-platform chat bot clients

Telegram, Matrix and Discord clients behind one message model, a one-line
describer for Telegram messages, and small lookup tables for Discord channel
links and per-chat nicknames.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("chatbridge")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "__version__",
]
