"""Multi-platform messaging for chatbridge.

Every chat platform is wrapped by a client that turns the SDK's native events
into GenericMessage values and turns MessageToSend / MessageToEdit back into
SDK calls.

Key Components:
    - GenericClient: Abstract protocol for platform clients
    - CommandClient: Clients whose platform supports bot commands
    - GenericMessage / MessageToSend / MessageToEdit: the shared message shape
"""

from chatbridge.platforms.models import (
    BotCommand,
    ClientName,
    GenericMessage,
    MediaType,
    MessageToEdit,
    MessageToSend,
)
from chatbridge.platforms.protocol import ClientMismatchError, CommandClient, GenericClient

__all__ = [
    "BotCommand",
    "ClientMismatchError",
    "ClientName",
    "CommandClient",
    "GenericClient",
    "GenericMessage",
    "MediaType",
    "MessageToEdit",
    "MessageToSend",
]
