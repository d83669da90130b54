"""Platform client protocol definition."""

import inspect
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Literal, Optional, Union

from chatbridge.platforms.models import (
    BotCommand,
    ClientName,
    GenericMessage,
    MessageToEdit,
    MessageToSend,
)

logger = logging.getLogger(__name__)

EventName = Literal["message", "edit-message"]
EVENT_NAMES: tuple[str, ...] = ("message", "edit-message")

MessageHandler = Callable[[GenericMessage], Union[Awaitable[None], None]]

# Receives the argument text and the chat id, returns an optional reply
CommandHandler = Callable[[str, str], Awaitable[Optional[str]]]

_COMMAND_RE = re.compile(r"^/([\w\-]+)(?:@(\w+))?(?:\s+(.*))?$", re.DOTALL)


class ClientMismatchError(ValueError):
    """Raised when a client is handed a message addressed to another platform."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Message for '{actual}' cannot be handled by the '{expected}' client")


class GenericClient(ABC):
    """Abstract base class for platform clients.

    Each platform (Telegram, Discord, Matrix) implements this protocol so the
    bridge can subscribe to messages and post replies without knowing which
    SDK is behind it.
    """

    def __init__(self) -> None:
        """Initialize the platform client."""
        self._running = False
        self._handlers: dict[str, list[MessageHandler]] = {name: [] for name in EVENT_NAMES}

    @property
    @abstractmethod
    def client_name(self) -> ClientName:
        """The platform this client is bound to."""
        ...

    @property
    def is_running(self) -> bool:
        """Check if the client is currently running."""
        return self._running

    @abstractmethod
    async def start(self) -> None:
        """Connect to the platform and begin emitting events.

        Calling start on a running client does nothing.
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Disconnect from the platform.

        Calling stop on a stopped client does nothing.
        """
        ...

    @abstractmethod
    async def send_message(self, message: MessageToSend) -> GenericMessage:
        """Post a message to the platform.

        Args:
            message: The message to send. ``message.client_name`` must match
                this client.

        Returns:
            The sent message as the platform recorded it, including the
            platform-assigned message id.

        Raises:
            ClientMismatchError: If the message is addressed to another platform.
        """
        ...

    @abstractmethod
    async def edit_message(self, message: MessageToEdit) -> None:
        """Rewrite a previously sent message.

        Raises:
            ClientMismatchError: If the message is addressed to another platform.
        """
        ...

    def on(self, event_name: EventName, handler: MessageHandler) -> None:
        """Subscribe to ``message`` or ``edit-message`` events.

        Handlers may be plain functions or coroutine functions.
        """
        if event_name not in self._handlers:
            raise ValueError(f"Unknown event: {event_name}")
        self._handlers[event_name].append(handler)

    async def emit(self, event_name: EventName, message: GenericMessage) -> None:
        """Deliver one event to every subscribed handler.

        A failing handler is logged and does not stop the others.
        """
        for handler in list(self._handlers[event_name]):
            try:
                result = handler(message)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"[{self.client_name.value}] {event_name} handler failed: {e}", exc_info=True)

    def _check_client(self, message: MessageToSend) -> None:
        """Reject messages built for another platform."""
        if message.client_name != self.client_name.value:
            raise ClientMismatchError(self.client_name.value, str(message.client_name))


class CommandClient(GenericClient):
    """A client whose platform supports bot command registration."""

    def __init__(self) -> None:
        super().__init__()
        self._commands: dict[str, tuple[CommandHandler, str]] = {}

    @property
    def commands(self) -> list[BotCommand]:
        """Commands registered on this client."""
        return [
            BotCommand(command=name, description=description)
            for name, (_, description) in self._commands.items()
        ]

    @property
    def bot_username(self) -> Optional[str]:
        """Username of the bot account, once known."""
        return None

    def register_command(self, name: str, handler: CommandHandler, description: str = "") -> None:
        """Register a handler for ``/name``."""
        self._commands[name.lower()] = (handler, description or name)

    @staticmethod
    def parse_command(text: str) -> Optional[tuple[str, Optional[str], str]]:
        """Split ``/name@bot args`` into ``(name, bot, args)``.

        Returns None if the text is not a command.
        """
        match = _COMMAND_RE.match(text.strip())
        if not match:
            return None
        name, target, args = match.groups()
        return name.lower(), target, (args or "").strip()

    async def try_execute_command(self, text: str, chat_id: str) -> bool:
        """Run a registered command found in ``text``.

        The command's reply, if any, is sent to ``chat_id``.

        Returns:
            True if a command handled the text.
        """
        parsed = self.parse_command(text)
        if parsed is None:
            return False

        name, target, args = parsed
        if target and self.bot_username and target.lower() != self.bot_username.lower():
            return False

        entry = self._commands.get(name)
        if entry is None:
            return False

        handler, _ = entry
        logger.info(f"[{self.client_name.value}] executing /{name} in {chat_id}")
        reply = await handler(args, chat_id)
        if reply:
            await self.send_message(
                MessageToSend(client_name=self.client_name, text=reply, chat_id=chat_id)
            )
        return True

    @abstractmethod
    async def set_command_list(self, commands: list[BotCommand]) -> None:
        """Publish the command list to the platform."""
        ...
