"""Data models shared by every platform client."""

import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClientName(str, Enum):
    """Platforms a client can be bound to."""

    TELEGRAM = "telegram"
    DISCORD = "discord"
    MATRIX = "matrix"


class MediaType(str, Enum):
    """Media kinds that survive the trip between platforms."""

    STICKER = "sticker"
    PHOTO = "photo"
    VIDEO = "video"
    FILE = "file"


class MessageToSend(BaseModel):
    """A message the bridge wants a client to post."""

    model_config = ConfigDict(use_enum_values=True)

    client_name: ClientName
    text: str
    chat_id: str

    media_type: Optional[MediaType] = None
    media_url: Optional[str] = None
    media_mime_type: Optional[str] = None
    media_size: Optional[int] = None
    message_id_replied: Optional[str] = None

    # Platform-specific keyword arguments passed through to the SDK call
    raw_message_extra: dict[str, Any] = Field(default_factory=dict)


class MessageToEdit(MessageToSend):
    """A message the bridge wants a client to rewrite in place."""

    message_id: str
    hide_edited_flag: bool = False


class GenericMessage(BaseModel):
    """A platform message translated into the shared shape.

    ``raw_message``, ``raw_user`` and ``raw_message_replied`` hold the SDK
    objects the message was built from. They are opaque to everything but the
    client that produced them.
    """

    model_config = ConfigDict(use_enum_values=True, arbitrary_types_allowed=True)

    client_name: ClientName
    text: str
    user_id: str
    user_name: str
    chat_id: str
    message_id: str
    unix_date: float = Field(default_factory=time.time)

    is_service_message: bool = False
    media_type: Optional[MediaType] = None
    media_url: Optional[str] = None
    media_mime_type: Optional[str] = None
    media_size: Optional[int] = None
    message_id_replied: Optional[str] = None

    raw_message: Any = None
    raw_user: Any = None
    raw_message_replied: Any = None

    @classmethod
    def from_sent(cls, message: MessageToSend, **fields: Any) -> "GenericMessage":
        """Build the record of a sent message from what was asked to be sent.

        ``fields`` supplies what only the platform knows (message id, sender,
        timestamp, raw objects) and overrides the outbound values.
        """
        data = message.model_dump(exclude={"raw_message_extra", "message_id", "hide_edited_flag"})
        data.update(fields)
        return cls(**data)

    def __str__(self) -> str:
        """String representation for logging."""
        return f"[{self.client_name}] {self.chat_id}/{self.user_name}: {self.text[:50]}"


class BotCommand(BaseModel):
    """A command advertised to platform users."""

    command: str
    description: str
