"""
One-line descriptions of Telegram messages.

Used when a message is relayed somewhere that cannot show it natively: the
description names the sender, says what the message replies to or was
forwarded from, names the kind of media, and ends with the text.

Messages are read by attribute, so python-telegram-bot objects and any
lookalike work. An attribute that is missing or None counts as absent.
"""

import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Optional, Union

UserFormatter = Callable[[Any], Union[str, Awaitable[str]]]

UNKNOWN_FILE = "未知文件"
NO_STICKER_SET = "无贴纸包"

# Bot relay messages look like "<name>: <text>"
NAME_SEPARATOR = ": "


def _field(obj: Any, name: str) -> Any:
    return getattr(obj, name, None) if obj is not None else None


def _blank_if_none(value: Any) -> Any:
    return "" if value is None else value


def format_user(user: Any) -> str:
    """Display name of a Telegram user: first and last name, else username."""
    if user is None:
        return ""
    name = f"{_field(user, 'first_name') or ''} {_field(user, 'last_name') or ''}".strip()
    return name or _field(user, "username") or ""


async def _call_formatter(formatter: UserFormatter, user: Any) -> str:
    result = formatter(user)
    if inspect.isawaitable(result):
        result = await result
    return result or ""


def _message_text(message: Any) -> str:
    return _field(message, "text") or _field(message, "caption") or ""


def _is_bot_user(user: Any, bot_username: Optional[str]) -> bool:
    return bool(bot_username) and _field(user, "username") == bot_username


def _unwrap_relay_name(user: Any, text: str, bot_username: Optional[str]) -> Optional[str]:
    """Name of the original author when the bot relayed ``text`` on their behalf."""
    if _is_bot_user(user, bot_username) and NAME_SEPARATOR in text:
        return text.split(NAME_SEPARATOR)[0]
    return None


def extract_sender_name(message: Any, bot_username: Optional[str]) -> str:
    """Display name of whoever wrote ``message``.

    Messages the bot relayed read ``"<name>: <text>"``; for those the name
    before the separator is used instead of the bot's own name.
    """
    sender = _field(message, "from_user")
    if sender is None:
        return ""
    relayed = _unwrap_relay_name(sender, _message_text(message), bot_username)
    if relayed is not None:
        return relayed
    return format_user(sender)


def _forward_source_name(message: Any, bot_username: Optional[str]) -> Optional[str]:
    """Name of the original author of a forwarded message, or None if not forwarded."""
    forward_from = _field(message, "forward_from")
    if forward_from is not None:
        relayed = _unwrap_relay_name(forward_from, _message_text(message), bot_username)
        return relayed if relayed is not None else format_user(forward_from)

    origin = _field(message, "forward_origin")
    if origin is None:
        return None

    sender_user = _field(origin, "sender_user")
    if sender_user is not None:
        relayed = _unwrap_relay_name(sender_user, _message_text(message), bot_username)
        return relayed if relayed is not None else format_user(sender_user)

    hidden_name = _field(origin, "sender_user_name")
    if hidden_name:
        return hidden_name

    chat = _field(origin, "sender_chat") or _field(origin, "chat")
    return _field(chat, "title") or _field(origin, "author_signature") or ""


def _describe_document(document: Any) -> str:
    return f"文件：{_field(document, 'file_name') or UNKNOWN_FILE}"


def _describe_sticker(sticker: Any) -> str:
    return f"贴纸：{_field(sticker, 'set_name') or NO_STICKER_SET}"


def _describe_voice(voice: Any) -> str:
    return f"语音：{_field(voice, 'duration') or 0}s"


def _describe_contact(contact: Any) -> str:
    name = " ".join([_field(contact, "first_name") or "", _field(contact, "last_name") or ""]).strip()
    return f"联系人: {name}"


def _describe_dice(dice: Any) -> str:
    return f"骰子：{_field(dice, 'emoji') or ''} - 掷出了 {_blank_if_none(_field(dice, 'value'))} 点"


def _describe_poll(poll: Any) -> str:
    return f"投票：{_field(poll, 'question') or ''}"


def _describe_location(location: Any) -> str:
    latitude = _blank_if_none(_field(location, "latitude"))
    longitude = _blank_if_none(_field(location, "longitude"))
    return f"位置: {latitude},{longitude}"


def _describe_venue(venue: Any) -> str:
    return f"位置: {_field(venue, 'title') or ''}"


# First present kind wins. Telegram animations also carry a document, so
# they are labelled as files.
MEDIA_DESCRIPTORS: tuple[tuple[str, Union[str, Callable[[Any], str]]], ...] = (
    ("audio", "音频"),
    ("document", _describe_document),
    ("animation", "GIF"),
    ("photo", "图片"),
    ("sticker", _describe_sticker),
    ("video", "视频"),
    ("video_note", "即时视频"),
    ("voice", _describe_voice),
    ("contact", _describe_contact),
    ("dice", _describe_dice),
    ("game", "小游戏"),
    ("poll", _describe_poll),
    ("location", _describe_location),
    ("venue", _describe_venue),
)


def describe_media(message: Any) -> Optional[str]:
    """Label for the message's media kind, or None if it has no media."""
    for attr, descriptor in MEDIA_DESCRIPTORS:
        value = _field(message, attr)
        # Telegram uses an empty tuple for "no photo"
        if value is None or value == ():
            continue
        return descriptor if isinstance(descriptor, str) else descriptor(value)
    return None


async def describe_message(
    message: Any,
    bot_username: Optional[str] = None,
    user_formatter: UserFormatter = format_user,
) -> str:
    """Describe a message in one line.

    Format: ``<sender>: [转发自：x] [回复给：y] [发送自：z] [<media>] <text>``,
    with each bracket present only when it applies.

    Args:
        message: A Telegram message (or anything with the same attributes).
        bot_username: The bot's username, used to unwrap its relayed messages.
        user_formatter: Formats the sender; may be sync or async.

    Returns:
        The stripped description.
    """
    fragments: list[str] = []

    forward_name = _forward_source_name(message, bot_username)
    if forward_name is not None:
        fragments.append(f"转发自：{forward_name}")

    replied = _field(message, "reply_to_message")
    if replied is not None:
        fragments.append(f"回复给：{extract_sender_name(replied, bot_username)}")

    via_bot = _field(message, "via_bot")
    if via_bot is not None:
        fragments.append(f"发送自：{format_user(via_bot)}")

    media = describe_media(message)
    if media is not None:
        fragments.append(media)

    sender = await _call_formatter(user_formatter, _field(message, "from_user"))
    parts = [sender, NAME_SEPARATOR, *(f"[{fragment}] " for fragment in fragments), _message_text(message)]
    return "".join(parts).strip()
