"""Telegram bot client using long polling."""

import logging
from typing import Any, Optional

from telegram import Bot, Message, Update
from telegram import BotCommand as TelegramBotCommand
from telegram.error import TelegramError
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from chatbridge.platforms.models import (
    BotCommand,
    ClientName,
    GenericMessage,
    MediaType,
    MessageToEdit,
    MessageToSend,
)
from chatbridge.platforms.protocol import CommandClient

logger = logging.getLogger(__name__)

# Service updates carry no user content of their own
_SERVICE_FIELDS = (
    "new_chat_members",
    "left_chat_member",
    "new_chat_title",
    "new_chat_photo",
    "delete_chat_photo",
    "pinned_message",
)


class TelegramClient(CommandClient):
    """Telegram bot client using long polling.

    Uses python-telegram-bot with polling mode. Emits ``message`` for new
    messages and ``edit-message`` for edited ones.

    Configuration:
        - bot_token: Telegram bot token from @BotFather
        - polling_interval: Seconds between poll requests
    """

    def __init__(
        self,
        bot_token: str,
        polling_interval: float = 0.0,
        application: Optional[Application] = None,
    ):
        """Initialize Telegram client.

        Args:
            bot_token: Bot token from @BotFather
            polling_interval: Polling interval in seconds
            application: Prebuilt application (mainly for tests)
        """
        super().__init__()

        self._bot_token = bot_token
        self._polling_interval = polling_interval
        self._application = application
        self._bot: Optional[Bot] = application.bot if application else None

    @property
    def client_name(self) -> ClientName:
        return ClientName.TELEGRAM

    @property
    def bot(self) -> Bot:
        """The underlying Bot, available once started."""
        if not self._bot:
            raise RuntimeError("Bot not initialized")
        return self._bot

    @property
    def bot_username(self) -> Optional[str]:
        if not self._bot:
            return None
        try:
            return self._bot.username
        except RuntimeError:
            # get_me() has not run yet
            return None

    async def start(self) -> None:
        """Start the Telegram bot with long polling."""
        if self._running:
            logger.warning("Telegram client already running")
            return

        logger.info("Starting Telegram client (polling mode)")

        if self._application is None:
            self._application = Application.builder().token(self._bot_token).build()
        self._bot = self._application.bot

        self._application.add_handler(
            MessageHandler(filters.UpdateType.MESSAGE, self._handle_update)
        )
        self._application.add_handler(
            MessageHandler(filters.UpdateType.EDITED_MESSAGE, self._handle_update)
        )

        await self._application.initialize()
        await self._application.start()
        await self._application.updater.start_polling(
            poll_interval=self._polling_interval,
            allowed_updates=[Update.MESSAGE, Update.EDITED_MESSAGE],
        )

        self._running = True
        logger.info(f"Telegram client started as @{self.bot_username}")

    async def stop(self) -> None:
        """Stop the Telegram bot."""
        if not self._running:
            return

        logger.info("Stopping Telegram client")

        if self._application:
            await self._application.updater.stop()
            await self._application.stop()
            await self._application.shutdown()

        self._running = False
        logger.info("Telegram client stopped")

    async def _handle_update(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Translate one update into exactly one event."""
        edited = update.edited_message is not None
        message = update.edited_message if edited else update.message
        if message is None:
            return

        generic = await self.transform_message(message)
        await self.emit("edit-message" if edited else "message", generic)

        if not edited and message.text and message.text.startswith("/"):
            await self.try_execute_command(message.text, generic.chat_id)

    async def transform_message(self, message: Message) -> GenericMessage:
        """Convert a Telegram message into a GenericMessage."""
        user = message.from_user
        replied = message.reply_to_message
        media_type, file_obj, mime_type = self._detect_media(message)

        media_url = None
        if file_obj is not None:
            media_url = await self._resolve_file_url(file_obj.file_id)

        date = message.edit_date or message.date

        return GenericMessage(
            client_name=ClientName.TELEGRAM,
            text=message.text or message.caption or "",
            user_id=str(user.id) if user else str(message.chat.id),
            user_name=(user.full_name if user else message.chat.title) or "",
            chat_id=str(message.chat.id),
            message_id=str(message.message_id),
            unix_date=date.timestamp(),
            is_service_message=any(getattr(message, f, None) for f in _SERVICE_FIELDS),
            media_type=media_type,
            media_url=media_url,
            media_mime_type=mime_type,
            media_size=getattr(file_obj, "file_size", None) if file_obj is not None else None,
            message_id_replied=str(replied.message_id) if replied else None,
            raw_message=message,
            raw_user=user,
            raw_message_replied=replied,
        )

    @staticmethod
    def _detect_media(message: Message) -> tuple[Optional[MediaType], Any, Optional[str]]:
        """Pick the attachment worth relaying, with its media kind and MIME type."""
        if message.sticker:
            sticker = message.sticker
            if sticker.is_video:
                mime = "video/webm"
            elif sticker.is_animated:
                mime = "application/x-tgsticker"
            else:
                mime = "image/webp"
            return MediaType.STICKER, sticker, mime
        if message.photo:
            # Sizes are listed smallest first
            return MediaType.PHOTO, message.photo[-1], "image/jpeg"
        if message.animation:
            return MediaType.VIDEO, message.animation, message.animation.mime_type or "video/mp4"
        if message.video:
            return MediaType.VIDEO, message.video, message.video.mime_type or "video/mp4"
        for attr in ("document", "audio", "voice", "video_note"):
            attachment = getattr(message, attr, None)
            if attachment:
                mime = getattr(attachment, "mime_type", None) or "application/octet-stream"
                return MediaType.FILE, attachment, mime
        return None, None, None

    async def _resolve_file_url(self, file_id: str) -> Optional[str]:
        """Get a downloadable URL for a file id."""
        try:
            file = await self.bot.get_file(file_id)
        except TelegramError as e:
            logger.warning(f"Failed to resolve Telegram file {file_id}: {e}")
            return None
        return file.file_path

    async def send_message(self, message: MessageToSend) -> GenericMessage:
        """Send a message to a Telegram chat.

        Raises:
            TelegramError: If sending fails
        """
        self._check_client(message)

        kwargs: dict[str, Any] = {"chat_id": message.chat_id, **message.raw_message_extra}
        if message.message_id_replied:
            kwargs["reply_to_message_id"] = int(message.message_id_replied)

        media_type = message.media_type
        try:
            if media_type and message.media_url:
                sent = await self._send_media(media_type, message, kwargs)
            else:
                sent = await self.bot.send_message(text=message.text, **kwargs)
        except TelegramError as e:
            logger.error(f"Failed to send Telegram message: {e}")
            raise

        return GenericMessage.from_sent(
            message,
            client_name=ClientName.TELEGRAM,
            message_id=str(sent.message_id),
            user_id=str(self.bot.id),
            user_name=self.bot_username or "",
            unix_date=sent.date.timestamp(),
            raw_message=sent,
            raw_user=sent.from_user,
        )

    async def _send_media(self, media_type: str, message: MessageToSend, kwargs: dict[str, Any]) -> Message:
        caption = message.text or None
        if media_type == MediaType.STICKER:
            # Stickers take no caption
            return await self.bot.send_sticker(sticker=message.media_url, **kwargs)
        if media_type == MediaType.PHOTO:
            return await self.bot.send_photo(photo=message.media_url, caption=caption, **kwargs)
        if media_type == MediaType.VIDEO:
            return await self.bot.send_video(video=message.media_url, caption=caption, **kwargs)
        return await self.bot.send_document(document=message.media_url, caption=caption, **kwargs)

    async def edit_message(self, message: MessageToEdit) -> None:
        """Edit a message the bot sent earlier.

        Media messages have their caption edited. Telegram always shows its own
        edited marker, so ``hide_edited_flag`` has no effect here.
        """
        self._check_client(message)

        try:
            if message.media_type:
                await self.bot.edit_message_caption(
                    chat_id=message.chat_id,
                    message_id=int(message.message_id),
                    caption=message.text,
                )
            else:
                await self.bot.edit_message_text(
                    chat_id=message.chat_id,
                    message_id=int(message.message_id),
                    text=message.text,
                )
        except TelegramError as e:
            if "message is not modified" in str(e).lower():
                return
            logger.error(f"Failed to edit Telegram message: {e}")
            raise

    async def set_command_list(self, commands: list[BotCommand]) -> None:
        """Publish the bot's command menu."""
        await self.bot.set_my_commands(
            [TelegramBotCommand(c.command, c.description) for c in commands]
        )
        logger.info(f"Published {len(commands)} Telegram commands")
