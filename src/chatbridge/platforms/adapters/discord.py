"""Discord bot client using the Gateway WebSocket."""

import asyncio
import logging
from typing import Any, Optional

import discord
from discord import app_commands
from discord.ext import commands

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

MAX_MESSAGE_LENGTH = 2000

_USER_MESSAGE_TYPES = (discord.MessageType.default, discord.MessageType.reply)

_STICKER_MIME = {
    "png": "image/png",
    "apng": "image/apng",
    "gif": "image/gif",
    "lottie": "application/json",
}


class DiscordClient(CommandClient):
    """Discord bot client using Gateway WebSocket.

    Uses discord.py; the gateway connection runs as a background task.
    Emits ``message`` for new messages and ``edit-message`` when a message's
    content changes. The bot's own messages are ignored.

    Configuration:
        - bot_token: Discord bot token
    """

    def __init__(self, bot_token: str, bot: Optional[commands.Bot] = None):
        """Initialize Discord client.

        Args:
            bot_token: Discord bot token
            bot: Prebuilt discord.py bot (mainly for tests)
        """
        super().__init__()

        self._bot_token = bot_token

        if bot is None:
            intents = discord.Intents.default()
            intents.message_content = True
            intents.messages = True
            intents.guilds = True
            bot = commands.Bot(command_prefix=commands.when_mentioned, intents=intents)

        self._bot = bot
        self._ready_event = asyncio.Event()
        self._gateway_task: Optional[asyncio.Task] = None

        self._bot.add_listener(self._on_ready, "on_ready")
        self._bot.add_listener(self._on_message, "on_message")
        self._bot.add_listener(self._on_message_edit, "on_message_edit")

    @property
    def client_name(self) -> ClientName:
        return ClientName.DISCORD

    @property
    def bot(self) -> commands.Bot:
        return self._bot

    @property
    def bot_username(self) -> Optional[str]:
        return self._bot.user.name if self._bot.user else None

    async def start(self) -> None:
        """Connect to the gateway and wait until the bot is ready."""
        if self._running:
            logger.warning("Discord client already running")
            return

        logger.info("Starting Discord client (Gateway WebSocket)")

        self._ready_event.clear()
        self._gateway_task = asyncio.create_task(self._bot.start(self._bot_token), name="discord-gateway")
        ready_task = asyncio.create_task(self._ready_event.wait())

        done, _ = await asyncio.wait(
            {self._gateway_task, ready_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if self._gateway_task in done:
            ready_task.cancel()
            # Login failed or the gateway closed before becoming ready
            self._gateway_task.result()
            raise RuntimeError("Discord gateway closed before the bot became ready")

        self._running = True
        logger.info(f"Discord client started as {self._bot.user}")

    async def stop(self) -> None:
        """Close the gateway connection."""
        if not self._running:
            return

        logger.info("Stopping Discord client")

        await self._bot.close()
        if self._gateway_task:
            await asyncio.gather(self._gateway_task, return_exceptions=True)
            self._gateway_task = None

        self._running = False
        logger.info("Discord client stopped")

    async def _on_ready(self) -> None:
        logger.info(f"Discord bot logged in as {self._bot.user}")
        self._ready_event.set()

    def _is_own(self, message: discord.Message) -> bool:
        return self._bot.user is not None and message.author.id == self._bot.user.id

    async def _on_message(self, message: discord.Message) -> None:
        """Handle an incoming Discord message."""
        if self._is_own(message):
            return

        generic = self.transform_message(message)
        await self.emit("message", generic)

        if message.content.startswith("/"):
            await self.try_execute_command(message.content, generic.chat_id)

    async def _on_message_edit(self, before: discord.Message, after: discord.Message) -> None:
        """Handle an edited Discord message.

        Discord also fires this when embeds resolve, so unchanged content is
        skipped.
        """
        if self._is_own(after) or before.content == after.content:
            return
        await self.emit("edit-message", self.transform_message(after))

    def transform_message(self, message: discord.Message) -> GenericMessage:
        """Convert a Discord message into a GenericMessage."""
        media_type: Optional[MediaType] = None
        media_url = media_mime = None
        media_size = None

        if message.stickers:
            sticker = message.stickers[0]
            media_type = MediaType.STICKER
            media_url = sticker.url
            media_mime = _STICKER_MIME.get(getattr(sticker.format, "name", ""), "image/png")
        elif message.attachments:
            attachment = message.attachments[0]
            content_type = attachment.content_type or "application/octet-stream"
            if content_type.startswith("image/"):
                media_type = MediaType.PHOTO
            elif content_type.startswith("video/"):
                media_type = MediaType.VIDEO
            else:
                media_type = MediaType.FILE
            media_url = attachment.url
            media_mime = content_type
            media_size = attachment.size

        reference = message.reference
        date = message.edited_at or message.created_at

        return GenericMessage(
            client_name=ClientName.DISCORD,
            text=message.content,
            user_id=str(message.author.id),
            user_name=message.author.display_name,
            chat_id=str(message.channel.id),
            message_id=str(message.id),
            unix_date=date.timestamp(),
            is_service_message=message.type not in _USER_MESSAGE_TYPES,
            media_type=media_type,
            media_url=media_url,
            media_mime_type=media_mime,
            media_size=media_size,
            message_id_replied=str(reference.message_id) if reference and reference.message_id else None,
            raw_message=message,
            raw_user=message.author,
            raw_message_replied=reference.resolved if reference else None,
        )

    async def _get_channel(self, chat_id: str) -> Any:
        channel_id = int(chat_id)
        channel = self._bot.get_channel(channel_id)
        if channel is None:
            channel = await self._bot.fetch_channel(channel_id)
        return channel

    async def send_message(self, message: MessageToSend) -> GenericMessage:
        """Send a message to a Discord channel.

        Photos and stickers are shown as an embed image; other media is linked.
        Text longer than Discord's limit is split and the first part is
        returned.

        Raises:
            discord.DiscordException: If sending fails
        """
        self._check_client(message)

        channel = await self._get_channel(message.chat_id)

        content = message.text
        embed = None
        if message.media_type and message.media_url:
            if message.media_type in (MediaType.PHOTO, MediaType.STICKER):
                embed = discord.Embed().set_image(url=message.media_url)
            else:
                content = f"{content}\n{message.media_url}".strip()

        reference = None
        if message.message_id_replied:
            reference = discord.MessageReference(
                message_id=int(message.message_id_replied),
                channel_id=int(message.chat_id),
                fail_if_not_exists=False,
            )

        chunks = [
            content[i : i + MAX_MESSAGE_LENGTH] for i in range(0, len(content), MAX_MESSAGE_LENGTH)
        ] or [""]

        try:
            first = await channel.send(
                chunks[0] or None, embed=embed, reference=reference, **message.raw_message_extra
            )
            for chunk in chunks[1:]:
                await channel.send(chunk)
        except discord.DiscordException as e:
            logger.error(f"Failed to send Discord message: {e}")
            raise

        return GenericMessage.from_sent(
            message,
            client_name=ClientName.DISCORD,
            message_id=str(first.id),
            user_id=str(self._bot.user.id) if self._bot.user else "",
            user_name=self.bot_username or "",
            unix_date=first.created_at.timestamp(),
            raw_message=first,
            raw_user=self._bot.user,
        )

    async def edit_message(self, message: MessageToEdit) -> None:
        """Edit a message the bot sent earlier.

        Discord always marks edits, so ``hide_edited_flag`` has no effect here.
        """
        self._check_client(message)

        channel = await self._get_channel(message.chat_id)
        try:
            await channel.get_partial_message(int(message.message_id)).edit(
                content=message.text[:MAX_MESSAGE_LENGTH]
            )
        except discord.DiscordException as e:
            logger.error(f"Failed to edit Discord message: {e}")
            raise

    async def set_command_list(self, commands: list[BotCommand]) -> None:
        """Register the commands as global slash commands and sync them."""
        tree = self._bot.tree
        tree.clear_commands(guild=None)
        for bot_command in commands:
            tree.add_command(self._build_app_command(bot_command))
        synced = await tree.sync()
        logger.info(f"Synced {len(synced)} Discord slash commands")

    def _build_app_command(self, bot_command: BotCommand) -> app_commands.Command:
        name = bot_command.command.lower()

        async def callback(interaction: discord.Interaction, args: Optional[str] = None) -> None:
            entry = self._commands.get(name)
            if entry is None:
                await interaction.response.send_message(f"/{name} is not available here", ephemeral=True)
                return
            handler, _ = entry
            reply = await handler(args or "", str(interaction.channel_id))
            await interaction.response.send_message(reply or "OK", ephemeral=not reply)

        return app_commands.Command(
            name=name,
            description=bot_command.description[:100] or name,
            callback=callback,
        )
