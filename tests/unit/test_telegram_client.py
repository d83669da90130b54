"""Unit tests for the Telegram client with a mocked python-telegram-bot Application."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram import Update
from telegram.error import BadRequest

from chatbridge.platforms.adapters.telegram import TelegramClient
from chatbridge.platforms.models import BotCommand, MessageToEdit, MessageToSend
from chatbridge.platforms.protocol import ClientMismatchError

SENT_AT = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def tg_message(**fields) -> SimpleNamespace:
    defaults = dict(
        message_id=10,
        text="hello",
        caption=None,
        date=SENT_AT,
        edit_date=None,
        chat=SimpleNamespace(id=-100123, title="Group"),
        from_user=SimpleNamespace(id=1, full_name="Alice Smith"),
        reply_to_message=None,
        sticker=None,
        photo=(),
        animation=None,
        video=None,
        document=None,
        audio=None,
        voice=None,
        video_note=None,
        new_chat_members=(),
        left_chat_member=None,
        new_chat_title=None,
        new_chat_photo=(),
        delete_chat_photo=None,
        pinned_message=None,
    )
    defaults.update(fields)
    return SimpleNamespace(**defaults)


@pytest.fixture
def bot():
    bot = AsyncMock()
    bot.id = 999
    bot.username = "bridge_bot"
    bot.get_file.return_value = SimpleNamespace(file_path="https://api.telegram.org/file/bot/x.jpg")
    sent = SimpleNamespace(message_id=77, date=SENT_AT, from_user=SimpleNamespace(id=999))
    for method in ("send_message", "send_photo", "send_video", "send_sticker", "send_document"):
        getattr(bot, method).return_value = sent
    return bot


@pytest.fixture
def application(bot):
    application = MagicMock()
    application.bot = bot
    application.initialize = AsyncMock()
    application.start = AsyncMock()
    application.stop = AsyncMock()
    application.shutdown = AsyncMock()
    application.updater.start_polling = AsyncMock()
    application.updater.stop = AsyncMock()
    return application


@pytest.fixture
def client(application) -> TelegramClient:
    return TelegramClient(bot_token="123:abc", polling_interval=1.5, application=application)


class TestLifecycle:
    """Tests for starting and stopping polling."""

    def test_bot_username(self, client):
        assert client.bot_username == "bridge_bot"

    def test_bot_before_start(self):
        client = TelegramClient(bot_token="123:abc")
        assert client.bot_username is None
        with pytest.raises(RuntimeError):
            client.bot

    @pytest.mark.asyncio
    async def test_start_and_stop(self, client, application):
        await client.start()

        assert client.is_running
        assert application.add_handler.call_count == 2
        application.initialize.assert_awaited_once()
        application.updater.start_polling.assert_awaited_once_with(
            poll_interval=1.5,
            allowed_updates=[Update.MESSAGE, Update.EDITED_MESSAGE],
        )

        await client.stop()

        assert not client.is_running
        application.updater.stop.assert_awaited_once()
        application.shutdown.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_twice(self, client, application):
        await client.start()
        await client.start()
        application.initialize.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_when_stopped(self, client, application):
        await client.stop()
        application.stop.assert_not_awaited()


class TestTransform:
    """Tests for converting Telegram messages."""

    @pytest.mark.asyncio
    async def test_text_message(self, client):
        message = await client.transform_message(tg_message())

        assert message.client_name == "telegram"
        assert message.text == "hello"
        assert message.user_id == "1"
        assert message.user_name == "Alice Smith"
        assert message.chat_id == "-100123"
        assert message.message_id == "10"
        assert message.unix_date == SENT_AT.timestamp()
        assert message.is_service_message is False
        assert message.media_type is None

    @pytest.mark.asyncio
    async def test_photo_uses_largest_size(self, client, bot):
        small = SimpleNamespace(file_id="small", file_size=10)
        large = SimpleNamespace(file_id="large", file_size=1000)

        message = await client.transform_message(tg_message(text=None, caption="pic", photo=(small, large)))

        bot.get_file.assert_awaited_once_with("large")
        assert message.text == "pic"
        assert message.media_type == "photo"
        assert message.media_mime_type == "image/jpeg"
        assert message.media_size == 1000
        assert message.media_url == "https://api.telegram.org/file/bot/x.jpg"

    @pytest.mark.asyncio
    async def test_sticker_mime(self, client):
        static = SimpleNamespace(file_id="s", file_size=5, is_video=False, is_animated=False)
        video = SimpleNamespace(file_id="v", file_size=5, is_video=True, is_animated=False)

        assert (await client.transform_message(tg_message(sticker=static))).media_mime_type == "image/webp"
        message = await client.transform_message(tg_message(sticker=video))
        assert message.media_type == "sticker"
        assert message.media_mime_type == "video/webm"

    @pytest.mark.asyncio
    async def test_animation_is_video(self, client):
        animation = SimpleNamespace(file_id="a", file_size=5, mime_type="video/mp4")
        document = SimpleNamespace(file_id="a", file_size=5, mime_type="video/mp4")
        message = await client.transform_message(tg_message(animation=animation, document=document))
        assert message.media_type == "video"

    @pytest.mark.asyncio
    async def test_document_is_file(self, client):
        document = SimpleNamespace(file_id="d", file_size=5, mime_type=None)
        message = await client.transform_message(tg_message(document=document))
        assert message.media_type == "file"
        assert message.media_mime_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_reply_and_edit_date(self, client):
        edited_at = datetime(2024, 1, 2, 4, 0, 0, tzinfo=timezone.utc)
        replied = tg_message(message_id=3)

        message = await client.transform_message(tg_message(reply_to_message=replied, edit_date=edited_at))

        assert message.message_id_replied == "3"
        assert message.raw_message_replied is replied
        assert message.unix_date == edited_at.timestamp()

    @pytest.mark.asyncio
    async def test_service_message(self, client):
        joined = tg_message(text=None, new_chat_members=(SimpleNamespace(id=5),))
        assert (await client.transform_message(joined)).is_service_message is True


class TestUpdates:
    """Tests for update dispatch."""

    @pytest.mark.asyncio
    async def test_new_message(self, client):
        new, edits = [], []
        client.on("message", new.append)
        client.on("edit-message", edits.append)

        await client._handle_update(SimpleNamespace(message=tg_message(), edited_message=None), None)

        assert len(new) == 1
        assert edits == []

    @pytest.mark.asyncio
    async def test_edited_message(self, client):
        new, edits = [], []
        client.on("message", new.append)
        client.on("edit-message", edits.append)

        edited = tg_message(text="/chatid", edit_date=SENT_AT)
        await client._handle_update(SimpleNamespace(message=None, edited_message=edited), None)

        assert new == []
        assert len(edits) == 1

    @pytest.mark.asyncio
    async def test_command_runs_after_emit(self, client, bot):
        async def chat_id(args, chat_id):
            return chat_id

        client.register_command("chatid", chat_id)

        await client._handle_update(
            SimpleNamespace(message=tg_message(text="/chatid@bridge_bot"), edited_message=None), None
        )

        bot.send_message.assert_awaited_once_with(text="-100123", chat_id="-100123")


class TestSending:
    """Tests for outgoing messages."""

    @pytest.mark.asyncio
    async def test_send_text_reply(self, client, bot):
        sent = await client.send_message(
            MessageToSend(client_name="telegram", text="hi", chat_id="42", message_id_replied="7")
        )

        bot.send_message.assert_awaited_once_with(text="hi", chat_id="42", reply_to_message_id=7)
        assert sent.message_id == "77"
        assert sent.user_id == "999"
        assert sent.user_name == "bridge_bot"
        assert sent.text == "hi"

    @pytest.mark.asyncio
    async def test_send_photo_with_caption(self, client, bot):
        await client.send_message(
            MessageToSend(
                client_name="telegram",
                text="look",
                chat_id="42",
                media_type="photo",
                media_url="https://cdn.example/a.png",
            )
        )
        bot.send_photo.assert_awaited_once_with(photo="https://cdn.example/a.png", caption="look", chat_id="42")

    @pytest.mark.asyncio
    async def test_send_sticker_without_caption(self, client, bot):
        await client.send_message(
            MessageToSend(
                client_name="telegram", text="", chat_id="42", media_type="sticker", media_url="https://x/s.webp"
            )
        )
        bot.send_sticker.assert_awaited_once_with(sticker="https://x/s.webp", chat_id="42")

    @pytest.mark.asyncio
    async def test_send_file_as_document(self, client, bot):
        await client.send_message(
            MessageToSend(
                client_name="telegram",
                text="",
                chat_id="42",
                media_type="file",
                media_url="https://x/a.pdf",
                raw_message_extra={"disable_notification": True},
            )
        )
        bot.send_document.assert_awaited_once_with(
            document="https://x/a.pdf", caption=None, chat_id="42", disable_notification=True
        )

    @pytest.mark.asyncio
    async def test_send_wrong_client(self, client, bot):
        with pytest.raises(ClientMismatchError):
            await client.send_message(MessageToSend(client_name="discord", text="hi", chat_id="42"))
        bot.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_edit_text(self, client, bot):
        await client.edit_message(MessageToEdit(client_name="telegram", text="new", chat_id="42", message_id="7"))
        bot.edit_message_text.assert_awaited_once_with(chat_id="42", message_id=7, text="new")

    @pytest.mark.asyncio
    async def test_edit_caption(self, client, bot):
        await client.edit_message(
            MessageToEdit(client_name="telegram", text="new", chat_id="42", message_id="7", media_type="photo")
        )
        bot.edit_message_caption.assert_awaited_once_with(chat_id="42", message_id=7, caption="new")

    @pytest.mark.asyncio
    async def test_edit_not_modified_is_ignored(self, client, bot):
        bot.edit_message_text.side_effect = BadRequest("Message is not modified: specified new message content")
        await client.edit_message(MessageToEdit(client_name="telegram", text="same", chat_id="42", message_id="7"))

    @pytest.mark.asyncio
    async def test_edit_other_errors_raise(self, client, bot):
        bot.edit_message_text.side_effect = BadRequest("Message to edit not found")
        with pytest.raises(BadRequest):
            await client.edit_message(
                MessageToEdit(client_name="telegram", text="x", chat_id="42", message_id="7")
            )

    @pytest.mark.asyncio
    async def test_set_command_list(self, client, bot):
        await client.set_command_list([BotCommand(command="link", description="Link this chat")])

        published = bot.set_my_commands.await_args.args[0]
        assert [(c.command, c.description) for c in published] == [("link", "Link this chat")]
