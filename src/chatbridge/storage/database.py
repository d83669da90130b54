"""
Link and nickname persistence for chatbridge.

Two small lookup tables: which Discord channel a chat is linked to, and the
nickname a user picked in a chat. Writes are check-then-act upserts; database
errors are not caught here.
"""

import logging
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from chatbridge.storage.paths import ensure_directory, get_sqlite_db_path
from chatbridge.storage.tables import discord_link, discord_nick, metadata

logger = logging.getLogger(__name__)


class DiscordLink(BaseModel):
    """A chat linked to a Discord channel."""

    chat_id: str
    discord_channel_id: str


def default_database_url() -> str:
    """SQLite file under the chatbridge home directory."""
    path = get_sqlite_db_path()
    ensure_directory(path.parent)
    return f"sqlite+aiosqlite:///{path}"


class BridgeStore:
    """Async store for Discord links and nicknames."""

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        """Initialize the store.

        Args:
            database_url: SQLAlchemy async URL. Defaults to ~/.chatbridge/data.db.
            echo: Log every SQL statement.
        """
        self.database_url = database_url or default_database_url()
        self._engine: Optional[AsyncEngine] = None
        self._echo = echo

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            if self.database_url.startswith("sqlite"):
                # In-memory SQLite only exists on one connection
                self._engine = create_async_engine(
                    self.database_url,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                    echo=self._echo,
                )
            else:
                self._engine = create_async_engine(self.database_url, echo=self._echo)
        return self._engine

    async def init(self) -> None:
        """Create both tables if they do not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.debug(f"Link store ready at {self.engine.url!r}")

    async def close(self) -> None:
        """Dispose of the connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def get_discord_links(self) -> list[DiscordLink]:
        """All chat to Discord channel links."""
        async with self.engine.connect() as conn:
            result = await conn.execute(select(discord_link.c.chat_id, discord_link.c.discord_channel_id))
            return [
                DiscordLink(chat_id=chat_id, discord_channel_id=channel_id)
                for chat_id, channel_id in result.all()
            ]

    async def get_discord_link(self, chat_id: str) -> Optional[str]:
        """The Discord channel linked to ``chat_id``, if any."""
        async with self.engine.connect() as conn:
            result = await conn.execute(
                select(discord_link.c.discord_channel_id).where(discord_link.c.chat_id == chat_id)
            )
            return result.scalars().first()

    async def set_discord_link(self, chat_id: str, discord_channel_id: str) -> None:
        """Link ``chat_id`` to a Discord channel, replacing any earlier link."""
        async with self.engine.begin() as conn:
            exists = await conn.execute(
                select(discord_link.c.chat_id).where(discord_link.c.chat_id == chat_id)
            )
            if exists.first() is not None:
                await conn.execute(
                    discord_link.update()
                    .where(discord_link.c.chat_id == chat_id)
                    .values(discord_channel_id=discord_channel_id)
                )
            else:
                await conn.execute(
                    discord_link.insert().values(chat_id=chat_id, discord_channel_id=discord_channel_id)
                )

    async def set_discord_nickname(self, chat_id: str, user_id: str, nickname: str) -> None:
        """Set a user's nickname in a chat, replacing any earlier one."""
        match = (discord_nick.c.chat_id == chat_id) & (discord_nick.c.user_id == user_id)
        async with self.engine.begin() as conn:
            exists = await conn.execute(select(discord_nick.c.nickname).where(match))
            if exists.first() is not None:
                await conn.execute(discord_nick.update().where(match).values(nickname=nickname))
            else:
                await conn.execute(
                    discord_nick.insert().values(chat_id=chat_id, user_id=user_id, nickname=nickname)
                )

    async def get_discord_nickname(self, chat_id: str, user_id: str) -> Optional[str]:
        """A user's nickname in a chat, or None if never set."""
        async with self.engine.connect() as conn:
            result = await conn.execute(
                select(discord_nick.c.nickname).where(
                    (discord_nick.c.chat_id == chat_id) & (discord_nick.c.user_id == user_id)
                )
            )
            return result.scalars().first()
