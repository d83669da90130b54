"""Table definitions for the link/nickname store.

Neither table declares a key: at most one row per chat (links) and per
chat/user pair (nicknames) is kept by the store's upserts.
"""

from sqlalchemy import Column, MetaData, Table, Text

metadata = MetaData()

discord_link = Table(
    "discord_link_v2",
    metadata,
    Column("chat_id", Text, nullable=False),
    Column("discord_channel_id", Text, nullable=False),
)

discord_nick = Table(
    "discord_nick",
    metadata,
    Column("chat_id", Text, nullable=False),
    Column("user_id", Text, nullable=False),
    Column("nickname", Text, nullable=False),
)
