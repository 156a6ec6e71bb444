"""Repository for the channels table."""

from __future__ import annotations

import asyncpg

from tashbot.shared.models.channel import Channel


class ChannelRepository:
    """Pure SQL operations for channels."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def list_channels(self) -> dict[int, str]:
        """Return every configured channel as ``{id: name}``."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT id, name FROM channels ORDER BY id")
        return {row["id"]: row["name"] for row in rows}

    async def get_channel(self, channel_id: int) -> Channel | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT id, name FROM channels WHERE id = $1", channel_id)
        if not row:
            return None
        return Channel(**dict(row))
