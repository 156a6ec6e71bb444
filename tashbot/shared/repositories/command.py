"""Repository for the commands table."""

from __future__ import annotations

import asyncpg

from tashbot.shared.models.command import Command

_CMD_COLUMNS = (
    "id, name, prefix, description, reply, user_cooldown, "
    "global_cooldown, permissionbits, enabled, channel"
)


def _row_to_command(row: asyncpg.Record) -> Command:
    data = dict(row)
    data["permission_bits"] = data.pop("permissionbits")
    return Command(**data)


class CommandRepository:
    """Pure SQL operations for custom commands."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def list_commands(self, channel_id: int) -> list[Command]:
        """Return a channel's commands in id order (the order they are checked)."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_CMD_COLUMNS} FROM commands WHERE channel = $1 ORDER BY id",
                channel_id,
            )
        return [_row_to_command(r) for r in rows]

    async def get_command(self, command_id: int) -> Command | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_CMD_COLUMNS} FROM commands WHERE id = $1",
                command_id,
            )
        if not row:
            return None
        return _row_to_command(row)
