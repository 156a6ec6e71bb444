"""PostgreSQL LISTEN/NOTIFY helper with auto-reconnect."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

import asyncpg

LOGGER = logging.getLogger("Tashbot.PgListener")


async def _detach(
    pool: asyncpg.Pool,
    connection: asyncpg.Connection,
    channel: str,
    handler: Callable[..., Any],
) -> None:
    """Remove the listener and hand the connection back, terminating it if that fails."""
    try:
        await connection.remove_listener(channel, handler)
        await pool.release(connection)
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
        LOGGER.debug(f"Terminating LISTEN connection for '{channel}': {e}")
        connection.terminate()


async def pg_listen(
    pool: asyncpg.Pool,
    channel: str,
    handler: Callable[..., Coroutine[Any, Any, None]],
    *,
    keepalive_interval: int = 30,
    reconnect_delay: int = 10,
) -> None:
    """Listen on a PostgreSQL NOTIFY channel until cancelled.

    Args:
        pool: asyncpg connection pool.
        channel: PostgreSQL NOTIFY channel name.
        handler: Async callback ``(connection, pid, channel, payload) -> None``.
        keepalive_interval: Seconds between keepalive pings.
        reconnect_delay: Seconds to wait before reconnect after error.
    """
    while True:
        connection: asyncpg.Connection | None = None
        try:
            connection = await pool.acquire()
            await connection.add_listener(channel, handler)
            LOGGER.info(f"PostgreSQL LISTEN active on '{channel}' channel")

            while True:
                await asyncio.sleep(keepalive_interval)
                await connection.execute("SELECT 1")

        except asyncio.CancelledError:
            LOGGER.info(f"PostgreSQL LISTEN '{channel}' shutting down...")
            if connection is not None:
                await _detach(pool, connection, channel, handler)
            raise
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
            LOGGER.error(f"Error in pg_listen('{channel}'): {e}")
            LOGGER.warning(
                f"Reconnecting to PostgreSQL LISTEN '{channel}' in {reconnect_delay}s..."
            )
            if connection is not None:
                await _detach(pool, connection, channel, handler)
            await asyncio.sleep(reconnect_delay)
