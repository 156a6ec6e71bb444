"""Tashbot entry point: config, storage, IRC connection and runner lifecycle."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import aiohttp
import asyncpg
from pydantic import ValidationError

from tashbot.core.config import TashbotSettings, get_settings
from tashbot.core.controller import Controller
from tashbot.core.errors import ControlError, RunnerTaskFailedError, RunnerUnavailableError
from tashbot.core.guards import CommandGuard
from tashbot.core.health_server import HealthCheckServer
from tashbot.core.irc import TwitchIrcConnection
from tashbot.core.logging import setup_logging
from tashbot.core.pg_listener import pg_listen
from tashbot.core.sync import (
    CHANNEL_CHANGE_CHANNEL,
    COMMAND_CHANGE_CHANNEL,
    CommandSync,
    fetch_channels,
)
from tashbot.shared.database import DatabaseManager
from tashbot.shared.repositories.channel import ChannelRepository
from tashbot.shared.repositories.command import CommandRepository

LOGGER: logging.Logger = logging.getLogger("Tashbot")


async def run(settings: TashbotSettings) -> int:
    """Run the bot until SIGINT/SIGTERM or until the runner dies. Returns the exit code.

    The store is read in full before the IRC connection and the runner exist,
    so a store failure at startup joins no channel.
    """
    database = DatabaseManager(settings.database_url)
    await database.connect()

    connection = TwitchIrcConnection(settings.bot_nick, settings.bot_token, url=settings.irc_url)
    controller: Controller | None = None
    background: list[asyncio.Task] = []
    health: HealthCheckServer | None = None
    exit_code = 0

    try:
        channels = ChannelRepository(database.pool)
        commands = CommandRepository(database.pool)
        snapshot = await fetch_channels(channels, commands)

        await connection.connect()
        controller = Controller.start(
            connection,
            guard=CommandGuard(),
            max_pending=settings.control_queue_size,
        )

        sync = CommandSync(controller, channels, commands)
        try:
            sync.apply(snapshot)
        except RunnerUnavailableError:
            # surfaces the runner's own failure as RunnerTaskFailedError
            await controller.wait()
            raise

        if settings.listen_for_changes:
            background.append(
                asyncio.create_task(
                    pg_listen(database.pool, COMMAND_CHANGE_CHANNEL, sync.handle_command_change)
                )
            )
            background.append(
                asyncio.create_task(
                    pg_listen(database.pool, CHANNEL_CHANGE_CHANNEL, sync.handle_channel_change)
                )
            )

        if settings.health_port is not None:
            health = HealthCheckServer(controller, port=settings.health_port)
            await health.start()

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        stop_waiter = asyncio.create_task(stop.wait())
        runner_waiter = asyncio.create_task(controller.wait())
        await asyncio.wait({stop_waiter, runner_waiter}, return_when=asyncio.FIRST_COMPLETED)

        if stop_waiter.done():
            LOGGER.warning("Shutdown signal received, stopping...")
            runner_waiter.cancel()
            await asyncio.gather(runner_waiter, return_exceptions=True)
            try:
                await controller.shutdown()
            except RunnerUnavailableError:
                LOGGER.warning("Runner already stopped")
            except RunnerTaskFailedError as e:
                LOGGER.error(f"Runner failed during shutdown: {e}")
                exit_code = 1
        else:
            stop_waiter.cancel()
            try:
                runner_waiter.result()
                LOGGER.warning("Runner stopped on its own")
            except RunnerTaskFailedError as e:
                LOGGER.error(f"Runner failed: {e.cause!r}")
                exit_code = 1
    finally:
        for task in background:
            task.cancel()
        await asyncio.gather(*background, return_exceptions=True)
        if health is not None:
            await health.stop()
        if controller is not None and controller.running:
            try:
                await controller.shutdown()
            except ControlError as e:
                LOGGER.error(f"Runner did not stop cleanly: {e}")
        await connection.close()
        await database.disconnect()

    return exit_code


def main() -> None:
    try:
        settings = get_settings()
    except ValidationError as e:
        logging.basicConfig(level=logging.ERROR)
        LOGGER.error(f"Invalid configuration: {e}")
        sys.exit(2)

    setup_logging(settings.log_level)
    try:
        exit_code = asyncio.run(run(settings))
    except RunnerTaskFailedError as e:
        LOGGER.error(f"Runner failed during startup: {e.cause!r}")
        exit_code = 1
    except (asyncpg.PostgresError, aiohttp.ClientError, OSError) as e:
        LOGGER.error(f"Startup failed: {type(e).__name__}: {e}")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
