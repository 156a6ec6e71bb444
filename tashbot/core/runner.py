"""The single task that owns the connection and the command table.

Inbound protocol traffic and control events are multiplexed in one loop so
that command-table mutations and dispatch never interleave mid-event.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import AsyncIterator

from tashbot.core.commands import CommandTable
from tashbot.core.dispatcher import route
from tashbot.core.errors import DecodeError, JoinFailedError, ProtocolError, SendError
from tashbot.core.events import (
    ControlEvent,
    JoinChannel,
    LeaveChannel,
    RemoveCommand,
    Shutdown,
    UpsertCommand,
)
from tashbot.core.guards import CommandGuard
from tashbot.core.irc import Connection, ProtocolMessage
from tashbot.core.messages import decode_chat_message

LOGGER = logging.getLogger("Tashbot.Runner")


class RunnerState(enum.Enum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class Runner:
    def __init__(
        self,
        connection: Connection,
        control: asyncio.Queue[ControlEvent],
        *,
        guard: CommandGuard | None = None,
    ) -> None:
        self.connection = connection
        self.control = control
        self.guard = guard
        self.commands = CommandTable()
        self.joined_channels: set[str] = set()
        self.state = RunnerState.RUNNING

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle_message(self, message: ProtocolMessage) -> None:
        if message.command != "PRIVMSG":
            LOGGER.debug(f"<- {message}")
            return

        target = message.target
        try:
            chat = decode_chat_message(message.body, message.tags)
        except DecodeError as e:
            LOGGER.warning(f"Dropping message in {target}: {e}")
            return

        LOGGER.debug(f"[{chat.display_name or chat.user_id}{target}]: {chat.text}")

        reply = route(target, chat, self.commands, self.guard)
        if reply is None:
            return

        try:
            await self.connection.send_privmsg(target, reply)
        except SendError as e:
            LOGGER.error(f"Failed to send reply {e}")

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def handle_control(self, event: ControlEvent) -> bool:
        """Apply one control event. Returns False once the loop must stop."""
        match event:
            case Shutdown():
                return False
            case JoinChannel(name=name):
                try:
                    await self.connection.send_join(name)
                except SendError as e:
                    raise JoinFailedError(name) from e
                self.joined_channels.add(name)
                LOGGER.info(f"Joined {name}")
            case LeaveChannel(name=name):
                try:
                    await self.connection.send_part(name)
                except SendError as e:
                    LOGGER.debug(f"Ignoring failed PART {name}: {e}")
                self.joined_channels.discard(name)
                LOGGER.info(f"Left {name}")
            case UpsertCommand(channel=channel, command=command):
                replaced = self.commands.upsert(channel, command)
                if replaced and self.guard is not None:
                    self.guard.forget(channel, command.id)
                LOGGER.info(
                    f"{'Updated' if replaced else 'Added'} command {command.prefix} "
                    f"(#{command.id}) in {channel}"
                )
            case RemoveCommand(channel=channel, command_id=command_id):
                if self.commands.remove(channel, command_id):
                    LOGGER.info(f"Removed command #{command_id} from {channel}")
                if self.guard is not None:
                    self.guard.forget(channel, command_id)
            case _:
                LOGGER.warning(f"Ignoring unknown control event {event!r}")
        return True

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        stream = self.connection.messages()
        inbound: asyncio.Task | None = asyncio.ensure_future(_next_item(stream))
        control: asyncio.Task = asyncio.ensure_future(self.control.get())

        try:
            while True:
                waiting = {control} if inbound is None else {inbound, control}
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)

                # Both sources may be ready; no priority between them
                for task in done:
                    if task is control:
                        try:
                            keep_running = await self.handle_control(control.result())
                        finally:
                            self.control.task_done()
                        if not keep_running:
                            self.state = RunnerState.SHUTTING_DOWN
                            LOGGER.info("Shutdown requested")
                            return
                        control = asyncio.ensure_future(self.control.get())
                    else:
                        inbound = await self._handle_inbound(stream, task)
        finally:
            pending = [task for task in (inbound, control) if task is not None and not task.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
            self.commands.clear()
            self.state = RunnerState.STOPPED
            LOGGER.info("Runner stopped")

    async def _handle_inbound(
        self,
        stream: AsyncIterator[ProtocolMessage | ProtocolError],
        task: asyncio.Task,
    ) -> asyncio.Task | None:
        item = task.result()
        if item is _END_OF_STREAM:
            LOGGER.error("Inbound stream ended, connection lost; only control events are served")
            return None

        if isinstance(item, ProtocolError):
            LOGGER.warning(f"Invalid {item}")
        else:
            await self.handle_message(item)
        return asyncio.ensure_future(_next_item(stream))


_END_OF_STREAM = object()


async def _next_item(stream: AsyncIterator):
    try:
        return await anext(stream)
    except StopAsyncIteration:
        return _END_OF_STREAM
    except ProtocolError as e:
        return e
