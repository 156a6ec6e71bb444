"""The handle external callers use to drive the runner."""

from __future__ import annotations

import asyncio
import logging

from tashbot.core.errors import (
    ControlQueueFullError,
    RunnerTaskFailedError,
    RunnerUnavailableError,
)
from tashbot.core.events import (
    ControlEvent,
    JoinChannel,
    LeaveChannel,
    RemoveCommand,
    Shutdown,
    UpsertCommand,
)
from tashbot.core.guards import CommandGuard
from tashbot.core.irc import Connection
from tashbot.core.runner import Runner, RunnerState
from tashbot.shared.models.command import Command

LOGGER = logging.getLogger("Tashbot.Controller")


class Controller:
    """Enqueues control events for a runner task.

    Every method except ``shutdown`` and ``wait`` returns immediately. Events
    from one caller are applied in the order they were sent.
    """

    def __init__(self, runner: Runner, task: asyncio.Task, max_pending: int = 0) -> None:
        self.runner = runner
        self._task = task
        self._max_pending = max_pending

    @classmethod
    def start(
        cls,
        connection: Connection,
        *,
        guard: CommandGuard | None = None,
        max_pending: int = 0,
    ) -> Controller:
        """Spawn a runner task on the running loop. ``max_pending=0`` means unbounded."""
        queue: asyncio.Queue[ControlEvent] = asyncio.Queue(maxsize=max_pending)
        runner = Runner(connection, queue, guard=guard)
        task = asyncio.create_task(runner.run(), name="tashbot-runner")
        LOGGER.info("Runner started")
        return cls(runner, task, max_pending)

    @property
    def running(self) -> bool:
        return not self._task.done()

    @property
    def state(self) -> RunnerState:
        return self.runner.state

    def _send(self, event: ControlEvent) -> None:
        if self._task.done():
            raise RunnerUnavailableError()
        try:
            self.runner.control.put_nowait(event)
        except asyncio.QueueFull:
            raise ControlQueueFullError(self._max_pending) from None

    def join_channel(self, name: str) -> None:
        self._send(JoinChannel(name))

    def leave_channel(self, name: str) -> None:
        self._send(LeaveChannel(name))

    def upsert_command(self, channel: str, command: Command) -> None:
        self._send(UpsertCommand(channel, command))

    def remove_command(self, channel: str, command_id: int) -> None:
        self._send(RemoveCommand(channel, command_id))

    async def wait(self) -> None:
        """Wait for the runner task to end without requesting shutdown.

        Raises RunnerTaskFailedError if it ended abnormally.
        """
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
            raise RunnerTaskFailedError(asyncio.CancelledError("runner task cancelled")) from None
        except Exception as e:
            raise RunnerTaskFailedError(e) from e

    async def shutdown(self) -> None:
        """Ask the runner to stop and wait until its task has terminated."""
        if self._task.done():
            raise RunnerUnavailableError()

        # On a full bounded queue this waits for room instead of rejecting,
        # unless the runner dies first.
        put = asyncio.ensure_future(self.runner.control.put(Shutdown()))
        await asyncio.wait({put, self._task}, return_when=asyncio.FIRST_COMPLETED)
        if not put.done():
            put.cancel()

        await self.wait()
        LOGGER.info("Runner shut down")
