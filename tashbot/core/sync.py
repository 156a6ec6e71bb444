"""Feeds stored channels and commands to the runner, at startup and on pg_notify."""

from __future__ import annotations

import json
import logging
from typing import Any

from tashbot.core.controller import Controller
from tashbot.core.errors import ControlError
from tashbot.shared.models.command import Command
from tashbot.shared.repositories.channel import ChannelRepository
from tashbot.shared.repositories.command import CommandRepository

LOGGER = logging.getLogger("Tashbot.Sync")

COMMAND_CHANGE_CHANNEL = "command_change"
CHANNEL_CHANGE_CHANNEL = "channel_change"

# (channel_id, name, commands in id order)
ChannelSnapshot = tuple[int, str, list[Command]]


async def fetch_channels(
    channels: ChannelRepository,
    commands: CommandRepository,
) -> list[ChannelSnapshot]:
    """Read every stored channel with its commands.

    Store errors propagate; nothing is sent anywhere.
    """
    snapshot = [
        (channel_id, name, await commands.list_commands(channel_id))
        for channel_id, name in (await channels.list_channels()).items()
    ]
    LOGGER.info(f"Fetched {len(snapshot)} channels from database")
    return snapshot


class CommandSync:
    """Translates store contents into control events.

    NOTIFY payloads (JSON):
        command_change  {"op": "upsert" | "delete", "command_id": int, "channel_id": int}
        channel_change  {"op": "join" | "leave", "channel_id": int, "name": str}
    """

    def __init__(
        self,
        controller: Controller,
        channels: ChannelRepository,
        commands: CommandRepository,
    ) -> None:
        self.controller = controller
        self.channels = channels
        self.commands = commands
        self._names: dict[int, str] = {}
        self._loaded: dict[int, set[int]] = {}

    def apply(self, snapshot: list[ChannelSnapshot]) -> int:
        """Join each snapshot channel and register its commands. Returns the channel count."""
        for channel_id, name, commands in snapshot:
            self.apply_channel(channel_id, name, commands)
        return len(snapshot)

    def apply_channel(self, channel_id: int, name: str, commands: list[Command]) -> None:
        self._names[channel_id] = name
        self.controller.join_channel(f"#{name}")
        loaded = self._loaded.setdefault(channel_id, set())
        for command in commands:
            self.controller.upsert_command(name, command)
            loaded.add(command.id)
        LOGGER.info(f"Queued join of #{name} with {len(commands)} commands")

    async def load_all(self) -> int:
        """Fetch the whole store first, then enqueue it."""
        return self.apply(await fetch_channels(self.channels, self.commands))

    async def load_channel(self, channel_id: int, name: str) -> None:
        commands = await self.commands.list_commands(channel_id)
        self.apply_channel(channel_id, name, commands)

    def unload_channel(self, channel_id: int, name: str) -> None:
        """Leave a channel and remove the commands registered for it."""
        self._names.pop(channel_id, None)
        self.controller.leave_channel(f"#{name}")
        for command_id in sorted(self._loaded.pop(channel_id, ())):
            self.controller.remove_command(name, command_id)

    async def _channel_name(self, channel_id: int) -> str | None:
        name = self._names.get(channel_id)
        if name is None:
            channel = await self.channels.get_channel(channel_id)
            if channel is None:
                return None
            name = self._names[channel_id] = channel.name
        return name

    # ------------------------------------------------------------------
    # NOTIFY handlers
    # ------------------------------------------------------------------

    async def handle_command_change(self, connection, pid, channel, payload) -> None:
        try:
            data = _parse_payload(payload)
            op = data["op"]
            command_id = int(data["command_id"])
            channel_id = int(data["channel_id"])
        except (ValueError, KeyError, TypeError) as e:
            LOGGER.warning(f"[NOTIFY] Ignoring malformed {channel} payload {payload!r}: {e}")
            return

        name = await self._channel_name(channel_id)
        if name is None:
            LOGGER.warning(f"[NOTIFY] Unknown channel {channel_id} for command #{command_id}")
            return

        try:
            if op == "delete":
                self.controller.remove_command(name, command_id)
                self._loaded.get(channel_id, set()).discard(command_id)
            elif op == "upsert":
                command = await self.commands.get_command(command_id)
                if command is None:
                    LOGGER.warning(f"[NOTIFY] Command #{command_id} not found")
                    return
                self.controller.upsert_command(name, command)
                self._loaded.setdefault(channel_id, set()).add(command_id)
            else:
                LOGGER.warning(f"[NOTIFY] Unknown command_change op '{op}'")
                return
        except ControlError as e:
            LOGGER.warning(f"[NOTIFY] Dropping command change #{command_id}: {e}")
            return
        LOGGER.info(f"[NOTIFY] Command #{command_id} {op} in {name}")

    async def handle_channel_change(self, connection, pid, channel, payload) -> None:
        try:
            data = _parse_payload(payload)
            op = data["op"]
            channel_id = int(data["channel_id"])
            name = str(data["name"]).lstrip("#")
        except (ValueError, KeyError, TypeError) as e:
            LOGGER.warning(f"[NOTIFY] Ignoring malformed {channel} payload {payload!r}: {e}")
            return

        try:
            if op == "join":
                await self.load_channel(channel_id, name)
            elif op == "leave":
                self.unload_channel(channel_id, name)
            else:
                LOGGER.warning(f"[NOTIFY] Unknown channel_change op '{op}'")
                return
        except ControlError as e:
            LOGGER.warning(f"[NOTIFY] Dropping channel change for #{name}: {e}")
            return
        LOGGER.info(f"[NOTIFY] Channel #{name} {op}")


def _parse_payload(payload: str) -> dict[str, Any]:
    data = json.loads(payload)
    if not isinstance(data, dict):
        raise TypeError("payload is not a JSON object")
    return data
