"""Per-channel custom command table."""

from __future__ import annotations

from tashbot.shared.models.command import Command


class CommandTable:
    """Ordered commands per channel, keyed by channel name without the sigil.

    Order is insertion order and decides which command wins when several
    prefixes match. Not safe for concurrent writers; the runner owns it.
    """

    def __init__(self) -> None:
        self._commands: dict[str, list[Command]] = {}

    def upsert(self, channel: str, command: Command) -> bool:
        """Replace the command with the same id in place, else append.

        Returns True when an existing entry was replaced.
        """
        commands = self._commands.setdefault(channel, [])
        for index, existing in enumerate(commands):
            if existing.id == command.id:
                commands[index] = command
                return True
        commands.append(command)
        return False

    def remove(self, channel: str, command_id: int) -> bool:
        commands = self._commands.get(channel)
        if not commands:
            return False
        for index, existing in enumerate(commands):
            if existing.id == command_id:
                del commands[index]
                if not commands:
                    del self._commands[channel]
                return True
        return False

    def lookup(self, channel: str) -> tuple[Command, ...]:
        return tuple(self._commands.get(channel, ()))

    def channels(self) -> list[str]:
        return list(self._commands)

    def clear(self) -> None:
        self._commands.clear()

    def __len__(self) -> int:
        return sum(len(commands) for commands in self._commands.values())
