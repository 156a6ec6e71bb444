"""Command guards: enabled check, permission check, cooldown tracking."""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable

from tashbot.core.messages import ChatMessage
from tashbot.shared.models.command import Command

LOGGER = logging.getLogger("Tashbot.Guard")


class Permission(enum.IntFlag):
    """Bits of ``Command.permission_bits``. A chatter passes with any one of them."""

    SUBSCRIBER = 1
    VIP = 2
    MODERATOR = 4
    BROADCASTER = 8


def chatter_permissions(message: ChatMessage) -> Permission:
    perms = Permission(0)
    if message.subscriber:
        perms |= Permission.SUBSCRIBER
    if message.vip:
        perms |= Permission.VIP
    if message.moderator:
        perms |= Permission.MODERATOR
    if message.has_badge("broadcaster"):
        perms |= Permission.BROADCASTER
    return perms


def has_permission(message: ChatMessage, command: Command) -> bool:
    """Check if the chatter holds at least one of the command's permission bits."""
    if not command.permission_bits:
        return True
    return bool(chatter_permissions(message) & command.permission_bits)


class CommandGuard:
    """In-memory cooldown tracker (reset on bot restart).

    Keys are ``(channel, command_id)`` for the global cooldown and
    ``(channel, command_id, user_id)`` for the per-user cooldown. Values are
    the clock time the cooldown ends; expired entries are swept at most once
    per ``sweep_interval`` seconds.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = 60.0,
    ) -> None:
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval
        self._global: dict[tuple[str, int], float] = {}
        self._per_user: dict[tuple[str, int, str], float] = {}

    @property
    def tracked(self) -> int:
        """Number of live cooldown entries."""
        return len(self._global) + len(self._per_user)

    def is_on_cooldown(self, channel: str, command: Command, message: ChatMessage) -> bool:
        now = self._clock()
        if self._global.get((channel, command.id), now) > now:
            return True
        return self._per_user.get((channel, command.id, message.user_id), now) > now

    def record(self, channel: str, command: Command, message: ChatMessage) -> None:
        """Start the command's cooldowns. Commands without cooldowns leave no state."""
        now = self._clock()
        if command.global_cooldown and command.global_cooldown > 0:
            self._global[(channel, command.id)] = now + command.global_cooldown
        if command.user_cooldown and command.user_cooldown > 0:
            self._per_user[(channel, command.id, message.user_id)] = now + command.user_cooldown

    def sweep(self) -> int:
        """Drop expired cooldowns. Returns how many entries were removed."""
        now = self._clock()
        self._next_sweep = now + self._sweep_interval
        removed = 0
        for entries in (self._global, self._per_user):
            for key in [k for k, until in entries.items() if until <= now]:
                del entries[key]
                removed += 1
        if removed:
            LOGGER.debug(f"[GUARD] Swept {removed} expired cooldowns")
        return removed

    def check(self, channel: str, command: Command, message: ChatMessage) -> bool:
        """Check enabled state, permission and cooldown; record on success.

        Returns True if the command may fire.
        """
        if self._clock() >= self._next_sweep:
            self.sweep()

        if command.enabled is False:
            LOGGER.debug(f"[GUARD] {command.name} disabled in {channel}")
            return False

        if not has_permission(message, command):
            LOGGER.debug(f"[GUARD] {message.user_id} lacks permission for {command.name}")
            return False

        if self.is_on_cooldown(channel, command, message):
            LOGGER.debug(f"[GUARD] {command.name} on cooldown in {channel}")
            return False

        self.record(channel, command, message)
        return True

    def forget(self, channel: str, command_id: int) -> None:
        """Drop tracker state of a command that was replaced or removed."""
        self._global.pop((channel, command_id), None)
        for key in [k for k in self._per_user if k[0] == channel and k[1] == command_id]:
            del self._per_user[key]
