"""Prefix routing of chat messages to custom command replies."""

from __future__ import annotations

from collections.abc import Iterable

from tashbot.core.commands import CommandTable
from tashbot.core.guards import CommandGuard
from tashbot.core.messages import ChatMessage
from tashbot.shared.models.command import Command

SENDER_NAME = "{sender.name}"


def strip_channel_sigil(target: str) -> str:
    """``#channel`` -> ``channel``; stored channel names carry no sigil."""
    return target[1:]


def match_command(commands: Iterable[Command], text: str) -> Command | None:
    """Return the first command, in table order, whose prefix starts ``text``."""
    for command in commands:
        if text.startswith(command.prefix):
            return command
    return None


def format_reply(template: str, message: ChatMessage) -> str:
    """Replace response variables in a command reply.

    Supported variables:
        {sender.name}   Chatter display name (empty if unknown)
    """
    return template.replace(SENDER_NAME, message.display_name or "")


def route(
    channel: str,
    message: ChatMessage,
    table: CommandTable,
    guard: CommandGuard | None = None,
) -> str | None:
    """Pick at most one command for ``message`` and render its reply.

    ``channel`` is the protocol target (``#name``). Without a guard this is
    a pure function of its arguments.
    """
    name = strip_channel_sigil(channel)
    command = match_command(table.lookup(name), message.text)
    if command is None:
        return None
    if guard is not None and not guard.check(name, command, message):
        return None
    return format_reply(command.reply, message)
