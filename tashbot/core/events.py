"""Control events consumed by the runner."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from tashbot.shared.models.command import Command


@dataclass(frozen=True)
class JoinChannel:
    name: str


@dataclass(frozen=True)
class LeaveChannel:
    name: str


@dataclass(frozen=True)
class UpsertCommand:
    channel: str
    command: Command


@dataclass(frozen=True)
class RemoveCommand:
    channel: str
    command_id: int


@dataclass(frozen=True)
class Shutdown:
    pass


ControlEvent = Union[JoinChannel, LeaveChannel, UpsertCommand, RemoveCommand, Shutdown]
