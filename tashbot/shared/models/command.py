"""Custom command model."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Command:
    """Custom command record (commands table).

    Equality is field-wise, so re-upserting an unchanged command is a no-op.
    """

    id: int
    name: str
    prefix: str
    reply: str
    channel: int
    description: str | None = None
    user_cooldown: int | None = None  # seconds, per chatter
    global_cooldown: int | None = None  # seconds, per channel
    permission_bits: int | None = None  # see core.guards.Permission
    enabled: bool | None = None
