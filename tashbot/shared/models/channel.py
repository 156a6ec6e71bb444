"""Channel model."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Channel:
    """Twitch channel record. ``name`` is stored without the ``#`` sigil."""

    id: int
    name: str
