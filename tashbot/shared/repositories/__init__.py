"""Read-only repositories over the Tashbot database."""

from .channel import ChannelRepository
from .command import CommandRepository

__all__ = [
    "ChannelRepository",
    "CommandRepository",
]
