"""Data models for the Tashbot database tables."""

from .channel import Channel
from .command import Command

__all__ = [
    "Channel",
    "Command",
]
