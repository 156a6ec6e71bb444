"""Tashbot: Twitch chat bot answering per-channel custom commands."""

__version__ = "0.1.0"
