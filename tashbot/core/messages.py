"""Decoding of Twitch IRC tags into structured chat messages."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from tashbot.core.errors import InvalidNumberError, MissingFieldError

Tag = tuple[str, str | None]

U16_MAX = 0xFFFF
U32_MAX = 0xFFFFFFFF


@dataclass(frozen=True)
class ChatMessage:
    """A decoded PRIVMSG with its Twitch metadata."""

    id: str
    user_id: str
    moderator: bool
    subscriber: bool
    vip: bool
    color: str
    display_name: str | None
    bits: int
    badges: tuple[tuple[str, int], ...]
    sub_months: int
    text: str

    def has_badge(self, name: str) -> bool:
        return any(badge == name for badge, _ in self.badges)


def _find_tag(tags: Sequence[Tag], name: str) -> tuple[bool, str]:
    for key, value in tags:
        if key == name:
            return True, value or ""
    return False, ""


def _required(tags: Sequence[Tag], name: str) -> str:
    found, value = _find_tag(tags, name)
    if not found:
        raise MissingFieldError(name)
    return value


def _parse_unsigned(field: str, value: str, limit: int) -> int:
    # int() alone would accept signs, whitespace and underscores
    if not value or not value.isascii() or not value.isdigit():
        raise InvalidNumberError(field, value)
    number = int(value)
    if number > limit:
        raise InvalidNumberError(field, value)
    return number


def parse_badge_list(raw: str) -> list[tuple[str, str]]:
    """Split ``name/value,name/value`` keeping order.

    Entries without a ``/`` are skipped.
    """
    entries: list[tuple[str, str]] = []
    for item in raw.split(","):
        name, sep, value = item.partition("/")
        if not sep:
            continue
        entries.append((name, value))
    return entries


def decode_chat_message(text: str, tags: Sequence[Tag]) -> ChatMessage:
    """Build a ChatMessage from a PRIVMSG body and its tags.

    Raises MissingFieldError when a required tag is absent and
    InvalidNumberError when a numeric tag does not parse.
    """
    message_id = _required(tags, "id")
    user_id = _required(tags, "user-id")
    moderator = _required(tags, "mod") == "1"
    vip, _ = _find_tag(tags, "vip")
    subscriber = _required(tags, "subscriber") == "1"
    color = _required(tags, "color")

    has_display_name, display_name = _find_tag(tags, "display-name")

    has_bits, raw_bits = _find_tag(tags, "bits")
    bits = _parse_unsigned("bits", raw_bits, U32_MAX) if has_bits else 0

    badge_info = parse_badge_list(_required(tags, "badge-info"))
    badges = tuple(
        (name, _parse_unsigned("badges", value, U32_MAX))
        for name, value in parse_badge_list(_required(tags, "badges"))
    )

    sub_months = 0
    for name, value in badge_info:
        if name == "subscriber":
            sub_months = _parse_unsigned("badge-info", value, U16_MAX)
            break

    return ChatMessage(
        id=message_id,
        user_id=user_id,
        moderator=moderator,
        subscriber=subscriber,
        vip=vip,
        color=color,
        display_name=display_name if has_display_name else None,
        bits=bits,
        badges=badges,
        sub_months=sub_months,
        text=text,
    )
