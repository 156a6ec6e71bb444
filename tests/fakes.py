"""Test doubles shared by the runner, controller and sync tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from tashbot.core.errors import SendError
from tashbot.core.irc import ProtocolMessage
from tashbot.shared.models.command import Command

BASE_TAGS: dict[str, str | None] = {
    "badge-info": "subscriber/14",
    "badges": "subscriber/12,premium/1",
    "color": "#FF69B4",
    "display-name": "Kate",
    "id": "b34ccfc7-4977-403a-8a94-33c6bac34fb8",
    "mod": "0",
    "subscriber": "1",
    "user-id": "1337",
}


def make_tags(drop: tuple[str, ...] = (), **overrides: str | None) -> list[tuple[str, str | None]]:
    """Twitch PRIVMSG tags; keyword names use ``_`` for ``-`` (``display_name``)."""
    tags = dict(BASE_TAGS)
    for key, value in overrides.items():
        tags[key.replace("_", "-")] = value
    return [(key, value) for key, value in tags.items() if key not in drop]


def privmsg(text: str, target: str = "#channel1", **tag_overrides: str | None) -> ProtocolMessage:
    return ProtocolMessage(
        command="PRIVMSG",
        params=(target, text),
        tags=tuple(make_tags(**tag_overrides)),
        prefix="kate!kate@kate.tmi.twitch.tv",
    )


def make_command(
    id: int = 1, prefix: str = "!lurk", reply: str = "{sender.name} lurks", **fields
) -> Command:
    fields.setdefault("name", prefix.lstrip("!") or "cmd")
    fields.setdefault("channel", 1)
    return Command(id=id, prefix=prefix, reply=reply, **fields)


class FakeConnection:
    """In-memory Connection: feed inbound items, inspect what was sent."""

    def __init__(self) -> None:
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.sent: list[tuple[str, ...]] = []
        self.fail_privmsg = False
        self.fail_join = False
        self.fail_part = False

    def feed(self, item) -> None:
        self.inbound.put_nowait(item)

    def end_stream(self) -> None:
        self.inbound.put_nowait(None)

    async def messages(self):
        while True:
            item = await self.inbound.get()
            if item is None:
                return
            yield item

    async def send_privmsg(self, target: str, text: str) -> None:
        if self.fail_privmsg:
            raise SendError("connection closed")
        self.sent.append(("PRIVMSG", target, text))

    async def send_join(self, channel: str) -> None:
        if self.fail_join:
            raise SendError("connection closed")
        self.sent.append(("JOIN", channel))

    async def send_part(self, channel: str) -> None:
        if self.fail_part:
            raise SendError("not in channel")
        self.sent.append(("PART", channel))

    @property
    def replies(self) -> list[tuple[str, str]]:
        return [(s[1], s[2]) for s in self.sent if s[0] == "PRIVMSG"]


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)
