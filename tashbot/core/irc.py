"""Twitch IRC transport over WebSocket.

Parses IRCv3 lines into ``ProtocolMessage`` values and exposes the send
capabilities the runner needs. Login is a plain PASS/NICK handshake with
the tags and commands capabilities requested up front.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol

import aiohttp

from tashbot.core.errors import ProtocolError, SendError
from tashbot.core.messages import Tag

LOGGER = logging.getLogger("Tashbot.IRC")

DEFAULT_IRC_URL = "wss://irc-ws.chat.twitch.tv:443"
CAPABILITIES = ("twitch.tv/commands", "twitch.tv/tags")

_TAG_ESCAPES = {
    ":": ";",
    "s": " ",
    "\\": "\\",
    "r": "\r",
    "n": "\n",
}


@dataclass(frozen=True)
class ProtocolMessage:
    """A parsed IRC line. The last entry of ``params`` is the trailing parameter."""

    command: str
    params: tuple[str, ...] = ()
    tags: tuple[Tag, ...] = ()
    prefix: str | None = None

    @property
    def target(self) -> str:
        return self.params[0] if self.params else ""

    @property
    def body(self) -> str:
        return self.params[-1] if len(self.params) > 1 else ""

    def __str__(self) -> str:
        params = " ".join(self.params[:-1] + (f":{self.params[-1]}",)) if self.params else ""
        return f"{self.command} {params}".strip()


class Connection(Protocol):
    """What the runner needs from a gateway connection."""

    def messages(self) -> AsyncIterator[ProtocolMessage | ProtocolError]: ...

    async def send_privmsg(self, target: str, text: str) -> None: ...

    async def send_join(self, channel: str) -> None: ...

    async def send_part(self, channel: str) -> None: ...


def unescape_tag_value(value: str) -> str:
    out: list[str] = []
    chars = iter(value)
    for char in chars:
        if char != "\\":
            out.append(char)
            continue
        escaped = next(chars, None)
        if escaped is None:
            break
        out.append(_TAG_ESCAPES.get(escaped, escaped))
    return "".join(out)


def parse_tags(raw: str) -> tuple[Tag, ...]:
    tags: list[Tag] = []
    for item in raw.split(";"):
        if not item:
            continue
        key, sep, value = item.partition("=")
        tags.append((key, unescape_tag_value(value) if sep else None))
    return tuple(tags)


def parse_message(line: str) -> ProtocolMessage:
    """Parse one IRC line (without the trailing CRLF)."""
    rest = line.rstrip("\r\n")
    if not rest.strip():
        raise ProtocolError("Empty IRC line", line)

    tags: tuple[Tag, ...] = ()
    if rest.startswith("@"):
        raw_tags, _, rest = rest[1:].partition(" ")
        tags = parse_tags(raw_tags)
        rest = rest.lstrip(" ")

    prefix = None
    if rest.startswith(":"):
        prefix, _, rest = rest[1:].partition(" ")
        rest = rest.lstrip(" ")

    if rest.startswith(":"):
        raise ProtocolError("IRC line has no command", line)

    middle, sep, trailing = rest.partition(" :")
    parts = middle.split()
    if sep:
        parts.append(trailing)
    if not parts:
        raise ProtocolError("IRC line has no command", line)

    return ProtocolMessage(
        command=parts[0].upper(),
        params=tuple(parts[1:]),
        tags=tags,
        prefix=prefix,
    )


class TwitchIrcConnection:
    """Authenticated chat connection to the Twitch IRC WebSocket gateway."""

    def __init__(
        self,
        nick: str,
        token: str,
        *,
        url: str = DEFAULT_IRC_URL,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.nick = nick.lower()
        self._token = token if token.startswith("oauth:") else f"oauth:{token}"
        self.url = url
        self._session = session
        self._owns_session = session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        self._ws = await self._session.ws_connect(self.url)
        LOGGER.info(f"Connected to {self.url} as {self.nick}")

        await self._send_line(f"CAP REQ :{' '.join(CAPABILITIES)}")
        await self._send_line(f"PASS {self._token}")
        await self._send_line(f"NICK {self.nick}")

    async def close(self) -> None:
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        self._ws = None
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
        LOGGER.info("IRC connection closed")

    async def __aenter__(self) -> TwitchIrcConnection:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ==================== Inbound ====================

    async def messages(self) -> AsyncIterator[ProtocolMessage | ProtocolError]:
        """Yield parsed lines until the socket closes.

        Unparsable lines are yielded as ProtocolError values. PING is
        answered here and still passed on.
        """
        if self._ws is None:
            raise RuntimeError("connect() must be awaited before reading messages")

        async for frame in self._ws:
            if frame.type == aiohttp.WSMsgType.TEXT:
                for line in frame.data.split("\r\n"):
                    if not line:
                        continue
                    try:
                        message = parse_message(line)
                    except ProtocolError as e:
                        yield e
                        continue
                    if message.command == "PING":
                        await self._pong(message)
                    yield message
            elif frame.type == aiohttp.WSMsgType.ERROR:
                LOGGER.error(f"WebSocket error: {self._ws.exception()}")
                break

    async def _pong(self, ping: ProtocolMessage) -> None:
        try:
            await self._send_line(f"PONG :{ping.body or ping.target or 'tmi.twitch.tv'}")
        except SendError as e:
            LOGGER.warning(f"Failed to answer PING: {e}")

    # ==================== Outbound ====================

    async def _send_line(self, line: str) -> None:
        if self._ws is None or self._ws.closed:
            raise SendError("IRC connection is closed")
        # A CR or LF inside a reply would start a new IRC command
        line = line.replace("\r", " ").replace("\n", " ")
        try:
            await self._ws.send_str(f"{line}\r\n")
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            raise SendError(f"Failed to send: {e}") from e

    async def send_privmsg(self, target: str, text: str) -> None:
        await self._send_line(f"PRIVMSG {target} :{text}")

    async def send_join(self, channel: str) -> None:
        await self._send_line(f"JOIN {channel}")
        LOGGER.debug(f"JOIN {channel} sent")

    async def send_part(self, channel: str) -> None:
        await self._send_line(f"PART {channel}")
        LOGGER.debug(f"PART {channel} sent")
