from types import SimpleNamespace

import aiohttp
import pytest

from tashbot.core.errors import ProtocolError, SendError
from tashbot.core.irc import (
    TwitchIrcConnection,
    parse_message,
    parse_tags,
    unescape_tag_value,
)
from tashbot.core.messages import decode_chat_message

RAW_PRIVMSG = (
    "@badge-info=subscriber/14;badges=subscriber/12,premium/1;color=#FF69B4;"
    "display-name=Kate;emotes=;id=b34ccfc7-4977-403a-8a94-33c6bac34fb8;mod=0;"
    "subscriber=1;user-id=1337;vip "
    ":kate!kate@kate.tmi.twitch.tv PRIVMSG #channel1 :!lurk for a while"
)


class FakeWebSocket:
    def __init__(self, frames=()) -> None:
        self.frames = list(frames)
        self.sent: list[str] = []
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame

    async def send_str(self, data: str) -> None:
        if self.closed:
            raise ConnectionResetError("closed")
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True

    def exception(self):
        return RuntimeError("boom")


def text_frame(data: str):
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data)


def connected(frames=()) -> tuple[TwitchIrcConnection, FakeWebSocket]:
    conn = TwitchIrcConnection("TashBot", "secret")
    ws = FakeWebSocket(frames)
    conn._ws = ws
    return conn, ws


def test_parse_privmsg_with_tags_and_prefix():
    message = parse_message(RAW_PRIVMSG)

    assert message.command == "PRIVMSG"
    assert message.prefix == "kate!kate@kate.tmi.twitch.tv"
    assert message.params == ("#channel1", "!lurk for a while")
    assert message.target == "#channel1"
    assert message.body == "!lurk for a while"
    assert ("emotes", "") in message.tags
    assert ("vip", None) in message.tags


def test_parsed_tags_decode_into_chat_message():
    message = parse_message(RAW_PRIVMSG)
    chat = decode_chat_message(message.body, message.tags)

    assert chat.display_name == "Kate"
    assert chat.vip is True
    assert chat.sub_months == 14


def test_parse_message_without_tags_or_trailing():
    message = parse_message("PING tmi.twitch.tv")
    assert message.command == "PING"
    assert message.params == ("tmi.twitch.tv",)
    assert message.tags == ()
    assert message.prefix is None


def test_parse_numeric_reply():
    message = parse_message(":tmi.twitch.tv 001 tashbot :Welcome, GLHF!")
    assert message.command == "001"
    assert message.body == "Welcome, GLHF!"


@pytest.mark.parametrize("line", ["", "   ", "\r\n", ":prefix.only", "@a=b :prefix"])
def test_parse_message_rejects_lines_without_command(line):
    with pytest.raises(ProtocolError):
        parse_message(line)


def test_unescape_tag_value():
    assert unescape_tag_value(r"hello\sworld\:\\\r\n") == "hello world;\\\r\n"
    assert unescape_tag_value("dangling\\") == "dangling"
    assert unescape_tag_value(r"\q") == "q"


def test_parse_tags_skips_empty_items():
    assert parse_tags("a=1;;b;c=") == (("a", "1"), ("b", None), ("c", ""))


@pytest.mark.asyncio
async def test_send_commands_are_crlf_terminated():
    conn, ws = connected()

    await conn.send_join("#channel1")
    await conn.send_privmsg("#channel1", "Ann lurks")
    await conn.send_part("#channel1")

    assert ws.sent == [
        "JOIN #channel1\r\n",
        "PRIVMSG #channel1 :Ann lurks\r\n",
        "PART #channel1\r\n",
    ]


@pytest.mark.asyncio
async def test_reply_cannot_inject_commands():
    conn, ws = connected()

    await conn.send_privmsg("#channel1", "hi\r\nPART #channel1")

    assert ws.sent == ["PRIVMSG #channel1 :hi  PART #channel1\r\n"]


@pytest.mark.asyncio
async def test_send_on_closed_connection_raises():
    conn = TwitchIrcConnection("tashbot", "secret")
    with pytest.raises(SendError):
        await conn.send_join("#channel1")

    conn, ws = connected()
    ws.closed = True
    with pytest.raises(SendError):
        await conn.send_privmsg("#channel1", "hi")


@pytest.mark.asyncio
async def test_messages_split_lines_and_answer_ping():
    conn, ws = connected(
        [
            text_frame(RAW_PRIVMSG + "\r\nPING :tmi.twitch.tv\r\n"),
            text_frame(":bad.prefix.only\r\n"),
        ]
    )

    items = [item async for item in conn.messages()]

    assert [getattr(i, "command", None) for i in items] == ["PRIVMSG", "PING", None]
    assert isinstance(items[2], ProtocolError)
    assert ws.sent == ["PONG :tmi.twitch.tv\r\n"]


@pytest.mark.asyncio
async def test_messages_stop_on_error_frame():
    conn, _ = connected(
        [
            SimpleNamespace(type=aiohttp.WSMsgType.ERROR, data=None),
            text_frame("PING :tmi.twitch.tv"),
        ]
    )

    assert [item async for item in conn.messages()] == []


def test_token_and_nick_normalised():
    conn = TwitchIrcConnection("TashBot", "secret")
    assert conn.nick == "tashbot"
    assert conn._token == "oauth:secret"
    assert TwitchIrcConnection("a", "oauth:x")._token == "oauth:x"
    assert not conn.connected
