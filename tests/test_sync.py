import json

import asyncpg
import pytest

from fakes import make_command
from tashbot.core.errors import RunnerUnavailableError
from tashbot.core.sync import (
    CHANNEL_CHANGE_CHANNEL,
    COMMAND_CHANGE_CHANNEL,
    CommandSync,
    fetch_channels,
)
from tashbot.shared.models import Channel


class FakeChannelRepository:
    def __init__(self, channels: dict[int, str]) -> None:
        self.channels = channels
        self.lookups = 0

    async def list_channels(self) -> dict[int, str]:
        return dict(self.channels)

    async def get_channel(self, channel_id: int) -> Channel | None:
        self.lookups += 1
        name = self.channels.get(channel_id)
        return Channel(channel_id, name) if name is not None else None


class FakeCommandRepository:
    def __init__(self, commands) -> None:
        self.commands = list(commands)

    async def list_commands(self, channel_id: int):
        return [c for c in self.commands if c.channel == channel_id]

    async def get_command(self, command_id: int):
        return next((c for c in self.commands if c.id == command_id), None)


class RecordingController:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.unavailable = False

    def _record(self, *call) -> None:
        if self.unavailable:
            raise RunnerUnavailableError()
        self.calls.append(call)

    def join_channel(self, name):
        self._record("join", name)

    def leave_channel(self, name):
        self._record("leave", name)

    def upsert_command(self, channel, command):
        self._record("upsert", channel, command.id)

    def remove_command(self, channel, command_id):
        self._record("remove", channel, command_id)


@pytest.fixture
def controller():
    return RecordingController()


@pytest.fixture
def sync(controller):
    channels = FakeChannelRepository({10: "alpha", 20: "beta"})
    commands = FakeCommandRepository(
        [
            make_command(1, "!a", channel=10),
            make_command(2, "!b", channel=20),
            make_command(3, "!c", channel=10),
        ]
    )
    return CommandSync(controller, channels, commands)


def payload(**data) -> str:
    return json.dumps(data)


@pytest.mark.asyncio
async def test_load_all_joins_then_registers_commands(sync, controller):
    count = await sync.load_all()

    assert count == 2
    assert controller.calls == [
        ("join", "#alpha"),
        ("upsert", "alpha", 1),
        ("upsert", "alpha", 3),
        ("join", "#beta"),
        ("upsert", "beta", 2),
    ]


@pytest.mark.asyncio
async def test_command_upsert_notification(sync, controller):
    await sync.handle_command_change(
        None, 1, COMMAND_CHANGE_CHANNEL, payload(op="upsert", command_id=3, channel_id=10)
    )

    assert controller.calls == [("upsert", "alpha", 3)]


@pytest.mark.asyncio
async def test_command_delete_notification_uses_cached_name(sync, controller):
    await sync.load_all()
    controller.calls.clear()

    await sync.handle_command_change(
        None, 1, COMMAND_CHANGE_CHANNEL, payload(op="delete", command_id=2, channel_id=20)
    )

    assert controller.calls == [("remove", "beta", 2)]
    assert sync.channels.lookups == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2]",
        payload(op="upsert", channel_id=10),
        payload(op="upsert", command_id="x", channel_id=10),
        payload(op="rename", command_id=1, channel_id=10),
        payload(op="upsert", command_id=99, channel_id=10),
        payload(op="upsert", command_id=1, channel_id=999),
    ],
)
async def test_bad_command_notifications_are_ignored(sync, controller, raw):
    await sync.handle_command_change(None, 1, COMMAND_CHANGE_CHANNEL, raw)

    assert controller.calls == []


@pytest.mark.asyncio
async def test_channel_join_and_leave_notifications(sync, controller):
    await sync.handle_channel_change(
        None, 1, CHANNEL_CHANGE_CHANNEL, payload(op="join", channel_id=20, name="#beta")
    )
    await sync.handle_channel_change(
        None, 1, CHANNEL_CHANGE_CHANNEL, payload(op="leave", channel_id=20, name="beta")
    )

    assert controller.calls == [
        ("join", "#beta"),
        ("upsert", "beta", 2),
        ("leave", "#beta"),
        ("remove", "beta", 2),
    ]


@pytest.mark.asyncio
async def test_notifications_after_runner_stopped_are_dropped(sync, controller):
    controller.unavailable = True

    await sync.handle_command_change(
        None, 1, COMMAND_CHANGE_CHANNEL, payload(op="delete", command_id=1, channel_id=10)
    )
    await sync.handle_channel_change(
        None, 1, CHANNEL_CHANGE_CHANNEL, payload(op="leave", channel_id=10, name="alpha")
    )

    assert controller.calls == []


class FailingCommandRepository(FakeCommandRepository):
    async def list_commands(self, channel_id: int):
        if channel_id == 20:
            raise asyncpg.PostgresError("connection lost")
        return await super().list_commands(channel_id)


@pytest.mark.asyncio
async def test_load_all_reads_everything_before_joining(controller):
    channels = FakeChannelRepository({10: "alpha", 20: "beta"})
    sync = CommandSync(controller, channels, FailingCommandRepository([make_command(1, "!a")]))

    with pytest.raises(asyncpg.PostgresError):
        await sync.load_all()

    assert controller.calls == []


@pytest.mark.asyncio
async def test_fetch_then_apply(sync, controller):
    snapshot = await fetch_channels(sync.channels, sync.commands)
    assert controller.calls == []

    assert sync.apply(snapshot) == 2
    assert ("join", "#alpha") in controller.calls


@pytest.mark.asyncio
async def test_leave_removes_commands_added_and_deleted_since_load(sync, controller):
    await sync.load_all()
    sync.commands.commands.append(make_command(4, "!d", channel=10))
    await sync.handle_command_change(
        None, 1, COMMAND_CHANGE_CHANNEL, payload(op="upsert", command_id=4, channel_id=10)
    )
    await sync.handle_command_change(
        None, 1, COMMAND_CHANGE_CHANNEL, payload(op="delete", command_id=1, channel_id=10)
    )
    controller.calls.clear()

    await sync.handle_channel_change(
        None, 1, CHANNEL_CHANGE_CHANNEL, payload(op="leave", channel_id=10, name="alpha")
    )

    assert controller.calls == [
        ("leave", "#alpha"),
        ("remove", "alpha", 3),
        ("remove", "alpha", 4),
    ]
