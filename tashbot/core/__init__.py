"""Core modules for Tashbot."""

from .commands import CommandTable
from .config import TashbotSettings, get_settings
from .controller import Controller
from .dispatcher import format_reply, match_command, route, strip_channel_sigil
from .errors import (
    ControlError,
    ControlQueueFullError,
    DecodeError,
    InvalidNumberError,
    JoinFailedError,
    MissingFieldError,
    ProtocolError,
    RunnerTaskFailedError,
    RunnerUnavailableError,
    SendError,
    TashbotError,
)
from .guards import CommandGuard, Permission, has_permission
from .health_server import HealthCheckServer
from .irc import Connection, ProtocolMessage, TwitchIrcConnection, parse_message
from .logging import setup_logging
from .messages import ChatMessage, decode_chat_message
from .pg_listener import pg_listen
from .runner import Runner, RunnerState

__all__ = [
    # Settings
    "TashbotSettings",
    "get_settings",
    # Setup functions
    "setup_logging",
    # Decoding
    "ChatMessage",
    "decode_chat_message",
    # Commands & dispatch
    "CommandTable",
    "format_reply",
    "match_command",
    "route",
    "strip_channel_sigil",
    # Guards
    "CommandGuard",
    "Permission",
    "has_permission",
    # Runtime
    "Controller",
    "Runner",
    "RunnerState",
    # IRC
    "Connection",
    "ProtocolMessage",
    "TwitchIrcConnection",
    "parse_message",
    # Services
    "HealthCheckServer",
    "pg_listen",
    # Errors
    "TashbotError",
    "DecodeError",
    "MissingFieldError",
    "InvalidNumberError",
    "ProtocolError",
    "SendError",
    "JoinFailedError",
    "ControlError",
    "RunnerUnavailableError",
    "RunnerTaskFailedError",
    "ControlQueueFullError",
]
