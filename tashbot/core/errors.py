"""Exception hierarchy for the Tashbot runtime."""

from __future__ import annotations


class TashbotError(Exception):
    """Base class for every error raised by Tashbot."""


# ==================== Decoding ====================


class DecodeError(TashbotError):
    """A chat line's tags could not be turned into a ChatMessage."""


class MissingFieldError(DecodeError):
    def __init__(self, field: str) -> None:
        super().__init__(f"Malformed Twitch PRIVMSG, missing required field `{field}`")
        self.field = field


class InvalidNumberError(DecodeError):
    def __init__(self, field: str, value: str) -> None:
        super().__init__(f"Malformed Twitch PRIVMSG, `{field}` is not a valid number: {value!r}")
        self.field = field
        self.value = value


# ==================== Protocol ====================


class ProtocolError(TashbotError):
    """An inbound line could not be parsed as an IRC message."""

    def __init__(self, message: str, line: str = "") -> None:
        super().__init__(message)
        self.line = line


class SendError(TashbotError):
    """Writing to the gateway failed or the connection is closed."""


class JoinFailedError(TashbotError):
    def __init__(self, channel: str) -> None:
        super().__init__(f"Failed to join channel {channel}")
        self.channel = channel


# ==================== Control channel ====================


class ControlError(TashbotError):
    """Base class for failures talking to the runner."""


class RunnerUnavailableError(ControlError):
    def __init__(self) -> None:
        super().__init__("Internal communication error. Runner no longer exists.")


class RunnerTaskFailedError(ControlError):
    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Runner task terminated abnormally: {type(cause).__name__}: {cause}")
        self.cause = cause


class ControlQueueFullError(ControlError):
    def __init__(self, max_pending: int) -> None:
        super().__init__(f"Control queue is full ({max_pending} pending events)")
        self.max_pending = max_pending
