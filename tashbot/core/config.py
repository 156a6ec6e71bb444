"""Tashbot configuration"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tashbot.core.irc import DEFAULT_IRC_URL

logger = logging.getLogger(__name__)

# === Path Configuration ===
TASHBOT_DIR = Path(__file__).parent.parent
PROJECT_DIR = TASHBOT_DIR.parent


class TashbotSettings(BaseSettings):
    """Tashbot settings, read from ``TASHBOT_*`` environment variables and ``.env``"""

    model_config = SettingsConfigDict(
        env_prefix="TASHBOT_",
        env_file=PROJECT_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch chat
    bot_token: str = Field(..., description="Bot OAuth token, with or without 'oauth:'")
    bot_nick: str = Field(..., description="Bot login name")
    irc_url: str = Field(default=DEFAULT_IRC_URL, description="Twitch IRC WebSocket URL")

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")
    listen_for_changes: bool = Field(
        default=True, description="Apply command/channel changes from pg_notify"
    )

    # Runner
    control_queue_size: int = Field(
        default=0, ge=0, description="Max pending control events, 0 for unbounded"
    )

    # Health server
    health_port: int | None = Field(default=None, description="Health server port, off if unset")

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("bot_nick")
    @classmethod
    def validate_bot_nick(cls, v: str) -> str:
        """Twitch logins are lowercase"""
        v = v.strip().lower()
        if not v:
            raise ValueError("BOT_NICK must not be empty")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL starts with postgresql://"""
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError("DATABASE_URL must start with 'postgresql://'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper


@lru_cache
def get_settings() -> TashbotSettings:
    """Get cached settings instance"""
    return TashbotSettings()  # type: ignore[call-arg]
