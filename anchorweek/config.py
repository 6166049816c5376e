"""Configuration management from environment variables."""

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from anchorweek.utils import constants

# Load .env file if it exists
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

    # Database
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", "./data/anchorweek.db"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Engine
    HEARTBEAT_INTERVAL: int = int(os.getenv("HEARTBEAT_INTERVAL", "60"))
    DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", constants.DEFAULT_TIMEZONE)
    # Keep a just-acted-on reminder visible for a minute
    INTERACTION_GRACE: bool = _env_flag("INTERACTION_GRACE", "true")

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration."""
        if not cls.TELEGRAM_BOT_TOKEN:
            raise ValueError("TELEGRAM_BOT_TOKEN environment variable is required")

        if cls.HEARTBEAT_INTERVAL <= 0:
            raise ValueError("HEARTBEAT_INTERVAL must be a positive number of seconds")

        try:
            ZoneInfo(cls.DEFAULT_TIMEZONE)
        except ZoneInfoNotFoundError as e:
            raise ValueError(f"Unknown DEFAULT_TIMEZONE: {cls.DEFAULT_TIMEZONE}") from e

        # Ensure database directory exists
        cls.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
