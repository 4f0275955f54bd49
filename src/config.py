"""
CareMinder — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram (only the bot entry point needs a token)
    TELEGRAM_BOT_TOKEN: str = ""

    # Security
    ALLOWED_USER_IDS: list[int] = []

    # SQLite
    DATABASE_PATH: str = "data/careminder.db"

    # Every "today / tomorrow / hour" computation uses this zone
    TIMEZONE: str = "Asia/Kolkata"

    # Alert check loop
    CHECK_INTERVAL_SECONDS: int = 60
    INITIAL_CHECK_DELAY_SECONDS: int = 2

    # Stock levels
    DEFAULT_REFILL_THRESHOLD: int = 10
    CRITICAL_STOCK_LEVEL: int = 5

    # Appointment reminders
    TOMORROW_REMINDER_HOUR: int = 17
    DUE_SOON_WINDOW_MINUTES: int = 120

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator(
        "CHECK_INTERVAL_SECONDS",
        "INITIAL_CHECK_DELAY_SECONDS",
        "DEFAULT_REFILL_THRESHOLD",
        "CRITICAL_STOCK_LEVEL",
        "TOMORROW_REMINDER_HOUR",
        "DUE_SOON_WINDOW_MINUTES",
        mode="before",
    )
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)


def _load_settings() -> Settings:
    """Load settings from environment."""
    return Settings(
        TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/careminder.db"),
        TIMEZONE=os.getenv("TIMEZONE", "Asia/Kolkata"),
        CHECK_INTERVAL_SECONDS=os.getenv("CHECK_INTERVAL_SECONDS", "60"),
        INITIAL_CHECK_DELAY_SECONDS=os.getenv("INITIAL_CHECK_DELAY_SECONDS", "2"),
        DEFAULT_REFILL_THRESHOLD=os.getenv("DEFAULT_REFILL_THRESHOLD", "10"),
        CRITICAL_STOCK_LEVEL=os.getenv("CRITICAL_STOCK_LEVEL", "5"),
        TOMORROW_REMINDER_HOUR=os.getenv("TOMORROW_REMINDER_HOUR", "17"),
        DUE_SOON_WINDOW_MINUTES=os.getenv("DUE_SOON_WINDOW_MINUTES", "120"),
    )


# Singleton, imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
