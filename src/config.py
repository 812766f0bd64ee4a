"""
NutriPilot — Centralized configuration.

Loads all settings from .env and validates required keys.
Only adapters, the bot and the database defaults read this module; the
pure core never does.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_PROVIDERS = ("none", "caldav", "ics")


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # Calendar provider: "none" | "caldav" | "ics"
    CALENDAR_PROVIDER: str = "none"

    # CalDAV (only needed when CALENDAR_PROVIDER=caldav)
    CALDAV_URL: str = ""
    CALDAV_USERNAME: str = ""
    CALDAV_PASSWORD: str = ""
    CALDAV_CALENDAR_NAME: str = ""

    # Local .ics file (only needed when CALENDAR_PROVIDER=ics)
    ICS_PATH: str = "data/calendar.ics"

    # SQLite
    DATABASE_PATH: str = "data/nutripilot.db"

    # Security
    ALLOWED_USER_IDS: list[int] = []

    # Time
    TIMEZONE: str = "Europe/Berlin"
    DAY_END_HOUR: int = 22

    # New-user defaults
    DEFAULT_DAILY_TARGET: float = 120.0
    DEFAULT_EATING_WINDOW_START: str = "08:00"
    DEFAULT_EATING_WINDOW_END: str = "20:00"

    # Jobs
    PLANNING_INTERVAL_MINUTES: int = 60
    SETTLEMENT_TIME: str = "00:05"
    ROLLOVER_ALPHA: float = 0.3

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("CALENDAR_PROVIDER", mode="before")
    @classmethod
    def parse_provider(cls, v: str) -> str:
        provider = (v or "none").strip().lower()
        if provider not in _PROVIDERS:
            raise ValueError(f"CALENDAR_PROVIDER must be one of {_PROVIDERS}, got {v!r}")
        return provider

    @field_validator("TIMEZONE")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown TIMEZONE: {v!r}") from exc
        return v

    @field_validator("DAY_END_HOUR", mode="before")
    @classmethod
    def parse_hour(cls, v: str | int) -> int:
        hour = int(v)
        if not 1 <= hour <= 24:
            raise ValueError(f"DAY_END_HOUR out of range: {v!r}")
        return hour

    @field_validator(
        "DEFAULT_EATING_WINDOW_START", "DEFAULT_EATING_WINDOW_END", "SETTLEMENT_TIME",
    )
    @classmethod
    def check_hhmm(cls, v: str) -> str:
        hour_str, sep, minute_str = v.strip().partition(":")
        if not sep or not (hour_str.isdigit() and minute_str.isdigit()):
            raise ValueError(f"Expected HH:MM, got {v!r}")
        if not (0 <= int(hour_str) <= 23 and 0 <= int(minute_str) <= 59):
            raise ValueError(f"Hour/minute out of range: {v!r}")
        return f"{int(hour_str):02d}:{int(minute_str):02d}"

    @field_validator("DEFAULT_DAILY_TARGET")
    @classmethod
    def check_target(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"DEFAULT_DAILY_TARGET must be positive, got {v!r}")
        return v

    @field_validator("PLANNING_INTERVAL_MINUTES")
    @classmethod
    def check_interval(cls, v: int) -> int:
        if v < 5:
            raise ValueError(f"PLANNING_INTERVAL_MINUTES must be at least 5, got {v!r}")
        return v

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        CALENDAR_PROVIDER=os.getenv("CALENDAR_PROVIDER", "none"),
        CALDAV_URL=os.getenv("CALDAV_URL", ""),
        CALDAV_USERNAME=os.getenv("CALDAV_USERNAME", ""),
        CALDAV_PASSWORD=os.getenv("CALDAV_PASSWORD", ""),
        CALDAV_CALENDAR_NAME=os.getenv("CALDAV_CALENDAR_NAME", ""),
        ICS_PATH=os.getenv("ICS_PATH", "data/calendar.ics"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/nutripilot.db"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        TIMEZONE=os.getenv("TIMEZONE", "Europe/Berlin"),
        DAY_END_HOUR=os.getenv("DAY_END_HOUR", "22"),
        DEFAULT_DAILY_TARGET=os.getenv("DEFAULT_DAILY_TARGET", "120"),
        DEFAULT_EATING_WINDOW_START=os.getenv("DEFAULT_EATING_WINDOW_START", "08:00"),
        DEFAULT_EATING_WINDOW_END=os.getenv("DEFAULT_EATING_WINDOW_END", "20:00"),
        PLANNING_INTERVAL_MINUTES=os.getenv("PLANNING_INTERVAL_MINUTES", "60"),
        SETTLEMENT_TIME=os.getenv("SETTLEMENT_TIME", "00:05"),
        ROLLOVER_ALPHA=os.getenv("ROLLOVER_ALPHA", "0.3"),
    )


# Singleton, imported by adapters and the bot as:
#   from src.config import settings
settings = _load_settings()
