"""
FocusFlow — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from focusflow/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # LLM — provider-agnostic (gemini, anthropic, openai, cohere)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str

    # SQLite key-value store (goals, logs, sound settings)
    DATABASE_PATH: str = "data/focusflow.db"

    # Security — the owner's Telegram user id(s)
    ALLOWED_USER_IDS: list[int] = []

    # Reminders
    TIMEZONE: str = "Asia/Jerusalem"
    REMINDER_INTERVAL_SECONDS: float = 1.0

    # Custom reminder sound upload limit
    MAX_CUSTOM_SOUND_MB: float = 2.0

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("REMINDER_INTERVAL_SECONDS", "MAX_CUSTOM_SOUND_MB", mode="before")
    @classmethod
    def parse_positive(cls, v: str | float) -> float:
        value = float(v)
        if value <= 0:
            raise ValueError(f"must be positive, got {value}")
        return value


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    llm_api_key = os.getenv("LLM_API_KEY", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    if not llm_api_key or llm_api_key.startswith("your-"):
        print("ERROR: LLM_API_KEY is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=llm_api_key,
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/focusflow.db"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        TIMEZONE=os.getenv("TIMEZONE", "Asia/Jerusalem"),
        REMINDER_INTERVAL_SECONDS=os.getenv("REMINDER_INTERVAL_SECONDS", "1"),
        MAX_CUSTOM_SOUND_MB=os.getenv("MAX_CUSTOM_SOUND_MB", "2"),
    )


# Singleton — imported by all other modules as:
#   from focusflow.config import settings
settings = _load_settings()
