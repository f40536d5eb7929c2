"""Shared test fixtures and configuration.

Sets up fake environment variables so focusflow.config doesn't sys.exit(),
and provides common fixtures like temp-file stores.
"""

import os

# Patch env vars BEFORE any focusflow imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_focusflow.db")


@pytest.fixture
def kv_store(tmp_db_path):
    """Return a KeyValueStore backed by a temp file."""
    from focusflow.data.db import KeyValueStore
    return KeyValueStore(db_path=tmp_db_path)


@pytest.fixture
def habit_store(kv_store):
    """Return an empty HabitStore backed by a temp file."""
    from focusflow.data.db import HabitStore
    return HabitStore(kv_store)


@pytest.fixture
def sound_store(kv_store):
    """Return a SoundSettingsStore with default settings."""
    from focusflow.data.db import SoundSettingsStore
    return SoundSettingsStore(kv_store)


@pytest.fixture
def make_goal():
    """Factory for Goal records with sensible defaults."""
    from focusflow.data.models import Goal

    counter = {"n": 0}

    def _make(title="Read", time="07:00", schedule="Daily", streak=0, goal_id=None):
        counter["n"] += 1
        return Goal(
            id=goal_id or f"goal-{counter['n']}",
            title=title,
            schedule=schedule,
            time=time,
            created_at="2026-01-01T08:00:00",
            streak=streak,
        )

    return _make
