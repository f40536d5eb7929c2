"""
FocusFlow — Habit Storage.

The Memory pillar: goals, completion logs and sound settings persist in a
small SQLite key-value table, one JSON blob per key. Every mutation writes
the whole affected list back immediately.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict
from datetime import date
from pathlib import Path

from focusflow.core.streaks import ToggleResult, apply_toggle, find_log
from focusflow.data.models import Goal, SoundSettings, TaskLog

logger = logging.getLogger(__name__)

GOALS_KEY = "focusflow_goals"
LOGS_KEY = "focusflow_logs"
SOUND_SETTINGS_KEY = "focusflow_sound_settings"


class KeyValueStore:
    """SQLite-backed string key → string value storage."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from focusflow.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the kv table if it doesn't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key   TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
        logger.debug("Key-value table initialized at %s", self._db_path)

    def get(self, key: str) -> str | None:
        """Return the raw stored string, or None if the key is absent."""
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return row["value"]

    def set(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )


class HabitStore:
    """In-memory goal and log lists, mirrored to the key-value store.

    Both lists are rehydrated on construction (empty when absent).
    Stored JSON that cannot be parsed raises json.JSONDecodeError —
    there is no recovery step.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv
        self._goals: list[Goal] = self._load(GOALS_KEY, Goal)
        self._logs: list[TaskLog] = self._load(LOGS_KEY, TaskLog)
        logger.info(
            "Habit store loaded: %d goals, %d logs", len(self._goals), len(self._logs),
        )

    def _load(self, key: str, record_type: type) -> list:
        raw = self._kv.get(key)
        if raw is None:
            return []
        return [record_type(**item) for item in json.loads(raw)]

    def _save_goals(self) -> None:
        self._kv.set(GOALS_KEY, json.dumps([asdict(g) for g in self._goals]))

    def _save_logs(self) -> None:
        self._kv.set(LOGS_KEY, json.dumps([asdict(log) for log in self._logs]))

    @property
    def goals(self) -> list[Goal]:
        return list(self._goals)

    @property
    def logs(self) -> list[TaskLog]:
        return list(self._logs)

    def get_goal(self, goal_id: str) -> Goal | None:
        return next((g for g in self._goals if g.id == goal_id), None)

    def sorted_by_time(self) -> list[Goal]:
        """Goals in dashboard order (earliest time of day first)."""
        return sorted(self._goals, key=lambda g: g.time)

    def logs_for_goal(self, goal_id: str) -> list[TaskLog]:
        """All logs referencing goal_id, including orphans of deleted goals."""
        return [log for log in self._logs if log.goal_id == goal_id]

    def today_log(self, goal_id: str, today: str | None = None) -> TaskLog | None:
        if today is None:
            today = date.today().isoformat()
        return find_log(self._logs, goal_id, today)

    def add_goals(self, new_goals: list[Goal]) -> None:
        """Append goals as-is (no de-duplication)."""
        self._goals = [*self._goals, *new_goals]
        self._save_goals()
        logger.info("Added %d goals", len(new_goals))

    def delete_goal(self, goal_id: str) -> bool:
        """Remove a goal by id. Its logs are left in place."""
        remaining = [g for g in self._goals if g.id != goal_id]
        deleted = len(remaining) != len(self._goals)
        if deleted:
            self._goals = remaining
            self._save_goals()
            logger.info("Goal %s deleted", goal_id)
        return deleted

    def toggle_task(
        self, goal_id: str, note: str | None = None, today: str | None = None,
    ) -> ToggleResult:
        """Check off, un-check, or annotate a goal for today.

        Raises ValueError if the goal does not exist.
        """
        if today is None:
            today = date.today().isoformat()

        result = apply_toggle(self._goals, self._logs, goal_id, today, note=note)

        self._logs = result.logs
        self._save_logs()
        if result.transition != "note_updated":
            self._goals = result.goals
            self._save_goals()

        logger.info(
            "Goal %s %s on %s (streak %d)", goal_id, result.transition, today, result.streak,
        )
        return result


class SoundSettingsStore:
    """Global sound settings singleton, mirrored to the key-value store."""

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv
        raw = kv.get(SOUND_SETTINGS_KEY)
        self._settings = SoundSettings(**json.loads(raw)) if raw is not None else SoundSettings()

    @property
    def settings(self) -> SoundSettings:
        return self._settings

    def save(self, sound: SoundSettings) -> None:
        self._settings = sound
        self._kv.set(SOUND_SETTINGS_KEY, json.dumps(asdict(sound)))
        logger.info("Sound settings saved: %s (%s, enabled=%s)", sound.name, sound.type, sound.enabled)
