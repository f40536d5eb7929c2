"""Application state container.

Everything the bot mutates lives here and is handed to handlers through
`Application.bot_data["state"]`, instead of module-level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from focusflow.core.coach import CoachChat
from focusflow.core.reminders import ReminderLoop
from focusflow.core.requests import RequestRegistry
from focusflow.data.db import HabitStore, KeyValueStore, SoundSettingsStore


@dataclass
class AppState:
    habits: HabitStore
    sound: SoundSettingsStore
    coach: CoachChat = field(default_factory=CoachChat)
    requests: RequestRegistry = field(default_factory=RequestRegistry)
    reminders: ReminderLoop | None = None

    @classmethod
    def load(cls, db_path: str | None = None) -> AppState:
        """Rehydrate goals, logs and sound settings from one SQLite file.

        Raises json.JSONDecodeError if stored data is corrupt.
        """
        kv = KeyValueStore(db_path)
        return cls(habits=HabitStore(kv), sound=SoundSettingsStore(kv))
