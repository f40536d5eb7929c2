"""
FocusFlow — Data Models.

Goals and their daily completion logs are plain flat records. They are
serialized to JSON blobs in the key-value store exactly as declared here.
"""

from __future__ import annotations

from dataclasses import dataclass, field

GOAL_CATEGORIES = ("health", "learning", "work", "mindfulness", "other")

DEFAULT_SOUND_URL = "https://assets.mixkit.co/sfx/preview/mixkit-happy-bells-notification-937.mp3"


@dataclass
class Goal:
    """A user-defined recurring habit.

    Created in bulk when an AI-generated plan is accepted. Only `streak`
    changes after creation.
    """

    id: str
    title: str                  # e.g., "Read 10 pages"
    schedule: str               # free text, e.g. "Daily", "Mon, Wed, Fri"
    time: str                   # HH:MM in 24h format, used for reminders
    created_at: str             # ISO datetime
    streak: int = 0
    category: str = "other"


@dataclass
class TaskLog:
    """A record that a goal was completed on a specific date.

    At most one log exists per (goal_id, date). The log's existence is
    what marks the goal done; toggling off deletes it.
    """

    id: str
    goal_id: str                # non-owning — may outlive a deleted goal
    date: str                   # ISO date YYYY-MM-DD
    timestamp: str              # ISO datetime of creation
    completed: bool = True
    note: str = ""


@dataclass
class SoundSettings:
    """Global reminder sound configuration."""

    enabled: bool = True
    type: str = "preset"        # "preset" | "custom"
    url: str = DEFAULT_SOUND_URL  # remote URL or data: URI
    name: str = "Soft Chime"


@dataclass
class ChatMessage:
    """One entry of the append-only coach transcript."""

    id: str
    role: str                   # "user" | "model"
    text: str
    timestamp: int = field(default=0)  # epoch milliseconds
