"""Toggle/streak state machine — pure business logic.

Each (goal, today) pair is either NOT_DONE (no log) or DONE (a log exists).
Toggling moves between them and nudges the goal's streak counter by one.
A note supplied while already DONE edits the note in place.

No I/O: this module only transforms data. Callers get fresh lists back
and persist them.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime

from focusflow.data.models import Goal, TaskLog

logger = logging.getLogger(__name__)

NOT_DONE = "not_done"
DONE = "done"


@dataclass
class ToggleResult:
    """Outcome of a single toggle."""

    transition: str            # "completed" | "uncompleted" | "note_updated"
    state: str                 # state after the toggle: DONE | NOT_DONE
    goals: list[Goal]
    logs: list[TaskLog]
    log: TaskLog | None        # the created/updated log, None after toggle-off
    streak: int


def find_log(logs: list[TaskLog], goal_id: str, day: str) -> TaskLog | None:
    """Return the log for (goal_id, day), or None."""
    for log in logs:
        if log.goal_id == goal_id and log.date == day:
            return log
    return None


def state_for(logs: list[TaskLog], goal_id: str, day: str) -> str:
    log = find_log(logs, goal_id, day)
    return DONE if log is not None and log.completed else NOT_DONE


def _bump_streak(goals: list[Goal], goal_id: str, delta: int) -> tuple[list[Goal], int]:
    new_goals: list[Goal] = []
    streak = 0
    for goal in goals:
        if goal.id == goal_id:
            goal = replace(goal, streak=max(0, goal.streak + delta))
            streak = goal.streak
        new_goals.append(goal)
    return new_goals, streak


def apply_toggle(
    goals: list[Goal],
    logs: list[TaskLog],
    goal_id: str,
    today: str,
    note: str | None = None,
    now: datetime | None = None,
) -> ToggleResult:
    """Toggle a goal's completion for `today`.

    Args:
        goals: Current goal list (not mutated).
        logs: Current log list (not mutated).
        goal_id: Goal to toggle.
        today: ISO date YYYY-MM-DD.
        note: Optional reflection. When a log already exists, a note
              (even "") means "edit the note" rather than "toggle off".
        now: Creation instant for a new log (defaults to datetime.now()).

    Raises:
        ValueError: If goal_id is not in `goals`.
    """
    goal = next((g for g in goals if g.id == goal_id), None)
    if goal is None:
        raise ValueError(f"Goal {goal_id} not found")

    existing = find_log(logs, goal_id, today)

    if existing is not None and note is not None:
        updated = replace(existing, note=note)
        new_logs = [updated if log is existing else log for log in logs]
        return ToggleResult(
            transition="note_updated",
            state=DONE,
            goals=list(goals),
            logs=new_logs,
            log=updated,
            streak=goal.streak,
        )

    if existing is not None:
        new_logs = [log for log in logs if log is not existing]
        new_goals, streak = _bump_streak(goals, goal_id, -1)
        return ToggleResult(
            transition="uncompleted",
            state=NOT_DONE,
            goals=new_goals,
            logs=new_logs,
            log=None,
            streak=streak,
        )

    created_at = (now or datetime.now()).isoformat()
    new_log = TaskLog(
        id=str(uuid.uuid4()),
        goal_id=goal_id,
        date=today,
        timestamp=created_at,
        completed=True,
        note=note or "",
    )
    new_goals, streak = _bump_streak(goals, goal_id, +1)
    return ToggleResult(
        transition="completed",
        state=DONE,
        goals=new_goals,
        logs=[*logs, new_log],
        log=new_log,
        streak=streak,
    )
