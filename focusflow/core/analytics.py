"""Habit analytics — completion counts per goal and today's progress.

Counts are raw completions, not a rate against each goal's schedule.
"""

from __future__ import annotations

from dataclasses import dataclass

from focusflow.data.models import Goal, TaskLog

_SHORT_NAME_LEN = 10


@dataclass
class GoalStats:
    goal_id: str
    name: str          # short label for charts/lists
    full_title: str
    completions: int


def _short_name(title: str) -> str:
    if len(title) > _SHORT_NAME_LEN:
        return title[:_SHORT_NAME_LEN] + "..."
    return title


def completions_per_goal(goals: list[Goal], logs: list[TaskLog]) -> list[GoalStats]:
    """One entry per goal, in goal list order."""
    counts: dict[str, int] = {}
    for log in logs:
        counts[log.goal_id] = counts.get(log.goal_id, 0) + 1

    return [
        GoalStats(
            goal_id=g.id,
            name=_short_name(g.title),
            full_title=g.title,
            completions=counts.get(g.id, 0),
        )
        for g in goals
    ]


def best_performer(stats: list[GoalStats]) -> GoalStats | None:
    """The goal with the most completions (the last one wins ties)."""
    best: GoalStats | None = None
    for entry in stats:
        if best is None or entry.completions >= best.completions:
            best = entry
    return best


def today_progress(goals: list[Goal], logs: list[TaskLog], today: str) -> tuple[int, int]:
    """Return (completed today, total goals).

    Orphaned logs of deleted goals still count, matching the raw log tally.
    """
    done = sum(1 for log in logs if log.date == today and log.completed)
    return done, len(goals)


def total_completions(logs: list[TaskLog]) -> int:
    return sum(1 for log in logs if log.completed)
