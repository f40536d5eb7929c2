"""
FocusFlow — Reminder Loop.

Wall-clock polling, once per second by default: when the current HH:MM
equals a goal's time and the goal isn't done today, the owner gets a
"Time to <title>!" banner and, if enabled, the reminder sound.

A reminder window is one minute long. Within a window the banner is
delivered once and the sound plays at most once per (goal, HH:MM), no
matter how many ticks land in that minute.

This module is provider-agnostic: it depends on the NotificationPort
protocol, not on Telegram.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from focusflow.core.sound import resolve_audio_source

if TYPE_CHECKING:
    from telegram.ext import ContextTypes, Job, JobQueue

    from focusflow.data.db import HabitStore, SoundSettingsStore
    from focusflow.data.models import Goal
    from focusflow.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

JOB_NAME = "reminder_loop"


def format_hhmm(now: datetime) -> str:
    return now.strftime("%H:%M")


def find_due_goal(goals: list[Goal], hhmm: str) -> Goal | None:
    """First goal in list order scheduled for exactly this minute."""
    return next((g for g in goals if g.time == hhmm), None)


def reminder_text(goal: Goal) -> str:
    return f"Time to {goal.title}!"


class ReminderLoop:
    """Polls goals against the clock and raises reminders."""

    def __init__(
        self,
        habits: HabitStore,
        sound: SoundSettingsStore,
        notifier: NotificationPort,
        chat_ids: list[int],
        timezone: str | None = None,
    ) -> None:
        self._habits = habits
        self._sound = sound
        self._notifier = notifier
        self._chat_ids = list(chat_ids)
        self._tz = ZoneInfo(timezone) if timezone else None
        self._job: Job | None = None

        self.active_reminder: str | None = None
        self._bannered_key: str | None = None
        self._dismissed_key: str | None = None
        self._last_played: str | None = None
        self._minute: str | None = None

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self, now: datetime | None = None) -> None:
        """Run one reminder check against `now` (defaults to the wall clock)."""
        if now is None:
            now = datetime.now(self._tz)
        hhmm = format_hhmm(now)
        today = now.date().isoformat()

        # Dedup keys embed HH:MM, so they only matter within one minute
        if hhmm != self._minute:
            self._minute = hhmm
            self._bannered_key = None
            self._dismissed_key = None
            self._last_played = None

        goal = find_due_goal(self._habits.goals, hhmm)
        if goal is None:
            self.active_reminder = None
            return

        log = self._habits.today_log(goal.id, today)
        if log is not None and log.completed:
            self.active_reminder = None
            return

        key = f"{goal.id}-{hhmm}"
        self.active_reminder = None if key == self._dismissed_key else reminder_text(goal)

        if self.active_reminder is not None and self._bannered_key != key:
            self._bannered_key = key
            await self._deliver_banner(self.active_reminder)

        sound = self._sound.settings
        if self.active_reminder is not None and sound.enabled and self._last_played != key:
            self._last_played = key
            await self._play_sound(sound.url, sound.name)

    async def _deliver_banner(self, text: str) -> None:
        for chat_id in self._chat_ids:
            try:
                await self._notifier.send_message(chat_id, f"🔔 Reminder\n{text}")
                logger.info("Reminder sent to %d: %s", chat_id, text)
            except Exception as exc:
                logger.error("Failed to send reminder to %d: %s", chat_id, exc)

    async def _play_sound(self, url: str, name: str) -> None:
        try:
            source = resolve_audio_source(url)
        except ValueError as exc:
            logger.warning("Reminder sound '%s' is unusable: %s", name, exc)
            return

        for chat_id in self._chat_ids:
            try:
                await self._notifier.send_audio(chat_id, source, title=name)
            except Exception as exc:
                logger.warning("Reminder sound failed for %d: %s", chat_id, exc)

    def dismiss(self) -> None:
        """Hide the current banner until the next reminder window."""
        self.active_reminder = None
        self._dismissed_key = self._bannered_key

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, job_queue: JobQueue, interval: float = 1.0) -> Job:
        """Register the repeating tick on the bot's job queue."""
        if self._job is not None:
            return self._job

        async def _reminder_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
            await self.tick()

        self._job = job_queue.run_repeating(
            _reminder_job_callback,
            interval=interval,
            first=0,
            name=JOB_NAME,
        )
        logger.info("Reminder loop started (every %.1fs)", interval)
        return self._job

    def stop(self) -> None:
        """Remove the repeating tick. Safe to call more than once."""
        if self._job is None:
            return
        self._job.schedule_removal()
        self._job = None
        logger.info("Reminder loop stopped")

    @property
    def running(self) -> bool:
        return self._job is not None
