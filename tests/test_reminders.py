"""Tests for focusflow.core.reminders — the reminder polling loop."""

from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from focusflow.core.reminders import JOB_NAME, ReminderLoop, find_due_goal, format_hhmm
from focusflow.data.models import SoundSettings

TODAY = "2026-02-07"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _at(hour: int, minute: int, second: int = 0) -> datetime:
    return datetime(2026, 2, 7, hour, minute, second)


def _make_loop(habit_store, sound_store, notifier=None, chat_ids=(12345,)):
    notifier = notifier or AsyncMock()
    return ReminderLoop(habit_store, sound_store, notifier, chat_ids=list(chat_ids)), notifier


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_format_hhmm_is_24h(self):
        assert format_hhmm(_at(7, 5)) == "07:05"
        assert format_hhmm(_at(19, 30)) == "19:30"

    def test_find_due_goal_uses_list_order(self, make_goal):
        first, second = make_goal(title="First", time="07:00"), make_goal(title="Second", time="07:00")
        assert find_due_goal([first, second], "07:00") is first

    def test_find_due_goal_exact_minute_only(self, make_goal):
        assert find_due_goal([make_goal(time="07:00")], "07:01") is None


# ---------------------------------------------------------------------------
# tick()
# ---------------------------------------------------------------------------


class TestTick:
    @pytest.mark.asyncio
    async def test_fires_once_per_minute_window(self, habit_store, sound_store, make_goal):
        goal = make_goal(title="Goal A", time="07:00")
        habit_store.add_goals([goal])
        loop, notifier = _make_loop(habit_store, sound_store)

        for second in range(60):
            await loop.tick(_at(7, 0, second))
            assert loop.active_reminder == "Time to Goal A!"

        notifier.send_message.assert_called_once()
        assert notifier.send_message.call_args[0][0] == 12345
        assert "Time to Goal A!" in notifier.send_message.call_args[0][1]
        notifier.send_audio.assert_called_once()
        assert notifier.send_audio.call_args[0][1] == sound_store.settings.url

    @pytest.mark.asyncio
    async def test_clears_after_window(self, habit_store, sound_store, make_goal):
        habit_store.add_goals([make_goal(time="07:00")])
        loop, _ = _make_loop(habit_store, sound_store)

        await loop.tick(_at(7, 0, 30))
        assert loop.active_reminder is not None
        await loop.tick(_at(7, 1, 0))
        assert loop.active_reminder is None

    @pytest.mark.asyncio
    async def test_no_match_no_reminder(self, habit_store, sound_store, make_goal):
        habit_store.add_goals([make_goal(time="07:00")])
        loop, notifier = _make_loop(habit_store, sound_store)

        await loop.tick(_at(8, 0))
        assert loop.active_reminder is None
        notifier.send_message.assert_not_called()
        notifier.send_audio.assert_not_called()

    @pytest.mark.asyncio
    async def test_done_goal_does_not_fire(self, habit_store, sound_store, make_goal):
        goal = make_goal(time="07:00")
        habit_store.add_goals([goal])
        habit_store.toggle_task(goal.id, today=TODAY)
        loop, notifier = _make_loop(habit_store, sound_store)

        await loop.tick(_at(7, 0))
        assert loop.active_reminder is None
        notifier.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_completing_mid_window_clears_reminder(self, habit_store, sound_store, make_goal):
        goal = make_goal(time="07:00")
        habit_store.add_goals([goal])
        loop, _ = _make_loop(habit_store, sound_store)

        await loop.tick(_at(7, 0, 1))
        habit_store.toggle_task(goal.id, today=TODAY)
        await loop.tick(_at(7, 0, 2))
        assert loop.active_reminder is None

    @pytest.mark.asyncio
    async def test_sound_disabled_still_shows_banner(self, habit_store, sound_store, make_goal):
        habit_store.add_goals([make_goal(time="07:00")])
        sound_store.save(SoundSettings(enabled=False))
        loop, notifier = _make_loop(habit_store, sound_store)

        await loop.tick(_at(7, 0))
        notifier.send_message.assert_called_once()
        notifier.send_audio.assert_not_called()

    @pytest.mark.asyncio
    async def test_custom_sound_sent_as_bytes(self, habit_store, sound_store, make_goal):
        habit_store.add_goals([make_goal(time="07:00")])
        sound_store.save(SoundSettings(type="custom", url="data:audio/mpeg;base64,AAEC", name="mine.mp3"))
        loop, notifier = _make_loop(habit_store, sound_store)

        await loop.tick(_at(7, 0))
        assert notifier.send_audio.call_args[0][1] == b"\x00\x01\x02"
        assert notifier.send_audio.call_args.kwargs["title"] == "mine.mp3"

    @pytest.mark.asyncio
    async def test_malformed_sound_is_logged_not_raised(self, habit_store, sound_store, make_goal):
        habit_store.add_goals([make_goal(time="07:00")])
        sound_store.save(SoundSettings(type="custom", url="garbage", name="bad"))
        loop, notifier = _make_loop(habit_store, sound_store)

        await loop.tick(_at(7, 0))
        assert loop.active_reminder is not None
        notifier.send_message.assert_called_once()
        notifier.send_audio.assert_not_called()

    @pytest.mark.asyncio
    async def test_playback_error_not_retried(self, habit_store, sound_store, make_goal):
        habit_store.add_goals([make_goal(time="07:00")])
        notifier = AsyncMock()
        notifier.send_audio.side_effect = Exception("blocked")
        loop, _ = _make_loop(habit_store, sound_store, notifier=notifier)

        for second in range(5):
            await loop.tick(_at(7, 0, second))

        notifier.send_audio.assert_called_once()
        notifier.send_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_banner_error_does_not_block_sound(self, habit_store, sound_store, make_goal):
        habit_store.add_goals([make_goal(time="07:00")])
        notifier = AsyncMock()
        notifier.send_message.side_effect = Exception("network down")
        loop, _ = _make_loop(habit_store, sound_store, notifier=notifier)

        await loop.tick(_at(7, 0))
        notifier.send_audio.assert_called_once()

    @pytest.mark.asyncio
    async def test_same_time_next_day_fires_again(self, habit_store, sound_store, make_goal):
        habit_store.add_goals([make_goal(time="07:00")])
        loop, notifier = _make_loop(habit_store, sound_store)

        await loop.tick(_at(7, 0))
        await loop.tick(_at(7, 0) + timedelta(days=1))
        assert notifier.send_message.call_count == 2
        assert notifier.send_audio.call_count == 2

    @pytest.mark.asyncio
    async def test_two_goals_consecutive_minutes(self, habit_store, sound_store, make_goal):
        habit_store.add_goals([
            make_goal(title="Stretch", time="07:00"),
            make_goal(title="Journal", time="07:01"),
        ])
        loop, notifier = _make_loop(habit_store, sound_store)

        await loop.tick(_at(7, 0, 59))
        await loop.tick(_at(7, 1, 0))
        assert loop.active_reminder == "Time to Journal!"
        assert notifier.send_message.call_count == 2
        assert notifier.send_audio.call_count == 2

    @pytest.mark.asyncio
    async def test_sends_to_every_owner_chat(self, habit_store, sound_store, make_goal):
        habit_store.add_goals([make_goal(time="07:00")])
        loop, notifier = _make_loop(habit_store, sound_store, chat_ids=(1, 2))

        await loop.tick(_at(7, 0))
        assert [c[0][0] for c in notifier.send_message.call_args_list] == [1, 2]


# ---------------------------------------------------------------------------
# dismiss()
# ---------------------------------------------------------------------------


class TestDismiss:
    @pytest.mark.asyncio
    async def test_dismiss_hides_for_rest_of_window(self, habit_store, sound_store, make_goal):
        habit_store.add_goals([make_goal(title="Walk", time="07:00")])
        loop, notifier = _make_loop(habit_store, sound_store)

        await loop.tick(_at(7, 0, 0))
        loop.dismiss()
        assert loop.active_reminder is None

        await loop.tick(_at(7, 0, 10))
        assert loop.active_reminder is None
        notifier.send_message.assert_called_once()


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_start_registers_repeating_job(self, habit_store, sound_store):
        loop, _ = _make_loop(habit_store, sound_store)
        job_queue = MagicMock()

        job = loop.start(job_queue, interval=1.0)

        job_queue.run_repeating.assert_called_once()
        kwargs = job_queue.run_repeating.call_args.kwargs
        assert kwargs["interval"] == 1.0
        assert kwargs["name"] == JOB_NAME
        assert job is job_queue.run_repeating.return_value
        assert loop.running is True

    def test_start_twice_reuses_job(self, habit_store, sound_store):
        loop, _ = _make_loop(habit_store, sound_store)
        job_queue = MagicMock()
        loop.start(job_queue)
        loop.start(job_queue)
        job_queue.run_repeating.assert_called_once()

    def test_stop_removes_job(self, habit_store, sound_store):
        loop, _ = _make_loop(habit_store, sound_store)
        job_queue = MagicMock()
        job = loop.start(job_queue)

        loop.stop()
        loop.stop()

        job.schedule_removal.assert_called_once()
        assert loop.running is False

    @pytest.mark.asyncio
    async def test_job_callback_ticks(self, habit_store, sound_store):
        loop, _ = _make_loop(habit_store, sound_store)
        job_queue = MagicMock()
        loop.start(job_queue)
        callback = job_queue.run_repeating.call_args[0][0]

        loop.tick = AsyncMock()
        await callback(MagicMock())
        loop.tick.assert_awaited_once()
