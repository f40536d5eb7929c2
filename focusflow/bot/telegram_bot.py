"""
FocusFlow — Telegram Bot.

Telegram is the only user interface. The dashboard, goal management,
AI planning, coaching, analytics and sound settings all flow through
this bot, and reminders arrive here as messages and audio.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
from datetime import datetime
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine
from zoneinfo import ZoneInfo

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from focusflow.config import settings
from focusflow.core.analytics import (
    best_performer,
    completions_per_goal,
    today_progress,
    total_completions,
)
from focusflow.core.planner import AIPlan, PlanImage, PlanSelection, generate_plan
from focusflow.core.sound import (
    PRESETS,
    SoundTooLargeError,
    resolve_audio_source,
    select_preset,
    set_custom_sound,
    toggle_enabled,
)
from focusflow.core.streaks import DONE, state_for

if TYPE_CHECKING:
    from focusflow.core.state import AppState
    from focusflow.data.models import Goal
    from focusflow.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_PRESET_NAMES = list(PRESETS)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def _is_allowed(user: Any) -> bool:
    return user is not None and user.id in settings.ALLOWED_USER_IDS


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores updates from unauthorized users.

    Does NOT send any response to strangers — the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if not _is_allowed(user):
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _state(context: ContextTypes.DEFAULT_TYPE) -> AppState:
    return context.bot_data["state"]


def _today() -> str:
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date().isoformat()


def _goal_by_number(state: AppState, raw: str) -> Goal | None:
    """Resolve a 1-based dashboard number to a goal."""
    try:
        index = int(raw) - 1
    except ValueError:
        return None
    goals = state.habits.sorted_by_time()
    if 0 <= index < len(goals):
        return goals[index]
    return None


def _format_dashboard(state: AppState, today: str) -> str:
    goals = state.habits.sorted_by_time()
    done, total = today_progress(goals, state.habits.logs, today)

    lines: list[str] = []
    if state.reminders is not None and state.reminders.active_reminder:
        lines.append(f"🔔 {state.reminders.active_reminder}\n")
    lines.append(f"Today's progress: {done} / {total}\n")

    if not goals:
        lines.append("No goals yet. Use /plan to create some!")
        return "\n".join(lines)

    for number, goal in enumerate(goals, start=1):
        log = state.habits.today_log(goal.id, today)
        mark = "✅" if state_for(state.habits.logs, goal.id, today) == DONE else "⬜"
        lines.append(
            f"{number}. {mark} {goal.time} {goal.title}\n"
            f"     {goal.schedule} • {goal.streak} day streak"
        )
        if log is not None and log.note:
            lines.append(f"     📝 {log.note}")
    return "\n".join(lines)


def _dashboard_keyboard(state: AppState) -> InlineKeyboardMarkup | None:
    rows = [
        [InlineKeyboardButton(f"{n}. {g.title}", callback_data=f"toggle:{g.id}")]
        for n, g in enumerate(state.habits.sorted_by_time(), start=1)
    ]
    if state.reminders is not None and state.reminders.active_reminder:
        rows.append([InlineKeyboardButton("Dismiss reminder", callback_data="dismiss")])
    return InlineKeyboardMarkup(rows) if rows else None


def _format_plan(selection: PlanSelection) -> str:
    plan = selection.plan
    lines = [f"📋 {plan.planName}\n"]
    for i, task in enumerate(plan.tasks):
        mark = "☑️" if i in selection.selected else "⬜"
        lines.append(f"{mark} {task.suggestedTime} {task.title} ({task.frequency})")
        lines.append(f"     {task.reasoning}")
    return "\n".join(lines)


def _plan_keyboard(selection: PlanSelection) -> InlineKeyboardMarkup:
    rows = [
        [InlineKeyboardButton(
            f"{'☑️' if i in selection.selected else '⬜'} {task.title}",
            callback_data=f"plansel:{i}",
        )]
        for i, task in enumerate(selection.plan.tasks)
    ]
    count = len(selection.selected)
    rows.append([
        InlineKeyboardButton(
            "Deselect All" if selection.all_selected() else "Select All",
            callback_data="planall",
        ),
    ])
    rows.append([
        InlineKeyboardButton(
            f"Add {count} Selected Goal{'s' if count != 1 else ''}",
            callback_data="planadd",
        ),
        InlineKeyboardButton("Discard", callback_data="plancancel"),
    ])
    return InlineKeyboardMarkup(rows)


def _format_sound(state: AppState) -> str:
    sound = state.sound.settings
    status = "on" if sound.enabled else "off"
    return (
        f"🔊 Reminder sounds: {status}\n"
        f"Current sound: {sound.name} ({sound.type})\n\n"
        "Pick a preset below, or send me an audio file (under "
        f"{settings.MAX_CUSTOM_SOUND_MB:g}MB) to use your own."
    )


def _sound_keyboard(state: AppState) -> InlineKeyboardMarkup:
    sound = state.sound.settings
    rows = [[InlineKeyboardButton(
        "Disable sounds" if sound.enabled else "Enable sounds",
        callback_data="sound:toggle",
    )]]
    for i, name in enumerate(_PRESET_NAMES):
        mark = "● " if sound.type == "preset" and sound.name == name else ""
        rows.append([InlineKeyboardButton(f"{mark}{name}", callback_data=f"sound:preset:{i}")])
    rows.append([InlineKeyboardButton("▶️ Test sound", callback_data="sound:test")])
    return InlineKeyboardMarkup(rows)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message."""
    await update.message.reply_text(
        "Welcome to *FocusFlow*!\n\n"
        "I help you build habits that stick:\n"
        "• Use /plan <goal> (or send a photo of your timetable) to get an AI plan\n"
        "• Use /today to check off today's habits\n"
        "• I'll remind you when it's time for each habit\n"
        "• Chat with me any time for coaching\n\n"
        "Type /help for the full command list.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/today — Today's habits with check-off buttons\n"
        "/done <n> [note] — Toggle habit n (or edit its note if done)\n"
        "/note <n> <text> — Add a reflection to a completed habit\n"
        "/goals — List and delete goals\n"
        "/plan <goal> — Generate a habit plan (or send a timetable photo)\n"
        "/coach <message> — Talk to your AI coach (plain text works too)\n"
        "/stats — Completion analytics\n"
        "/sound — Reminder sound settings\n"
        "/help — Show this message",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_today(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /today — dashboard with toggle buttons."""
    state = _state(context)
    await update.message.reply_text(
        _format_dashboard(state, _today()),
        reply_markup=_dashboard_keyboard(state),
    )


@authorized_only
async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done <n> [note] — toggle a habit for today."""
    state = _state(context)
    args = context.args
    if not args:
        await update.message.reply_text("Usage: /done <number> [note]\nUse /today to see numbers.")
        return

    goal = _goal_by_number(state, args[0])
    if goal is None:
        await update.message.reply_text("Invalid habit number. Use /today to see valid numbers.")
        return

    note = " ".join(args[1:]).strip() or None
    try:
        result = state.habits.toggle_task(goal.id, note=note, today=_today())
    except ValueError as exc:
        logger.error("/done error: %s", exc)
        await update.message.reply_text("Couldn't update that habit. Please try again.")
        return

    if result.transition == "completed":
        msg = f"✅ '{goal.title}' done! Streak: {result.streak}"
    elif result.transition == "uncompleted":
        msg = f"↩️ '{goal.title}' unchecked. Streak: {result.streak}"
    else:
        msg = f"📝 Note updated for '{goal.title}'."
    await update.message.reply_text(msg)


@authorized_only
async def cmd_note(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /note <n> <text> — edit the reflection on a completed habit."""
    state = _state(context)
    args = context.args
    if not args or len(args) < 2:
        await update.message.reply_text("Usage: /note <number> <text>")
        return

    goal = _goal_by_number(state, args[0])
    if goal is None:
        await update.message.reply_text("Invalid habit number. Use /today to see valid numbers.")
        return

    today = _today()
    if state.habits.today_log(goal.id, today) is None:
        await update.message.reply_text(
            f"'{goal.title}' isn't done today yet. Use /done {args[0]} <note> to complete it with a note."
        )
        return

    state.habits.toggle_task(goal.id, note=" ".join(args[1:]).strip(), today=today)
    await update.message.reply_text(f"📝 Note saved for '{goal.title}'.")


@authorized_only
async def cmd_goals(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /goals — list goals with delete buttons."""
    state = _state(context)
    goals = state.habits.goals
    if not goals:
        await update.message.reply_text("No goals yet. Create some with /plan!")
        return

    lines = ["Active goals:\n"]
    for g in goals:
        done = len(state.habits.logs_for_goal(g.id))
        lines.append(f"• {g.title} — {g.schedule} at {g.time} ({done} done)")
    keyboard = [
        [InlineKeyboardButton(f"🗑 {g.title}", callback_data=f"delgoal:{g.id}")]
        for g in goals
    ]
    await update.message.reply_text(
        "\n".join(lines), reply_markup=InlineKeyboardMarkup(keyboard),
    )


@authorized_only
async def cmd_stats(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /stats — completion counts per goal."""
    state = _state(context)
    goals = state.habits.goals
    logs = state.habits.logs

    if not goals:
        await update.message.reply_text("No goals to analyze yet.")
        return

    stats = completions_per_goal(goals, logs)
    done, total = today_progress(goals, logs, _today())
    lines = ["📊 Habit consistency\n"]
    for entry in stats:
        bar = "█" * min(entry.completions, 20)
        lines.append(f"{entry.name:<13} {bar} {entry.completions}")

    best = best_performer(stats)
    lines.append("")
    lines.append(f"Total completions: {total_completions(logs)}")
    lines.append(f"Today: {done} / {total}")
    if best is not None:
        lines.append(f"Top performer: {best.full_title}")
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_sound(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /sound — show sound settings."""
    state = _state(context)
    await update.message.reply_text(_format_sound(state), reply_markup=_sound_keyboard(state))


# ---------------------------------------------------------------------------
# AI plan generation
# ---------------------------------------------------------------------------


async def _run_plan_request(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    prompt: str,
    image: PlanImage | None = None,
) -> None:
    """Generate a plan and show it for selection, unless superseded."""
    state = _state(context)
    slot = f"plan:{update.effective_chat.id}"

    processing_msg = await update.message.reply_text("Designing your plan...")
    applied, plan = await state.requests.run(slot, generate_plan(prompt, image))
    try:
        await processing_msg.delete()
    except Exception:
        pass  # Non-critical if delete fails

    if not applied:
        return

    if plan is None:
        await update.message.reply_text(
            "Sorry, I couldn't generate a plan right now. Please try again."
        )
        return

    selection = PlanSelection(plan)
    context.user_data["plan_selection"] = selection
    await update.message.reply_text(
        _format_plan(selection), reply_markup=_plan_keyboard(selection),
    )


@authorized_only
async def cmd_plan(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /plan <goal> — AI plan from free text."""
    prompt = " ".join(context.args or []).strip()
    if not prompt:
        await update.message.reply_text(
            "Usage: /plan <your goal>\nOr send a photo of your timetable (caption optional)."
        )
        return
    await _run_plan_request(update, context, prompt)


@authorized_only
async def handle_photo(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle photos — AI plan from a timetable image."""
    photo = update.message.photo[-1]  # largest size
    try:
        tg_file = await context.bot.get_file(photo.file_id)
        data = bytes(await tg_file.download_as_bytearray())
    except Exception as exc:
        logger.error("Photo download error: %s", exc)
        await update.message.reply_text("Sorry, I couldn't read that image. Please try again.")
        return

    caption = (update.message.caption or "").strip()
    await _run_plan_request(
        update, context, caption, PlanImage(data=data, mime_type="image/jpeg"),
    )


async def _handle_plan_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plan selection buttons: toggle one, toggle all, add, discard."""
    query = update.callback_query
    await query.answer()

    if not _is_allowed(query.from_user):
        return

    selection: PlanSelection | None = context.user_data.get("plan_selection")
    if selection is None:
        await query.edit_message_text("This plan has expired. Use /plan to make a new one.")
        return

    data = query.data
    if data == "plancancel":
        context.user_data.pop("plan_selection", None)
        await query.edit_message_text("Plan discarded.")
        return

    if data == "planadd":
        goals = selection.to_goals()
        if not goals:
            await query.message.reply_text("Select at least one task first.")
            return
        _state(context).habits.add_goals(goals)
        context.user_data.pop("plan_selection", None)
        await query.edit_message_text(
            f"✅ Added {len(goals)} goal{'s' if len(goals) != 1 else ''}. See /today."
        )
        return

    if data == "planall":
        selection.toggle_all()
    else:
        try:
            selection.toggle(int(data.split(":")[1]))
        except (IndexError, ValueError):
            logger.warning("Bad plan callback data: %s", data)
            return

    await query.edit_message_text(
        _format_plan(selection), reply_markup=_plan_keyboard(selection),
    )


# ---------------------------------------------------------------------------
# Dashboard / goal callbacks
# ---------------------------------------------------------------------------


async def _handle_toggle_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the dashboard button tap to toggle a habit."""
    query = update.callback_query
    await query.answer()

    if not _is_allowed(query.from_user):
        return

    state = _state(context)
    goal_id = query.data.split(":", 1)[1]
    today = _today()

    try:
        state.habits.toggle_task(goal_id, today=today)
    except ValueError:
        await query.edit_message_text("That goal no longer exists. Use /today to refresh.")
        return

    await query.edit_message_text(
        _format_dashboard(state, today), reply_markup=_dashboard_keyboard(state),
    )


async def _handle_dismiss_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await query.answer()

    if not _is_allowed(query.from_user):
        return

    state = _state(context)
    if state.reminders is not None:
        state.reminders.dismiss()
    await query.edit_message_text(
        _format_dashboard(state, _today()), reply_markup=_dashboard_keyboard(state),
    )


async def _handle_deletegoal_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the inline button tap to delete a goal."""
    query = update.callback_query
    await query.answer()

    if not _is_allowed(query.from_user):
        return

    state = _state(context)
    goal_id = query.data.split(":", 1)[1]
    goal = state.habits.get_goal(goal_id)
    if goal is None or not state.habits.delete_goal(goal_id):
        await query.edit_message_text("Goal not found or already deleted.")
        return

    await query.edit_message_text(f"🗑 Goal '{goal.title}' deleted.")


# ---------------------------------------------------------------------------
# Sound settings
# ---------------------------------------------------------------------------


async def _handle_sound_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle sound settings buttons: enable/disable, presets, test."""
    query = update.callback_query
    await query.answer()

    if not _is_allowed(query.from_user):
        return

    state = _state(context)
    parts = query.data.split(":")
    action = parts[1]

    if action == "test":
        sound = state.sound.settings
        notifier: NotificationPort = context.bot_data["notifier"]
        try:
            await notifier.send_audio(
                query.message.chat_id, resolve_audio_source(sound.url), title=sound.name,
            )
        except Exception as exc:
            logger.warning("Sound test failed: %s", exc)
            await query.message.reply_text("Could not play this audio file.")
        return

    if action == "toggle":
        state.sound.save(toggle_enabled(state.sound.settings))
    elif action == "preset":
        try:
            name = _PRESET_NAMES[int(parts[2])]
        except (IndexError, ValueError):
            logger.warning("Bad sound callback data: %s", query.data)
            return
        state.sound.save(select_preset(state.sound.settings, name))

    await query.edit_message_text(_format_sound(state), reply_markup=_sound_keyboard(state))


@authorized_only
async def handle_audio(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle audio uploads — use as the custom reminder sound."""
    state = _state(context)
    message = update.message
    audio = message.audio or message.document
    max_bytes = int(settings.MAX_CUSTOM_SOUND_MB * 1024 * 1024)
    too_large = (
        f"File is too large. Please choose a file under {settings.MAX_CUSTOM_SOUND_MB:g}MB."
    )

    if audio.file_size is not None and audio.file_size > max_bytes:
        await message.reply_text(too_large)
        return

    try:
        tg_file = await context.bot.get_file(audio.file_id)
        data = bytes(await tg_file.download_as_bytearray())
    except Exception as exc:
        logger.error("Audio download error: %s", exc)
        await message.reply_text("Sorry, I couldn't download that file. Please try again.")
        return

    filename = audio.file_name or "Custom sound"
    try:
        sound = set_custom_sound(
            state.sound.settings,
            filename,
            data,
            mime_type=audio.mime_type or "audio/mpeg",
            max_bytes=max_bytes,
        )
    except SoundTooLargeError:
        await message.reply_text(too_large)
        return

    state.sound.save(sound)
    await message.reply_text(f"🔊 Reminder sound set to '{filename}'.")


# ---------------------------------------------------------------------------
# Coach
# ---------------------------------------------------------------------------


async def _coach_reply(update: Update, context: ContextTypes.DEFAULT_TYPE, text: str) -> None:
    state = _state(context)
    reply = await state.coach.send(text)
    if reply is not None:
        await update.message.reply_text(reply)


@authorized_only
async def cmd_coach(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /coach <message> — talk to the AI coach."""
    text = " ".join(context.args or []).strip()
    if not text:
        await update.message.reply_text(_state(context).coach.messages[0].text)
        return
    await _coach_reply(update, context, text)


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text messages — they go to the coach."""
    await _coach_reply(update, context, update.message.text)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    state: AppState | None = None,
    notifier: NotificationPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        state: Application state. Defaults to state loaded from DATABASE_PATH.
        notifier: Notification port implementation. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
    """
    from focusflow.core.reminders import ReminderLoop

    app = (
        ApplicationBuilder()
        .token(settings.TELEGRAM_BOT_TOKEN)
        .concurrent_updates(True)
        .post_shutdown(_on_shutdown)
        .build()
    )

    if state is None:
        from focusflow.core.state import AppState
        state = AppState.load()

    if notifier is None:
        from focusflow.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    state.reminders = ReminderLoop(
        state.habits,
        state.sound,
        notifier,
        chat_ids=settings.ALLOWED_USER_IDS,
        timezone=settings.TIMEZONE,
    )

    # Store state and ports in bot_data for handler access
    app.bot_data["state"] = state
    app.bot_data["notifier"] = notifier

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("today", cmd_today))
    app.add_handler(CommandHandler("done", cmd_done))
    app.add_handler(CommandHandler("note", cmd_note))
    app.add_handler(CommandHandler("goals", cmd_goals))
    app.add_handler(CommandHandler("plan", cmd_plan))
    app.add_handler(CommandHandler("coach", cmd_coach))
    app.add_handler(CommandHandler("stats", cmd_stats))
    app.add_handler(CommandHandler("sound", cmd_sound))

    # Inline buttons
    app.add_handler(CallbackQueryHandler(_handle_toggle_callback, pattern=r"^toggle:"))
    app.add_handler(CallbackQueryHandler(_handle_dismiss_callback, pattern=r"^dismiss$"))
    app.add_handler(CallbackQueryHandler(_handle_deletegoal_callback, pattern=r"^delgoal:"))
    app.add_handler(CallbackQueryHandler(_handle_plan_callback, pattern=r"^plan(sel:\d+|all|add|cancel)$"))
    app.add_handler(CallbackQueryHandler(_handle_sound_callback, pattern=r"^sound:"))

    # Media
    app.add_handler(MessageHandler(filters.PHOTO, handle_photo))
    app.add_handler(MessageHandler(filters.AUDIO | filters.Document.AUDIO, handle_audio))

    # Text messages (non-command)
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    # Reminder loop — Telegram-specific scheduling logic
    state.reminders.start(app.job_queue, interval=settings.REMINDER_INTERVAL_SECONDS)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


async def _on_shutdown(app: Application) -> None:
    """Tear down the reminder job and any in-flight AI requests."""
    state: AppState | None = app.bot_data.get("state")
    if state is None:
        return
    if state.reminders is not None:
        state.reminders.stop()
    state.requests.cancel_all()


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting FocusFlow bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
