"""
NutriPilot — Telegram Bot.

Telegram is the only user interface. Commands are a thin layer: parse
arguments, call ProgressService, format the answer. All streak and
reminder logic lives in src.core.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import Update
from telegram.ext import Application, ApplicationBuilder, CommandHandler, ContextTypes

from src.config import settings
from src.core.errors import UnknownUserError, ValidationError
from src.core.intervals import parse_hhmm
from src.core.levels import days_until_next_level
from src.core.parser import (
    parse_log_args,
    parse_prefs_args,
    parse_target_args,
    parse_window_args,
)
from src.core.progress_service import ProgressOutcome, ProgressService, StatusReport, celebration_order
from src.ports.notification_port import NotificationError

if TYPE_CHECKING:
    from src.core.meal_suggestions import MealSuggestion
    from src.core.reminder_planner import PlannedReminder
    from src.data.db import ProgressDB, UserDB
    from src.ports.calendar_port import CalendarPort
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_UNSET: Any = object()


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    Does NOT send any response to strangers: the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


def _now() -> datetime:
    return datetime.now(settings.tz)


def _service(context: ContextTypes.DEFAULT_TYPE) -> ProgressService:
    return context.bot_data["service"]


def _user_db(context: ContextTypes.DEFAULT_TYPE) -> UserDB:
    return context.bot_data["user_db"]


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_outcome(outcome: ProgressOutcome) -> str:
    status = outcome.status
    lines = [
        f"Today: {status.consumed:.0f}/{status.target:.0f}g ({status.percent:.0f}%)",
    ]
    if status.target_hit:
        lines.append(f"Streak: {outcome.state.current_streak} day(s)")
    else:
        lines.append(f"{status.remaining:.0f}g to go")

    for celebration in celebration_order(outcome):
        lines.append(f"\n🏆 {celebration.title}\n{celebration.message}")
    return "\n".join(lines)


def format_report(report: StatusReport) -> str:
    status, state = report.status, report.state
    level = state.current_level
    lines = [
        f"Today: {status.consumed:.0f}/{status.target:.0f}g ({status.percent:.0f}%)",
        f"Streak: {state.current_streak} day(s), best {state.best_streak}",
        f"Level: {level.title} ({state.progress_to_next_level:.0%} to next)",
    ]
    if level.next_level is not None:
        lines.append(
            f"{days_until_next_level(state.current_streak)} day(s) until {level.next_level.title}"
        )
    if round(report.adjusted_target) != round(status.target):
        lines.append(f"Rollover-adjusted target: {report.adjusted_target:.0f}g")
    lines.append(f"This week: {report.weekly_success_rate:.0%} of days on target")
    if report.streak_at_risk:
        lines.append("⚠️ Your streak is at risk. Hit your goal today to keep it!")
    return "\n".join(lines)


def format_reminders(reminders: list[PlannedReminder]) -> str:
    if not reminders:
        return "No reminders needed right now."
    lines = ["Planned reminders:"]
    for reminder in reminders:
        lines.append(f"• {reminder.fire_at:%H:%M}: {reminder.suggestion_text}")
    return "\n".join(lines)


def format_ideas(ideas: list[MealSuggestion]) -> str:
    if not ideas:
        return "Nothing left to eat for today. Well done!"
    lines = ["Ideas for right now:"]
    for idea in ideas:
        lines.append(f"• {idea.name}: {idea.amount:.0f}g, {idea.prep_minutes} min ({idea.reason})")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — register the user with default settings."""
    user_db = _user_db(context)
    tg_user = update.effective_user

    if not user_db.is_registered(tg_user.id):
        user_db.add_user(
            telegram_user_id=tg_user.id,
            display_name=tg_user.first_name or str(tg_user.id),
            daily_target=settings.DEFAULT_DAILY_TARGET,
            eating_window_start=settings.DEFAULT_EATING_WINDOW_START,
            eating_window_end=settings.DEFAULT_EATING_WINDOW_END,
        )
    elif not user_db.get_user(tg_user.id).onboarded:
        user_db.set_onboarded(tg_user.id, True)
        logger.info("User %d resumed", tg_user.id)

    user = user_db.get_user(tg_user.id)
    await update.message.reply_text(
        "Welcome to *NutriPilot*!\n\n"
        f"Your daily target is *{user.daily_target:.0f}g*, "
        f"eating window {user.eating_window_start}-{user.eating_window_end}.\n"
        "• /log 30 yogurt to record what you ate\n"
        "• /status to see today and your streak\n\n"
        "Type /help for the full command list.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_stop(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /stop: pause reminders and nightly recaps until the next /start."""
    user_db = _user_db(context)
    user_id = update.effective_user.id
    if not user_db.is_registered(user_id):
        await update.message.reply_text("Please send /start first.")
        return

    user_db.set_onboarded(user_id, False)
    notifier = context.bot_data.get("notifier")
    if notifier is not None:
        try:
            await notifier.cancel_reminders(user_id)
        except NotificationError as exc:
            logger.error("/stop could not cancel reminders for %d: %s", user_id, exc)
    logger.info("User %d paused", user_id)
    await update.message.reply_text("Paused. No more reminders or recaps until you send /start again.")


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/log <amount> [source] — Record a contribution\n"
        "/status — Today, streak and level\n"
        "/plan — Plan today's reminders\n"
        "/ideas — Meal ideas for right now\n"
        "/target <amount> — Set your daily target\n"
        "/window HH:MM-HH:MM — Set your eating window\n"
        "/prefs <basic|advanced|pro> [no-gos] — Cooking preferences\n"
        "/stop — Pause reminders and recaps\n"
        "/help — Show this message",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_log(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /log <amount> [source]."""
    try:
        request = parse_log_args(context.args or [])
        outcome = await _service(context).record_contribution(
            update.effective_user.id, request.amount, request.source, logged_at=_now(),
        )
    except ValidationError as exc:
        logger.warning("/log rejected: %s", exc)
        await update.message.reply_text(str(exc))
        return
    except UnknownUserError:
        await update.message.reply_text("Please send /start first.")
        return

    await update.message.reply_text(format_outcome(outcome))


@authorized_only
async def cmd_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /status."""
    try:
        report = _service(context).report(update.effective_user.id, _now().date())
    except UnknownUserError:
        await update.message.reply_text("Please send /start first.")
        return
    await update.message.reply_text(format_report(report))


@authorized_only
async def cmd_plan(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /plan — replan and show today's reminders."""
    try:
        reminders = await _service(context).plan_reminders(update.effective_user.id, _now())
    except UnknownUserError:
        await update.message.reply_text("Please send /start first.")
        return
    except NotificationError as exc:
        logger.error("/plan notifier error: %s", exc)
        await update.message.reply_text("Couldn't schedule reminders. Please try again later.")
        return
    await update.message.reply_text(format_reminders(reminders))


@authorized_only
async def cmd_ideas(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /ideas — meal suggestions for the current schedule."""
    try:
        ideas = await _service(context).meal_ideas(update.effective_user.id, _now())
    except UnknownUserError:
        await update.message.reply_text("Please send /start first.")
        return
    await update.message.reply_text(format_ideas(ideas))


@authorized_only
async def cmd_target(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /target <amount>."""
    user_db = _user_db(context)
    user_id = update.effective_user.id
    if not user_db.is_registered(user_id):
        await update.message.reply_text("Please send /start first.")
        return
    try:
        request = parse_target_args(context.args or [])
    except ValidationError as exc:
        logger.warning("/target rejected: %s", exc)
        await update.message.reply_text(str(exc))
        return

    user_db.set_daily_target(user_id, request.target)
    await update.message.reply_text(f"Daily target set to {request.target:.0f}g.")


@authorized_only
async def cmd_window(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /window HH:MM-HH:MM."""
    user_db = _user_db(context)
    user_id = update.effective_user.id
    if not user_db.is_registered(user_id):
        await update.message.reply_text("Please send /start first.")
        return
    try:
        request = parse_window_args(context.args or [])
    except ValidationError as exc:
        logger.warning("/window rejected: %s", exc)
        await update.message.reply_text(str(exc))
        return

    user_db.set_eating_window(user_id, request.start, request.end)
    await update.message.reply_text(f"Eating window set to {request.start}-{request.end}.")


@authorized_only
async def cmd_prefs(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /prefs <skill> [no-go, ...]."""
    user_db = _user_db(context)
    user_id = update.effective_user.id
    if not user_db.is_registered(user_id):
        await update.message.reply_text("Please send /start first.")
        return
    try:
        request = parse_prefs_args(context.args or [])
    except ValidationError as exc:
        logger.warning("/prefs rejected: %s", exc)
        await update.message.reply_text(str(exc))
        return

    user_db.set_preferences(user_id, request.cooking_skill, request.no_gos)
    avoid = ", ".join(request.no_gos) or "nothing"
    await update.message.reply_text(f"Cooking skill: {request.cooking_skill}. Avoiding: {avoid}.")


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    calendar: CalendarPort | None = _UNSET,
    notifier: NotificationPort | None = None,
    progress_db: ProgressDB | None = None,
    user_db: UserDB | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        calendar: Calendar port implementation. Defaults to the adapter
                  selected by CALENDAR_PROVIDER; pass None to plan without one.
        notifier: Notification port implementation. Defaults to TelegramNotifier
                  (created from the bot and job queue after app is built).
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    # Wire default adapters if not provided
    if calendar is _UNSET:
        from src.adapters.calendar_factory import create_calendar_adapter
        calendar = create_calendar_adapter()

    if notifier is None:
        from src.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot, app.job_queue)

    if progress_db is None or user_db is None:
        from src.data.db import ProgressDB, UserDB
        progress_db = progress_db or ProgressDB()
        user_db = user_db or UserDB()

    service = ProgressService(
        progress_db,
        user_db,
        calendar=calendar,
        notifier=notifier,
        day_end_hour=settings.DAY_END_HOUR,
        rollover_alpha=settings.ROLLOVER_ALPHA,
    )

    # Store collaborators in bot_data for handler access
    app.bot_data["service"] = service
    app.bot_data["user_db"] = user_db
    app.bot_data["notifier"] = notifier

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("log", cmd_log))
    app.add_handler(CommandHandler("status", cmd_status))
    app.add_handler(CommandHandler("plan", cmd_plan))
    app.add_handler(CommandHandler("ideas", cmd_ideas))
    app.add_handler(CommandHandler("target", cmd_target))
    app.add_handler(CommandHandler("window", cmd_window))
    app.add_handler(CommandHandler("prefs", cmd_prefs))
    app.add_handler(CommandHandler("stop", cmd_stop))

    # Periodic jobs
    _setup_jobs(app, service, user_db, notifier)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _setup_jobs(
    app: Application,
    service: ProgressService,
    user_db: UserDB,
    notifier: NotificationPort,
) -> None:
    """Register the repeating planning cycle and the daily settlement."""
    from src.core.scheduler import format_settlement_message, run_planning_cycle, run_settlement

    async def _planning_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        await run_planning_cycle(service, user_db, _now())

    async def _settlement_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        yesterday = _now().date() - timedelta(days=1)
        outcomes = await run_settlement(service, user_db, yesterday)
        for user_id, outcome in outcomes.items():
            try:
                await notifier.send_message(user_id, format_settlement_message(outcome))
            except NotificationError as exc:
                logger.error("Settlement recap to %d failed: %s", user_id, exc)

    app.job_queue.run_repeating(
        _planning_job_callback,
        interval=timedelta(minutes=settings.PLANNING_INTERVAL_MINUTES),
        first=timedelta(seconds=30),
        name="planning_cycle",
    )

    settlement_time = parse_hhmm(settings.SETTLEMENT_TIME).replace(tzinfo=settings.tz)
    app.job_queue.run_daily(
        _settlement_job_callback,
        time=settlement_time,
        name="day_settlement",
    )

    logger.info(
        "Planning every %d min; settlement daily at %s %s",
        settings.PLANNING_INTERVAL_MINUTES,
        settings.SETTLEMENT_TIME,
        settings.TIMEZONE,
    )

