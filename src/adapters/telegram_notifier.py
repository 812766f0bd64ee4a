"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot for immediate messages and the application's
JobQueue for reminders. Each reminder is a one-shot job named
"reminder:<user_id>:<identifier>", so replanning the same fire time
replaces the job instead of duplicating it.
"""

from __future__ import annotations

import logging

from telegram import Bot
from telegram.error import TelegramError
from telegram.ext import ContextTypes, JobQueue

from src.core.reminder_planner import PlannedReminder
from src.ports.notification_port import NotificationError

logger = logging.getLogger(__name__)

JOB_PREFIX = "reminder"


def reminder_job_name(user_id: int, identifier: str) -> str:
    return f"{JOB_PREFIX}:{user_id}:{identifier}"


async def _fire_reminder(context: ContextTypes.DEFAULT_TYPE) -> None:
    """JobQueue callback: deliver the reminder text."""
    job = context.job
    try:
        await context.bot.send_message(chat_id=job.chat_id, text=job.data)
        logger.info("Reminder %s delivered", job.name)
    except TelegramError as exc:
        logger.error("Reminder %s could not be delivered: %s", job.name, exc)


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot, job_queue: JobQueue | None = None) -> None:
        self._bot = bot
        self._job_queue = job_queue

    async def send_message(self, user_id: int, text: str) -> None:
        try:
            await self._bot.send_message(chat_id=user_id, text=text)
        except TelegramError as exc:
            logger.error("Telegram error (send_message to %d): %s", user_id, exc)
            raise NotificationError(f"Failed to message user {user_id}: {exc}") from exc

    async def schedule_reminder(self, user_id: int, reminder: PlannedReminder) -> None:
        if self._job_queue is None:
            raise NotificationError("No job queue configured for reminders")

        name = reminder_job_name(user_id, reminder.identifier)
        for job in self._job_queue.get_jobs_by_name(name):
            job.schedule_removal()

        try:
            self._job_queue.run_once(
                _fire_reminder,
                when=reminder.fire_at,
                data=reminder.suggestion_text,
                name=name,
                chat_id=user_id,
                user_id=user_id,
            )
        except (TelegramError, ValueError) as exc:
            logger.error("Telegram error (schedule_reminder %s): %s", name, exc)
            raise NotificationError(f"Failed to schedule {name}: {exc}") from exc
        logger.debug("Reminder %s scheduled for %s", name, reminder.fire_at.isoformat())

    async def cancel_reminders(self, user_id: int) -> int:
        """Remove every pending reminder job of the user; returns how many."""
        if self._job_queue is None:
            return 0
        prefix = f"{JOB_PREFIX}:{user_id}:"
        cancelled = 0
        for job in self._job_queue.jobs():
            if job.name and job.name.startswith(prefix):
                job.schedule_removal()
                cancelled += 1
        return cancelled
