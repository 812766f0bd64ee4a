"""Notification port — abstract interface for reaching users.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol

from src.core.reminder_planner import PlannedReminder


class NotificationError(Exception):
    """Raised when a message or reminder could not be delivered or scheduled."""


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def send_message(self, user_id: int, text: str) -> None: ...

    async def schedule_reminder(self, user_id: int, reminder: PlannedReminder) -> None: ...

    async def cancel_reminders(self, user_id: int) -> int: ...
