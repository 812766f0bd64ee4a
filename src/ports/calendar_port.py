"""Calendar port — abstract interface for reading busy time.

Core modules depend on this protocol, never on a specific provider.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol

from src.core.intervals import BusyInterval


class CalendarError(Exception):
    """Raised when any calendar provider operation fails."""


class CalendarPort(Protocol):
    """Read-only calendar interface used by core modules."""

    async def get_busy_intervals(self, day: date) -> list[BusyInterval]: ...
