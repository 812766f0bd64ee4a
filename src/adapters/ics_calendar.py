"""Local .ics calendar adapter — implements CalendarPort from a file.

Useful for exported calendars and for running without a calendar server.
The file is re-read on every call so edits show up on the next planning
cycle. Recurrence rules are not expanded.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, tzinfo
from pathlib import Path

from icalendar import Calendar as iCalendar

from src.adapters.ical_events import intervals_for_day
from src.core.intervals import BusyInterval
from src.ports.calendar_port import CalendarError

logger = logging.getLogger(__name__)


class IcsFileCalendarAdapter:
    """.ics file implementation of CalendarPort."""

    def __init__(self, path: str, tz: tzinfo) -> None:
        self._path = Path(path)
        self._tz = tz

    def _read(self) -> iCalendar:
        return iCalendar.from_ical(self._path.read_bytes())

    async def get_busy_intervals(self, day: date) -> list[BusyInterval]:
        try:
            calendar = await asyncio.to_thread(self._read)
        except (OSError, ValueError) as exc:
            logger.error("ICS error (get_busy_intervals) for %s: %s", self._path, exc)
            raise CalendarError(f"Failed to read {self._path}: {exc}") from exc

        intervals = intervals_for_day(calendar, day, self._tz)
        logger.info("Found %d busy interval(s) on %s in %s", len(intervals), day.isoformat(), self._path.name)
        return intervals
