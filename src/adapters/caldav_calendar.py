"""CalDAV calendar adapter — implements CalendarPort for CalDAV servers.

Supports iCloud, Nextcloud, Fastmail, and any CalDAV-compliant server.
Uses the caldav library (sync) wrapped with asyncio.to_thread for async
compatibility. Recurring events are expanded by the server.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta, tzinfo

import caldav
from icalendar import Calendar as iCalendar

from src.adapters.ical_events import intervals_for_day
from src.config import settings
from src.core.intervals import BusyInterval
from src.ports.calendar_port import CalendarError

logger = logging.getLogger(__name__)


def _get_calendar() -> caldav.Calendar:
    """Connect to CalDAV server and return the configured calendar."""
    client = caldav.DAVClient(
        url=settings.CALDAV_URL,
        username=settings.CALDAV_USERNAME,
        password=settings.CALDAV_PASSWORD,
    )
    principal = client.principal()
    calendars = principal.calendars()

    if not calendars:
        raise CalendarError("No calendars found on the CalDAV server.")

    if settings.CALDAV_CALENDAR_NAME:
        for cal in calendars:
            if cal.name == settings.CALDAV_CALENDAR_NAME:
                return cal
        raise CalendarError(
            f"Calendar '{settings.CALDAV_CALENDAR_NAME}' not found. "
            f"Available: {[c.name for c in calendars]}"
        )

    return calendars[0]


class CalDAVCalendarAdapter:
    """CalDAV implementation of CalendarPort."""

    def __init__(self, tz: tzinfo | None = None) -> None:
        self._tz = tz or settings.tz

    async def get_busy_intervals(self, day: date) -> list[BusyInterval]:
        start = datetime.combine(day, time.min, tzinfo=self._tz)
        end = start + timedelta(days=1)

        try:
            cal = await asyncio.to_thread(_get_calendar)
            results = await asyncio.to_thread(
                cal.search, start=start, end=end, event=True, expand=True
            )

            intervals: list[BusyInterval] = []
            for ev in results:
                try:
                    parsed = iCalendar.from_ical(ev.data)
                except ValueError as exc:
                    logger.warning("Skipping unparsable CalDAV event: %s", exc)
                    continue
                intervals.extend(intervals_for_day(parsed, day, self._tz))

            intervals.sort(key=lambda iv: iv.start)
            logger.info("Found %d busy interval(s) on %s via CalDAV", len(intervals), day.isoformat())
            return intervals
        except CalendarError:
            raise
        except Exception as exc:
            logger.error("CalDAV error (get_busy_intervals): %s", exc)
            raise CalendarError(f"Failed to fetch busy intervals: {exc}") from exc
