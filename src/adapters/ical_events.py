"""iCalendar parsing shared by the CalDAV and .ics adapters.

Turns VEVENT components into BusyInterval values in the configured
timezone. All-day events (DATE instead of DATE-TIME) are not busy time
and are skipped. Recurrence rules are not expanded here.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, tzinfo

from icalendar import Calendar as iCalendar

from src.core.intervals import BusyInterval

logger = logging.getLogger(__name__)


def _localize(value: datetime, tz: tzinfo) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def vevent_to_interval(component, tz: tzinfo) -> BusyInterval | None:
    """Convert one VEVENT to a BusyInterval, or None if it is not busy time."""
    dtstart = component.get("dtstart")
    if dtstart is None:
        return None
    start = dtstart.dt
    if not isinstance(start, datetime):
        return None  # all-day

    dtend = component.get("dtend")
    duration = component.get("duration")
    if dtend is not None and isinstance(dtend.dt, datetime):
        end = dtend.dt
    elif duration is not None:
        end = start + duration.dt
    else:
        return None

    if str(component.get("transp", "")).upper() == "TRANSPARENT":
        return None

    start, end = _localize(start, tz), _localize(end, tz)
    if end <= start:
        return None
    return BusyInterval(start=start, end=end, summary=str(component.get("summary", "")))


def intervals_for_day(calendar: iCalendar, day: date, tz: tzinfo) -> list[BusyInterval]:
    """Busy intervals from every VEVENT in `calendar` that overlap `day`."""
    day_start = datetime.combine(day, time.min, tzinfo=tz)
    day_end = day_start + timedelta(days=1)

    intervals = []
    for component in calendar.walk("VEVENT"):
        interval = vevent_to_interval(component, tz)
        if interval is None:
            continue
        if interval.start < day_end and day_start < interval.end:
            intervals.append(interval)

    intervals.sort(key=lambda iv: iv.start)
    logger.debug("Parsed %d busy interval(s) for %s", len(intervals), day.isoformat())
    return intervals
