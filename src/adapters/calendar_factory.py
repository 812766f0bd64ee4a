"""Calendar adapter factory — creates the right adapter based on config."""

from __future__ import annotations

from src.config import settings
from src.ports.calendar_port import CalendarPort


def create_calendar_adapter() -> CalendarPort | None:
    """Return the calendar adapter matching CALENDAR_PROVIDER setting.

    Returns None for "none": planning then runs on an empty schedule.
    """
    provider = settings.CALENDAR_PROVIDER.lower()

    if provider == "none":
        return None

    if provider == "caldav":
        from src.adapters.caldav_calendar import CalDAVCalendarAdapter

        return CalDAVCalendarAdapter(tz=settings.tz)

    if provider == "ics":
        from src.adapters.ics_calendar import IcsFileCalendarAdapter

        return IcsFileCalendarAdapter(path=settings.ICS_PATH, tz=settings.tz)

    raise ValueError(f"Unknown CALENDAR_PROVIDER: {provider!r}")
