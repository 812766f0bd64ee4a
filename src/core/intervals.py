"""
NutriPilot — Interval Utilities.

Pure helpers over busy calendar intervals. Intervals are half-open
[start, end): two intervals that only touch at an endpoint do not overlap.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from src.core.errors import ValidationError

logger = logging.getLogger(__name__)

BACK_TO_BACK_GAP = timedelta(minutes=15)


@dataclass(frozen=True)
class BusyInterval:
    """A busy block supplied by the calendar provider."""

    start: datetime
    end: datetime
    summary: str = ""

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


def overlaps(a: BusyInterval, b: BusyInterval) -> bool:
    """True iff a and b share any instant (touching endpoints do not count)."""
    return a.start < b.end and b.start < a.end


def overlaps_any(
    start: datetime, end: datetime, busy: list[BusyInterval]
) -> bool:
    """Check if [start, end) overlaps with any busy interval."""
    for interval in busy:
        if start < interval.end and interval.start < end:
            return True
    return False


def intervals_in_window(
    intervals: list[BusyInterval], window_start: datetime, window_end: datetime
) -> list[BusyInterval]:
    """Return the intervals that overlap [window_start, window_end)."""
    return [
        iv for iv in intervals
        if iv.start < window_end and window_start < iv.end
    ]


def count_back_to_back(
    intervals: list[BusyInterval],
    gap_threshold: timedelta = BACK_TO_BACK_GAP,
) -> int:
    """Count adjacent pairs (sorted by start) separated by less than gap_threshold.

    Overlapping neighbours have a negative gap and therefore count too.
    """
    if len(intervals) < 2:
        return 0

    ordered = sorted(intervals, key=lambda iv: iv.start)
    count = 0
    for current, nxt in zip(ordered, ordered[1:]):
        if nxt.start - current.end < gap_threshold:
            count += 1
    return count


def minutes_between(earlier: datetime, later: datetime) -> int:
    """Whole minutes from earlier to later, rounded up."""
    return math.ceil((later - earlier).total_seconds() / 60)


def parse_hhmm(value: str) -> time:
    """Parse an "HH:MM" string into a time.

    Raises ValidationError on malformed input.
    """
    try:
        hour_str, minute_str = value.strip().split(":")
        hour, minute = int(hour_str), int(minute_str)
    except (ValueError, AttributeError) as exc:
        raise ValidationError(f"Expected HH:MM, got {value!r}") from exc

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValidationError(f"Hour/minute out of range: {value!r}")
    return time(hour, minute)


def at_time_of(day_anchor: datetime, clock: time) -> datetime:
    """Return day_anchor's calendar day at the given clock time (tzinfo kept)."""
    return day_anchor.replace(
        hour=clock.hour, minute=clock.minute, second=0, microsecond=0,
    )
