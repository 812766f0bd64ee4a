"""
NutriPilot — Schedule Analyzer.

Turns the day's busy intervals into a judgment about how much free time
and how much stress the user has right now. Consumed by the reminder
planner and the meal suggester.

No I/O: "now" and the intervals are always passed in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum

from src.core.intervals import (
    BusyInterval,
    count_back_to_back,
    intervals_in_window,
    minutes_between,
    overlaps_any,
)

logger = logging.getLogger(__name__)

SEARCH_STEP = timedelta(minutes=15)
STRESS_WINDOW = timedelta(hours=1)
DEFAULT_AVAILABLE_MINUTES = 60
QUICK_MEAL_MINUTES = 20


class StressLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TimeOfDay(Enum):
    MORNING = "morning"
    LUNCH = "lunch"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


@dataclass(frozen=True)
class ScheduleAssessment:
    """Snapshot of the user's schedule at a given instant."""

    next_free_slot: datetime | None
    stress_level: StressLevel
    available_minutes: int
    time_of_day: TimeOfDay

    @property
    def quick_meal_needed(self) -> bool:
        return (
            self.stress_level is StressLevel.HIGH
            or self.available_minutes < QUICK_MEAL_MINUTES
        )

    @property
    def suggested_prep_minutes(self) -> int:
        """How long a meal may take to prepare given the current stress."""
        if self.stress_level is StressLevel.HIGH:
            return 2
        if self.stress_level is StressLevel.MEDIUM:
            return min(10, self.available_minutes // 2)
        return max(0, min(30, self.available_minutes - 10))


def find_next_free_slot(
    now: datetime,
    busy: list[BusyInterval],
    slot_duration: timedelta = timedelta(minutes=15),
    day_end_hour: int = 22,
) -> datetime | None:
    """Find the first candidate start whose slot overlaps nothing.

    Candidates start at `now` and advance in fixed 15-minute steps
    (independent of slot_duration) while they are before the day-end
    cutoff. Returns None when the rest of the day is booked.
    """
    day_end = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo) + timedelta(hours=day_end_hour)

    candidate = now
    while candidate < day_end:
        if not overlaps_any(candidate, candidate + slot_duration, busy):
            return candidate
        candidate += SEARCH_STEP
    return None


def classify_stress(now: datetime, busy: list[BusyInterval]) -> StressLevel:
    """Classify stress from meetings near `now` and back-to-back density.

    The back-to-back count looks at every known interval, not only the
    +-1h window.
    """
    nearby = intervals_in_window(busy, now - STRESS_WINDOW, now + STRESS_WINDOW)
    meeting_count = len(nearby)
    back_to_back = count_back_to_back(busy)

    if meeting_count >= 3 or back_to_back >= 2:
        level = StressLevel.HIGH
    elif meeting_count >= 1 or back_to_back >= 1:
        level = StressLevel.MEDIUM
    else:
        level = StressLevel.LOW

    logger.debug(
        "Stress %s (meetings nearby=%d, back-to-back=%d)",
        level.value, meeting_count, back_to_back,
    )
    return level


def available_minutes_until_next(
    now: datetime, busy: list[BusyInterval]
) -> int:
    """Minutes until the earliest interval starting after now (default 60)."""
    upcoming = [iv.start for iv in busy if iv.start > now]
    if not upcoming:
        return DEFAULT_AVAILABLE_MINUTES
    return minutes_between(now, min(upcoming))


def time_of_day_for(now: datetime) -> TimeOfDay:
    hour = now.hour
    if 6 <= hour < 11:
        return TimeOfDay.MORNING
    if 11 <= hour < 14:
        return TimeOfDay.LUNCH
    if 14 <= hour < 18:
        return TimeOfDay.AFTERNOON
    if 18 <= hour < 22:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


def analyze(
    now: datetime,
    busy_intervals: list[BusyInterval],
    slot_duration: timedelta = timedelta(minutes=15),
    day_end_hour: int = 22,
) -> ScheduleAssessment:
    """Build a ScheduleAssessment for `now`.

    An empty interval list is valid and yields low stress and the
    default availability.
    """
    assessment = ScheduleAssessment(
        next_free_slot=find_next_free_slot(
            now, busy_intervals, slot_duration, day_end_hour,
        ),
        stress_level=classify_stress(now, busy_intervals),
        available_minutes=available_minutes_until_next(now, busy_intervals),
        time_of_day=time_of_day_for(now),
    )
    logger.debug(
        "Schedule at %s: free=%s stress=%s available=%d",
        now.isoformat(), assessment.next_free_slot,
        assessment.stress_level.value, assessment.available_minutes,
    )
    return assessment
