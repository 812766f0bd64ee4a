"""
NutriPilot — Reminder Planner.

Decides whether, when and with what text to nudge the user toward the
rest of today's target. Inputs are the schedule assessment, the
remaining amount, the eating window and the caller's summary of the
hours at which the user historically reached most of their target.

Output is a fresh, ordered list of PlannedReminder on every call; the
caller owns delivery and deduplication (identifiers are deterministic
per fire time so replanning produces the same ids).

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum

from src.core.errors import ValidationError
from src.core.intervals import at_time_of, parse_hhmm
from src.core.progress_ledger import validate_amount
from src.core.schedule_analyzer import ScheduleAssessment

logger = logging.getLogger(__name__)

MIN_REMAINING_FOR_REMINDER = 10.0
URGENT_REMAINING = 15.0
URGENT_SLOT_HORIZON = timedelta(minutes=30)
MIN_LEAD = timedelta(minutes=5)
HISTORY_LEAD = timedelta(minutes=30)
MAX_HISTORY_REMINDERS = 3


class ReminderUrgency(Enum):
    RELAXED = "relaxed"
    STEADY = "steady"
    SOON = "soon"
    LAST_CALL = "last_call"


class AmountBucket(Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


@dataclass(frozen=True)
class EatingWindow:
    """Daily range (local clock, same day) in which contributions count."""

    start: time
    end: time

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValidationError(
                f"Eating window end {self.end:%H:%M} must be after start {self.start:%H:%M}"
            )

    @classmethod
    def from_strings(cls, start: str, end: str) -> EatingWindow:
        return cls(start=parse_hhmm(start), end=parse_hhmm(end))

    def contains(self, now: datetime) -> bool:
        return self.start <= now.time() < self.end

    def end_on(self, now: datetime) -> datetime:
        return at_time_of(now, self.end)


@dataclass(frozen=True)
class PlannedReminder:
    fire_at: datetime
    remaining_amount: float
    suggestion_text: str
    identifier: str
    urgency: ReminderUrgency


_TEMPLATES: dict[tuple[ReminderUrgency, AmountBucket], str] = {
    (ReminderUrgency.RELAXED, AmountBucket.SMALL): "Only {amount}g to go today. A snack will do it.",
    (ReminderUrgency.RELAXED, AmountBucket.MEDIUM): "{amount}g left today. Plenty of time for a proper meal.",
    (ReminderUrgency.RELAXED, AmountBucket.LARGE): "{amount}g still open today. Plan a protein-rich meal or two.",
    (ReminderUrgency.STEADY, AmountBucket.SMALL): "Just {amount}g left. A yogurt or a few eggs and you're done.",
    (ReminderUrgency.STEADY, AmountBucket.MEDIUM): "{amount}g to go. Your next meal is a good moment to catch up.",
    (ReminderUrgency.STEADY, AmountBucket.LARGE): "{amount}g still missing. Make your next meal count.",
    (ReminderUrgency.SOON, AmountBucket.SMALL): "Almost there: {amount}g left before your window closes.",
    (ReminderUrgency.SOON, AmountBucket.MEDIUM): "{amount}g left and a few hours to go. Time for a solid snack.",
    (ReminderUrgency.SOON, AmountBucket.LARGE): "{amount}g left and time is getting short. Eat something substantial soon.",
    (ReminderUrgency.LAST_CALL, AmountBucket.SMALL): "Last call: {amount}g and you've made it today!",
    (ReminderUrgency.LAST_CALL, AmountBucket.MEDIUM): "Last call: {amount}g left. A shake gets you most of the way.",
    (ReminderUrgency.LAST_CALL, AmountBucket.LARGE): "Last call: {amount}g left. Grab the biggest portion you can now.",
}

_QUICK_HINTS = {
    AmountBucket.SMALL: "Something ready-to-eat is enough.",
    AmountBucket.MEDIUM: "Your schedule is tight: a shake or skyr takes 2 minutes.",
    AmountBucket.LARGE: "Your schedule is tight: pack something portable.",
}


def hours_left_in_window(now: datetime, window: EatingWindow) -> float:
    return (window.end_on(now) - now).total_seconds() / 3600


def urgency_for(hours_left: float) -> ReminderUrgency:
    if hours_left < 1.5:
        return ReminderUrgency.LAST_CALL
    if hours_left < 3:
        return ReminderUrgency.SOON
    if hours_left < 6:
        return ReminderUrgency.STEADY
    return ReminderUrgency.RELAXED


def amount_bucket(remaining: float) -> AmountBucket:
    if remaining <= 20:
        return AmountBucket.SMALL
    if remaining <= 40:
        return AmountBucket.MEDIUM
    return AmountBucket.LARGE


def suggestion_text(hours_left: float, remaining: float, quick_meal: bool = False) -> str:
    """Look up the templated message for (urgency, amount bucket)."""
    bucket = amount_bucket(remaining)
    text = _TEMPLATES[(urgency_for(hours_left), bucket)].format(amount=round(remaining))
    if quick_meal:
        text = f"{text} {_QUICK_HINTS[bucket]}"
    return text


def _history_times(
    now: datetime, window_end: datetime, success_hours: list[int],
) -> list[datetime]:
    times: list[datetime] = []
    for hour in success_hours[:MAX_HISTORY_REMINDERS]:
        if not 0 <= hour <= 23:
            continue
        candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
        if now + HISTORY_LEAD <= candidate < window_end and candidate not in times:
            times.append(candidate)
    return times


def reminder_times(
    now: datetime,
    window_end: datetime,
    remaining: float,
    assessment: ScheduleAssessment | None = None,
    success_hours: list[int] | None = None,
) -> list[datetime]:
    """Choose fire times from the hours left in the eating window.

    | hours left     | remaining | fire at                                     |
    |----------------|-----------|---------------------------------------------|
    | < 1.5          | > 15      | free slot within 30 min (>= now+5m), else now+5m |
    | [3, 6)         | any       | now+2h and window end - 1h                  |
    | [1.5, 3)       | any       | midpoint of the remaining window            |
    | [0.5, 1.5)     | any       | now+15m                                     |
    | < 0.5          | any       | now+5m                                      |
    | >= 6           | any       | historical success hours, else now+2h       |
    """
    hours_left = (window_end - now).total_seconds() / 3600

    if hours_left < 1.5 and remaining > URGENT_REMAINING:
        slot = assessment.next_free_slot if assessment is not None else None
        if slot is not None and slot - now <= URGENT_SLOT_HORIZON:
            row, times = "urgent-slot", [max(slot, now + MIN_LEAD)]
        else:
            row, times = "urgent", [now + MIN_LEAD]
    elif 3 <= hours_left < 6:
        row, times = "two-step", [now + timedelta(hours=2), window_end - timedelta(hours=1)]
    elif 1.5 <= hours_left < 3:
        row, times = "midpoint", [now + (window_end - now) / 2]
    elif 0.5 <= hours_left < 1.5:
        row, times = "soon", [now + timedelta(minutes=15)]
    elif hours_left < 0.5:
        row, times = "closing", [now + MIN_LEAD]
    else:
        row, times = "history", _history_times(now, window_end, success_hours or [])
        if not times:
            row, times = "default", [now + timedelta(hours=2)]

    logger.debug("Reminder policy '%s' (%.2fh left, %.1f remaining)", row, hours_left, remaining)
    return sorted(set(times))


def plan_reminders(
    now: datetime,
    remaining_amount: float,
    window: EatingWindow,
    assessment: ScheduleAssessment | None = None,
    success_hours: list[int] | None = None,
    identifier_prefix: str = "reminder",
) -> list[PlannedReminder]:
    """Plan today's reminders, or none if there is nothing worth a nudge.

    Returns [] when remaining_amount <= 10 or `now` is outside the
    eating window.

    Raises:
        ValidationError: remaining_amount is negative or not a number.
    """
    remaining = validate_amount(remaining_amount, "remaining_amount")

    if remaining <= MIN_REMAINING_FOR_REMINDER:
        logger.debug("No reminder: only %.1f remaining", remaining)
        return []
    if not window.contains(now):
        logger.debug("No reminder: %s is outside the eating window", now.isoformat())
        return []

    window_end = window.end_on(now)
    quick_meal = assessment.quick_meal_needed if assessment is not None else False

    reminders = []
    for fire_at in reminder_times(now, window_end, remaining, assessment, success_hours):
        left_at_fire = (window_end - fire_at).total_seconds() / 3600
        reminders.append(PlannedReminder(
            fire_at=fire_at,
            remaining_amount=remaining,
            suggestion_text=suggestion_text(left_at_fire, remaining, quick_meal),
            identifier=f"{identifier_prefix}-{fire_at:%Y%m%d%H%M}",
            urgency=urgency_for(left_at_fire),
        ))

    logger.info(
        "Planned %d reminder(s) for %.1f remaining: %s",
        len(reminders), remaining,
        ", ".join(r.fire_at.strftime("%H:%M") for r in reminders),
    )
    return reminders
