"""
NutriPilot — Levels and streak badges.

Levels are a pure function of the current streak length. Badges are
one-time awards unlocked when the streak first reaches a threshold.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class Level(IntEnum):
    ROOKIE = 1
    STARTER = 2
    CONSISTENT = 3
    DEDICATED = 4
    COMMITTED = 5
    ADVANCED = 6
    EXPERT = 7
    MASTER = 8
    LEGEND = 9
    IMMORTAL = 10

    @property
    def title(self) -> str:
        return self.name.capitalize()

    @property
    def min_streak(self) -> int:
        return _LEVEL_MIN_STREAK[self]

    @property
    def celebration_message(self) -> str:
        return _LEVEL_MESSAGES[self]

    @property
    def next_level(self) -> Level | None:
        if self is Level.IMMORTAL:
            return None
        return Level(self.value + 1)


_LEVEL_MIN_STREAK = {
    Level.ROOKIE: 0,
    Level.STARTER: 3,
    Level.CONSISTENT: 7,
    Level.DEDICATED: 14,
    Level.COMMITTED: 30,
    Level.ADVANCED: 60,
    Level.EXPERT: 90,
    Level.MASTER: 180,
    Level.LEGEND: 365,
    Level.IMMORTAL: 500,
}

_LEVEL_MESSAGES = {
    Level.ROOKIE: "Welcome to the game! Your first day on target!",
    Level.STARTER: "3 days in a row! A habit is forming!",
    Level.CONSISTENT: "A whole week! You're consistent now!",
    Level.DEDICATED: "2 weeks! You're truly dedicated!",
    Level.COMMITTED: "30 days! That's real commitment!",
    Level.ADVANCED: "60 days! Advanced level reached!",
    Level.EXPERT: "90 days! You're an expert!",
    Level.MASTER: "180 days! Master level unlocked!",
    Level.LEGEND: "365 days! You're a legend!",
    Level.IMMORTAL: "500+ days! Immortal status unlocked!",
}

# Ordered (min_streak_inclusive, level) pairs, lowest first.
LEVEL_THRESHOLDS: list[tuple[int, Level]] = sorted(
    ((minimum, level) for level, minimum in _LEVEL_MIN_STREAK.items()),
    key=lambda pair: pair[0],
)


def level_for_streak(streak: int) -> Level:
    """Pick the highest level whose threshold is <= streak."""
    current = Level.ROOKIE
    for minimum, level in LEVEL_THRESHOLDS:
        if streak >= minimum:
            current = level
    return current


def progress_to_next_level(streak: int) -> float:
    """Fraction of the way from this level's threshold to the next one.

    Clamped to [0, 1]; the top level always reports 1.0.
    """
    level = level_for_streak(streak)
    nxt = level.next_level
    if nxt is None:
        return 1.0
    span = nxt.min_streak - level.min_streak
    fraction = (streak - level.min_streak) / span
    return min(1.0, max(0.0, fraction))


def days_until_next_level(streak: int) -> int:
    nxt = level_for_streak(streak).next_level
    if nxt is None:
        return 0
    return max(0, nxt.min_streak - streak)


@dataclass(frozen=True)
class BadgeInfo:
    required_days: int
    title: str
    celebration_message: str


class StreakBadge(Enum):
    FIRST_DAY = "first_day"
    THREE_DAYS = "three_days"
    ONE_WEEK = "one_week"
    TWO_WEEKS = "two_weeks"
    ONE_MONTH = "one_month"
    THREE_MONTHS = "three_months"
    PROTEIN_PRO = "protein_pro"
    CONSISTENCY_KING = "consistency_king"

    @property
    def info(self) -> BadgeInfo:
        return _BADGES[self]

    @property
    def required_days(self) -> int:
        return _BADGES[self].required_days


_BADGES = {
    StreakBadge.FIRST_DAY: BadgeInfo(1, "Starter", "First day done. The start is made!"),
    StreakBadge.THREE_DAYS: BadgeInfo(3, "Getting Started", "3 days in a row. You're on fire!"),
    StreakBadge.ONE_WEEK: BadgeInfo(7, "Week Warrior", "A whole week. This is becoming a habit!"),
    StreakBadge.TWO_WEEKS: BadgeInfo(14, "Fortnight Fighter", "14 day streak. You're a champion!"),
    StreakBadge.ONE_MONTH: BadgeInfo(30, "Monthly Master", "30 days. That's a real lifestyle change!"),
    StreakBadge.THREE_MONTHS: BadgeInfo(90, "Protein Pro", "90 day streak. You're a pro!"),
    StreakBadge.PROTEIN_PRO: BadgeInfo(180, "Legendary", "180 days. You live this lifestyle!"),
    StreakBadge.CONSISTENCY_KING: BadgeInfo(365, "Consistency King", "365 days. Consistency King!"),
}


def badges_unlocked_by(streak: int, already_awarded: set[str]) -> list[StreakBadge]:
    """Badges whose threshold is reached by `streak` and not yet awarded.

    Returned in ladder order.
    """
    return [
        badge for badge in sorted(StreakBadge, key=lambda b: b.required_days)
        if streak >= badge.required_days and badge.value not in already_awarded
    ]
