"""
NutriPilot — Achievement Detector.

Detects same-day micro-achievements (progress milestones, timing,
variety, comebacks) and guarantees that each (day, kind) pair is emitted
at most once. The day the emitted keys belong to is stored explicitly on
StreakState.achievement_date; keys from an older day are ignored and
cleared on the next mark_emitted.

Usage:
    events = detect(day, status, todays_contributions, state)
    state = mark_emitted(state, day, events)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, time
from enum import Enum

from src.data.models import ContributionEvent, DailyStatus, StreakState

logger = logging.getLogger(__name__)

EARLY_BIRD_BEFORE = time(9, 0)
EARLY_BIRD_MIN_AMOUNT = 10.0
LATE_LOG_FROM = time(22, 0)
PERFECT_DAY_TOLERANCE = 5.0
POWER_DAY_FACTOR = 1.5
VARIETY_MIN_SOURCES = 5


class AchievementKind(Enum):
    FIRST_ENTRY = "first_entry"
    DAILY_START = "daily_start"
    GOOD_PROGRESS = "good_progress"
    HALFWAY_THERE = "halfway_there"
    ALMOST_THERE = "almost_there"
    GOAL_REACHED = "goal_reached"
    EARLY_BIRD = "early_bird"
    MIDNIGHT_WARRIOR = "midnight_warrior"
    WEEKEND_WARRIOR = "weekend_warrior"
    PERFECT_DAY = "perfect_day"
    POWER_DAY = "power_day"
    COMEBACK_KID = "comeback_kid"
    VARIETY = "variety"

    @property
    def title(self) -> str:
        return _TITLES[self]

    @property
    def message(self) -> str:
        return _MESSAGES[self]

    @property
    def is_milestone(self) -> bool:
        return self in MILESTONE_KINDS


_TITLES = {
    AchievementKind.FIRST_ENTRY: "Welcome!",
    AchievementKind.DAILY_START: "Daily Start",
    AchievementKind.GOOD_PROGRESS: "Good Progress",
    AchievementKind.HALFWAY_THERE: "Halfway There",
    AchievementKind.ALMOST_THERE: "Almost There",
    AchievementKind.GOAL_REACHED: "Goal Reached!",
    AchievementKind.EARLY_BIRD: "Early Bird",
    AchievementKind.MIDNIGHT_WARRIOR: "Midnight Warrior",
    AchievementKind.WEEKEND_WARRIOR: "Weekend Warrior",
    AchievementKind.PERFECT_DAY: "Bullseye",
    AchievementKind.POWER_DAY: "Power Day",
    AchievementKind.COMEBACK_KID: "Comeback Kid",
    AchievementKind.VARIETY: "Variety",
}

_MESSAGES = {
    AchievementKind.FIRST_ENTRY: "Your very first entry. This is where it starts!",
    AchievementKind.DAILY_START: "You've already started today!",
    AchievementKind.GOOD_PROGRESS: "25% done. You're on the right track!",
    AchievementKind.HALFWAY_THERE: "Halfway! You'll make it today.",
    AchievementKind.ALMOST_THERE: "75% done. Just one more push!",
    AchievementKind.GOAL_REACHED: "Daily goal reached!",
    AchievementKind.EARLY_BIRD: "Logged before 9 o'clock. Strong start!",
    AchievementKind.MIDNIGHT_WARRIOR: "Still logging late in the evening. Respect!",
    AchievementKind.WEEKEND_WARRIOR: "Goal hit on the weekend too!",
    AchievementKind.PERFECT_DAY: "Right on your goal. Perfect balance!",
    AchievementKind.POWER_DAY: "Over 150% today. You're on fire!",
    AchievementKind.COMEBACK_KID: "Back in the game! Streak restarted.",
    AchievementKind.VARIETY: "5+ different sources today. Great variety!",
}

# Highest first; only the highest crossed threshold is ever considered.
PROGRESS_MILESTONES: list[tuple[float, AchievementKind]] = [
    (100.0, AchievementKind.GOAL_REACHED),
    (75.0, AchievementKind.ALMOST_THERE),
    (50.0, AchievementKind.HALFWAY_THERE),
    (25.0, AchievementKind.GOOD_PROGRESS),
]

MILESTONE_KINDS = frozenset(kind for _, kind in PROGRESS_MILESTONES)


@dataclass(frozen=True)
class AchievementEvent:
    """A one-time signal for (day, kind)."""

    day: date
    kind: AchievementKind

    @property
    def key(self) -> str:
        return achievement_key(self.day, self.kind)


def achievement_key(day: date, kind: AchievementKind) -> str:
    return f"{day.isoformat()}:{kind.value}"


def _emitted_today(state: StreakState, day: date) -> set[str]:
    if state.achievement_date != day:
        return set()
    return state.todays_achievement_keys


def _highest_milestone(status: DailyStatus) -> AchievementKind | None:
    percent = status.percent
    for threshold, kind in PROGRESS_MILESTONES:
        if percent >= threshold:
            return kind
    return None


def _distinct_sources(events: list[ContributionEvent]) -> int:
    return len({ev.source.strip().casefold() for ev in events if ev.source.strip()})


def _qualifying_kinds(
    day: date,
    status: DailyStatus,
    events: list[ContributionEvent],
    state: StreakState,
) -> list[AchievementKind]:
    kinds: list[AchievementKind] = []

    if events:
        kinds.append(AchievementKind.DAILY_START)

    milestone = _highest_milestone(status)
    if milestone is not None:
        kinds.append(milestone)

    if any(
        ev.logged_at.time() < EARLY_BIRD_BEFORE and ev.amount >= EARLY_BIRD_MIN_AMOUNT
        for ev in events
    ):
        kinds.append(AchievementKind.EARLY_BIRD)

    if any(ev.logged_at.time() >= LATE_LOG_FROM for ev in events):
        kinds.append(AchievementKind.MIDNIGHT_WARRIOR)

    if day.weekday() >= 5 and status.target_hit:
        kinds.append(AchievementKind.WEEKEND_WARRIOR)

    if status.target_hit and status.consumed - status.target <= PERFECT_DAY_TOLERANCE:
        kinds.append(AchievementKind.PERFECT_DAY)

    if status.consumed >= POWER_DAY_FACTOR * status.target:
        kinds.append(AchievementKind.POWER_DAY)

    if _distinct_sources(events) >= VARIETY_MIN_SOURCES:
        kinds.append(AchievementKind.VARIETY)

    if state.current_streak == 1 and state.best_streak > 1:
        kinds.append(AchievementKind.COMEBACK_KID)

    return kinds


def detect(
    day: date,
    status: DailyStatus,
    todays_events: list[ContributionEvent],
    state: StreakState,
) -> list[AchievementEvent]:
    """Return every achievement that qualifies now and was not yet emitted.

    `state` should already reflect today's evaluate_day so streak-based
    rules see the current streak. Nothing is recorded here; pass the
    result to mark_emitted.
    """
    emitted = _emitted_today(state, day)
    found: list[AchievementEvent] = []

    if todays_events and not state.has_had_first_entry:
        found.append(AchievementEvent(day, AchievementKind.FIRST_ENTRY))

    for kind in _qualifying_kinds(day, status, todays_events, state):
        if achievement_key(day, kind) in emitted:
            continue
        found.append(AchievementEvent(day, kind))

    if found:
        logger.debug(
            "Achievements for %s: %s",
            day.isoformat(), ", ".join(ev.kind.value for ev in found),
        )
    return found


def mark_emitted(
    state: StreakState, day: date, events: list[AchievementEvent]
) -> StreakState:
    """Record emitted achievements, resetting the key set on a new day."""
    keys = set(_emitted_today(state, day))
    has_first = state.has_had_first_entry
    for ev in events:
        if ev.kind is AchievementKind.FIRST_ENTRY:
            has_first = True
        else:
            keys.add(ev.key)

    return replace(
        state,
        awarded_badges=set(state.awarded_badges),
        achievement_date=day,
        todays_achievement_keys=keys,
        has_had_first_entry=has_first,
    )

