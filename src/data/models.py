"""
NutriPilot — Data Models.

Entities that outlive a single request: the user profile, logged
contributions, the per-user streak state and the per-day status. SQLite
persistence lives in src.data.db; the core only ever receives and returns
these values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from src.core.levels import Level, level_for_streak, progress_to_next_level


@dataclass
class User:
    """A registered bot user with their daily goal and eating window."""

    telegram_user_id: int
    display_name: str
    daily_target: float = 120.0
    eating_window_start: str = "08:00"   # HH:MM local
    eating_window_end: str = "20:00"     # HH:MM local
    cooking_skill: str = "basic"         # "basic" | "advanced" | "pro"
    no_gos: list[str] = field(default_factory=list)
    onboarded: bool = False
    created_at: str = ""


@dataclass(frozen=True)
class ContributionEvent:
    """One logged contribution toward the daily target."""

    logged_at: datetime
    amount: float
    source: str = ""


@dataclass(frozen=True)
class DailyStatus:
    """Running total for one calendar day against its target."""

    day: date
    target: float
    consumed: float

    @property
    def remaining(self) -> float:
        return max(0.0, self.target - self.consumed)

    @property
    def progress_fraction(self) -> float:
        if self.target <= 0:
            return 0.0
        return min(self.consumed / self.target, 1.0)

    @property
    def percent(self) -> float:
        """Unclamped percentage of target consumed."""
        if self.target <= 0:
            return 0.0
        return self.consumed / self.target * 100

    @property
    def target_hit(self) -> bool:
        return self.consumed >= self.target


@dataclass(frozen=True)
class StreakCarry:
    """Streak values as they stood before the last evaluated day began."""

    streak: int = 0
    best_streak: int = 0
    last_success_date: date | None = None
    days_with_goal: int = 0


@dataclass
class StreakState:
    """Per-user gamification state. One row per user, never deleted.

    `current_level` is derived from `current_streak` and never stored.
    `achievement_date` is the day `todays_achievement_keys` belongs to.
    """

    current_streak: int = 0
    best_streak: int = 0
    total_days_with_goal: int = 0
    last_evaluated_date: date | None = None
    last_success_date: date | None = None
    carry: StreakCarry | None = None
    awarded_badges: set[str] = field(default_factory=set)
    has_had_first_entry: bool = False
    achievement_date: date | None = None
    todays_achievement_keys: set[str] = field(default_factory=set)

    @property
    def current_level(self) -> Level:
        return level_for_streak(self.current_streak)

    @property
    def progress_to_next_level(self) -> float:
        return progress_to_next_level(self.current_streak)
