"""Progress port — abstract interfaces for persisted progress and profiles.

ProgressService talks to storage only through these protocols; the SQLite
implementations are src.data.db.ProgressDB and src.data.db.UserDB.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol

from src.data.models import ContributionEvent, DailyStatus, StreakState, User


class ProgressPort(Protocol):
    """Storage for contributions, streak state and settled days."""

    def add_contribution(self, user_id: int, event: ContributionEvent) -> None: ...

    def contributions_for_day(self, user_id: int, day: date) -> list[ContributionEvent]: ...

    def get_streak_state(self, user_id: int) -> StreakState: ...

    def save_streak_state(self, user_id: int, state: StreakState) -> None: ...

    def save_daily_status(self, user_id: int, status: DailyStatus) -> None: ...

    def get_daily_status(self, user_id: int, day: date) -> DailyStatus | None: ...

    def mark_settled(self, user_id: int, day: date, rollover_balance: float) -> None: ...

    def daily_statuses(self, user_id: int, since: date) -> list[DailyStatus]: ...

    def rollover_balance_before(self, user_id: int, day: date) -> float: ...

    def top_success_hours(self, user_id: int, before: date) -> list[int]: ...


class UserPort(Protocol):
    """Read access to user profiles."""

    def get_user(self, telegram_user_id: int) -> User | None: ...

    def list_users(self, onboarded_only: bool = False) -> list[User]: ...
