"""Tests for src.data.models — DailyStatus and StreakState."""

from datetime import date

from src.core.levels import Level
from src.data.models import DailyStatus, StreakState, User


def test_daily_status_remaining_never_negative():
    status = DailyStatus(day=date(2026, 3, 2), target=100, consumed=130)
    assert status.remaining == 0
    assert status.target_hit
    assert status.progress_fraction == 1.0
    assert status.percent == 130


def test_daily_status_partial():
    status = DailyStatus(day=date(2026, 3, 2), target=120, consumed=30)
    assert status.remaining == 90
    assert status.progress_fraction == 0.25
    assert not status.target_hit


def test_streak_state_defaults():
    state = StreakState()
    assert state.current_streak == 0
    assert state.current_level is Level.ROOKIE
    assert state.awarded_badges == set()
    assert state.carry is None


def test_level_is_pure_function_of_streak():
    a = StreakState(current_streak=30, best_streak=30)
    b = StreakState(current_streak=30, best_streak=90, awarded_badges={"three_months"})
    assert a.current_level is b.current_level is Level.COMMITTED


def test_progress_to_next_level():
    assert StreakState(current_streak=5, best_streak=5).progress_to_next_level == 0.5


def test_user_defaults():
    user = User(telegram_user_id=1, display_name="Noa")
    assert user.daily_target == 120.0
    assert user.cooking_skill == "basic"
    assert user.no_gos == []
    assert user.onboarded is False
