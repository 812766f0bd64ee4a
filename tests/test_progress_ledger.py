"""Tests for src.core.progress_ledger — streak transitions, badges, rollover."""

import pytest
from dataclasses import replace
from datetime import date, timedelta

from src.core.errors import ValidationError
from src.core.levels import Level, StreakBadge
from src.core.progress_ledger import (
    apply_rollover,
    build_daily_status,
    evaluate_day,
    is_streak_at_risk,
    week_start_for,
    weekly_success_rate,
)
from src.data.models import DailyStatus, StreakState

D = date(2026, 3, 2)  # a Monday


def _state(**kwargs):
    return StreakState(**kwargs)


# ---------------------------------------------------------------------------
# Streak transitions
# ---------------------------------------------------------------------------


class TestEvaluateDay:
    def test_hit_extends_streak(self):
        before = _state(
            current_streak=6, best_streak=6, last_evaluated_date=D - timedelta(days=1),
            last_success_date=D - timedelta(days=1), awarded_badges={"first_day", "three_days"},
        )
        result = evaluate_day(D, 100, 100, before)

        assert result.state.current_streak == 7
        assert result.state.best_streak == 7
        assert result.new_badges == [StreakBadge.ONE_WEEK]
        assert "one_week" in result.state.awarded_badges
        assert result.level_up is Level.CONSISTENT

    def test_badge_only_once(self):
        before = _state(
            current_streak=6, best_streak=6, last_success_date=D - timedelta(days=1),
            last_evaluated_date=D - timedelta(days=1), awarded_badges={"first_day", "three_days"},
        )
        first = evaluate_day(D, 100, 100, before)
        again = evaluate_day(D, 120, 100, first.state)
        assert again.new_badges == []
        assert again.level_up is None
        assert again.state.current_streak == 7

    def test_miss_resets_streak(self):
        before = _state(current_streak=12, best_streak=20, last_success_date=D - timedelta(days=1))
        result = evaluate_day(D, 99.9, 100, before)
        assert result.state.current_streak == 0
        assert result.state.best_streak == 20
        assert result.level_up is None

    @pytest.mark.parametrize("prior", [0, 1, 6, 400])
    def test_reset_law(self, prior):
        before = _state(current_streak=prior, best_streak=prior)
        assert evaluate_day(D, 0, 100, before).state.current_streak == 0

    def test_first_ever_hit(self):
        result = evaluate_day(D, 130, 120, StreakState())
        assert result.state.current_streak == 1
        assert result.state.total_days_with_goal == 1
        assert result.new_badges == [StreakBadge.FIRST_DAY]

    def test_badges_never_revoked(self):
        before = _state(current_streak=7, best_streak=7, awarded_badges={"first_day", "three_days", "one_week"})
        result = evaluate_day(D, 0, 100, before)
        assert result.state.awarded_badges == {"first_day", "three_days", "one_week"}

    def test_best_streak_never_below_current(self):
        state = StreakState()
        for offset in range(10):
            consumed = 0 if offset == 4 else 100
            state = evaluate_day(D + timedelta(days=offset), consumed, 100, state).state
            assert state.current_streak <= state.best_streak
        assert state.current_streak == 5
        assert state.best_streak == 5

    def test_gap_restarts_at_one(self):
        before = _state(
            current_streak=9, best_streak=9, last_evaluated_date=D - timedelta(days=3),
            last_success_date=D - timedelta(days=3),
        )
        result = evaluate_day(D, 100, 100, before)
        assert result.state.current_streak == 1
        assert result.state.best_streak == 9


class TestSameDayIdempotence:
    def test_identical_calls_give_identical_state(self):
        before = _state(current_streak=3, best_streak=3, last_success_date=D - timedelta(days=1),
                        last_evaluated_date=D - timedelta(days=1))
        first = evaluate_day(D, 100, 100, before).state
        second = evaluate_day(D, 100, 100, first).state
        assert first == second
        assert second.current_streak == 4

    def test_provisional_miss_then_hit(self):
        before = _state(current_streak=3, best_streak=3, last_success_date=D - timedelta(days=1),
                        last_evaluated_date=D - timedelta(days=1))
        morning = evaluate_day(D, 30, 100, before).state
        assert morning.current_streak == 0
        evening = evaluate_day(D, 110, 100, morning).state
        assert evening.current_streak == 4
        assert evening.total_days_with_goal == before.total_days_with_goal + 1

    def test_miss_then_hit_keeps_level_without_announcing(self):
        before = _state(current_streak=9, best_streak=9, last_success_date=D - timedelta(days=1),
                        last_evaluated_date=D - timedelta(days=1))
        morning = evaluate_day(D, 30, 100, before)
        evening = evaluate_day(D, 110, 100, morning.state)
        assert evening.state.current_streak == 10
        assert evening.state.current_level is Level.CONSISTENT
        assert evening.level_up is None

    def test_level_up_announced_once_across_corrections(self):
        before = _state(current_streak=6, best_streak=6, last_success_date=D - timedelta(days=1),
                        last_evaluated_date=D - timedelta(days=1))
        first = evaluate_day(D, 100, 100, before)
        assert first.level_up is Level.CONSISTENT
        again = evaluate_day(D, 130, 100, first.state)
        assert again.level_up is None

    def test_hit_then_undone_by_lower_total(self):
        before = _state(current_streak=3, best_streak=5, last_success_date=D - timedelta(days=1),
                        last_evaluated_date=D - timedelta(days=1))
        hit = evaluate_day(D, 100, 100, before).state
        corrected = evaluate_day(D, 90, 100, hit).state
        assert corrected.current_streak == 0
        assert corrected.last_success_date == D - timedelta(days=1)
        assert corrected.best_streak == 5

    def test_next_day_builds_on_previous(self):
        state = evaluate_day(D, 100, 100, StreakState()).state
        state = evaluate_day(D, 100, 100, state).state
        state = evaluate_day(D + timedelta(days=1), 100, 100, state).state
        assert state.current_streak == 2


class TestValidation:
    @pytest.mark.parametrize("consumed,target", [
        (-1, 100),
        (float("nan"), 100),
        (float("inf"), 100),
        (50, 0),
        (50, -10),
        (50, float("nan")),
    ])
    def test_rejects_bad_amounts(self, consumed, target):
        before = _state(current_streak=4, best_streak=4)
        snapshot = replace(before, awarded_badges=set(before.awarded_badges))
        with pytest.raises(ValidationError):
            evaluate_day(D, consumed, target, before)
        assert before == snapshot

    def test_rejects_earlier_date(self):
        before = _state(current_streak=2, best_streak=2, last_evaluated_date=D)
        with pytest.raises(ValidationError, match="already evaluated"):
            evaluate_day(D - timedelta(days=1), 100, 100, before)
        assert before.current_streak == 2

    def test_input_state_is_not_mutated(self):
        before = _state(current_streak=6, best_streak=6, awarded_badges={"first_day"})
        evaluate_day(D, 100, 100, before)
        assert before.current_streak == 6
        assert before.awarded_badges == {"first_day"}
        assert before.carry is None

    def test_build_daily_status(self):
        status = build_daily_status(D, 80, 120)
        assert status.remaining == 40
        assert not status.target_hit


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_at_risk_when_yesterday_missed(self):
        state = _state(current_streak=4, best_streak=4, last_success_date=D - timedelta(days=2))
        assert is_streak_at_risk(state, D)

    def test_not_at_risk_after_yesterday_hit(self):
        state = _state(current_streak=4, best_streak=4, last_success_date=D - timedelta(days=1))
        assert not is_streak_at_risk(state, D)

    def test_not_at_risk_without_streak(self):
        assert not is_streak_at_risk(StreakState(), D)

    def test_week_start(self):
        assert week_start_for(D + timedelta(days=6)) == D
        assert week_start_for(D) == D

    def test_weekly_success_rate(self):
        statuses = [
            DailyStatus(day=D, target=100, consumed=100),
            DailyStatus(day=D + timedelta(days=1), target=100, consumed=50),
            DailyStatus(day=D + timedelta(days=2), target=100, consumed=150),
            DailyStatus(day=D + timedelta(days=7), target=100, consumed=150),
        ]
        assert weekly_success_rate(statuses, D) == pytest.approx(2 / 3)

    def test_weekly_success_rate_empty(self):
        assert weekly_success_rate([], D) == 0.0


class TestRollover:
    def test_deficit_raises_tomorrow(self):
        result = apply_rollover(100, 80)
        assert result.balance == -20
        assert result.adjusted_target == pytest.approx(106)

    def test_surplus_lowers_tomorrow(self):
        result = apply_rollover(100, 130, previous_balance=10, alpha=0.5)
        assert result.balance == 40
        assert result.adjusted_target == pytest.approx(80)

    def test_clamped_to_target(self):
        result = apply_rollover(100, 0, previous_balance=-90)
        assert result.balance == -100

    def test_custom_cap(self):
        assert apply_rollover(100, 200, max_rollover=25).balance == 25

    def test_rejects_bad_input(self):
        with pytest.raises(ValidationError):
            apply_rollover(0, 50)
