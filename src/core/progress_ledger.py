"""
NutriPilot — Progress Ledger & Streak Engine.

Keeps the daily total against the target, advances or resets the streak,
awards streak badges and detects level-ups.

Evaluation is provisional and repeatable: the first evaluation of a day
snapshots the pre-day streak values into `StreakState.carry`, and every
later evaluation of that same day recomputes from the snapshot. Calling
evaluate_day repeatedly on one date therefore never double-counts.

No I/O: this module only transforms data. Every function returns a new
StreakState and leaves its input untouched.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date, timedelta

from src.core.errors import ValidationError
from src.core.levels import Level, StreakBadge, badges_unlocked_by, level_for_streak
from src.data.models import DailyStatus, StreakCarry, StreakState

logger = logging.getLogger(__name__)

DEFAULT_ROLLOVER_ALPHA = 0.3


@dataclass(frozen=True)
class DayEvaluation:
    """Outcome of evaluating one day against its target."""

    state: StreakState
    status: DailyStatus
    new_badges: list[StreakBadge] = field(default_factory=list)
    level_up: Level | None = None


def validate_amount(value: float, name: str) -> float:
    """Reject negative, NaN or infinite amounts."""
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{name} must be a number, got {value!r}") from exc
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    if number < 0:
        raise ValidationError(f"{name} must not be negative, got {value!r}")
    return number


def validate_target(value: float) -> float:
    target = validate_amount(value, "target")
    if target <= 0:
        raise ValidationError(f"target must be positive, got {value!r}")
    return target


def build_daily_status(day: date, consumed: float, target: float) -> DailyStatus:
    """Validate inputs and build the day's DailyStatus."""
    return DailyStatus(
        day=day,
        target=validate_target(target),
        consumed=validate_amount(consumed, "consumed"),
    )


def _copy_state(state: StreakState) -> StreakState:
    return replace(
        state,
        awarded_badges=set(state.awarded_badges),
        todays_achievement_keys=set(state.todays_achievement_keys),
    )


def _carry_for(day: date, state: StreakState) -> StreakCarry:
    """Return the pre-day snapshot to evaluate `day` from."""
    if state.last_evaluated_date == day and state.carry is not None:
        return state.carry
    return StreakCarry(
        streak=state.current_streak,
        best_streak=state.best_streak,
        last_success_date=state.last_success_date,
        days_with_goal=state.total_days_with_goal,
    )


def evaluate_day(
    day: date,
    consumed: float,
    target: float,
    state: StreakState,
) -> DayEvaluation:
    """Apply one day's outcome to the streak state.

    Hitting the target extends the streak by one (or restarts it at 1 if
    the last success is older than yesterday); missing it resets the
    streak to 0. Badges are monotonic and never revoked.

    Raises:
        ValidationError: negative/NaN amounts, target <= 0, or `day`
            earlier than the state's last evaluated date.
    """
    status = build_daily_status(day, consumed, target)

    if state.last_evaluated_date is not None and day < state.last_evaluated_date:
        raise ValidationError(
            f"Cannot evaluate {day.isoformat()}: "
            f"{state.last_evaluated_date.isoformat()} was already evaluated"
        )

    carry = _carry_for(day, state)
    previous_level = level_for_streak(carry.streak)
    new_state = _copy_state(state)
    new_state.carry = carry
    new_state.last_evaluated_date = day

    if status.target_hit:
        gap = (
            carry.last_success_date is not None
            and day - carry.last_success_date > timedelta(days=1)
        )
        new_state.current_streak = 1 if gap else carry.streak + 1
        new_state.last_success_date = day
        new_state.total_days_with_goal = carry.days_with_goal + 1
    else:
        new_state.current_streak = 0
        new_state.last_success_date = carry.last_success_date
        new_state.total_days_with_goal = carry.days_with_goal

    new_state.best_streak = max(carry.best_streak, new_state.current_streak)

    new_badges = badges_unlocked_by(new_state.current_streak, new_state.awarded_badges)
    for badge in new_badges:
        new_state.awarded_badges.add(badge.value)
        logger.info("Badge awarded: %s (streak %d)", badge.value, new_state.current_streak)

    # an earlier evaluation of the same day already announced this level
    announced = state.last_evaluated_date == day and state.current_level >= new_state.current_level

    level_up = None
    if new_state.current_level > previous_level and not announced:
        level_up = new_state.current_level
        logger.info("Level up: %s -> %s", previous_level.title, level_up.title)

    if new_state.current_streak != state.current_streak:
        logger.info(
            "Streak for %s: %d -> %d",
            day.isoformat(), state.current_streak, new_state.current_streak,
        )

    return DayEvaluation(
        state=new_state,
        status=status,
        new_badges=new_badges,
        level_up=level_up,
    )


def is_streak_at_risk(state: StreakState, today: date) -> bool:
    """True when a live streak has no success today or yesterday."""
    if state.current_streak <= 0 or state.last_success_date is None:
        return False
    return state.last_success_date < today - timedelta(days=1)


def week_start_for(day: date) -> date:
    """Monday of the week containing `day`."""
    return day - timedelta(days=day.weekday())


def weekly_success_rate(statuses: list[DailyStatus], week_start: date) -> float:
    """Share of evaluated days in the week starting at week_start that hit target."""
    week_end = week_start + timedelta(days=7)
    in_week = [s for s in statuses if week_start <= s.day < week_end]
    if not in_week:
        return 0.0
    hits = sum(1 for s in in_week if s.target_hit)
    return hits / len(in_week)


@dataclass(frozen=True)
class RolloverResult:
    balance: float
    adjusted_target: float


def apply_rollover(
    target: float,
    consumed: float,
    previous_balance: float = 0.0,
    alpha: float = DEFAULT_ROLLOVER_ALPHA,
    max_rollover: float | None = None,
) -> RolloverResult:
    """Carry a share of today's surplus/deficit into tomorrow's target.

    The balance accumulates (consumed - target), clamped to
    +-max_rollover (defaults to the target). A positive balance lowers
    tomorrow's adjusted target, a negative one raises it.
    """
    target = validate_target(target)
    consumed = validate_amount(consumed, "consumed")
    cap = target if max_rollover is None else abs(max_rollover)

    balance = previous_balance + (consumed - target)
    balance = max(min(balance, cap), -cap)
    return RolloverResult(
        balance=balance,
        adjusted_target=target - alpha * balance,
    )
