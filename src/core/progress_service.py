"""
NutriPilot — Progress Service.

The single owner of every user's StreakState. All read-modify-write
cycles on a user's state run under that user's asyncio.Lock, so two
contributions arriving together for the same user are applied one after
the other and neither is lost. Different users never wait on each other.

Collaborators are injected as ports:
- ProgressPort / UserPort: storage (src.data.db)
- CalendarPort: busy intervals (optional; planning works without it)
- NotificationPort: reminder delivery (optional)
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime

from src.core.achievements import AchievementEvent, AchievementKind, detect, mark_emitted
from src.core.errors import UnknownUserError, ValidationError
from src.core.intervals import BusyInterval
from src.core.levels import Level, StreakBadge
from src.core.meal_suggestions import MealSuggestion, suggest_meals
from src.core.progress_ledger import (
    DEFAULT_ROLLOVER_ALPHA,
    RolloverResult,
    apply_rollover,
    build_daily_status,
    evaluate_day,
    is_streak_at_risk,
    validate_amount,
    week_start_for,
    weekly_success_rate,
)
from src.core.reminder_planner import EatingWindow, PlannedReminder, plan_reminders
from src.core.schedule_analyzer import ScheduleAssessment, analyze
from src.data.models import ContributionEvent, DailyStatus, StreakState, User
from src.ports.calendar_port import CalendarError, CalendarPort
from src.ports.notification_port import NotificationPort
from src.ports.progress_port import ProgressPort, UserPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressOutcome:
    """Everything one evaluation produced, ready for display."""

    status: DailyStatus
    state: StreakState
    new_badges: list[StreakBadge] = field(default_factory=list)
    level_up: Level | None = None
    achievements: list[AchievementEvent] = field(default_factory=list)
    rollover: RolloverResult | None = None


@dataclass(frozen=True)
class StatusReport:
    """Read-only view for /status."""

    status: DailyStatus
    state: StreakState
    adjusted_target: float
    weekly_success_rate: float
    streak_at_risk: bool


@dataclass(frozen=True)
class Celebration:
    title: str
    message: str


def celebration_order(outcome: ProgressOutcome) -> list[Celebration]:
    """Order an outcome's signals for display.

    Level-up first, then the first-entry welcome, streak badges,
    percentage milestones and finally every other achievement.
    """
    ordered: list[Celebration] = []

    if outcome.level_up is not None:
        ordered.append(Celebration(
            title=f"Level up: {outcome.level_up.title}",
            message=outcome.level_up.celebration_message,
        ))

    welcome = [a for a in outcome.achievements if a.kind is AchievementKind.FIRST_ENTRY]
    milestones = [a for a in outcome.achievements if a.kind.is_milestone]
    others = [
        a for a in outcome.achievements
        if a.kind is not AchievementKind.FIRST_ENTRY and not a.kind.is_milestone
    ]

    ordered += [Celebration(a.kind.title, a.kind.message) for a in welcome]
    ordered += [
        Celebration(badge.info.title, badge.info.celebration_message)
        for badge in outcome.new_badges
    ]
    ordered += [Celebration(a.kind.title, a.kind.message) for a in milestones]
    ordered += [Celebration(a.kind.title, a.kind.message) for a in others]
    return ordered


class ProgressService:
    """Serialized entry point for contributions, evaluation and planning."""

    def __init__(
        self,
        progress: ProgressPort,
        users: UserPort,
        calendar: CalendarPort | None = None,
        notifier: NotificationPort | None = None,
        day_end_hour: int = 22,
        rollover_alpha: float = DEFAULT_ROLLOVER_ALPHA,
    ) -> None:
        self._progress = progress
        self._users = users
        self._calendar = calendar
        self._notifier = notifier
        self._day_end_hour = day_end_hour
        self._rollover_alpha = rollover_alpha
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _lock_for(self, user_id: int) -> asyncio.Lock:
        return self._locks[user_id]

    def _require_user(self, user_id: int) -> User:
        user = self._users.get_user(user_id)
        if user is None:
            raise UnknownUserError(f"User {user_id} is not registered")
        return user

    # ------------------------------------------------------------------
    # Contributions & evaluation
    # ------------------------------------------------------------------

    async def record_contribution(
        self,
        user_id: int,
        amount: float,
        source: str = "",
        *,
        logged_at: datetime,
    ) -> ProgressOutcome:
        """Persist a contribution and re-evaluate its day.

        `logged_at` is supplied by the caller in the user's timezone; its
        date is the day the contribution counts toward.

        Raises:
            ValidationError: bad amount, or a day older than the last
                evaluated one. Nothing is stored in that case.
            UnknownUserError: the user is not registered.
        """
        amount = validate_amount(amount, "amount")
        user = self._require_user(user_id)
        day = logged_at.date()

        async with self._lock_for(user_id):
            state = self._progress.get_streak_state(user_id)
            if state.last_evaluated_date is not None and day < state.last_evaluated_date:
                raise ValidationError(
                    f"Cannot log for {day.isoformat()}: "
                    f"{state.last_evaluated_date.isoformat()} was already evaluated"
                )
            self._progress.add_contribution(
                user_id, ContributionEvent(logged_at=logged_at, amount=amount, source=source.strip()),
            )
            return self._evaluate_locked(user, day)

    async def evaluate(self, user_id: int, now: datetime) -> ProgressOutcome:
        """Provisionally evaluate the day containing `now`."""
        user = self._require_user(user_id)
        async with self._lock_for(user_id):
            return self._evaluate_locked(user, now.date())

    async def settle_day(self, user_id: int, day: date) -> ProgressOutcome:
        """Close `day` with its final total and update the rollover balance.

        If the user already logged for a later day, the streak has moved on
        and is left alone; the rollover is still settled from the day's
        stored total.
        """
        user = self._require_user(user_id)
        async with self._lock_for(user_id):
            state = self._progress.get_streak_state(user_id)
            if state.last_evaluated_date is not None and day < state.last_evaluated_date:
                outcome = self._superseded_outcome(user, day, state)
            else:
                outcome = self._evaluate_locked(user, day)
            previous = self._progress.rollover_balance_before(user_id, day)
            rollover = apply_rollover(
                outcome.status.target,
                outcome.status.consumed,
                previous_balance=previous,
                alpha=self._rollover_alpha,
            )
            self._progress.mark_settled(user_id, day, rollover.balance)

        return ProgressOutcome(
            status=outcome.status,
            state=outcome.state,
            new_badges=outcome.new_badges,
            level_up=outcome.level_up,
            achievements=outcome.achievements,
            rollover=rollover,
        )

    def _superseded_outcome(self, user: User, day: date, state: StreakState) -> ProgressOutcome:
        user_id = user.telegram_user_id
        status = self._progress.get_daily_status(user_id, day)
        if status is None:
            events = self._progress.contributions_for_day(user_id, day)
            status = build_daily_status(day, sum(ev.amount for ev in events), user.daily_target)
            self._progress.save_daily_status(user_id, status)
        logger.info(
            "User %d: %s already superseded by %s, settling stored total %.1f",
            user_id, day.isoformat(), state.last_evaluated_date.isoformat(), status.consumed,
        )
        return ProgressOutcome(status=status, state=state)

    def _evaluate_locked(self, user: User, day: date) -> ProgressOutcome:
        user_id = user.telegram_user_id
        events = self._progress.contributions_for_day(user_id, day)
        consumed = sum(ev.amount for ev in events)
        state = self._progress.get_streak_state(user_id)

        result = evaluate_day(day, consumed, user.daily_target, state)
        achievements = detect(day, result.status, events, result.state)
        new_state = mark_emitted(result.state, day, achievements)

        self._progress.save_streak_state(user_id, new_state)
        self._progress.save_daily_status(user_id, result.status)

        return ProgressOutcome(
            status=result.status,
            state=new_state,
            new_badges=result.new_badges,
            level_up=result.level_up,
            achievements=achievements,
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def report(self, user_id: int, today: date) -> StatusReport:
        """Today's total, streak and rollover-adjusted target, without evaluating."""
        user = self._require_user(user_id)
        events = self._progress.contributions_for_day(user_id, today)
        status = build_daily_status(today, sum(ev.amount for ev in events), user.daily_target)
        state = self._progress.get_streak_state(user_id)

        balance = self._progress.rollover_balance_before(user_id, today)
        week_start = week_start_for(today)
        statuses = self._progress.daily_statuses(user_id, week_start)

        return StatusReport(
            status=status,
            state=state,
            adjusted_target=user.daily_target - self._rollover_alpha * balance,
            weekly_success_rate=weekly_success_rate(statuses, week_start),
            streak_at_risk=is_streak_at_risk(state, today),
        )

    async def _busy_intervals(self, day: date) -> list[BusyInterval]:
        if self._calendar is None:
            return []
        try:
            return await self._calendar.get_busy_intervals(day)
        except CalendarError as exc:
            logger.warning("Calendar unavailable for %s, planning without it: %s", day.isoformat(), exc)
            return []

    async def assess(self, now: datetime) -> ScheduleAssessment:
        busy = await self._busy_intervals(now.date())
        return analyze(now, busy, day_end_hour=self._day_end_hour)

    async def meal_ideas(self, user_id: int, now: datetime) -> list[MealSuggestion]:
        user = self._require_user(user_id)
        report = self.report(user_id, now.date())
        assessment = await self.assess(now)
        return suggest_meals(
            report.status.remaining,
            assessment,
            cooking_skill=user.cooking_skill,
            no_gos=user.no_gos,
        )

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    async def plan_reminders(self, user_id: int, now: datetime) -> list[PlannedReminder]:
        """Plan today's reminders and replace the user's pending ones."""
        user = self._require_user(user_id)
        window = EatingWindow.from_strings(user.eating_window_start, user.eating_window_end)

        async with self._lock_for(user_id):
            report = self.report(user_id, now.date())
            assessment = await self.assess(now)
            history = self._progress.top_success_hours(user_id, now.date())

            reminders = plan_reminders(
                now,
                report.status.remaining,
                window,
                assessment=assessment,
                success_hours=history,
                identifier_prefix=f"u{user_id}",
            )

            if self._notifier is not None:
                cancelled = await self._notifier.cancel_reminders(user_id)
                for reminder in reminders:
                    await self._notifier.schedule_reminder(user_id, reminder)
                logger.info(
                    "User %d: replaced %d pending reminder(s) with %d",
                    user_id, cancelled, len(reminders),
                )

        return reminders
