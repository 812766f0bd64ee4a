"""Tests for src.core.progress_service — the serialized progress owner."""

import asyncio
import pytest
from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock, call
from zoneinfo import ZoneInfo

from src.core.achievements import AchievementEvent, AchievementKind
from src.core.errors import UnknownUserError, ValidationError
from src.core.intervals import BusyInterval
from src.core.levels import Level, StreakBadge
from src.core.progress_service import ProgressOutcome, ProgressService, celebration_order
from src.data.models import DailyStatus, StreakState
from src.ports.calendar_port import CalendarError

D = date(2026, 3, 2)  # Monday
UID = 12345


def _at(day, hour, minute=0):
    return datetime(day.year, day.month, day.day, hour, minute)


@pytest.fixture
def service(progress_db, user_db):
    user_db.add_user(UID, "Noa", daily_target=120)
    return ProgressService(progress_db, user_db)


def _notifier():
    notifier = AsyncMock()
    notifier.cancel_reminders.return_value = 0
    return notifier


# ---------------------------------------------------------------------------
# record_contribution
# ---------------------------------------------------------------------------


class TestRecordContribution:
    @pytest.mark.asyncio
    async def test_first_log_gets_welcome(self, service):
        outcome = await service.record_contribution(UID, 30, "eggs", logged_at=_at(D, 10))
        assert outcome.status.consumed == 30
        assert outcome.state.current_streak == 0
        kinds = [a.kind for a in outcome.achievements]
        assert AchievementKind.FIRST_ENTRY in kinds
        assert AchievementKind.GOOD_PROGRESS in kinds
        assert outcome.state.has_had_first_entry

    @pytest.mark.asyncio
    async def test_reaching_target_starts_streak(self, service, progress_db):
        await service.record_contribution(UID, 60, logged_at=_at(D, 10))
        outcome = await service.record_contribution(UID, 62, logged_at=_at(D, 13))
        assert outcome.status.target_hit
        assert outcome.state.current_streak == 1
        assert StreakBadge.FIRST_DAY in outcome.new_badges
        assert progress_db.get_streak_state(UID).current_streak == 1
        assert progress_db.get_daily_status(UID, D).consumed == 122

    @pytest.mark.asyncio
    async def test_achievements_not_repeated_same_day(self, service):
        await service.record_contribution(UID, 30, logged_at=_at(D, 10))
        outcome = await service.record_contribution(UID, 5, logged_at=_at(D, 11))
        assert outcome.achievements == []

    @pytest.mark.asyncio
    async def test_invalid_amount(self, service, progress_db):
        with pytest.raises(ValidationError):
            await service.record_contribution(UID, -5, logged_at=_at(D, 10))
        assert progress_db.contributions_for_day(UID, D) == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, service):
        with pytest.raises(UnknownUserError):
            await service.record_contribution(999, 10, logged_at=_at(D, 10))

    @pytest.mark.asyncio
    async def test_backdated_log_rejected_and_not_stored(self, service, progress_db):
        await service.record_contribution(UID, 10, logged_at=_at(D + timedelta(days=1), 9))
        with pytest.raises(ValidationError):
            await service.record_contribution(UID, 50, logged_at=_at(D, 20))
        assert progress_db.contributions_for_day(UID, D) == []

    @pytest.mark.asyncio
    async def test_concurrent_logs_are_all_counted(self, service, progress_db):
        await asyncio.gather(*[
            service.record_contribution(UID, 12, logged_at=_at(D, 10, i))
            for i in range(10)
        ])
        assert progress_db.get_daily_status(UID, D).consumed == 120
        assert progress_db.get_streak_state(UID).current_streak == 1

    @pytest.mark.asyncio
    async def test_logged_at_is_required(self, service):
        with pytest.raises(TypeError):
            await service.record_contribution(UID, 30, "eggs")

    @pytest.mark.asyncio
    async def test_aware_timestamp_counts_toward_local_day(self, service, progress_db):
        tz = ZoneInfo("America/New_York")
        # 21:30 local on D is already D+1 in UTC
        outcome = await service.record_contribution(UID, 40, logged_at=datetime(2026, 3, 2, 21, 30, tzinfo=tz))
        assert outcome.status.day == D

        [event] = progress_db.contributions_for_day(UID, D)
        assert event.logged_at.utcoffset() == timedelta(hours=-5)
        assert event.logged_at.hour == 21

    @pytest.mark.asyncio
    async def test_consecutive_days_extend_streak(self, service):
        await service.record_contribution(UID, 120, logged_at=_at(D, 12))
        outcome = await service.record_contribution(UID, 130, logged_at=_at(D + timedelta(days=1), 12))
        assert outcome.state.current_streak == 2
        assert outcome.state.total_days_with_goal == 2


# ---------------------------------------------------------------------------
# settle_day & report
# ---------------------------------------------------------------------------


class TestSettlement:
    @pytest.mark.asyncio
    async def test_settle_missed_day(self, service, progress_db):
        await service.record_contribution(UID, 100, logged_at=_at(D, 12))
        outcome = await service.settle_day(UID, D)

        assert not outcome.status.target_hit
        assert outcome.state.current_streak == 0
        assert outcome.rollover.balance == -20
        assert outcome.rollover.adjusted_target == pytest.approx(126)
        assert progress_db.rollover_balance_before(UID, D + timedelta(days=1)) == -20

    @pytest.mark.asyncio
    async def test_settle_empty_day_is_a_miss(self, service):
        await service.record_contribution(UID, 120, logged_at=_at(D, 12))
        await service.settle_day(UID, D)
        outcome = await service.settle_day(UID, D + timedelta(days=1))
        assert outcome.status.consumed == 0
        assert outcome.state.current_streak == 0
        assert outcome.state.best_streak == 1

    @pytest.mark.asyncio
    async def test_balance_accumulates(self, service):
        await service.record_contribution(UID, 100, logged_at=_at(D, 12))
        await service.settle_day(UID, D)
        await service.record_contribution(UID, 110, logged_at=_at(D + timedelta(days=1), 12))
        outcome = await service.settle_day(UID, D + timedelta(days=1))
        assert outcome.rollover.balance == -30

    @pytest.mark.asyncio
    async def test_settle_after_next_day_already_logged(self, service, progress_db):
        await service.record_contribution(UID, 100, logged_at=_at(D, 12))
        await service.record_contribution(UID, 10, logged_at=_at(D + timedelta(days=1), 0, 2))

        outcome = await service.settle_day(UID, D)

        assert outcome.status.consumed == 100
        assert outcome.rollover.balance == -20
        assert outcome.state.last_evaluated_date == D + timedelta(days=1)
        assert progress_db.rollover_balance_before(UID, D + timedelta(days=1)) == -20
        assert progress_db.get_daily_status(UID, D + timedelta(days=1)).consumed == 10

    @pytest.mark.asyncio
    async def test_settle_skipped_day_after_next_day_logged(self, service, progress_db):
        await service.record_contribution(UID, 130, logged_at=_at(D + timedelta(days=1), 8))

        outcome = await service.settle_day(UID, D)

        assert outcome.status.consumed == 0
        assert outcome.rollover.balance == -120
        assert outcome.state.current_streak == 1
        assert progress_db.rollover_balance_before(UID, D + timedelta(days=1)) == -120

    @pytest.mark.asyncio
    async def test_report_uses_rollover(self, service):
        await service.record_contribution(UID, 100, logged_at=_at(D, 12))
        await service.settle_day(UID, D)
        report = service.report(UID, D + timedelta(days=1))
        assert report.adjusted_target == pytest.approx(126)
        assert report.status.consumed == 0
        assert report.weekly_success_rate == 0.0
        assert not report.streak_at_risk

    @pytest.mark.asyncio
    async def test_report_flags_streak_at_risk(self, service):
        await service.record_contribution(UID, 120, logged_at=_at(D, 12))
        report = service.report(UID, D + timedelta(days=2))
        assert report.streak_at_risk


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


class TestPlanReminders:
    @pytest.mark.asyncio
    async def test_replaces_pending_reminders(self, progress_db, user_db):
        user_db.add_user(UID, "Noa", daily_target=120)
        notifier = _notifier()
        service = ProgressService(progress_db, user_db, notifier=notifier)

        reminders = await service.plan_reminders(UID, _at(D, 15))

        assert [r.fire_at for r in reminders] == [_at(D, 17), _at(D, 19)]
        assert reminders[0].identifier.startswith(f"u{UID}-")
        assert notifier.mock_calls[0] == call.cancel_reminders(UID)
        assert notifier.schedule_reminder.await_count == 2
        notifier.schedule_reminder.assert_any_await(UID, reminders[0])

    @pytest.mark.asyncio
    async def test_nothing_planned_when_target_met(self, progress_db, user_db):
        user_db.add_user(UID, "Noa", daily_target=120)
        notifier = _notifier()
        service = ProgressService(progress_db, user_db, notifier=notifier)
        await service.record_contribution(UID, 115, logged_at=_at(D, 12))

        assert await service.plan_reminders(UID, _at(D, 15)) == []
        notifier.cancel_reminders.assert_awaited_once_with(UID)
        notifier.schedule_reminder.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_calendar_failure_degrades_to_empty_schedule(self, progress_db, user_db):
        user_db.add_user(UID, "Noa", daily_target=120)
        calendar = AsyncMock()
        calendar.get_busy_intervals.side_effect = CalendarError("server down")
        service = ProgressService(progress_db, user_db, calendar=calendar)

        reminders = await service.plan_reminders(UID, _at(D, 15))
        assert len(reminders) == 2

    @pytest.mark.asyncio
    async def test_uses_calendar_for_urgent_slot(self, progress_db, user_db):
        user_db.add_user(UID, "Noa", daily_target=120)
        calendar = AsyncMock()
        calendar.get_busy_intervals.return_value = [
            BusyInterval(_at(D, 19), _at(D, 19, 15), "Standup"),
        ]
        service = ProgressService(progress_db, user_db, calendar=calendar)

        reminders = await service.plan_reminders(UID, _at(D, 19))
        assert [r.fire_at for r in reminders] == [_at(D, 19, 15)]
        calendar.get_busy_intervals.assert_awaited_once_with(D)

    @pytest.mark.asyncio
    async def test_meal_ideas_respect_no_gos(self, progress_db, user_db):
        user_db.add_user(UID, "Noa", daily_target=120)
        user_db.set_preferences(UID, "basic", ["eggs"])
        service = ProgressService(progress_db, user_db)

        ideas = await service.meal_ideas(UID, _at(D, 18))
        assert ideas
        assert all("egg" not in idea.name.lower() for idea in ideas)


# ---------------------------------------------------------------------------
# celebration_order
# ---------------------------------------------------------------------------


class TestCelebrationOrder:
    def test_level_up_then_welcome_then_badges_then_milestones(self):
        outcome = ProgressOutcome(
            status=DailyStatus(day=D, target=100, consumed=100),
            state=StreakState(current_streak=3, best_streak=3),
            new_badges=[StreakBadge.THREE_DAYS],
            level_up=Level.STARTER,
            achievements=[
                AchievementEvent(D, AchievementKind.PERFECT_DAY),
                AchievementEvent(D, AchievementKind.GOAL_REACHED),
                AchievementEvent(D, AchievementKind.FIRST_ENTRY),
            ],
        )
        titles = [c.title for c in celebration_order(outcome)]
        assert titles[0] == f"Level up: {Level.STARTER.title}"
        assert titles[1] == AchievementKind.FIRST_ENTRY.title
        assert titles[2] == outcome.new_badges[0].info.title
        assert titles[3] == AchievementKind.GOAL_REACHED.title
        assert titles[4] == AchievementKind.PERFECT_DAY.title

    def test_empty_outcome(self):
        outcome = ProgressOutcome(
            status=DailyStatus(day=D, target=100, consumed=0), state=StreakState(),
        )
        assert celebration_order(outcome) == []
