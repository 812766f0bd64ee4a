"""Tests for src.core.scheduler — planning cycle and day settlement."""

import pytest
from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from src.core.errors import ValidationError
from src.core.progress_ledger import RolloverResult
from src.core.progress_service import ProgressOutcome, ProgressService
from src.core.scheduler import format_settlement_message, run_planning_cycle, run_settlement
from src.data.models import DailyStatus, StreakState, User

D = date(2026, 3, 2)
NOW = datetime(2026, 3, 2, 15, 0)


def _users(*ids):
    users = MagicMock()
    users.list_users.return_value = [User(telegram_user_id=i, display_name=f"u{i}", onboarded=True) for i in ids]
    return users


def _outcome(consumed, target=100, streak=0, rollover=None):
    return ProgressOutcome(
        status=DailyStatus(day=D, target=target, consumed=consumed),
        state=StreakState(current_streak=streak, best_streak=streak),
        rollover=rollover,
    )


# ---------------------------------------------------------------------------
# run_planning_cycle
# ---------------------------------------------------------------------------


class TestPlanningCycle:
    @pytest.mark.asyncio
    async def test_plans_every_onboarded_user(self):
        service = MagicMock()
        service.plan_reminders = AsyncMock(side_effect=[["r1", "r2"], []])
        users = _users(1, 2)

        planned = await run_planning_cycle(service, users, NOW)

        assert planned == {1: 2, 2: 0}
        users.list_users.assert_called_once_with(onboarded_only=True)

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_loop(self):
        service = MagicMock()
        service.plan_reminders = AsyncMock(side_effect=[RuntimeError("boom"), ["r"]])

        planned = await run_planning_cycle(service, _users(1, 2), NOW)

        assert planned == {2: 1}
        assert service.plan_reminders.await_count == 2


# ---------------------------------------------------------------------------
# run_settlement
# ---------------------------------------------------------------------------


class TestSettlement:
    @pytest.mark.asyncio
    async def test_settles_every_user(self):
        service = MagicMock()
        service.settle_day = AsyncMock(side_effect=lambda uid, day: _outcome(100))

        settled = await run_settlement(service, _users(1, 2), D)

        assert set(settled) == {1, 2}
        service.settle_day.assert_any_await(1, D)

    @pytest.mark.asyncio
    async def test_superseded_and_failing_users_are_skipped(self):
        service = MagicMock()
        service.settle_day = AsyncMock(side_effect=[
            ValidationError("already evaluated"),
            RuntimeError("db locked"),
            _outcome(50),
        ])

        settled = await run_settlement(service, _users(1, 2, 3), D)

        assert list(settled) == [3]


# ---------------------------------------------------------------------------
# format_settlement_message
# ---------------------------------------------------------------------------


class TestFormatSettlementMessage:
    def test_goal_reached(self):
        text = format_settlement_message(
            _outcome(110, streak=3, rollover=RolloverResult(balance=10, adjusted_target=97)),
        )
        assert "110/100g. Goal reached!" in text
        assert "Streak: 3 day(s)" in text
        assert "Today's adjusted target: 97g" in text

    def test_missed(self):
        text = format_settlement_message(_outcome(60))
        assert "Missed by 40g" in text
        assert "adjusted target" not in text


class TestSettlementAfterMidnightLog:
    @pytest.mark.asyncio
    async def test_day_still_settled(self, progress_db, user_db):
        user_db.add_user(1, "Noa", daily_target=120)
        service = ProgressService(progress_db, user_db)
        await service.record_contribution(1, 100, logged_at=datetime(2026, 3, 2, 12, 0))
        await service.record_contribution(1, 10, logged_at=datetime(2026, 3, 3, 0, 2))

        settled = await run_settlement(service, user_db, D)

        assert list(settled) == [1]
        assert "Missed by 20g" in format_settlement_message(settled[1])
        assert progress_db.rollover_balance_before(1, D + timedelta(days=1)) == -20
