"""
NutriPilot — Periodic Jobs.

Planning cycle: every PLANNING_INTERVAL_MINUTES, re-plan today's
reminders for every onboarded user so new contributions and calendar
changes are reflected.

Settlement: shortly after midnight, close the previous day for every
onboarded user. A day with no contributions is a miss and resets the
streak; the rollover balance is updated from the final total.

This module is provider-agnostic: it drives ProgressService and reads the
user list through UserPort. One user's failure is logged and never stops
the loop.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING

from src.core.errors import ValidationError

if TYPE_CHECKING:
    from src.core.progress_service import ProgressOutcome, ProgressService
    from src.ports.progress_port import UserPort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reminder planning
# ---------------------------------------------------------------------------


async def run_planning_cycle(
    service: ProgressService,
    users: UserPort,
    now: datetime,
) -> dict[int, int]:
    """Plan reminders for every onboarded user.

    Returns a mapping of user id to the number of reminders scheduled;
    users whose planning failed are left out.
    """
    planned: dict[int, int] = {}
    for user in users.list_users(onboarded_only=True):
        user_id = user.telegram_user_id
        try:
            reminders = await service.plan_reminders(user_id, now)
        except Exception as exc:
            logger.error("Planning failed for user %d: %s", user_id, exc)
            continue
        planned[user_id] = len(reminders)

    logger.info("Planning cycle at %s: %d user(s) planned", now.strftime("%H:%M"), len(planned))
    return planned


# ---------------------------------------------------------------------------
# Day settlement
# ---------------------------------------------------------------------------


async def run_settlement(
    service: ProgressService,
    users: UserPort,
    day: date,
) -> dict[int, ProgressOutcome]:
    """Close `day` for every onboarded user.

    A user who already logged for a later day keeps their streak and
    still gets the day's rollover settled. A rejected settlement is
    logged as a warning and skipped.
    """
    settled: dict[int, ProgressOutcome] = {}
    for user in users.list_users(onboarded_only=True):
        user_id = user.telegram_user_id
        try:
            settled[user_id] = await service.settle_day(user_id, day)
        except ValidationError as exc:
            logger.warning("Settlement of %s skipped for user %d: %s", day.isoformat(), user_id, exc)
        except Exception as exc:
            logger.error("Settlement of %s failed for user %d: %s", day.isoformat(), user_id, exc)

    logger.info("Settled %s for %d user(s)", day.isoformat(), len(settled))
    return settled


def format_settlement_message(outcome: ProgressOutcome) -> str:
    """Short end-of-day recap sent after settlement."""
    status = outcome.status
    state = outcome.state
    if status.target_hit:
        head = f"Yesterday: {status.consumed:.0f}/{status.target:.0f}g. Goal reached!"
    else:
        head = f"Yesterday: {status.consumed:.0f}/{status.target:.0f}g. Missed by {status.remaining:.0f}g."

    lines = [head, f"Streak: {state.current_streak} day(s) ({state.current_level.title})"]
    if outcome.rollover is not None:
        lines.append(f"Today's adjusted target: {outcome.rollover.adjusted_target:.0f}g")
    return "\n".join(lines)
