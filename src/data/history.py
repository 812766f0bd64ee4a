"""
NutriPilot — Historical success hours.

Summarizes past days into the clock hours at which the user usually
crosses most of their target. The reminder planner uses these hours when
the day is still young.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import date

from src.data.models import ContributionEvent

logger = logging.getLogger(__name__)

SUCCESS_SHARE = 0.8
TOP_HOURS = 3


def success_hour(events: list[ContributionEvent], target: float) -> int | None:
    """Hour at which the running total first reached SUCCESS_SHARE of target."""
    if target <= 0:
        return None
    threshold = target * SUCCESS_SHARE
    total = 0.0
    for event in sorted(events, key=lambda ev: ev.logged_at):
        total += event.amount
        if total >= threshold:
            return event.logged_at.hour
    return None


def summarize_success_hours(
    events: list[ContributionEvent],
    targets: dict[date, float],
    top: int = TOP_HOURS,
) -> list[int]:
    """Most frequent success hours across days, ties broken by the earlier hour.

    Args:
        events: Contributions from any number of past days.
        targets: The target that applied on each day; days without an
            entry are ignored.
    """
    by_day: dict[date, list[ContributionEvent]] = defaultdict(list)
    for event in events:
        by_day[event.logged_at.date()].append(event)

    counts: Counter[int] = Counter()
    for day, day_events in by_day.items():
        target = targets.get(day)
        if target is None:
            continue
        hour = success_hour(day_events, target)
        if hour is not None:
            counts[hour] += 1

    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    hours = [hour for hour, _ in ranked[:top]]
    logger.debug("Success hours from %d day(s): %s", len(by_day), hours)
    return hours
