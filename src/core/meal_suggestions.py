"""
NutriPilot — Adaptive meal suggestions.

Picks ready-made meal ideas that fit the remaining amount and the
current schedule: a stressed user with five minutes gets a shake, a
relaxed evening at home gets something to cook.

No I/O: the catalog is a fixed table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from src.core.schedule_analyzer import ScheduleAssessment, StressLevel, TimeOfDay

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 4


class MealUrgency(Enum):
    CRITICAL = "critical"   # eat now
    URGENT = "urgent"       # eat soon, no cooking
    NORMAL = "normal"       # time to prepare something


class MealSituation(Enum):
    EMERGENCY = "emergency"
    ON_THE_GO = "on_the_go"
    OFFICE = "office"
    HOME = "home"


@dataclass(frozen=True)
class MealContext:
    urgency: MealUrgency
    situation: MealSituation
    time_of_day: TimeOfDay
    available_minutes: int


@dataclass(frozen=True)
class MealSuggestion:
    name: str
    amount: float
    prep_minutes: int
    reason: str
    context: str
    priority: int
    urgency: MealUrgency
    situation: MealSituation


# (name, amount, prep minutes, reason, urgency)
_CatalogRow = tuple[str, float, int, str, MealUrgency]

_EMERGENCY: list[_CatalogRow] = [
    ("Ready-to-drink protein shake", 25.0, 1, "Just drink it, instantly available", MealUrgency.CRITICAL),
    ("Hard-boiled egg", 6.0, 1, "Peeled and eaten in a minute", MealUrgency.CRITICAL),
    ("Greek yogurt cup", 15.0, 1, "Spoon it straight from the cup", MealUrgency.CRITICAL),
    ("Protein bar", 20.0, 1, "Unwrap and eat", MealUrgency.URGENT),
    ("Glass of milk", 8.0, 1, "One glass, ready to drink", MealUrgency.URGENT),
]

_QUICK: list[_CatalogRow] = [
    ("Skyr with nuts", 20.0, 3, "Top with nuts, done", MealUrgency.URGENT),
    ("Cottage cheese", 14.0, 2, "Straight from the tub", MealUrgency.URGENT),
    ("Canned tuna", 25.0, 3, "Open the can, grab a fork", MealUrgency.URGENT),
    ("Protein smoothie", 30.0, 4, "Blend quickly and drink", MealUrgency.NORMAL),
    ("Cheese cubes", 12.0, 2, "Prepared in the fridge", MealUrgency.URGENT),
]

_PORTABLE: list[_CatalogRow] = [
    ("Protein shake to go", 25.0, 3, "Take the shaker with you", MealUrgency.NORMAL),
    ("Trail mix bag", 8.0, 1, "Perfect on the move", MealUrgency.NORMAL),
    ("Beef jerky", 15.0, 1, "Keeps without a fridge", MealUrgency.NORMAL),
    ("Premium protein bar", 22.0, 1, "Filling and high quality", MealUrgency.NORMAL),
    ("Mini cheese rounds", 6.0, 1, "Individually wrapped", MealUrgency.NORMAL),
]

_OFFICE: list[_CatalogRow] = [
    ("Yogurt with muesli", 18.0, 5, "Keep it in the office fridge", MealUrgency.NORMAL),
    ("Protein pudding", 20.0, 2, "Dessert feeling at the desk", MealUrgency.NORMAL),
    ("Quark with berries", 16.0, 4, "Fresh and light", MealUrgency.NORMAL),
    ("Protein coffee", 15.0, 3, "Coffee plus a scoop of powder", MealUrgency.NORMAL),
    ("Hummus with egg", 12.0, 5, "Healthy and filling", MealUrgency.NORMAL),
]

_HOME_BASIC: list[_CatalogRow] = [
    ("Scrambled eggs (3 eggs)", 18.0, 8, "Classic and tasty", MealUrgency.NORMAL),
    ("Pan-fried chicken breast", 35.0, 15, "Lots of protein, very filling", MealUrgency.NORMAL),
    ("Lentil salad", 18.0, 12, "Plant-based and nourishing", MealUrgency.NORMAL),
]

_HOME_ADVANCED: list[_CatalogRow] = [
    ("Salmon with vegetables", 40.0, 20, "Omega-3 plus quality protein", MealUrgency.NORMAL),
    ("Quinoa bowl with tofu", 22.0, 25, "Wholesome and balanced", MealUrgency.NORMAL),
    ("Protein pancakes", 24.0, 15, "Tasty and protein rich", MealUrgency.NORMAL),
]

_ADVANCED_SKILLS = ("advanced", "pro")


def classify_context(assessment: ScheduleAssessment) -> MealContext:
    """Map a schedule assessment onto meal urgency and situation."""
    minutes = assessment.available_minutes

    if assessment.stress_level is StressLevel.HIGH or minutes < 10:
        urgency = MealUrgency.CRITICAL
    elif assessment.stress_level is StressLevel.MEDIUM and minutes < 30:
        urgency = MealUrgency.URGENT
    else:
        urgency = MealUrgency.NORMAL

    if assessment.quick_meal_needed:
        situation = MealSituation.EMERGENCY if minutes < 5 else MealSituation.ON_THE_GO
    elif assessment.time_of_day is TimeOfDay.LUNCH:
        situation = MealSituation.OFFICE
    else:
        situation = MealSituation.HOME

    return MealContext(
        urgency=urgency,
        situation=situation,
        time_of_day=assessment.time_of_day,
        available_minutes=minutes,
    )


def _build(
    rows: list[_CatalogRow],
    remaining: float,
    context: str,
    priority: int | None,
    situation: MealSituation,
    slack: float = 10.0,
) -> list[MealSuggestion]:
    suggestions = []
    for name, amount, prep, reason, urgency in rows:
        if amount > remaining + slack:
            continue
        if priority is None:
            row_priority = 100 if urgency is MealUrgency.CRITICAL else 90
        else:
            row_priority = priority
        suggestions.append(MealSuggestion(
            name=name,
            amount=amount,
            prep_minutes=prep,
            reason=reason,
            context=context,
            priority=row_priority,
            urgency=urgency,
            situation=situation,
        ))
    return suggestions


def _quick_context(time_of_day: TimeOfDay) -> str:
    if time_of_day is TimeOfDay.MORNING:
        return "Quick breakfast"
    if time_of_day is TimeOfDay.LUNCH:
        return "Quick bite in between"
    return "Quick snack"


def _situation_rows(
    meal_context: MealContext, remaining: float, cooking_skill: str,
) -> list[MealSuggestion]:
    situation = meal_context.situation
    if situation is MealSituation.EMERGENCY:
        return _build(_EMERGENCY, remaining, "Emergency protein", None, MealSituation.EMERGENCY)
    if situation is MealSituation.ON_THE_GO:
        return _build(_PORTABLE, remaining, "On the go", 70, MealSituation.ON_THE_GO)
    if situation is MealSituation.OFFICE:
        return _build(_OFFICE, remaining, "Office friendly", 60, MealSituation.OFFICE)
    if situation is MealSituation.HOME:
        rows = list(_HOME_BASIC)
        if cooking_skill.lower() in _ADVANCED_SKILLS:
            rows += _HOME_ADVANCED
        return _build(rows, remaining, "Cook at home", 50, MealSituation.HOME, slack=15.0)
    raise ValueError(f"Unhandled meal situation: {situation!r}")


def suggest_meals(
    remaining: float,
    assessment: ScheduleAssessment,
    cooking_skill: str = "basic",
    no_gos: list[str] | None = None,
    limit: int = MAX_SUGGESTIONS,
) -> list[MealSuggestion]:
    """Return up to `limit` meal ideas, highest priority first."""
    if remaining <= 0:
        return []

    meal_context = classify_context(assessment)
    suggestions: list[MealSuggestion] = []

    if meal_context.urgency is MealUrgency.CRITICAL:
        suggestions += _build(_EMERGENCY, remaining, "Emergency protein", None, MealSituation.EMERGENCY)

    if meal_context.available_minutes < 15:
        suggestions += _build(
            _QUICK, remaining, _quick_context(meal_context.time_of_day), 80,
            MealSituation.ON_THE_GO,
        )

    suggestions += _situation_rows(meal_context, remaining, cooking_skill)

    blocked = [word.casefold() for word in (no_gos or []) if word.strip()]
    seen: set[str] = set()
    filtered = []
    for suggestion in suggestions:
        haystack = f"{suggestion.name} {suggestion.reason}".casefold()
        if any(word in haystack for word in blocked) or suggestion.name in seen:
            continue
        seen.add(suggestion.name)
        filtered.append(suggestion)

    filtered.sort(key=lambda s: s.priority, reverse=True)
    logger.debug(
        "Meal context %s/%s -> %d suggestion(s)",
        meal_context.urgency.value, meal_context.situation.value, len(filtered),
    )
    return filtered[:limit]
