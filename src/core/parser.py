"""
NutriPilot — Command Argument Parser.

Turns raw Telegram command arguments into validated request models.
Every parse_* function raises src.core.errors.ValidationError with a
message that can be shown to the user as is.
"""

from __future__ import annotations

import logging
import math

from pydantic import BaseModel, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from src.core.errors import ValidationError
from src.core.intervals import parse_hhmm

logger = logging.getLogger(__name__)

COOKING_SKILLS = ("basic", "advanced", "pro")


def _check_positive(value: float, name: str) -> float:
    if math.isnan(value) or math.isinf(value) or value <= 0:
        raise ValueError(f"{name} must be a positive number")
    return value


class LogRequest(BaseModel):
    """/log 30 greek yogurt"""
    amount: float
    source: str = ""

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v: float) -> float:
        return _check_positive(v, "amount")

    @field_validator("source")
    @classmethod
    def strip_source(cls, v: str) -> str:
        return v.strip()


class TargetRequest(BaseModel):
    """/target 140"""
    target: float

    @field_validator("target")
    @classmethod
    def check_target(cls, v: float) -> float:
        return _check_positive(v, "target")


class WindowRequest(BaseModel):
    """/window 07:30-21:00"""
    start: str
    end: str

    @model_validator(mode="after")
    def check_order(self) -> WindowRequest:
        start, end = parse_hhmm(self.start), parse_hhmm(self.end)
        if end <= start:
            raise ValueError("the window must end after it starts")
        self.start, self.end = start.strftime("%H:%M"), end.strftime("%H:%M")
        return self


class PrefsRequest(BaseModel):
    """/prefs advanced fish, mushrooms"""
    cooking_skill: str
    no_gos: list[str] = []

    @field_validator("cooking_skill")
    @classmethod
    def check_skill(cls, v: str) -> str:
        skill = v.strip().lower()
        if skill not in COOKING_SKILLS:
            raise ValueError(f"cooking skill must be one of {', '.join(COOKING_SKILLS)}")
        return skill


def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    return errors[0]["msg"].removeprefix("Value error, ")


def _amount_token(token: str) -> str:
    """Accept "30", "30g" and "30,5"."""
    return token.strip().lower().removesuffix("g").replace(",", ".")


def parse_log_args(args: list[str]) -> LogRequest:
    if not args:
        raise ValidationError("Usage: /log <amount> [source]")
    try:
        return LogRequest(amount=_amount_token(args[0]), source=" ".join(args[1:]))
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid amount {args[0]!r}: {_first_error(exc)}") from exc


def parse_target_args(args: list[str]) -> TargetRequest:
    if len(args) != 1:
        raise ValidationError("Usage: /target <amount>")
    try:
        return TargetRequest(target=_amount_token(args[0]))
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid target {args[0]!r}: {_first_error(exc)}") from exc


def parse_window_args(args: list[str]) -> WindowRequest:
    text = "".join(args)
    start, sep, end = text.partition("-")
    if not sep:
        raise ValidationError("Usage: /window HH:MM-HH:MM")
    try:
        return WindowRequest(start=start, end=end)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid window {text!r}: {_first_error(exc)}") from exc


def parse_prefs_args(args: list[str]) -> PrefsRequest:
    if not args:
        raise ValidationError("Usage: /prefs <basic|advanced|pro> [no-go, no-go, ...]")
    no_gos = [word.strip() for word in " ".join(args[1:]).split(",") if word.strip()]
    try:
        return PrefsRequest(cooking_skill=args[0], no_gos=no_gos)
    except PydanticValidationError as exc:
        raise ValidationError(_first_error(exc)) from exc
