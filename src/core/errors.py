"""NutriPilot — core error types."""

from __future__ import annotations


class ValidationError(ValueError):
    """Raised when a core operation receives input it cannot accept.

    Covers negative/NaN amounts, non-positive targets, malformed times and
    dates that would rewrite already-evaluated history. The operation that
    raises never mutates the state it was given.
    """


class UnknownUserError(LookupError):
    """Raised when an operation names a user that was never registered."""
