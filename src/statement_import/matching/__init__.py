"""Duplicate detection for statement imports."""

from .engine import (
    DEFAULT_SCORE_THRESHOLD,
    DEFAULT_WINDOW_DAYS,
    AxisScore,
    DuplicateMatcher,
    MatchResult,
    amount_tolerance,
    clamp_window_days,
)

__all__ = [
    "AxisScore",
    "DuplicateMatcher",
    "MatchResult",
    "amount_tolerance",
    "clamp_window_days",
    "DEFAULT_SCORE_THRESHOLD",
    "DEFAULT_WINDOW_DAYS",
]
