"""Duplicate matcher for incoming statement records.

Searches the ledger for existing transactions in a date/amount window around
an incoming record and scores each candidate on four axes (amount, date,
category, description). The best candidate is reported as a possible
duplicate when its score reaches the threshold.

This is an advisory layer: a human or the calling agent may still force the
record in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ..ledger.interfaces import (
    DEFAULT_CANDIDATE_LIMIT,
    AmountRange,
    DateRange,
    DuplicateCandidateSource,
)
from ..schemas.records import DuplicateCandidate, NormalizedRecord
from ..schemas.text import description_similarity

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 7
MIN_WINDOW_DAYS = 1
MAX_WINDOW_DAYS = 30
DEFAULT_SCORE_THRESHOLD = 65

# Reason used when a candidate scored on no axis at all
FALLBACK_REASON = "matching pattern"


def clamp_window_days(value: int | None) -> int:
    """Clamp the duplicate window to 1..30 days (None means the default)."""
    if value is None:
        return DEFAULT_WINDOW_DAYS
    return max(MIN_WINDOW_DAYS, min(MAX_WINDOW_DAYS, value))


def amount_tolerance(amount: Decimal) -> Decimal:
    """Search band half-width: 3% of the amount, never below 1.00."""
    three_percent = (amount * Decimal("0.03")).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return max(Decimal("1.00"), three_percent)


@dataclass
class AxisScore:
    """Contribution of one axis to a duplicate score."""

    axis: str
    points: int
    label: str | None = None
    detail: str = ""

    @property
    def matched(self) -> bool:
        return self.points > 0


@dataclass
class MatchResult:
    """Scored comparison of an incoming record with one existing transaction."""

    candidate: DuplicateCandidate
    score: int
    signals: list[AxisScore] = field(default_factory=list)

    @property
    def reason(self) -> str:
        """Labels of the axes that scored, joined by ", "."""
        labels = [s.label for s in self.signals if s.matched and s.label]
        return ", ".join(labels) if labels else FALLBACK_REASON

    def describe(self) -> str:
        """Reason plus the score and the existing record's date and amount."""
        return (
            f"{self.reason} (score={self.score}, "
            f"existing record date={self.candidate.transaction_date[:10]}, "
            f"amount={self.candidate.amount:.2f})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "candidate_id": self.candidate.id,
            "score": self.score,
            "reason": self.reason,
            "existing_date": self.candidate.transaction_date[:10],
            "existing_amount": f"{self.candidate.amount:.2f}",
            "signals": [
                {
                    "axis": s.axis,
                    "points": s.points,
                    "label": s.label,
                    "detail": s.detail,
                }
                for s in self.signals
            ],
        }


class DuplicateMatcher:
    """Finds the most likely existing duplicate of an incoming record.

    Scoring (one tier per axis, first matching tier wins):
    - Amount: exact (45), very close (30), close (15)
    - Date: same day (30), <= 2 days (22), <= 7 days (15), within window (8)
    - Category: same category (12)
    - Description: similarity >= 90 (25), >= 75 (16), >= 60 (8)

    The best candidate is only replaced by a strictly higher score, so the
    first of equally scored candidates (most recent) wins.
    """

    def __init__(
        self,
        candidates: DuplicateCandidateSource,
        window_days: int | None = DEFAULT_WINDOW_DAYS,
        score_threshold: int = DEFAULT_SCORE_THRESHOLD,
        candidate_limit: int = DEFAULT_CANDIDATE_LIMIT,
    ) -> None:
        """Initialize the matcher.

        Args:
            candidates: Source of existing ledger transactions.
            window_days: Days searched on each side of the record date (clamped to 1..30).
            score_threshold: Minimum score for a possible duplicate.
            candidate_limit: Maximum candidates scored per record.
        """
        self.candidates = candidates
        self.window_days = clamp_window_days(window_days)
        self.score_threshold = score_threshold
        self.candidate_limit = candidate_limit

    def find_duplicate(self, record: NormalizedRecord) -> MatchResult | None:
        """Find the best duplicate candidate for a record.

        Args:
            record: Valid normalized record.

        Returns:
            Best MatchResult at or above the threshold, or None.

        Raises:
            Exception: Whatever the candidate source raises; the caller
                decides how a failed search is reported.
        """
        if record.account is None or not record.is_valid:
            return None

        record_date = date.fromisoformat(record.transaction_date)
        window = timedelta(days=self.window_days)
        tolerance = amount_tolerance(record.amount)

        candidates = self.candidates.find_candidates(
            account_id=record.account.id,
            type_=record.type,
            date_range=DateRange(
                start=(record_date - window).isoformat(),
                end=(record_date + window).isoformat(),
            ),
            amount_range=AmountRange(
                minimum=max(Decimal("0"), record.amount - tolerance),
                maximum=record.amount + tolerance,
            ),
            limit=self.candidate_limit,
        )

        best: MatchResult | None = None
        for candidate in candidates:
            result = self.score_candidate(record, candidate)
            if best is None or result.score > best.score:
                best = result

        if best is None or best.score < self.score_threshold:
            logger.debug(
                "Record #%d: %d candidates, best score %s below %d",
                record.display_index,
                len(candidates),
                best.score if best else None,
                self.score_threshold,
            )
            return None

        logger.debug(
            "Record #%d: possible duplicate of transaction %s (%s)",
            record.display_index,
            best.candidate.id,
            best.describe(),
        )
        return best

    def score_candidate(
        self, record: NormalizedRecord, candidate: DuplicateCandidate
    ) -> MatchResult:
        """Score one candidate against a record.

        Args:
            record: Incoming normalized record.
            candidate: Existing ledger transaction.

        Returns:
            MatchResult carrying the total score and per-axis signals.
        """
        signals = [
            self._score_amount(record.amount, candidate.amount),
            self._score_date(record.transaction_date, candidate.transaction_date),
            self._score_category(record.category_id, candidate.category_id),
            self._score_description(record.description, candidate.description),
        ]
        return MatchResult(
            candidate=candidate,
            score=sum(s.points for s in signals),
            signals=signals,
        )

    def _score_amount(self, incoming: Decimal, existing: Decimal) -> AxisScore:
        """Score amount proximity (tolerances scale with the incoming amount)."""
        diff = abs(existing - incoming)
        detail = f"{incoming:.2f} vs {existing:.2f}"

        if diff <= Decimal("0.01"):
            return AxisScore("amount", 45, "exact amount", detail)
        if diff <= max(Decimal("0.5"), incoming * Decimal("0.01")):
            return AxisScore("amount", 30, "very close amount", detail)
        if diff <= max(Decimal("1.0"), incoming * Decimal("0.03")):
            return AxisScore("amount", 15, "close amount", detail)
        return AxisScore("amount", 0, None, detail)

    def _score_date(self, incoming: str, existing: str) -> AxisScore:
        """Score date proximity in whole days."""
        try:
            days_diff = abs(
                (date.fromisoformat(existing[:10]) - date.fromisoformat(incoming[:10])).days
            )
        except ValueError:
            return AxisScore("date", 0, None, f"unparsable: {existing}")

        detail = f"{days_diff} days"
        if days_diff == 0:
            return AxisScore("date", 30, "same date", "same day")
        if days_diff <= 2:
            return AxisScore("date", 22, "very close date", detail)
        if days_diff <= 7:
            return AxisScore("date", 15, "close date", detail)
        if days_diff <= self.window_days:
            return AxisScore("date", 8, "date within window", detail)
        return AxisScore("date", 0, None, detail)

    def _score_category(self, incoming: int | None, existing: int | None) -> AxisScore:
        if incoming is not None and existing == incoming:
            return AxisScore("category", 12, "same category", str(incoming))
        return AxisScore("category", 0, None)

    def _score_description(self, incoming: str, existing: str | None) -> AxisScore:
        """Score description similarity on normalized text."""
        similarity = description_similarity(incoming, existing or "")
        detail = f"{similarity:.1f}%"

        if similarity >= 90:
            return AxisScore("description", 25, "very similar description", detail)
        if similarity >= 75:
            return AxisScore("description", 16, "similar description", detail)
        if similarity >= 60:
            return AxisScore("description", 8, "resembling description", detail)
        return AxisScore("description", 0, None, detail)
