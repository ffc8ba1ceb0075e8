#!/usr/bin/env python3
"""
Unified Match Scoring

One scoring primitive shared by the order and recurring matchers, so both
rank candidates the same way and the numbers in a match explanation mean
the same thing everywhere.

Score components (weighted sum, rounded to 4 places):
- Amount (0.6): 1.0 when exact, decaying linearly to 0.5 at the tolerance edge
- Date (0.25): 1 - days / (window + 1)
- Text (0.15): normalized containment, token match, then difflib ratio

A candidate outside the amount tolerance or the date window scores 0.
"""

from ..core.dates import FinancialDate
from ..core.money import Money
from ..core.text import text_similarity

AMOUNT_WEIGHT = 0.6
DATE_WEIGHT = 0.25
TEXT_WEIGHT = 0.15


class MatchScorer:
    """Unified match scoring system"""

    @staticmethod
    def score(
        candidate_amount: Money,
        candidate_date: FinancialDate,
        target_amount: Money,
        target_date: FinancialDate,
        text_a: str | None,
        text_b: str | None,
        *,
        amount_tolerance_cents: int,
        date_window_days: int,
    ) -> float:
        """
        Calculate a match score between 0.0 and 1.0.

        Args:
            candidate_amount: Expense-positive amount of the transaction
            candidate_date: Transaction date
            target_amount: Order total or expected recurring amount
            target_date: Order date or projected occurrence date
            text_a: Transaction description
            text_b: Label to compare against (merchant label, keyword)
            amount_tolerance_cents: Largest allowed absolute difference
            date_window_days: Largest allowed date distance

        Returns:
            Score rounded to 4 places; 0.0 when outside tolerance or window
        """
        amount_diff = abs(candidate_amount.to_cents() - target_amount.to_cents())
        amount_score = MatchScorer._score_amount(amount_diff, amount_tolerance_cents)
        if amount_score == 0.0:
            return 0.0

        days = candidate_date.days_between(target_date)
        date_score = MatchScorer._score_date(days, date_window_days)
        if date_score == 0.0:
            return 0.0

        text_score = text_similarity(text_a, text_b)
        total = AMOUNT_WEIGHT * amount_score + DATE_WEIGHT * date_score + TEXT_WEIGHT * text_score
        return round(max(0.0, min(1.0, total)), 4)

    @staticmethod
    def _score_amount(amount_diff: int, tolerance_cents: int) -> float:
        if amount_diff == 0:
            return 1.0
        if amount_diff > tolerance_cents or tolerance_cents <= 0:
            return 0.0
        return 1.0 - 0.5 * (amount_diff / tolerance_cents)

    @staticmethod
    def _score_date(days: int, window_days: int) -> float:
        if days > window_days:
            return 0.0
        return 1.0 - days / (window_days + 1)


def score(
    candidate_amount: Money,
    candidate_date: FinancialDate,
    target_amount: Money,
    target_date: FinancialDate,
    text_a: str | None,
    text_b: str | None,
    *,
    amount_tolerance_cents: int,
    date_window_days: int,
) -> float:
    """Module-level shortcut for MatchScorer.score."""
    return MatchScorer.score(
        candidate_amount,
        candidate_date,
        target_amount,
        target_date,
        text_a,
        text_b,
        amount_tolerance_cents=amount_tolerance_cents,
        date_window_days=date_window_days,
    )


def percent_tolerance_cents(expected: Money, tolerance_pct: float) -> int:
    """Absolute tolerance in cents for a percentage of the expected amount (5.0 means 5%)."""
    if tolerance_pct <= 0:
        return 0
    return int(round(abs(expected.to_cents()) * tolerance_pct / 100))
