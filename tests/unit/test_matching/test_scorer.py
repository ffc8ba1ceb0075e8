#!/usr/bin/env python3
"""Tests for the shared match scorer."""

import pytest

from reconciler.core.dates import FinancialDate
from reconciler.core.money import Money
from reconciler.matching.scorer import MatchScorer, percent_tolerance_cents, score

AUG_10 = FinancialDate.parse("2024-08-10")


def _score(cents=4599, when=AUG_10, text="AMZN Mktp US", label="amzn", tolerance=1, window=30):
    return MatchScorer.score(
        Money.from_cents(cents),
        when,
        Money.from_cents(4599),
        AUG_10,
        text,
        label,
        amount_tolerance_cents=tolerance,
        date_window_days=window,
    )


@pytest.mark.matching
class TestMatchScorer:
    def test_perfect_match(self):
        assert _score() == 1.0

    def test_amount_outside_tolerance_scores_zero(self):
        assert _score(cents=4601) == 0.0

    def test_zero_tolerance_requires_exact_amount(self):
        assert _score(cents=4600, tolerance=0) == 0.0

    def test_amount_at_tolerance_edge_scores_half(self):
        assert _score(cents=4600) == pytest.approx(0.6 * 0.5 + 0.25 + 0.15)

    def test_date_outside_window_scores_zero(self):
        assert _score(when=AUG_10.add_days(31)) == 0.0
        assert _score(when=AUG_10.add_days(-31)) == 0.0

    def test_date_decay(self):
        """One day off in a 30 day window with no text signal."""
        assert _score(when=AUG_10.add_days(1), text="", label="amzn") == 0.8419

    def test_closer_dates_score_higher(self):
        near = _score(when=AUG_10.add_days(2))
        far = _score(when=AUG_10.add_days(10))
        assert near > far > 0.0

    def test_text_only_breaks_ties(self):
        assert _score(text="AMAZON.COM", label="amzn") < _score(text="AMZN Mktp", label="amzn")

    def test_module_shortcut(self):
        assert score(
            Money.from_cents(100),
            AUG_10,
            Money.from_cents(100),
            AUG_10,
            "NETFLIX",
            "Netflix",
            amount_tolerance_cents=0,
            date_window_days=0,
        ) == 1.0


@pytest.mark.matching
class TestPercentTolerance:
    def test_percent_of_expected(self):
        assert percent_tolerance_cents(Money.from_cents(1000), 2.5) == 25
        assert percent_tolerance_cents(Money.from_cents(-250000), 2) == 5000

    def test_no_tolerance(self):
        assert percent_tolerance_cents(Money.from_cents(1000), 0) == 0
        assert percent_tolerance_cents(Money.from_cents(1000), -1) == 0
