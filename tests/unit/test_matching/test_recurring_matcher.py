#!/usr/bin/env python3
"""Tests for recurring bill and paycheck matching."""

import pytest

from reconciler.core.models import BudgetPeriod, PeriodStatus, SchedulingRule
from reconciler.matching.recurring import RecurringMatcher

from tests.fixtures.synthetic_data import make_account, make_recurring, make_transaction


@pytest.fixture
def ledger(store):
    store.put_account(make_account("checking", "bank", linked=False))
    store.put_account(make_account("visa", "credit_card", linked=False))
    store.ensure_period(2024, 8)
    store.put_recurring(make_recurring("netflix", "Netflix", 1549, category="Subscriptions"))
    store.put_recurring(
        make_recurring("payroll", "ACME PAYROLL", 250000, SchedulingRule.twice_monthly(1, 15), category="Income")
    )
    return store


@pytest.fixture
def matcher(ledger, matching_config):
    return RecurringMatcher(ledger, matching_config)


def _netflix(transaction_id="n1", cents=1549, date="2024-08-16", **fields):
    return make_transaction(transaction_id, "visa", cents, date, "NETFLIX.COM", **fields)


def _paycheck(transaction_id, date, cents=250000):
    return make_transaction(transaction_id, "checking", cents, date, "ACME PAYROLL PPD")


@pytest.mark.matching
class TestRecurringMatcher:
    def test_matches_subscription_and_sets_category(self, ledger, matcher):
        ledger.put_transaction(_netflix())

        summary = matcher.match_open_periods()

        assert summary.matched == 1
        assert summary.periods_checked == 1
        match = summary.matches[0]
        assert match.definition_id == "netflix"
        assert match.occurrence_date.to_iso_string() == "2024-08-15"
        row = ledger.get_transaction("n1")
        assert row.matched_recurring_id == "netflix"
        assert row.category == "Subscriptions"

    def test_run_commits_once(self, ledger, matcher):
        ledger.put_transaction(_netflix())
        ledger.put_transaction(_paycheck("p1", "2024-08-01"))
        ledger.put_transaction(_paycheck("p2", "2024-08-15"))
        version = ledger.version

        assert matcher.match_open_periods().matched == 3
        assert ledger.version == version + 1

    def test_rerun_is_safe(self, ledger, matcher):
        ledger.put_transaction(_netflix())
        matcher.match_open_periods()

        summary = matcher.match_open_periods()

        assert summary.matched == 0
        assert ledger.get_transaction("n1").matched_recurring_id == "netflix"

    def test_outside_date_window(self, ledger, matcher):
        ledger.put_transaction(_netflix(date="2024-08-21"))
        assert matcher.match_open_periods().matched == 0

    def test_exact_amount_by_default(self, ledger, matcher):
        ledger.put_transaction(_netflix(cents=1599))
        assert matcher.match_open_periods().matched == 0

    def test_definition_tolerance(self, ledger, matcher):
        ledger.put_recurring(make_recurring("netflix", "Netflix", 1549, amount_tolerance_pct=5))
        ledger.put_transaction(_netflix(cents=1599))
        assert matcher.match_open_periods().matched == 1

    def test_configured_tolerance(self, ledger, matching_config):
        matching_config.recurring_amount_tolerance_pct = 5.0
        ledger.put_transaction(_netflix(cents=1599))
        assert RecurringMatcher(ledger, matching_config).match_open_periods().matched == 1

    def test_label_must_match(self, ledger, matcher):
        ledger.put_transaction(make_transaction("n1", "visa", 1549, "2024-08-16", "SAMPLE COFFEE SHOP"))
        assert matcher.match_open_periods().matched == 0

    def test_display_label_also_matches(self, ledger, matcher):
        ledger.put_recurring(make_recurring("gym", "PLANET FIT CLUB 0042", 2500, display_label="Gym Membership"))
        ledger.put_transaction(make_transaction("g1", "visa", 2500, "2024-08-15", "GYM MEMBERSHIP DUES"))
        summary = matcher.match_open_periods()
        assert [m.definition_id for m in summary.matches] == ["gym"]

    def test_income_matches_inflows_only(self, ledger, matcher):
        ledger.put_transaction(_paycheck("p1", "2024-08-01"))
        ledger.put_transaction(_paycheck("p2", "2024-08-15", cents=-250000))

        summary = matcher.match_open_periods()

        assert [m.transaction_id for m in summary.matches] == ["p1"]
        assert ledger.get_transaction("p1").category == "Income"
        assert ledger.get_transaction("p2").matched_recurring_id is None

    def test_refund_does_not_match_a_bill(self, ledger, matcher):
        ledger.put_transaction(_netflix(cents=-1549))
        assert matcher.match_open_periods().matched == 0

    def test_each_occurrence_is_consumed_once(self, ledger, matcher):
        ledger.put_transaction(_paycheck("p1", "2024-08-01"))
        ledger.put_transaction(_paycheck("p2", "2024-08-15"))
        ledger.put_transaction(_paycheck("p3", "2024-08-16"))

        summary = matcher.match_open_periods()

        occurrences = {m.transaction_id: m.occurrence_date.to_iso_string() for m in summary.matches}
        assert occurrences == {"p1": "2024-08-01", "p2": "2024-08-15"}
        assert ledger.get_transaction("p3").matched_recurring_id is None

    def test_existing_matches_reserve_their_occurrence(self, ledger, matcher):
        ledger.put_transaction(_netflix("n1", date="2024-08-15", matched_recurring_id="netflix"))
        ledger.put_transaction(_netflix("n2", date="2024-08-16"))

        assert matcher.match_open_periods().matched == 0
        assert ledger.get_transaction("n2").matched_recurring_id is None

    def test_skips_ignored_rows(self, ledger, matcher):
        ledger.put_transaction(_netflix(ignored=True))
        assert matcher.match_open_periods().matched == 0

    def test_skips_inactive_definitions(self, ledger, matcher):
        ledger.put_recurring(make_recurring("netflix", "Netflix", 1549, active=False))
        ledger.put_transaction(_netflix())
        assert matcher.match_open_periods().matched == 0

    def test_closed_periods_are_left_alone(self, ledger, matcher):
        ledger.put_period(BudgetPeriod(year=2024, month=8, status=PeriodStatus.CLOSED))
        ledger.put_transaction(_netflix())

        summary = matcher.match_open_periods()

        assert summary.periods_checked == 0
        assert summary.matched == 0

    def test_restrict_to_definitions(self, ledger, matcher):
        ledger.put_transaction(_netflix())
        ledger.put_transaction(_paycheck("p1", "2024-08-01"))

        summary = matcher.match_open_periods(definition_ids=["payroll"])

        assert [m.transaction_id for m in summary.matches] == ["p1"]

    def test_restrict_to_transactions(self, ledger, matcher):
        ledger.put_transaction(_netflix())
        ledger.put_transaction(_paycheck("p1", "2024-08-01"))

        summary = matcher.match_open_periods(transaction_ids=["n1"])

        assert [m.transaction_id for m in summary.matches] == ["n1"]
        assert ledger.get_transaction("p1").matched_recurring_id is None

    def test_to_dict(self, ledger, matcher):
        ledger.put_transaction(_netflix())
        data = matcher.match_open_periods().to_dict()
        assert data["matched"] == 1
        assert data["matches"][0] == {
            "transaction_id": "n1",
            "definition_id": "netflix",
            "occurrence_date": "2024-08-15",
            "score": 0.9583,
        }
