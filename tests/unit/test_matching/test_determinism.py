#!/usr/bin/env python3
"""
Tests that match decisions do not depend on storage order.

The same orders, rows, and recurring definitions are written to fresh ledgers
in shuffled insertion orders; every run must bind exactly the same pairs.
"""

import random

import pytest

from reconciler.core.models import ExternalOrder, RecurringDefinition
from reconciler.ledger.store import LedgerStore
from reconciler.matching.orders import OrderMatcher
from reconciler.matching.recurring import RecurringMatcher

from tests.fixtures.synthetic_data import make_account, make_order, make_recurring, make_transaction

SEEDS = [0, 1, 2, 3, 4, 5, 6, 7]


def _shuffled(records, seed):
    records = list(records)
    random.Random(seed).shuffle(records)
    return records


def _orders():
    return [
        # Two identical orders over two rows that tie on score and date distance
        make_order("112-000000A", "2024-08-09", 4599),
        make_order("112-000000C", "2024-08-09", 4599),
        make_order("112-000000B", "2024-08-20", 1999),
    ]


def _order_rows():
    return [
        make_transaction("t2", "visa", 4599, "2024-08-10", "AMZN Mktp US*2K4"),
        make_transaction("t1", "visa", 4599, "2024-08-08", "AMZN Mktp US*9Q1"),
        make_transaction("t3", "visa", 1999, "2024-08-21", "AMAZON.COM*RT4"),
        make_transaction("t4", "visa", 1999, "2024-08-30", "AMAZON.COM*ZZ8"),
    ]


def _recurring():
    return [
        # Same label, amount, and schedule: the tie goes to the lower id
        make_recurring("spotify-a", "Spotify", 1099, category="Music"),
        make_recurring("spotify-b", "Spotify", 1099, category="Music"),
        make_recurring("netflix", "Netflix", 1549, category="Subscriptions"),
    ]


def _recurring_rows():
    return [
        make_transaction("s1", "visa", 1099, "2024-08-15", "SPOTIFY USA"),
        make_transaction("s2", "visa", 1099, "2024-08-16", "SPOTIFY USA"),
        make_transaction("n1", "visa", 1549, "2024-08-15", "NETFLIX.COM"),
        make_transaction("n2", "visa", 1549, "2024-08-16", "NETFLIX.COM"),
    ]


def _ledger(seed, records):
    store = LedgerStore()
    store.put_account(make_account("visa", "credit_card", linked=False))
    store.ensure_period(2024, 8)
    for record in _shuffled(records, seed):
        if isinstance(record, ExternalOrder):
            store.put_order(record)
        elif isinstance(record, RecurringDefinition):
            store.put_recurring(record)
        else:
            store.put_transaction(record)
    return store


@pytest.mark.matching
class TestOrderMatchingDeterminism:
    @pytest.mark.parametrize("seed", SEEDS)
    def test_same_links_for_any_insertion_order(self, seed, matching_config):
        store = _ledger(seed, _orders() + _order_rows())

        OrderMatcher(store, matching_config).match_orders()

        links = {order.order_id: order.linked_transaction_id for order in store.list_orders()}
        assert links == {"112-000000A": "t1", "112-000000B": "t3", "112-000000C": "t2"}

    @pytest.mark.parametrize("seed", SEEDS)
    def test_same_candidate_ranking_for_any_insertion_order(self, seed, matching_config):
        store = _ledger(seed, _orders() + _order_rows())

        candidates = OrderMatcher(store, matching_config).find_candidates("112-000000A")

        assert [c.transaction_id for c in candidates] == ["t1", "t2"]
        assert candidates[0].score == candidates[1].score


@pytest.mark.matching
class TestRecurringMatchingDeterminism:
    @pytest.mark.parametrize("seed", SEEDS)
    def test_same_bindings_for_any_insertion_order(self, seed, matching_config):
        store = _ledger(seed, _recurring() + _recurring_rows())

        RecurringMatcher(store, matching_config).match_open_periods()

        bindings = {row.id: row.matched_recurring_id for row in store.list_transactions()}
        assert bindings == {"s1": "spotify-a", "s2": "spotify-b", "n1": "netflix", "n2": None}
