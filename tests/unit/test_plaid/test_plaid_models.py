#!/usr/bin/env python3
"""Tests for Plaid payload models and category mapping."""

import pytest

from reconciler.plaid.categories import is_transfer_category, is_transfer_description, map_plaid_category
from reconciler.plaid.models import ChangePage, LinkToken, ProviderTransaction

from tests.fixtures.synthetic_data import provider_txn


@pytest.mark.plaid
class TestProviderTransaction:
    def test_from_dict(self):
        txn = ProviderTransaction.from_dict(
            {
                "transaction_id": "plaid-txn-1",
                "account_id": "plaid-checking",
                "amount": -2500.0,
                "date": "2024-08-15",
                "name": "ACME PAYROLL",
                "pending": True,
                "personal_finance_category": {"primary": "INCOME", "detailed": "INCOME_WAGES"},
            }
        )
        assert txn.amount.to_cents() == -250000
        assert txn.pending
        assert txn.category_primary == "INCOME"
        assert txn.merchant_name is None

    def test_description_fallbacks(self):
        assert provider_txn("t", 1.0, "2024-08-01", "", merchant_name="Netflix").description == "Netflix"
        assert provider_txn("t", 1.0, "2024-08-01", "").description == "Unknown"

    def test_sub_description_only_when_different(self):
        assert provider_txn("t", 1.0, "2024-08-01", "NETFLIX.COM", merchant_name="Netflix").sub_description == "Netflix"
        assert provider_txn("t", 1.0, "2024-08-01", "Netflix", merchant_name="Netflix").sub_description is None

    def test_round_trip(self):
        txn = provider_txn("t", 45.99, "2024-08-10", "AMZN", primary="GENERAL_MERCHANDISE", detailed="X")
        assert ProviderTransaction.from_dict(txn.to_dict()) == txn


@pytest.mark.plaid
class TestChangePage:
    def test_defaults(self):
        page = ChangePage.from_dict({})
        assert page.added == [] and page.removed == []
        assert page.next_cursor == ""
        assert not page.has_more

    def test_link_token(self):
        assert LinkToken.from_dict({"link_token": "link-1"}).expiration is None


@pytest.mark.plaid
class TestCategoryMapping:
    @pytest.mark.parametrize(
        "primary, detailed, expected",
        [
            ("FOOD_AND_DRINK", "FOOD_AND_DRINK_GROCERIES", "Grocery"),
            ("FOOD_AND_DRINK", "GROCERIES", "Grocery"),
            ("FOOD_AND_DRINK", "FOOD_AND_DRINK_OTHER", "Dining"),
            ("income", None, "Income"),
            ("SOMETHING_NEW", None, "Uncategorized"),
            (None, None, "Uncategorized"),
        ],
    )
    def test_map_plaid_category(self, primary, detailed, expected):
        assert map_plaid_category(primary, detailed) == expected

    def test_transfer_categories(self):
        assert is_transfer_category("TRANSFER_OUT")
        assert is_transfer_category("LOAN_PAYMENTS", "LOAN_PAYMENTS_CREDIT_CARD_PAYMENT")
        assert not is_transfer_category("FOOD_AND_DRINK", "FOOD_AND_DRINK_COFFEE")
        assert not is_transfer_category(None)

    @pytest.mark.parametrize(
        "description, expected",
        [
            ("ONLINE TRANSFER TO SAV 1234", True),
            ("Transfer from Checking", True),
            ("PAYMENT - THANK YOU", True),
            ("CHASE CREDIT CARD AUTOPAY PAYMENT", True),
            ("TO SAVINGS 9876", True),
            ("SAMPLE COFFEE SHOP", False),
            ("", False),
        ],
    )
    def test_transfer_descriptions(self, description, expected):
        assert is_transfer_description(description) is expected
