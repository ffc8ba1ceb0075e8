#!/usr/bin/env python3
"""Tests for amount canonicalization and the expense-positive view."""

import pytest

from reconciler.core.errors import ValidationError
from reconciler.core.models import AccountType, TransactionSource
from reconciler.core.money import Money
from reconciler.ledger.amounts import (
    canonical_amount,
    expense_amount,
    expense_sign,
    is_inflow,
    normalize_import_amount,
)

from tests.fixtures.synthetic_data import make_account, make_transaction


@pytest.mark.currency
class TestExpenseAmount:
    """Canonical-to-expense table across account types and sources."""

    @pytest.mark.parametrize(
        "account_type, invert, raw, expected",
        [
            # Bank exports report spending as negative
            ("bank", False, -4599, 4599),
            ("bank", False, 250000, -250000),
            ("bank", True, 4599, 4599),
            # Card exports report charges as positive
            ("credit_card", False, 4599, 4599),
            ("credit_card", False, -1000, -1000),
            ("credit_card", True, -4599, 4599),
            # Cash is tracked as money spent
            ("cash", False, 1200, 1200),
            ("cash", True, -1200, 1200),
        ],
    )
    def test_imported_rows(self, account_type, invert, raw, expected):
        account = make_account("acct", account_type, invert_amounts=invert)
        txn = make_transaction("t1", "acct", raw, "2024-08-10", "ROW")
        assert expense_amount(txn, account).to_cents() == expected

    @pytest.mark.parametrize("account_type", ["bank", "credit_card", "cash"])
    def test_synced_rows_pass_through(self, account_type):
        """Plaid amounts are already expense-positive."""
        account = make_account("acct", account_type, invert_amounts=True)
        txn = make_transaction("t1", "acct", 4599, "2024-08-10", "ROW", source=TransactionSource.SYNC)
        assert expense_amount(txn, account).to_cents() == 4599

    def test_wrong_account(self):
        txn = make_transaction("t1", "visa", 100, "2024-08-10", "ROW")
        with pytest.raises(ValidationError):
            expense_amount(txn, make_account("checking"))

    def test_is_inflow(self):
        account = make_account("checking", "bank")
        paycheck = make_transaction("t1", "checking", 250000, "2024-08-15", "PAYROLL")
        groceries = make_transaction("t2", "checking", -4599, "2024-08-15", "GROCERY")
        assert is_inflow(paycheck, account)
        assert not is_inflow(groceries, account)


@pytest.mark.currency
class TestSignHelpers:
    def test_canonical_amount(self):
        assert canonical_amount(Money.from_cents(100), make_account(invert_amounts=True)).to_cents() == -100
        assert canonical_amount(Money.from_cents(100), make_account()).to_cents() == 100

    def test_expense_sign(self):
        assert expense_sign(AccountType.BANK) == -1
        assert expense_sign(AccountType.CREDIT_CARD) == 1
        assert expense_sign(AccountType.CASH) == 1

    @pytest.mark.parametrize(
        "account_type, kind, expected",
        [
            (AccountType.CREDIT_CARD, "Debit", 4599),
            (AccountType.CREDIT_CARD, "Credit", -4599),
            (AccountType.BANK, "DEBIT", -4599),
            (AccountType.BANK, "credit", 4599),
            (AccountType.BANK, None, 4599),
            (AccountType.CASH, "Debit", -4599),
        ],
    )
    def test_normalize_import_amount(self, account_type, kind, expected):
        assert normalize_import_amount(Money.from_cents(4599), account_type, kind).to_cents() == expected
