#!/usr/bin/env python3
"""
Amount Canonicalization

Pure functions mapping stored (raw) amounts onto the expense-positive view
used by budgets and matchers. Nothing here mutates a transaction.

Sign conventions:
- Raw: whatever the source reported. Plaid reports money leaving the
  account as positive; bank CSV exports usually report it as negative.
- Canonical: raw, negated when the account has invert_amounts set.
- Expense: positive means money spent. Imported rows are converted from
  canonical using the account type; synced rows already arrive
  expense-positive from the aggregator and pass through unchanged.
"""

from ..core.errors import UnsupportedAccountType, ValidationError
from ..core.models import Account, AccountType, Transaction, TransactionSource
from ..core.money import Money

# Multiplier from canonical to expense for imported rows
_IMPORT_EXPENSE_SIGN = {
    AccountType.BANK: -1,
    AccountType.CREDIT_CARD: 1,
    AccountType.CASH: 1,
}


def canonical_amount(amount: Money, account: Account) -> Money:
    """
    Apply the account's explicit inversion flag.

    Args:
        amount: Raw stored amount
        account: Owning account

    Returns:
        The amount negated if account.invert_amounts, otherwise unchanged
    """
    if account.invert_amounts:
        return amount.negate()
    return amount


def expense_sign(account_type: AccountType) -> int:
    """
    Multiplier from canonical to expense-positive for an imported row.

    Raises:
        UnsupportedAccountType: If the type has no known convention
    """
    try:
        return _IMPORT_EXPENSE_SIGN[AccountType.parse(account_type)]
    except KeyError as e:
        raise UnsupportedAccountType(f"No sign convention for account type {account_type!r}") from e


def expense_amount(transaction: Transaction, account: Account) -> Money:
    """
    Expense-positive amount for a transaction.

    Imported rows are canonicalized with the owning account and then mapped
    through the account type (bank: -canonical, credit card and cash:
    canonical). Any other source returns the stored amount unchanged.

    Args:
        transaction: Ledger row
        account: The account that owns the row

    Returns:
        Money where positive means spending

    Raises:
        ValidationError: If the account does not own the transaction
        UnsupportedAccountType: If the account type has no convention
    """
    if transaction.account_id != account.id:
        raise ValidationError(
            f"Transaction {transaction.id} belongs to {transaction.account_id}, not {account.id}"
        )
    if transaction.source != TransactionSource.IMPORT:
        return transaction.amount
    return canonical_amount(transaction.amount, account) * expense_sign(account.type)


def is_inflow(transaction: Transaction, account: Account) -> bool:
    """True when the row brings money in (refund, paycheck, transfer in)."""
    return expense_amount(transaction, account) < Money.zero()


def normalize_import_amount(amount: Money, account_type: AccountType, transaction_type: str | None = None) -> Money:
    """
    Apply a CSV debit/credit column to an unsigned export amount.

    Exports that carry a separate "Transaction Type" column often report
    every amount as positive. The result is in the account's canonical
    convention: for credit cards a debit is a positive charge, for bank and
    cash accounts a debit is a negative outflow. Without a recognizable
    type the amount passes through.
    """
    kind = (transaction_type or "").strip().lower()
    spends_positive = AccountType.parse(account_type) == AccountType.CREDIT_CARD

    if "debit" in kind:
        return amount.abs() if spends_positive else amount.abs().negate()
    if "credit" in kind:
        return amount.abs().negate() if spends_positive else amount.abs()
    return amount
