#!/usr/bin/env python3
"""
Budget Views

Monthly spending aggregation over the ledger. Ignored rows never reach these
totals, whether a user ignored them by hand or an active ignore rule matches
their description, and regardless of any order or recurring match on them.
"""

import logging
from calendar import monthrange
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ..core.dates import FinancialDate
from ..core.errors import ValidationError
from ..core.models import UNCATEGORIZED, Transaction
from ..core.money import Money
from .amounts import expense_amount
from .ignore_rules import IgnoreRuleFilter
from .store import LedgerStore

logger = logging.getLogger(__name__)


@dataclass
class BudgetSummary:
    """Expense totals for one budget month, in cents."""

    year: int
    month: int
    expenses_by_category: dict[str, int] = field(default_factory=dict)
    total_expenses: int = 0
    total_inflows: int = 0
    included_count: int = 0
    ignored_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": f"{self.year:04d}-{self.month:02d}",
            "expenses_by_category": dict(sorted(self.expenses_by_category.items())),
            "total_expenses": self.total_expenses,
            "total_inflows": self.total_inflows,
            "included_count": self.included_count,
            "ignored_count": self.ignored_count,
        }


def budget_rows(store: LedgerStore, year: int, month: int) -> tuple[list[Transaction], int]:
    """
    Transactions that count toward a budget month.

    Returns:
        (included rows, number of rows excluded as ignored)
    """
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month: {month}")
    start = FinancialDate(date=date(year, month, 1))
    end = FinancialDate(date=date(year, month, monthrange(year, month)[1]))

    rule_filter = IgnoreRuleFilter(store.list_ignore_rules())
    included = []
    ignored = 0
    for transaction in store.list_transactions(start=start, end=end):
        if transaction.ignored or rule_filter.matches_transaction(transaction) is not None:
            ignored += 1
            continue
        included.append(transaction)
    return included, ignored


def budget_summary(store: LedgerStore, year: int, month: int) -> BudgetSummary:
    """
    Aggregate expense-positive spending by category for a month.

    Args:
        store: Ledger
        year: Budget year
        month: Budget month (1-12)

    Returns:
        BudgetSummary; negative expense amounts count as inflows
    """
    accounts = {account.id: account for account in store.list_accounts()}
    rows, ignored = budget_rows(store, year, month)

    by_category: dict[str, Money] = defaultdict(Money.zero)
    total_expenses = Money.zero()
    total_inflows = Money.zero()
    included = 0

    for transaction in rows:
        account = accounts.get(transaction.account_id)
        if account is None:
            logger.warning("Skipping transaction %s with unknown account %s", transaction.id, transaction.account_id)
            continue
        amount = expense_amount(transaction, account)
        included += 1
        if amount < Money.zero():
            total_inflows = total_inflows + amount.abs()
            continue
        category = transaction.category or UNCATEGORIZED
        by_category[category] = by_category[category] + amount
        total_expenses = total_expenses + amount

    return BudgetSummary(
        year=year,
        month=month,
        expenses_by_category={k: v.to_cents() for k, v in by_category.items()},
        total_expenses=total_expenses.to_cents(),
        total_inflows=total_inflows.to_cents(),
        included_count=included,
        ignored_count=ignored,
    )
