#!/usr/bin/env python3
"""
Recurring Bill Matcher

Binds transactions in open budget periods to the recurring definitions that
explain them (rent, subscriptions, paychecks).

Matching rules:
- The description must name the definition's merchant or display label
  (containment, or enough fuzzy token matches).
- The amount must equal the expected amount, or fall within the
  definition's percentage tolerance when one is set.
- The date must be within the configured window of a projected occurrence.
  Each occurrence is consumed by at most one transaction.
- Income definitions match inflows; everything else matches spending.

Rows that are already matched are skipped, never re-scored, so the batch is
safe to re-run after every sync or import.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ..core.config import MatchingConfig
from ..core.dates import FinancialDate
from ..core.models import Account, BudgetPeriod, RecurringDefinition, Transaction
from ..core.text import label_matches
from ..ledger.amounts import expense_amount
from ..ledger.store import LedgerStore
from .scheduling import days_in_month, projected_dates_around
from .scorer import MatchScorer, percent_tolerance_cents

logger = logging.getLogger(__name__)

Occurrence = tuple[str, date]


@dataclass(frozen=True)
class RecurringMatch:
    transaction_id: str
    definition_id: str
    occurrence_date: FinancialDate
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "definition_id": self.definition_id,
            "occurrence_date": self.occurrence_date.to_iso_string(),
            "score": self.score,
        }


@dataclass
class RecurringMatchSummary:
    matched: int = 0
    periods_checked: int = 0
    matches: list[RecurringMatch] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "matched": self.matched,
            "periods_checked": self.periods_checked,
            "matches": [m.to_dict() for m in self.matches],
        }


class RecurringMatcher:
    """
    Batch matcher over open budget periods.

    Example:
        >>> matcher = RecurringMatcher(store, config.matching)
        >>> matcher.match_open_periods().matched
        3
    """

    def __init__(self, store: LedgerStore, config: MatchingConfig | None = None):
        self.store = store
        self.config = config or MatchingConfig()

    def match_open_periods(
        self,
        definition_ids: list[str] | None = None,
        transaction_ids: list[str] | None = None,
    ) -> RecurringMatchSummary:
        """
        Match unbound transactions in every open period, oldest period first.
        All bindings commit together as one unit of work.

        Args:
            definition_ids: Only consider these definitions (default: all active)
            transaction_ids: Only try to bind these rows, e.g. the ones a sync
                just added (default: every row in the open periods)

        Returns:
            RecurringMatchSummary with one entry per new binding
        """
        summary = RecurringMatchSummary()
        definitions = [
            d
            for d in self.store.list_recurring(active_only=True)
            if definition_ids is None or d.id in definition_ids
        ]
        periods = self.store.list_periods(open_only=True)
        summary.periods_checked = len(periods)
        if not definitions or not periods:
            return summary

        accounts = {account.id: account for account in self.store.list_accounts()}
        only = set(transaction_ids) if transaction_ids is not None else None
        used: set[Occurrence] = set()

        with self.store.unit_of_work():
            for period in periods:
                self._match_period(period, definitions, accounts, only, used, summary)

        logger.info(
            "Recurring matching: %d new matches across %d open periods", summary.matched, summary.periods_checked
        )
        return summary

    def _match_period(
        self,
        period: BudgetPeriod,
        definitions: list[RecurringDefinition],
        accounts: dict[str, Account],
        only: set[str] | None,
        used: set[Occurrence],
        summary: RecurringMatchSummary,
    ) -> None:
        start = FinancialDate(date=date(period.year, period.month, 1))
        end = FinancialDate(date=date(period.year, period.month, days_in_month(period.year, period.month)))
        rows = self.store.list_transactions(start=start, end=end)
        schedules = {d.id: projected_dates_around(d.schedule, period.year, period.month) for d in definitions}

        # Occurrences already consumed by earlier matches are reserved first
        for row in rows:
            definition_id = row.matched_recurring_id
            if definition_id not in schedules:
                continue
            occurrence = self._nearest_free(schedules[definition_id], row.date, definition_id, used)
            if occurrence is not None:
                used.add((definition_id, occurrence.date))

        for row in rows:
            if row.matched_recurring_id or row.ignored:
                continue
            if only is not None and row.id not in only:
                continue
            account = accounts.get(row.account_id)
            if account is None:
                continue

            best = self._best_match(row, account, definitions, schedules, used)
            if best is None:
                continue
            definition, occurrence, score = best
            if self._bind(row, definition):
                used.add((definition.id, occurrence.date))
                summary.matched += 1
                summary.matches.append(RecurringMatch(row.id, definition.id, occurrence, score))

    @staticmethod
    def _nearest_free(
        dates: list[FinancialDate], target: FinancialDate, definition_id: str, used: set[Occurrence]
    ) -> FinancialDate | None:
        free = [d for d in dates if (definition_id, d.date) not in used]
        if not free:
            return None
        return min(free, key=lambda d: (d.days_between(target), d.date))

    def _best_match(
        self,
        row: Transaction,
        account: Account,
        definitions: list[RecurringDefinition],
        schedules: dict[str, list[FinancialDate]],
        used: set[Occurrence],
    ) -> tuple[RecurringDefinition, FinancialDate, float] | None:
        expense = expense_amount(row, account)
        if expense.is_zero():
            return None
        inflow = expense.to_cents() < 0
        amount = expense.abs()
        description = row.full_description

        best_key: tuple[float, int, str, date] | None = None
        best: tuple[RecurringDefinition, FinancialDate, float] | None = None

        for definition in definitions:
            if definition.is_income != inflow:
                continue
            if not any(label_matches(description, label) for label in definition.labels):
                continue

            pct = definition.amount_tolerance_pct
            if pct is None:
                pct = self.config.recurring_amount_tolerance_pct
            tolerance = percent_tolerance_cents(definition.expected_amount, pct)

            for occurrence in schedules[definition.id]:
                if (definition.id, occurrence.date) in used:
                    continue
                score = MatchScorer.score(
                    amount,
                    row.date,
                    definition.expected_amount.abs(),
                    occurrence,
                    description,
                    definition.merchant_label,
                    amount_tolerance_cents=tolerance,
                    date_window_days=self.config.recurring_date_window_days,
                )
                if score <= 0.0:
                    continue
                key = (-score, row.date.days_between(occurrence), definition.id, occurrence.date)
                if best_key is None or key < best_key:
                    best_key = key
                    best = (definition, occurrence, score)

        return best

    def _bind(self, row: Transaction, definition: RecurringDefinition) -> bool:
        with self.store.unit_of_work() as store:
            if not store.compare_and_set_transaction(row.id, "matched_recurring_id", None, definition.id):
                logger.debug("Transaction %s was bound concurrently", row.id)
                return False
            if definition.category:
                bound = store.get_transaction(row.id)
                bound.category = definition.category
                store.put_transaction(bound)
        logger.debug("Matched transaction %s to recurring definition %s", row.id, definition.id)
        return True
