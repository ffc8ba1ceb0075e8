#!/usr/bin/env python3
"""
Marketplace Order Matcher

Associates ExternalOrder records with the card or bank transactions that
paid for them.

Two modes:
- Suggest: find_candidates() ranks transactions for one order and never
  writes anything.
- Auto: match_orders() binds an order to its best candidate only when the
  decision is unambiguous; everything else is left for manual link().

Binding is 1:1. A transaction is bound by compare-and-set on its
matched_order_id, so two matchers can never claim the same row.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..core.config import MatchingConfig
from ..core.dates import FinancialDate
from ..core.errors import PersistenceConflict, ValidationError
from ..core.models import Account, ExternalOrder, MatchStatus, Transaction
from ..core.money import Money
from ..core.text import contains_keyword, normalize_description
from ..ledger.amounts import expense_amount
from ..ledger.store import LedgerStore
from .scorer import MatchScorer

logger = logging.getLogger(__name__)

# Ranked candidates kept on an ambiguous order for manual review
MAX_STORED_CANDIDATES = 5


@dataclass(frozen=True)
class OrderCandidate:
    """One transaction that could have paid for an order."""

    transaction_id: str
    account_id: str
    date: FinancialDate
    amount: Money
    description: str
    score: float
    date_distance: int

    def sort_key(self) -> tuple[float, int, str]:
        return (-self.score, self.date_distance, self.transaction_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "account_id": self.account_id,
            "date": self.date.to_iso_string(),
            "amount": self.amount.to_cents(),
            "description": self.description,
            "score": self.score,
            "date_distance": self.date_distance,
        }


@dataclass
class OrderDecision:
    """What match_orders decided for one order, and why."""

    order_id: str
    status: MatchStatus
    transaction_id: str | None = None
    score: float | None = None
    reason: str = ""
    candidates: list[OrderCandidate] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "status": self.status.value,
            "transaction_id": self.transaction_id,
            "score": self.score,
            "reason": self.reason,
            "candidates": [c.to_dict() for c in self.candidates],
        }


@dataclass
class OrderMatchSummary:
    matched: int = 0
    ambiguous: int = 0
    unmatched: int = 0
    decisions: list[OrderDecision] = field(default_factory=list)

    def record(self, decision: OrderDecision) -> None:
        self.decisions.append(decision)
        if decision.status == MatchStatus.MATCHED:
            self.matched += 1
        elif decision.status == MatchStatus.AMBIGUOUS:
            self.ambiguous += 1
        else:
            self.unmatched += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "matched": self.matched,
            "ambiguous": self.ambiguous,
            "unmatched": self.unmatched,
            "decisions": [d.to_dict() for d in self.decisions],
        }


class OrderMatcher:
    """
    Order-to-transaction matcher.

    Example:
        >>> matcher = OrderMatcher(store, config.matching)
        >>> [c.transaction_id for c in matcher.find_candidates("112-0000001-0000001")]
        ['imp_3f0c...', 'txn_9ab1...']
        >>> matcher.match_orders().to_dict()["matched"]
        1
    """

    def __init__(self, store: LedgerStore, config: MatchingConfig | None = None):
        self.store = store
        self.config = config or MatchingConfig()

    # Candidate search

    def _window(self, order: ExternalOrder) -> tuple[FinancialDate, FinancialDate]:
        return (
            order.order_date.add_days(-self.config.order_lookback_days),
            order.order_date.add_days(self.config.order_lookahead_days),
        )

    def _marketplace_label(self, description: str) -> str:
        """The configured keyword the description mentions, for text scoring."""
        normalized = normalize_description(description)
        for keyword in self.config.marketplace_keywords:
            if normalize_description(keyword) in normalized:
                return keyword
        return self.config.marketplace_keywords[0] if self.config.marketplace_keywords else ""

    def _candidate_for(
        self, order: ExternalOrder, transaction: Transaction, account: Account
    ) -> OrderCandidate | None:
        if transaction.ignored:
            return None
        if transaction.matched_order_id not in (None, order.order_id):
            return None
        if order.account_ids and transaction.account_id not in order.account_ids:
            return None

        description = transaction.full_description
        if self.config.require_marketplace_keyword and not contains_keyword(
            description, self.config.marketplace_keywords
        ):
            return None

        amount = expense_amount(transaction, account)
        if amount <= Money.zero():
            return None

        # Lookback and lookahead can differ, so score against the side the row falls on
        if transaction.date < order.order_date:
            window = self.config.order_lookback_days
        else:
            window = self.config.order_lookahead_days

        score = MatchScorer.score(
            amount,
            transaction.date,
            order.total,
            order.order_date,
            description,
            self._marketplace_label(description),
            amount_tolerance_cents=self.config.order_amount_tolerance_cents,
            date_window_days=window,
        )
        if score <= 0.0:
            return None

        return OrderCandidate(
            transaction_id=transaction.id,
            account_id=transaction.account_id,
            date=transaction.date,
            amount=amount,
            description=description,
            score=score,
            date_distance=transaction.date.days_between(order.order_date),
        )

    def _rank(self, order: ExternalOrder, accounts: dict[str, Account]) -> list[OrderCandidate]:
        start, end = self._window(order)
        candidates = []
        for transaction in self.store.list_transactions(start=start, end=end):
            account = accounts.get(transaction.account_id)
            if account is None:
                continue
            candidate = self._candidate_for(order, transaction, account)
            if candidate is not None:
                candidates.append(candidate)
        candidates.sort(key=OrderCandidate.sort_key)
        return candidates

    def _accounts(self) -> dict[str, Account]:
        return {account.id: account for account in self.store.list_accounts()}

    def find_candidates(self, order_id: str) -> list[OrderCandidate]:
        """
        Ranked candidate transactions for one order. Read-only.

        Rows bound to other orders are excluded; a row already bound to this
        order is included so the current link shows up in the ranking.

        Raises:
            NotFound: Unknown order id
        """
        order = self.store.get_order(order_id)
        return self._rank(order, self._accounts())

    # Batch auto-match

    def match_orders(self, order_ids: list[str] | None = None) -> OrderMatchSummary:
        """
        Auto-link unlinked, non-ignored orders.

        Orders with the fewest candidates go first (then order date, then
        order id), so constrained orders claim their only option before
        flexible ones. An order is bound when its top available candidate
        scores above auto_link_threshold. Candidates tied on that score are
        settled by preferring the one row no other order in the batch wants,
        then by date distance and transaction id. Otherwise the order is
        ambiguous (candidates stored) or unmatched.

        The whole batch commits as one unit of work.

        Args:
            order_ids: Restrict to these orders (default: all)

        Raises:
            NotFound: If an explicitly requested order does not exist
        """
        if order_ids:
            orders = [self.store.get_order(order_id) for order_id in sorted(set(order_ids))]
        else:
            orders = self.store.list_orders()
        pending = [o for o in orders if not o.ignored and not o.linked_transaction_id]

        summary = OrderMatchSummary()
        if not pending:
            return summary

        accounts = self._accounts()
        candidate_map = {order.order_id: self._rank(order, accounts) for order in pending}

        use_counts: dict[str, int] = {}
        for candidates in candidate_map.values():
            for candidate in candidates:
                use_counts[candidate.transaction_id] = use_counts.get(candidate.transaction_id, 0) + 1

        pending.sort(key=lambda o: (len(candidate_map[o.order_id]), o.order_date.date, o.order_id))
        taken: set[str] = set()

        with self.store.unit_of_work():
            for order in pending:
                candidates = candidate_map[order.order_id]
                decision = self._decide(order, candidates, taken, use_counts)
                if decision.status == MatchStatus.MATCHED and decision.transaction_id:
                    taken.add(decision.transaction_id)
                summary.record(decision)

        logger.info(
            "Order matching: %d matched, %d ambiguous, %d unmatched",
            summary.matched,
            summary.ambiguous,
            summary.unmatched,
        )
        return summary

    def _select(
        self, available: list[OrderCandidate], use_counts: dict[str, int]
    ) -> OrderCandidate | None:
        top = available[0]
        if top.score <= self.config.auto_link_threshold:
            return None
        tied = [c for c in available if c.score == top.score]
        if len(tied) == 1:
            return top
        # Prefer a row no other order wants, then the ranking order (date distance, id)
        return min(tied, key=lambda c: (use_counts.get(c.transaction_id, 0) != 1, c.sort_key()))

    def _decide(
        self,
        order: ExternalOrder,
        candidates: list[OrderCandidate],
        taken: set[str],
        use_counts: dict[str, int],
    ) -> OrderDecision:
        if not candidates:
            self._store_status(order, MatchStatus.UNMATCHED, [])
            return OrderDecision(order.order_id, MatchStatus.UNMATCHED, reason="no candidates")

        available = [c for c in candidates if c.transaction_id not in taken]
        selected = self._select(available, use_counts) if available else None

        if selected is not None:
            with self.store.unit_of_work() as store:
                bound = store.compare_and_set_transaction(
                    selected.transaction_id, "matched_order_id", None, order.order_id
                )
                if bound:
                    order.linked_transaction_id = selected.transaction_id
                    order.match_status = MatchStatus.MATCHED
                    order.candidates = []
                    store.put_order(order)
                    return OrderDecision(
                        order.order_id,
                        MatchStatus.MATCHED,
                        transaction_id=selected.transaction_id,
                        score=selected.score,
                        reason="auto-linked",
                    )
            logger.info(
                "Transaction %s was claimed concurrently; order %s left for review",
                selected.transaction_id,
                order.order_id,
            )

        if not available:
            reason = "all candidates claimed by other orders"
        elif selected is None:
            reason = "best score does not exceed auto-link threshold"
        else:
            reason = "selected transaction was claimed concurrently"

        stored = candidates[:MAX_STORED_CANDIDATES]
        self._store_status(order, MatchStatus.AMBIGUOUS, stored)
        return OrderDecision(order.order_id, MatchStatus.AMBIGUOUS, reason=reason, candidates=stored)

    def _store_status(self, order: ExternalOrder, status: MatchStatus, candidates: list[OrderCandidate]) -> None:
        order.match_status = status
        order.candidates = [c.to_dict() for c in candidates]
        self.store.put_order(order)

    # Manual actions

    def link(self, order_id: str, transaction_id: str | None) -> ExternalOrder:
        """
        Bind an order to a transaction, replace its binding, or clear it.

        Idempotent: linking to the current transaction changes nothing.
        Linking elsewhere frees the previously linked row.

        Args:
            order_id: Order to update
            transaction_id: New transaction, or None to unlink

        Returns:
            Updated order

        Raises:
            NotFound: Unknown order or transaction
            ValidationError: Transaction already linked to a different order
            PersistenceConflict: The transaction was bound concurrently
        """
        with self.store.unit_of_work() as store:
            order = store.get_order(order_id)

            if transaction_id is None:
                if order.linked_transaction_id:
                    self._release(store, order.linked_transaction_id, order.order_id)
                order.linked_transaction_id = None
                order.match_status = MatchStatus.UNMATCHED
                order.candidates = []
                store.put_order(order)
                logger.info("Unlinked order %s", order_id)
                return order

            transaction = store.get_transaction(transaction_id)
            if order.linked_transaction_id == transaction_id and transaction.matched_order_id == order_id:
                return order
            if transaction.matched_order_id not in (None, order_id):
                raise ValidationError(
                    f"Transaction {transaction_id} is already linked to order {transaction.matched_order_id}"
                )

            if order.linked_transaction_id and order.linked_transaction_id != transaction_id:
                self._release(store, order.linked_transaction_id, order.order_id)

            if not store.compare_and_set_transaction(
                transaction_id, "matched_order_id", transaction.matched_order_id, order_id
            ):
                raise PersistenceConflict(f"Transaction {transaction_id} changed while linking")

            order.linked_transaction_id = transaction_id
            order.match_status = MatchStatus.MATCHED
            order.candidates = []
            store.put_order(order)

        logger.info("Linked order %s to transaction %s", order_id, transaction_id)
        return order

    @staticmethod
    def _release(store: LedgerStore, transaction_id: str, order_id: str) -> None:
        if store.find_transaction(transaction_id) is None:
            return
        store.compare_and_set_transaction(transaction_id, "matched_order_id", order_id, None)

    def set_ignored(self, order_id: str, ignored: bool) -> ExternalOrder:
        """Toggle an order's ignore flag; an existing link is left alone."""
        with self.store.unit_of_work() as store:
            order = store.get_order(order_id)
            order.ignored = ignored
            store.put_order(order)
        logger.info("Order %s %s", order_id, "ignored" if ignored else "unignored")
        return order
