#!/usr/bin/env python3
"""
Ledger Store

In-process persistence for accounts, transactions, orders, recurring
definitions, ignore rules, budget periods, and the webhook audit log.

State lives in memory behind a re-entrant lock and is flushed to a single
JSON file. Mutations run inside a unit of work: a snapshot is taken on
entry, restored if the block raises, and the file is rewritten atomically
only when the outermost block completes. Readers always get copies, so the
only way to change stored state is through this class.
"""

import copy
import logging
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.dates import FinancialDate, to_timestamp, utc_now
from ..core.errors import NotFound, ValidationError
from ..core.json_utils import read_json, write_json_atomic
from ..core.models import (
    Account,
    BudgetPeriod,
    ExternalOrder,
    IgnoreRule,
    PeriodStatus,
    RecurringDefinition,
    Transaction,
    WebhookLogEntry,
)
from ..core.text import normalize_description

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Transaction fields that may be bound through compare_and_set_transaction
_CAS_FIELDS = ("matched_order_id", "matched_recurring_id")


@dataclass
class _LedgerState:
    accounts: dict[str, Account] = field(default_factory=dict)
    transactions: dict[str, Transaction] = field(default_factory=dict)
    orders: dict[str, ExternalOrder] = field(default_factory=dict)
    recurring: dict[str, RecurringDefinition] = field(default_factory=dict)
    ignore_rules: dict[str, IgnoreRule] = field(default_factory=dict)
    periods: dict[str, BudgetPeriod] = field(default_factory=dict)
    webhook_log: list[WebhookLogEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "accounts": [a.to_dict(include_sensitive=True) for a in self.accounts.values()],
            "transactions": [t.to_dict() for t in self.transactions.values()],
            "orders": [o.to_dict() for o in self.orders.values()],
            "recurring_definitions": [d.to_dict() for d in self.recurring.values()],
            "ignore_rules": [r.to_dict() for r in self.ignore_rules.values()],
            "budget_periods": [p.to_dict() for p in self.periods.values()],
            "webhook_log": [e.to_dict() for e in self.webhook_log],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "_LedgerState":
        version = data.get("schema_version", SCHEMA_VERSION)
        if version != SCHEMA_VERSION:
            raise ValidationError(f"Unsupported ledger schema version: {version}")

        state = cls()
        for raw in data.get("accounts", []):
            account = Account.from_dict(raw)
            state.accounts[account.id] = account
        for raw in data.get("transactions", []):
            transaction = Transaction.from_dict(raw)
            state.transactions[transaction.id] = transaction
        for raw in data.get("orders", []):
            order = ExternalOrder.from_dict(raw)
            state.orders[order.order_id] = order
        for raw in data.get("recurring_definitions", []):
            definition = RecurringDefinition.from_dict(raw)
            state.recurring[definition.id] = definition
        for raw in data.get("ignore_rules", []):
            rule = IgnoreRule.from_dict(raw)
            state.ignore_rules[rule.id] = rule
        for raw in data.get("budget_periods", []):
            period = BudgetPeriod.from_dict(raw)
            state.periods[period.key] = period
        state.webhook_log = [WebhookLogEntry.from_dict(raw) for raw in data.get("webhook_log", [])]
        return state


class LedgerStore:
    """
    Thread-safe ledger with unit-of-work rollback and atomic file writes.

    Example:
        >>> store = LedgerStore.open(Path("data/ledger.json"))
        >>> with store.unit_of_work():
        ...     store.put_transaction(txn)
        ...     store.put_account(account)  # both land, or neither does
    """

    def __init__(self, path: Path | str | None = None):
        """
        Initialize an empty store.

        Args:
            path: Ledger JSON file; None keeps everything in memory
        """
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._state = _LedgerState()
        self._depth = 0
        self._version = 0
        self._modified_at: datetime | None = None

    @classmethod
    def open(cls, path: Path | str) -> "LedgerStore":
        """Open a ledger file, starting empty if it does not exist yet."""
        store = cls(path)
        if store.path is not None and store.path.exists():
            store._state = _LedgerState.from_dict(read_json(store.path))
            logger.info(
                "Loaded ledger %s: %d accounts, %d transactions",
                store.path,
                len(store._state.accounts),
                len(store._state.transactions),
            )
        return store

    # Unit of work

    @contextmanager
    def unit_of_work(self) -> Iterator["LedgerStore"]:
        """
        Group mutations so they commit together.

        Nested blocks join the outermost one. On any exception the in-memory
        state is restored from the entry snapshot and nothing is written.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = copy.deepcopy(self._state)
            self._depth = 1
            try:
                yield self
                self._flush()
            except BaseException:
                self._state = snapshot
                logger.debug("Rolled back ledger unit of work")
                raise
            finally:
                self._depth = 0

    def _flush(self) -> None:
        self._version += 1
        self._modified_at = utc_now()
        if self.path is not None:
            write_json_atomic(self.path, self._state.to_dict())

    @property
    def version(self) -> int:
        """Number of committed units of work since the store was opened."""
        return self._version

    # Metadata

    def exists(self) -> bool:
        """Check if the ledger file exists on disk."""
        return self.path is not None and self.path.exists()

    def last_modified(self) -> datetime | None:
        """Timestamp of the last commit, or the file mtime for a freshly opened ledger."""
        if self._modified_at is not None:
            return self._modified_at
        if self.exists():
            return datetime.fromtimestamp(self.path.stat().st_mtime)  # type: ignore[union-attr]
        return None

    def summary_text(self) -> str:
        with self._lock:
            state = self._state
            return (
                f"{len(state.accounts)} accounts, {len(state.transactions)} transactions, "
                f"{len(state.orders)} orders, {len(state.recurring)} recurring definitions, "
                f"{len(state.ignore_rules)} ignore rules"
            )

    # Accounts

    def find_account(self, account_id: str) -> Account | None:
        with self._lock:
            account = self._state.accounts.get(account_id)
            return copy.deepcopy(account) if account else None

    def get_account(self, account_id: str) -> Account:
        """
        Look up an account by id.

        Raises:
            NotFound: If no such account exists
        """
        account = self.find_account(account_id)
        if account is None:
            raise NotFound(f"Account not found: {account_id}")
        return account

    def list_accounts(self) -> list[Account]:
        with self._lock:
            return [copy.deepcopy(a) for _, a in sorted(self._state.accounts.items())]

    def accounts_for_item(self, item_id: str) -> list[Account]:
        """All accounts linked to one aggregator item, sorted by id."""
        return [a for a in self.list_accounts() if a.provider_item_id == item_id]

    def put_account(self, account: Account) -> None:
        with self.unit_of_work():
            self._state.accounts[account.id] = copy.deepcopy(account)

    # Transactions

    def find_transaction(self, transaction_id: str) -> Transaction | None:
        with self._lock:
            transaction = self._state.transactions.get(transaction_id)
            return copy.deepcopy(transaction) if transaction else None

    def get_transaction(self, transaction_id: str) -> Transaction:
        """
        Look up a transaction by id.

        Raises:
            NotFound: If no such transaction exists
        """
        transaction = self.find_transaction(transaction_id)
        if transaction is None:
            raise NotFound(f"Transaction not found: {transaction_id}")
        return transaction

    def list_transactions(
        self,
        account_id: str | None = None,
        start: FinancialDate | None = None,
        end: FinancialDate | None = None,
    ) -> list[Transaction]:
        """
        List transactions sorted by (date, id).

        Args:
            account_id: Restrict to one account
            start: Inclusive lower date bound
            end: Inclusive upper date bound
        """
        with self._lock:
            rows = [
                copy.deepcopy(t)
                for t in self._state.transactions.values()
                if (account_id is None or t.account_id == account_id)
                and (start is None or t.date >= start)
                and (end is None or t.date <= end)
            ]
        rows.sort(key=lambda t: (t.date.date, t.id))
        return rows

    def put_transaction(self, transaction: Transaction) -> None:
        """Insert or replace a transaction by id."""
        with self.unit_of_work():
            self._state.transactions[transaction.id] = copy.deepcopy(transaction)

    def delete_transaction(self, transaction_id: str) -> Transaction | None:
        """Remove a transaction, returning what was removed (None if absent)."""
        with self.unit_of_work():
            return self._state.transactions.pop(transaction_id, None)

    def compare_and_set_transaction(
        self, transaction_id: str, field_name: str, expected: str | None, new: str | None
    ) -> bool:
        """
        Set a match field only if it still holds the expected value.

        Args:
            transaction_id: Row to bind
            field_name: matched_order_id or matched_recurring_id
            expected: Value the caller last observed
            new: Value to write

        Returns:
            True if the write happened, False if someone else got there first

        Raises:
            ValidationError: For fields that are not bindable
            NotFound: If the transaction no longer exists
        """
        if field_name not in _CAS_FIELDS:
            raise ValidationError(f"Field is not bindable: {field_name}")
        with self.unit_of_work():
            transaction = self._state.transactions.get(transaction_id)
            if transaction is None:
                raise NotFound(f"Transaction not found: {transaction_id}")
            if getattr(transaction, field_name) != expected:
                return False
            setattr(transaction, field_name, new)
            return True

    # Orders

    def find_order(self, order_id: str) -> ExternalOrder | None:
        with self._lock:
            order = self._state.orders.get(order_id)
            return copy.deepcopy(order) if order else None

    def get_order(self, order_id: str) -> ExternalOrder:
        """
        Look up an order by its natural key.

        Raises:
            NotFound: If no such order exists
        """
        order = self.find_order(order_id)
        if order is None:
            raise NotFound(f"Order not found: {order_id}")
        return order

    def list_orders(self) -> list[ExternalOrder]:
        """List orders sorted by (order_date, order_id)."""
        with self._lock:
            orders = [copy.deepcopy(o) for o in self._state.orders.values()]
        orders.sort(key=lambda o: (o.order_date.date, o.order_id))
        return orders

    def put_order(self, order: ExternalOrder) -> None:
        """Upsert an order by order_id."""
        with self.unit_of_work():
            self._state.orders[order.order_id] = copy.deepcopy(order)

    # Recurring definitions

    def list_recurring(self, active_only: bool = False) -> list[RecurringDefinition]:
        with self._lock:
            return [
                copy.deepcopy(d)
                for _, d in sorted(self._state.recurring.items())
                if d.active or not active_only
            ]

    def get_recurring(self, definition_id: str) -> RecurringDefinition:
        with self._lock:
            definition = self._state.recurring.get(definition_id)
            if definition is None:
                raise NotFound(f"Recurring definition not found: {definition_id}")
            return copy.deepcopy(definition)

    def put_recurring(self, definition: RecurringDefinition) -> None:
        with self.unit_of_work():
            self._state.recurring[definition.id] = copy.deepcopy(definition)

    # Ignore rules

    def list_ignore_rules(self, active_only: bool = True) -> list[IgnoreRule]:
        """Rules in creation order (created_at, id)."""
        with self._lock:
            rules = [copy.deepcopy(r) for r in self._state.ignore_rules.values() if r.active or not active_only]
        rules.sort(key=lambda r: (to_timestamp(r.created_at) or "", r.id))
        return rules

    def add_ignore_rule(self, pattern: str) -> tuple[IgnoreRule, bool]:
        """
        Create an ignore rule, reusing an existing one with the same normalized pattern.

        An inactive duplicate is reactivated.

        Returns:
            (rule, created) where created is False when an existing rule was reused

        Raises:
            ValidationError: If the pattern normalizes to nothing
        """
        normalized = normalize_description(pattern)
        if not normalized:
            raise ValidationError("Ignore pattern must contain letters or digits")

        with self.unit_of_work():
            for rule in self._state.ignore_rules.values():
                if rule.normalized_pattern == normalized:
                    if not rule.active:
                        rule.active = True
                    return copy.deepcopy(rule), False

            rule = IgnoreRule(
                id=f"rule_{uuid.uuid4().hex[:12]}",
                pattern=pattern.strip(),
                normalized_pattern=normalized,
                active=True,
                created_at=utc_now(),
            )
            self._state.ignore_rules[rule.id] = rule
            return copy.deepcopy(rule), True

    def put_ignore_rule(self, rule: IgnoreRule) -> None:
        with self.unit_of_work():
            self._state.ignore_rules[rule.id] = copy.deepcopy(rule)

    # Budget periods

    def put_period(self, period: BudgetPeriod) -> None:
        with self.unit_of_work():
            self._state.periods[period.key] = copy.deepcopy(period)

    def ensure_period(self, year: int, month: int) -> BudgetPeriod:
        """Return the period for a month, creating it open if missing."""
        with self.unit_of_work():
            period = BudgetPeriod(year=year, month=month, status=PeriodStatus.OPEN)
            existing = self._state.periods.setdefault(period.key, period)
            return copy.deepcopy(existing)

    def list_periods(self, open_only: bool = False) -> list[BudgetPeriod]:
        """Periods in (year, month) order."""
        with self._lock:
            periods = [copy.deepcopy(p) for p in self._state.periods.values() if p.is_open or not open_only]
        periods.sort(key=lambda p: (p.year, p.month))
        return periods

    # Webhook audit log

    def append_webhook_log(self, entry: WebhookLogEntry) -> None:
        with self.unit_of_work():
            self._state.webhook_log.append(copy.deepcopy(entry))

    def mark_webhook_processed(self, entry_id: str, error: str | None = None) -> bool:
        """
        Record completion of the work a webhook triggered.

        Only the first call for an entry has any effect.

        Returns:
            True if the entry was updated
        """
        with self.unit_of_work():
            for entry in self._state.webhook_log:
                if entry.id != entry_id:
                    continue
                if entry.processed_at is not None:
                    return False
                entry.processed_at = utc_now()
                entry.error = error if error else entry.error
                return True
        return False

    def list_webhook_log(self) -> list[WebhookLogEntry]:
        with self._lock:
            return [copy.deepcopy(e) for e in self._state.webhook_log]


def new_webhook_log_id() -> str:
    return f"whk_{uuid.uuid4().hex[:16]}"
