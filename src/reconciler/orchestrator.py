#!/usr/bin/env python3
"""
Reconciliation Orchestrator

The one entry point the request layer and the CLI talk to. Each operation
wires the engines together, returns plain JSON-ready data, and converts
every failure to {"error": {"code", "message"}} at this boundary.

Operations are independent: a failing sync for one account never rolls
back another account's sync, and a PersistenceConflict is retried once
before it is reported.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .core.config import Config, get_config
from .core.errors import (
    NotFound,
    NotLinked,
    PersistenceConflict,
    ReconcilerError,
    ValidationError,
    error_to_dict,
)
from .core.models import Account
from .ledger.budget import budget_summary
from .ledger.cursor_store import SyncCursorStore
from .ledger.ignore_rules import IgnoreRuleFilter
from .ledger.importer import ColumnMapping, TransactionImporter
from .ledger.setup_file import apply_setup, read_setup_file
from .ledger.store import LedgerStore
from .matching.order_loader import OrderImporter, load_order_csv
from .matching.orders import OrderMatcher
from .matching.recurring import RecurringMatcher
from .plaid.client import AggregatorClient, PlaidClient
from .plaid.sync import SyncEngine
from .plaid.webhooks import WebhookProcessor
from .plaid.work_queue import AccountWorkQueue

logger = logging.getLogger(__name__)


class ReconciliationOrchestrator:
    """
    Coordinates sync, webhooks, matching, imports, and budget views.

    Example:
        >>> with ReconciliationOrchestrator.from_config() as orchestrator:
        ...     orchestrator.run_account_sync("checking")
        {'account_id': 'checking', 'added': 12, ...}
        >>> orchestrator.link_order("112-0000001", None)
        {'order': {...}}
    """

    def __init__(
        self,
        store: LedgerStore,
        client: AggregatorClient | None = None,
        config: Config | None = None,
        queue: AccountWorkQueue | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Ledger
            client: Aggregator client; None disables sync and linking
            config: Configuration (default: global config)
            queue: Work queue for webhook-triggered syncs (default: built from config)
        """
        self.config = config or get_config()
        self.store = store
        self.client = client
        self.cursors = SyncCursorStore(store)
        self.sync_engine = SyncEngine(store, client, self.config.sync) if client is not None else None
        self.queue = queue or AccountWorkQueue(
            max_workers=self.config.sync.workers,
            retry_attempts=self.config.sync.retry_attempts,
            retry_backoff_seconds=self.config.sync.retry_backoff_seconds,
        )
        self.webhooks = WebhookProcessor(store, self.queue, self._sync_and_reconcile)
        self.order_matcher = OrderMatcher(store, self.config.matching)
        self.recurring_matcher = RecurringMatcher(store, self.config.matching)

    @classmethod
    def from_config(cls, config: Config | None = None) -> "ReconciliationOrchestrator":
        """Open the configured ledger file and build a Plaid client when credentials exist."""
        config = config or get_config()
        store = LedgerStore.open(config.ledger_file)
        client = PlaidClient(config.plaid) if config.plaid.is_configured else None
        return cls(store, client, config)

    def __enter__(self) -> "ReconciliationOrchestrator":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Wait for queued syncs and stop the worker threads."""
        self.queue.shutdown()

    # Boundary

    def _call(
        self, operation: str, fn: Callable[[], dict[str, Any]], retry_conflict: bool = True
    ) -> dict[str, Any]:
        try:
            return fn()
        except PersistenceConflict as e:
            if retry_conflict:
                logger.info("%s hit a persistence conflict, retrying once: %s", operation, e.message)
                return self._call(operation, fn, retry_conflict=False)
            logger.warning("%s failed after retry: %s", operation, e.message)
            return {"error": e.to_dict()}
        except ReconcilerError as e:
            logger.info("%s failed: %s %s", operation, e.code, e.message)
            return {"error": e.to_dict()}
        except FileNotFoundError as e:
            return {"error": NotFound(str(e)).to_dict()}
        except Exception as e:
            logger.exception("Unexpected error in %s", operation)
            return {"error": error_to_dict(e)}

    # Sync

    def _require_engine(self) -> SyncEngine:
        if self.sync_engine is None:
            raise NotLinked("No aggregator client is configured (set PLAID_CLIENT_ID and PLAID_SECRET)")
        return self.sync_engine

    def _apply_ignore_rules(self, transaction_ids: list[str]) -> int:
        rule_filter = IgnoreRuleFilter(self.store.list_ignore_rules())
        if not rule_filter.rules or not transaction_ids:
            return 0
        with self.store.unit_of_work() as store:
            rows = [store.find_transaction(transaction_id) for transaction_id in transaction_ids]
            changed = rule_filter.apply(row for row in rows if row is not None)
            for row in changed:
                store.put_transaction(row)
        return len(changed)

    def _match_recurring_for(self, transaction_ids: list[str]) -> int:
        if not self.config.sync.match_recurring_after_sync or not transaction_ids:
            return 0
        return self.recurring_matcher.match_open_periods(transaction_ids=transaction_ids).matched

    def _sync_and_reconcile(self, account_id: str) -> dict[str, Any]:
        result = self._require_engine().sync_account(account_id)
        output = result.to_dict()
        output["ignored"] = self._apply_ignore_rules(result.new_transaction_ids)
        output["recurring_matched"] = self._match_recurring_for(result.new_transaction_ids)
        return output

    def run_account_sync(self, account_id: str) -> dict[str, Any]:
        """Sync one account, then apply ignore rules and recurring matching to the new rows."""
        return self._call("run_account_sync", lambda: self._sync_and_reconcile(account_id))

    def run_all_syncs(self) -> dict[str, Any]:
        """
        Sync every linked account, one outcome per account.

        A failure on one account is reported in its outcome and never stops
        the remaining accounts.
        """
        outcomes = []
        for account in self.store.list_accounts():
            if not account.is_linked:
                continue
            outcome = self.run_account_sync(account.id)
            ok = "error" not in outcome
            outcomes.append({"account_id": account.id, "ok": ok, **({"result": outcome} if ok else outcome)})

        succeeded = sum(1 for o in outcomes if o["ok"])
        logger.info("Synced %d of %d linked accounts", succeeded, len(outcomes))
        return {"accounts": outcomes, "succeeded": succeeded, "failed": len(outcomes) - succeeded}

    def process_webhook(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Log a webhook and queue whatever it triggers; returns before any sync runs."""
        return self._call("process_webhook", lambda: self.webhooks.process(payload).to_dict())

    def wait_for_queued_syncs(self, timeout: float | None = None) -> bool:
        return self.queue.wait_idle(timeout)

    def reset_sync_cursor(self, account_id: str) -> dict[str, Any]:
        """Forget an account's cursor so the next sync starts over."""
        return self._call("reset_sync_cursor", lambda: {"state": self.cursors.reset_cursor(account_id).to_dict()})

    def clear_account_error(self, account_id: str) -> dict[str, Any]:
        """Clear the error state on an account and every account sharing its item."""

        def run() -> dict[str, Any]:
            account = self.store.get_account(account_id)
            targets = self.store.accounts_for_item(account.provider_item_id) if account.provider_item_id else []
            ids = sorted({account.id, *(a.id for a in targets)})
            with self.store.unit_of_work():
                states = [self.cursors.clear_error(target_id).to_dict() for target_id in ids]
            return {"accounts": states}

        return self._call("clear_account_error", run)

    # Account linking

    def create_link_token(self, user_id: str, account_id: str | None = None) -> dict[str, Any]:
        """
        Create a Link token; passing an account gives an update-mode token
        for repairing its credentials.
        """

        def run() -> dict[str, Any]:
            if self.client is None:
                raise NotLinked("No aggregator client is configured")
            access_token = None
            if account_id is not None:
                account = self.store.get_account(account_id)
                if not account.access_token:
                    raise NotLinked(f"Account {account_id} has no access token to update")
                access_token = account.access_token
            token = self.client.create_link_token(user_id, access_token=access_token)
            return {"link_token": token.link_token, "expiration": token.expiration}

        return self._call("create_link_token", run)

    def link_item(
        self, public_token: str, account_map: dict[str, str], institution_name: str | None = None
    ) -> dict[str, Any]:
        """
        Exchange a Link public token and attach the item to ledger accounts.

        Args:
            public_token: Token from Plaid Link
            account_map: Ledger account id -> provider account id
            institution_name: Display name stored on the accounts

        Every mapped account starts over with no cursor and no error.
        """

        def run() -> dict[str, Any]:
            if self.client is None:
                raise NotLinked("No aggregator client is configured")
            if not account_map:
                raise ValidationError("At least one account mapping is required")
            accounts = {account_id: self.store.get_account(account_id) for account_id in sorted(account_map)}
            exchange = self.client.exchange_public_token(public_token)

            with self.store.unit_of_work() as store:
                for account_id, account in accounts.items():
                    account.provider_item_id = exchange.item_id
                    account.provider_account_id = account_map[account_id]
                    account.access_token = exchange.access_token
                    if institution_name:
                        account.institution_name = institution_name
                    store.put_account(account)
                    self.cursors.reset_cursor(account_id)
                    self.cursors.clear_error(account_id)

            logger.info("Linked item %s to %d account(s)", exchange.item_id, len(accounts))
            return {"item_id": exchange.item_id, "accounts": sorted(accounts)}

        return self._call("link_item", run)

    def unlink_item(self, account_id: str) -> dict[str, Any]:
        """Revoke an account's item at the provider and clear linkage on every account sharing it."""

        def run() -> dict[str, Any]:
            account = self.store.get_account(account_id)
            if not account.is_linked:
                raise NotLinked(f"Account {account_id} is not linked")
            if self.client is not None:
                self.client.remove_item(account.access_token or "")

            targets = self.store.accounts_for_item(account.provider_item_id or "") or [account]
            with self.store.unit_of_work() as store:
                for target in targets:
                    _clear_linkage(target)
                    store.put_account(target)
                    self.cursors.reset_cursor(target.id)
                    self.cursors.clear_error(target.id)
            return {"accounts": [t.id for t in targets]}

        return self._call("unlink_item", run)

    # Orders

    def match_orders(self, order_ids: list[str] | None = None) -> dict[str, Any]:
        return self._call("match_orders", lambda: self.order_matcher.match_orders(order_ids).to_dict())

    def find_order_candidates(self, order_id: str) -> dict[str, Any]:
        """Ranked candidates for one order. Never writes."""

        def run() -> dict[str, Any]:
            order = self.store.get_order(order_id)
            candidates = self.order_matcher.find_candidates(order_id)
            return {
                "order_id": order.order_id,
                "order_date": order.order_date.to_iso_string(),
                "total": order.total.to_cents(),
                "window_start": order.order_date.add_days(-self.config.matching.order_lookback_days).to_iso_string(),
                "window_end": order.order_date.add_days(self.config.matching.order_lookahead_days).to_iso_string(),
                "candidates": [c.to_dict() for c in candidates],
            }

        return self._call("find_order_candidates", run)

    def set_ignored(self, order_id: str, ignored: bool) -> dict[str, Any]:
        return self._call(
            "set_ignored", lambda: {"order": self.order_matcher.set_ignored(order_id, ignored).to_dict()}
        )

    def link_order(self, order_id: str, transaction_id: str | None) -> dict[str, Any]:
        return self._call(
            "link_order", lambda: {"order": self.order_matcher.link(order_id, transaction_id).to_dict()}
        )

    def import_orders(self, records: list[dict[str, Any]]) -> dict[str, Any]:
        """Create the orders the ledger has not seen, then auto-match just those."""

        def run() -> dict[str, Any]:
            result = OrderImporter(self.store).import_records(records)
            output = result.to_dict()
            summary = self.order_matcher.match_orders(result.order_ids) if result.order_ids else None
            output["matched"] = summary.matched if summary else 0
            output["ambiguous"] = summary.ambiguous if summary else 0
            output["unmatched"] = summary.unmatched if summary else 0
            return output

        return self._call("import_orders", run)

    def import_orders_csv(self, path: str | Path) -> dict[str, Any]:
        def run() -> dict[str, Any]:
            return self.import_orders(load_order_csv(path))

        return self._call("import_orders_csv", run)

    # Recurring

    def match_recurring_for_open_periods(self, definition_ids: list[str] | None = None) -> dict[str, Any]:
        return self._call(
            "match_recurring_for_open_periods",
            lambda: self.recurring_matcher.match_open_periods(definition_ids=definition_ids).to_dict(),
        )

    # Imports, ignore rules, budget

    def import_transactions_csv(
        self,
        account_id: str,
        path: str | Path,
        mapping: ColumnMapping | dict[str, Any] | None = None,
        period: tuple[int, int] | None = None,
    ) -> dict[str, Any]:
        """Import a bank CSV, then run recurring matching over the new rows."""

        def run() -> dict[str, Any]:
            column_mapping = ColumnMapping.from_dict(mapping) if isinstance(mapping, dict) else mapping
            result = TransactionImporter(self.store).import_file(account_id, path, column_mapping, period)
            output = result.to_dict()
            output["recurring_matched"] = self._match_recurring_for(result.transaction_ids)
            return output

        return self._call("import_transactions_csv", run)

    def add_ignore_rule(self, pattern: str) -> dict[str, Any]:
        """Create (or reactivate) a rule and ignore the existing rows it matches."""

        def run() -> dict[str, Any]:
            with self.store.unit_of_work() as store:
                rule, created = store.add_ignore_rule(pattern)
                changed = IgnoreRuleFilter([rule]).apply(store.list_transactions())
                for row in changed:
                    store.put_transaction(row)
            return {"rule": rule.to_dict(), "created": created, "ignored": len(changed)}

        return self._call("add_ignore_rule", run)

    def budget_summary(self, year: int, month: int) -> dict[str, Any]:
        return self._call("budget_summary", lambda: budget_summary(self.store, year, month).to_dict())

    def apply_setup_file(self, path: str | Path) -> dict[str, Any]:
        """Load a YAML setup file into the ledger."""
        return self._call("apply_setup_file", lambda: apply_setup(self.store, read_setup_file(path)).to_dict())

    def status(self) -> dict[str, Any]:
        """Ledger summary and per-account sync state."""

        def run() -> dict[str, Any]:
            accounts = []
            for account in self.store.list_accounts():
                state = self.cursors.read(account.id).to_dict()
                details = account.to_dict()
                state.update(
                    {
                        "name": details["name"],
                        "type": details["type"],
                        "institution_name": details["institution_name"],
                        "access_token": details["access_token"],
                        "linked": account.is_linked,
                        "has_cursor": account.sync_cursor is not None,
                    }
                )
                state.pop("cursor", None)
                accounts.append(state)
            return {
                "ledger": self.store.summary_text(),
                "ledger_file": str(self.store.path) if self.store.path else None,
                "accounts": accounts,
                "open_periods": [p.key for p in self.store.list_periods(open_only=True)],
                "webhooks_logged": len(self.store.list_webhook_log()),
            }

        return self._call("status", run)


def _clear_linkage(account: Account) -> None:
    account.provider_item_id = None
    account.provider_account_id = None
    account.access_token = None
