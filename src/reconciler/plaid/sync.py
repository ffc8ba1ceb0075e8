#!/usr/bin/env python3
"""
Incremental Transaction Sync

Pulls cursor-based change feeds from the aggregator for one account and
applies them to the ledger.

Guarantees:
- Only one sync per account runs at a time; a second caller gets SyncInProgress.
- Changes are upserted by provider transaction id, so re-delivered records
  and overlapping runs never create duplicates.
- All pages are fetched before anything is written. The changes and the new
  cursor are then committed in a single unit of work; if that write fails
  the cursor stays where it was and the next run re-fetches.
- Credential failures flag the account reauth_required and keep the cursor.
  Transient failures change nothing at all.
- A modified record, such as a pending row that posts with a new amount or
  date, updates the row but keeps its order and recurring links. Links are
  not re-checked here; only unbound rows go back through the matchers.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from ..core.config import SyncConfig
from ..core.errors import (
    NotLinked,
    ProviderError,
    ProviderTransient,
    ReauthRequired,
    SyncInProgress,
)
from ..core.models import (
    Account,
    ErrorState,
    MatchStatus,
    Transaction,
    TransactionSource,
    synced_transaction_id,
)
from ..ledger.cursor_store import SyncCursorStore
from ..ledger.store import LedgerStore
from .categories import is_transfer_category, is_transfer_description, map_plaid_category
from .client import AggregatorClient, MutationDuringPagination
from .models import ProviderTransaction

logger = logging.getLogger(__name__)

# Guards against a provider that never stops reporting has_more
MAX_PAGES = 10_000


@dataclass
class SyncResult:
    """Outcome of one sync run for one account."""

    account_id: str
    added: int = 0
    modified: int = 0
    removed: int = 0
    skipped_duplicates: int = 0
    skipped_transfers: int = 0
    pages: int = 0
    cursor: str | None = None
    error_state: ErrorState = ErrorState.NONE
    new_transaction_ids: list[str] = field(default_factory=list)
    freed_order_ids: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.modified or self.removed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": self.account_id,
            "added": self.added,
            "modified": self.modified,
            "removed": self.removed,
            "skipped_duplicates": self.skipped_duplicates,
            "skipped_transfers": self.skipped_transfers,
            "pages": self.pages,
            "cursor": self.cursor,
            "error_state": self.error_state.value,
            "new_transaction_ids": list(self.new_transaction_ids),
            "freed_order_ids": list(self.freed_order_ids),
        }


@dataclass
class _PendingChanges:
    """
    Net effect of every page fetched in one run.

    Keyed by provider transaction id; a later page's record replaces an
    earlier one and a removal replaces both, so the result does not depend
    on where page boundaries fall.
    """

    upserts: dict[str, ProviderTransaction] = field(default_factory=dict)
    removals: set[str] = field(default_factory=set)
    next_cursor: str | None = None
    pages: int = 0

    def upsert(self, record: ProviderTransaction) -> None:
        self.removals.discard(record.transaction_id)
        self.upserts[record.transaction_id] = record

    def remove(self, transaction_id: str) -> None:
        self.upserts.pop(transaction_id, None)
        self.removals.add(transaction_id)


class SyncEngine:
    """
    Drives incremental pulls for individual accounts.

    Example:
        >>> engine = SyncEngine(store, PlaidClient(config.plaid), config.sync)
        >>> result = engine.sync_account("checking")
        >>> result.added, result.cursor
        (42, 'CAESJ...')
    """

    def __init__(self, store: LedgerStore, client: AggregatorClient, config: SyncConfig | None = None):
        self.store = store
        self.client = client
        self.config = config or SyncConfig()
        self.cursors = SyncCursorStore(store)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _account_lock(self, account_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(account_id, threading.Lock())

    def is_syncing(self, account_id: str) -> bool:
        return self._account_lock(account_id).locked()

    def sync_account(self, account_id: str) -> SyncResult:
        """
        Sync one account from its stored cursor.

        Args:
            account_id: Ledger account id

        Returns:
            SyncResult with change counts and the new cursor

        Raises:
            SyncInProgress: Another sync for this account is running
            NotFound: Unknown account
            NotLinked: Account has no item id or access token
            ReauthRequired: Credentials need user action (recorded on the account)
            ProviderTransient: Retryable failure (nothing changed)
            ProviderError: Other provider failure (recorded on the account)
            PersistenceConflict: Cursor moved underneath this run
        """
        lock = self._account_lock(account_id)
        if not lock.acquire(blocking=False):
            raise SyncInProgress(f"Sync already running for account {account_id}")
        try:
            return self._sync_locked(account_id)
        finally:
            lock.release()

    def _sync_locked(self, account_id: str) -> SyncResult:
        account = self.store.get_account(account_id)
        if not account.is_linked:
            raise NotLinked(f"Account {account_id} is not linked to an aggregator item")

        state = self.cursors.read(account_id)
        logger.info(
            "Syncing account %s from %s",
            account_id,
            "saved cursor" if state.cursor else "the beginning",
        )

        try:
            changes = self._fetch_all(account, state.cursor)
        except ReauthRequired as e:
            self.cursors.record_error(account_id, ErrorState.REAUTH_REQUIRED, e.message)
            raise
        except ProviderTransient as e:
            logger.warning("Transient failure syncing account %s: %s", account_id, e.message)
            raise
        except ProviderError as e:
            self.cursors.record_error(account_id, ErrorState.PROVIDER_ERROR, e.message)
            raise

        result = SyncResult(account_id=account_id, pages=changes.pages)
        next_cursor = changes.next_cursor or state.cursor

        new_state, _ = self.cursors.commit_sync(
            account_id,
            expected_cursor=state.cursor,
            next_cursor=next_cursor,
            apply=lambda store: self._apply_changes(store, account, changes, result),
        )
        result.cursor = new_state.cursor
        result.error_state = new_state.error_state

        logger.info(
            "Synced account %s: %d added, %d modified, %d removed, %d duplicates, %d transfers skipped",
            account_id,
            result.added,
            result.modified,
            result.removed,
            result.skipped_duplicates,
            result.skipped_transfers,
        )
        return result

    def _fetch_all(self, account: Account, cursor: str | None) -> _PendingChanges:
        """
        Fetch pages until has_more is false.

        A mutation-during-pagination error discards everything fetched so far
        and restarts from the stored cursor, up to max_pagination_restarts.
        """
        restarts = 0
        while True:
            try:
                return self._fetch_pages(account, cursor)
            except MutationDuringPagination:
                restarts += 1
                if restarts > self.config.max_pagination_restarts:
                    raise ProviderTransient(
                        f"Transactions for account {account.id} kept changing during pagination"
                    ) from None
                logger.info("Restarting pagination for account %s (attempt %d)", account.id, restarts)

    def _fetch_pages(self, account: Account, cursor: str | None) -> _PendingChanges:
        changes = _PendingChanges()
        page_cursor = cursor
        has_more = True

        while has_more:
            if changes.pages >= MAX_PAGES:
                raise ProviderTransient(f"Gave up after {MAX_PAGES} pages for account {account.id}")
            page = self.client.fetch_changes(account.access_token or "", page_cursor)
            changes.pages += 1

            # One item can hold several accounts; keep only this one's records
            for record in page.added + page.modified:
                if self._belongs_to(account, record.account_id):
                    changes.upsert(record)
            for removed in page.removed:
                if removed.account_id is None or self._belongs_to(account, removed.account_id):
                    changes.remove(removed.transaction_id)

            has_more = page.has_more
            page_cursor = page.next_cursor or page_cursor
            changes.next_cursor = page_cursor

        return changes

    @staticmethod
    def _belongs_to(account: Account, provider_account_id: str | None) -> bool:
        if not account.provider_account_id:
            return True
        return provider_account_id == account.provider_account_id

    def _is_transfer(self, record: ProviderTransaction) -> bool:
        return is_transfer_category(record.category_primary, record.category_detailed) or is_transfer_description(
            record.description
        )

    def _apply_changes(
        self, store: LedgerStore, account: Account, changes: _PendingChanges, result: SyncResult
    ) -> SyncResult:
        """Write the net change set; runs inside the cursor commit."""
        for provider_id in sorted(changes.removals):
            transaction_id = synced_transaction_id(account.id, provider_id)
            existing = store.delete_transaction(transaction_id)
            if existing is None:
                continue
            result.removed += 1
            if existing.matched_order_id:
                self._free_order(store, existing.matched_order_id, transaction_id, result)

        for provider_id, record in sorted(changes.upserts.items()):
            transaction_id = synced_transaction_id(account.id, provider_id)
            existing = store.find_transaction(transaction_id)

            if existing is None:
                if self.config.skip_transfers and self._is_transfer(record):
                    result.skipped_transfers += 1
                    continue
                store.put_transaction(
                    Transaction(
                        id=transaction_id,
                        account_id=account.id,
                        provider_transaction_id=provider_id,
                        amount=record.amount,
                        date=record.date,
                        description=record.description,
                        sub_description=record.sub_description,
                        source=TransactionSource.SYNC,
                        pending=record.pending,
                        category=map_plaid_category(record.category_primary, record.category_detailed),
                    )
                )
                store.ensure_period(record.date.year, record.date.month)
                result.added += 1
                result.new_transaction_ids.append(transaction_id)
                continue

            # Provider-owned fields only; category, ignore state, and links stay local
            if (
                existing.amount == record.amount
                and existing.date == record.date
                and existing.description == record.description
                and existing.sub_description == record.sub_description
                and existing.pending == record.pending
            ):
                result.skipped_duplicates += 1
                continue

            existing.amount = record.amount
            existing.date = record.date
            existing.description = record.description
            existing.sub_description = record.sub_description
            existing.pending = record.pending
            store.put_transaction(existing)
            result.modified += 1

        return result

    @staticmethod
    def _free_order(store: LedgerStore, order_id: str, transaction_id: str, result: SyncResult) -> None:
        order = store.find_order(order_id)
        if order is None or order.linked_transaction_id != transaction_id:
            return
        order.linked_transaction_id = None
        order.match_status = MatchStatus.UNMATCHED
        order.candidates = []
        store.put_order(order)
        result.freed_order_ids.append(order_id)
        logger.info("Freed order %s after provider removed transaction %s", order_id, transaction_id)
