#!/usr/bin/env python3
"""
Sync Cursor Store

The only place an account's (cursor, last_sync_at, error_state) triple is
read or written. Advancing the cursor and applying the page of changes it
covers happen in one ledger unit of work, so a failed write can never leave
the cursor ahead of the data.
"""

import logging
from collections.abc import Callable
from typing import TypeVar

from ..core.dates import utc_now
from ..core.errors import PersistenceConflict
from ..core.models import ErrorState, SyncState
from .store import LedgerStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncCursorStore:
    """Atomic per-account cursor and status record."""

    def __init__(self, store: LedgerStore):
        self._store = store

    def read(self, account_id: str) -> SyncState:
        """
        Current sync state for an account.

        Raises:
            NotFound: If the account does not exist
        """
        return SyncState.from_account(self._store.get_account(account_id))

    def commit_sync(
        self,
        account_id: str,
        expected_cursor: str | None,
        next_cursor: str | None,
        apply: Callable[[LedgerStore], T],
    ) -> tuple[SyncState, T]:
        """
        Apply a batch of transaction changes and advance the cursor together.

        Args:
            account_id: Account being synced
            expected_cursor: Cursor the changes were fetched from
            next_cursor: Cursor returned with the final page
            apply: Writes the transaction changes; runs inside the unit of work

        Returns:
            (new SyncState, whatever apply returned)

        Raises:
            PersistenceConflict: If the stored cursor moved since expected_cursor was read
            Exception: Anything apply raises; all changes are rolled back
        """
        with self._store.unit_of_work() as store:
            account = store.get_account(account_id)
            if account.sync_cursor != expected_cursor:
                raise PersistenceConflict(
                    f"Cursor for account {account_id} changed during sync; expected "
                    f"{expected_cursor!r}, found {account.sync_cursor!r}"
                )

            outcome = apply(store)

            # apply may have touched the account row, so re-read it
            account = store.get_account(account_id)
            account.sync_cursor = next_cursor
            account.last_sync_at = utc_now()
            account.error_state = ErrorState.NONE
            account.last_error = None
            store.put_account(account)

        logger.debug("Advanced cursor for account %s", account_id)
        return SyncState.from_account(account), outcome

    def record_error(self, account_id: str, error_state: ErrorState, message: str | None) -> SyncState:
        """Record a provider failure without touching the cursor."""
        with self._store.unit_of_work() as store:
            account = store.get_account(account_id)
            account.error_state = error_state
            account.last_error = message
            store.put_account(account)
        logger.warning("Account %s entered %s: %s", account_id, error_state.value, message)
        return SyncState.from_account(account)

    def clear_error(self, account_id: str) -> SyncState:
        with self._store.unit_of_work() as store:
            account = store.get_account(account_id)
            account.error_state = ErrorState.NONE
            account.last_error = None
            store.put_account(account)
        return SyncState.from_account(account)

    def reset_cursor(self, account_id: str) -> SyncState:
        """Forget the cursor so the next sync starts from scratch."""
        with self._store.unit_of_work() as store:
            account = store.get_account(account_id)
            account.sync_cursor = None
            store.put_account(account)
        logger.info("Reset sync cursor for account %s", account_id)
        return SyncState.from_account(account)
