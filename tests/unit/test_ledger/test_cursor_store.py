#!/usr/bin/env python3
"""Tests for atomic cursor advancement."""

import pytest

from reconciler.core.errors import NotFound, PersistenceConflict
from reconciler.core.models import ErrorState
from reconciler.ledger.cursor_store import SyncCursorStore

from tests.fixtures.synthetic_data import make_account, make_transaction


@pytest.fixture
def cursors(store):
    store.put_account(make_account("checking", cursor="cursor-1"))
    return SyncCursorStore(store)


@pytest.mark.unit
class TestSyncCursorStore:
    def test_read(self, cursors):
        state = cursors.read("checking")
        assert state.cursor == "cursor-1"
        assert state.error_state == ErrorState.NONE

    def test_read_unknown_account(self, cursors):
        with pytest.raises(NotFound):
            cursors.read("nope")

    def test_commit_applies_changes_and_advances(self, store, cursors):
        def apply(ledger):
            ledger.put_transaction(make_transaction("t1", "checking", 100, "2024-08-10", "A"))
            return 1

        state, outcome = cursors.commit_sync("checking", "cursor-1", "cursor-2", apply)

        assert outcome == 1
        assert state.cursor == "cursor-2"
        assert state.last_sync_at is not None
        assert store.get_transaction("t1").amount.to_cents() == 100

    def test_commit_clears_previous_error(self, cursors):
        cursors.record_error("checking", ErrorState.PROVIDER_ERROR, "boom")
        state, _ = cursors.commit_sync("checking", "cursor-1", "cursor-2", lambda ledger: None)
        assert state.error_state == ErrorState.NONE
        assert state.last_error is None

    def test_stale_cursor_conflicts_without_writing(self, store, cursors):
        def apply(ledger):
            ledger.put_transaction(make_transaction("t1", "checking", 100, "2024-08-10", "A"))

        with pytest.raises(PersistenceConflict):
            cursors.commit_sync("checking", "cursor-0", "cursor-2", apply)

        assert store.find_transaction("t1") is None
        assert cursors.read("checking").cursor == "cursor-1"

    def test_failed_apply_leaves_cursor_and_rows(self, store, cursors):
        def apply(ledger):
            ledger.put_transaction(make_transaction("t1", "checking", 100, "2024-08-10", "A"))
            raise OSError("write failed")

        with pytest.raises(OSError):
            cursors.commit_sync("checking", "cursor-1", "cursor-2", apply)

        assert store.find_transaction("t1") is None
        assert cursors.read("checking").cursor == "cursor-1"

    def test_record_error_keeps_cursor(self, cursors):
        state = cursors.record_error("checking", ErrorState.REAUTH_REQUIRED, "ITEM_LOGIN_REQUIRED")
        assert state.cursor == "cursor-1"
        assert state.error_state == ErrorState.REAUTH_REQUIRED
        assert cursors.clear_error("checking").error_state == ErrorState.NONE

    def test_reset_cursor(self, cursors):
        assert cursors.reset_cursor("checking").cursor is None
        assert cursors.read("checking").cursor is None
