#!/usr/bin/env python3
"""
Plaid Webhook Processing

Turns provider notifications into queued syncs or account error-state
changes. Every payload is written to the webhook audit log before anything
else happens, and the acknowledgment is returned without waiting for any
sync it triggers.

Handled webhooks:
- TRANSACTIONS / SYNC_UPDATES_AVAILABLE (and the legacy update codes):
  queue a sync for every account on the item
- ITEM / ERROR: credential codes -> reauth_required, others -> provider_error
- ITEM / USER_PERMISSION_REVOKED: reauth_required
- ITEM / PENDING_EXPIRATION: warning only

Webhook reference: https://plaid.com/docs/api/webhooks/
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..core.dates import utc_now
from ..core.errors import ValidationError
from ..core.models import Account, ErrorState, WebhookLogEntry
from ..ledger.cursor_store import SyncCursorStore
from ..ledger.store import LedgerStore, new_webhook_log_id
from .client import CREDENTIAL_ERROR_CODES
from .work_queue import AccountWorkQueue

logger = logging.getLogger(__name__)

SYNC_TRIGGER_CODES = frozenset({"SYNC_UPDATES_AVAILABLE", "DEFAULT_UPDATE", "INITIAL_UPDATE", "HISTORICAL_UPDATE"})


@dataclass
class WebhookResult:
    """Synchronous acknowledgment for one webhook."""

    log_id: str
    action: str
    item_id: str | None = None
    queued_accounts: list[str] = field(default_factory=list)
    skipped_accounts: list[str] = field(default_factory=list)
    flagged_accounts: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "received": True,
            "log_id": self.log_id,
            "action": self.action,
            "item_id": self.item_id,
            "queued_accounts": list(self.queued_accounts),
            "skipped_accounts": list(self.skipped_accounts),
            "flagged_accounts": list(self.flagged_accounts),
            "error": self.error,
        }


class WebhookProcessor:
    """
    Routes webhook payloads to the work queue or the cursor store.

    Example:
        >>> processor = WebhookProcessor(store, queue, engine.sync_account)
        >>> processor.process({"webhook_type": "TRANSACTIONS",
        ...                    "webhook_code": "SYNC_UPDATES_AVAILABLE",
        ...                    "item_id": "item-1"}).action
        'sync_queued'
    """

    def __init__(self, store: LedgerStore, queue: AccountWorkQueue, run_sync: Callable[[str], Any]):
        """
        Initialize the processor.

        Args:
            store: Ledger holding accounts and the webhook log
            queue: Per-account work queue the triggered syncs run on
            run_sync: Called with an account id on a worker thread
        """
        self.store = store
        self.queue = queue
        self.run_sync = run_sync
        self.cursors = SyncCursorStore(store)

    def process(self, payload: dict[str, Any]) -> WebhookResult:
        """
        Log a webhook and act on it.

        Args:
            payload: Decoded webhook JSON body

        Returns:
            WebhookResult acknowledgment

        Raises:
            ValidationError: If the payload is not a JSON object
        """
        if not isinstance(payload, dict):
            raise ValidationError("Webhook payload must be a JSON object")

        webhook_type = _upper_or_none(payload.get("webhook_type"))
        webhook_code = _upper_or_none(payload.get("webhook_code"))
        item_id = payload.get("item_id")

        error = None
        accounts: list[Account] = []
        if not webhook_type or not webhook_code:
            error = "Webhook payload is missing webhook_type or webhook_code"
        elif not item_id:
            error = "Webhook payload is missing item_id"
        else:
            accounts = self.store.accounts_for_item(item_id)
            if not accounts:
                error = f"No accounts linked to item {item_id}"

        entry = WebhookLogEntry(
            id=new_webhook_log_id(),
            webhook_type=webhook_type,
            webhook_code=webhook_code,
            item_id=item_id,
            created_at=utc_now(),
            error=error,
            payload=payload,
        )
        self.store.append_webhook_log(entry)
        logger.info("Received webhook %s/%s for item %s", webhook_type, webhook_code, item_id)

        result = WebhookResult(log_id=entry.id, action="logged", item_id=item_id, error=error)
        if error:
            logger.warning("Webhook %s not actionable: %s", entry.id, error)
            self.store.mark_webhook_processed(entry.id, error)
            return result

        if webhook_type == "TRANSACTIONS" and webhook_code in SYNC_TRIGGER_CODES:
            self._queue_syncs(entry, accounts, result)
        elif webhook_type == "ITEM":
            self._handle_item_webhook(entry, payload, accounts, result)
        else:
            logger.debug("Ignoring webhook %s/%s", webhook_type, webhook_code)
            self.store.mark_webhook_processed(entry.id)

        return result

    def _queue_syncs(self, entry: WebhookLogEntry, accounts: list[Account], result: WebhookResult) -> None:
        result.action = "sync_queued"
        for account in accounts:
            # reauth_required waits for the user; queuing would just fail again
            if account.error_state == ErrorState.REAUTH_REQUIRED:
                result.skipped_accounts.append(account.id)
                continue
            result.queued_accounts.append(account.id)

        if not result.queued_accounts:
            result.action = "skipped"
            self.store.mark_webhook_processed(entry.id, "All accounts on item require re-authentication")
            return

        tracker = _CompletionTracker(self.store, entry.id, len(result.queued_accounts))
        for account_id in result.queued_accounts:
            self.queue.submit(account_id, _bind(self.run_sync, account_id), tracker.on_done)
        logger.info("Queued sync for %d account(s) on item %s", len(result.queued_accounts), entry.item_id)

    def _handle_item_webhook(
        self, entry: WebhookLogEntry, payload: dict[str, Any], accounts: list[Account], result: WebhookResult
    ) -> None:
        code = entry.webhook_code

        if code == "PENDING_EXPIRATION":
            logger.warning(
                "Access consent for item %s expires at %s", entry.item_id, payload.get("consent_expiration_time")
            )
            result.action = "warning_logged"
            self.store.mark_webhook_processed(entry.id)
            return

        if code == "USER_PERMISSION_REVOKED":
            state, message = ErrorState.REAUTH_REQUIRED, "User revoked access to this item"
        elif code == "ERROR":
            error_body = payload.get("error") or {}
            error_code = str(error_body.get("error_code") or "")
            message = error_body.get("error_message") or error_code or "Item error"
            message = f"{error_code}: {message}" if error_code and error_code not in message else message
            if error_code in CREDENTIAL_ERROR_CODES:
                state = ErrorState.REAUTH_REQUIRED
            else:
                state = ErrorState.PROVIDER_ERROR
        else:
            logger.debug("Ignoring ITEM webhook %s", code)
            self.store.mark_webhook_processed(entry.id)
            return

        for account in accounts:
            self.cursors.record_error(account.id, state, message)
            result.flagged_accounts.append(account.id)
        result.action = state.value
        self.store.mark_webhook_processed(entry.id)


class _CompletionTracker:
    """Marks a log entry processed once every queued sync for it has finished."""

    def __init__(self, store: LedgerStore, entry_id: str, expected: int):
        self.store = store
        self.entry_id = entry_id
        self.remaining = expected
        self.errors: list[str] = []
        self._lock = threading.Lock()

    def on_done(self, result: Any, error: BaseException | None) -> None:
        with self._lock:
            if error is not None:
                self.errors.append(str(error))
            self.remaining -= 1
            if self.remaining > 0:
                return
            message = "; ".join(self.errors) or None
        self.store.mark_webhook_processed(self.entry_id, message)


def _bind(run_sync: Callable[[str], Any], account_id: str) -> Callable[[], Any]:
    return lambda: run_sync(account_id)


def _upper_or_none(value: Any) -> str | None:
    return str(value).upper() if value else None
