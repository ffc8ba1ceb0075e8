#!/usr/bin/env python3
"""
Synthetic Test Data Builders

Builds accounts, ledger rows, orders, recurring definitions, and Plaid-shaped
change pages for unit and integration tests, plus FakeAggregator, a scripted
stand-in for the Plaid client.

All amounts, dates, IDs, names, and other identifiers are synthetic.
"""

import threading
from collections import defaultdict, deque
from pathlib import Path
from typing import Any

from reconciler.core.dates import FinancialDate
from reconciler.core.models import (
    Account,
    AccountType,
    ErrorState,
    ExternalOrder,
    RecurringDefinition,
    SchedulingRule,
    Transaction,
    TransactionSource,
)
from reconciler.core.money import Money
from reconciler.plaid.models import ChangePage, LinkToken, ProviderTransaction, RemovedRecord, TokenExchange

DEFAULT_ITEM_ID = "item-household"

SYNTHETIC_MERCHANTS = [
    "Generic Grocery Store",
    "Test Gas Station",
    "Sample Coffee Shop",
    "Mock Restaurant",
    "Example Pharmacy",
]


def make_account(
    account_id: str = "checking",
    account_type: str = "bank",
    *,
    linked: bool = True,
    item_id: str = DEFAULT_ITEM_ID,
    provider_account_id: str | None = None,
    invert_amounts: bool = False,
    cursor: str | None = None,
    error_state: ErrorState = ErrorState.NONE,
) -> Account:
    """
    Build an account; linked accounts on the same item share one access token.

    The provider account id defaults to "plaid-<account_id>".
    """
    return Account(
        id=account_id,
        name=account_id.replace("-", " ").title(),
        type=AccountType.parse(account_type),
        invert_amounts=invert_amounts,
        provider_item_id=item_id if linked else None,
        provider_account_id=(provider_account_id or f"plaid-{account_id}") if linked else None,
        institution_name="Synthetic Bank" if linked else None,
        access_token=f"access-{item_id}" if linked else None,
        sync_cursor=cursor,
        error_state=error_state,
    )


def provider_txn(
    transaction_id: str,
    amount: float,
    date: str,
    name: str,
    *,
    account_id: str = "plaid-checking",
    merchant_name: str | None = None,
    pending: bool = False,
    primary: str | None = None,
    detailed: str | None = None,
) -> ProviderTransaction:
    """Plaid transaction record; positive amounts are money leaving the account."""
    return ProviderTransaction(
        transaction_id=transaction_id,
        account_id=account_id,
        amount=Money.from_float(amount),
        date=FinancialDate.parse(date),
        name=name,
        merchant_name=merchant_name,
        pending=pending,
        category_primary=primary,
        category_detailed=detailed,
    )


def change_page(
    added: list[ProviderTransaction] | None = None,
    modified: list[ProviderTransaction] | None = None,
    removed: list[str | RemovedRecord] | None = None,
    next_cursor: str = "cursor-1",
    has_more: bool = False,
) -> ChangePage:
    """One /transactions/sync page; removed entries may be plain transaction ids."""
    return ChangePage(
        added=list(added or []),
        modified=list(modified or []),
        removed=[r if isinstance(r, RemovedRecord) else RemovedRecord(transaction_id=r) for r in removed or []],
        next_cursor=next_cursor,
        has_more=has_more,
    )


def make_transaction(
    transaction_id: str,
    account_id: str,
    cents: int,
    date: str,
    description: str,
    *,
    source: TransactionSource = TransactionSource.IMPORT,
    **fields: Any,
) -> Transaction:
    """Ledger row with a raw amount in cents."""
    return Transaction(
        id=transaction_id,
        account_id=account_id,
        amount=Money.from_cents(cents),
        date=FinancialDate.parse(date),
        description=description,
        source=source,
        **fields,
    )


def make_order(order_id: str, order_date: str, cents: int, **fields: Any) -> ExternalOrder:
    return ExternalOrder(
        order_id=order_id,
        order_date=FinancialDate.parse(order_date),
        total=Money.from_cents(cents),
        **fields,
    )


def make_recurring(
    definition_id: str,
    merchant_label: str,
    cents: int,
    schedule: SchedulingRule | None = None,
    **fields: Any,
) -> RecurringDefinition:
    """Recurring definition; defaults to a monthly charge on the 15th."""
    return RecurringDefinition(
        id=definition_id,
        merchant_label=merchant_label,
        expected_amount=Money.from_cents(cents),
        schedule=schedule or SchedulingRule.monthly(15),
        **fields,
    )


def write_csv(path: Path, header: list[str], rows: list[list[str]]) -> Path:
    """Write a small CSV export, quoting every cell."""
    lines = [",".join(f'"{cell}"' for cell in header)]
    lines.extend(",".join(f'"{cell}"' for cell in row) for row in rows)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class FakeAggregator:
    """
    Scripted AggregatorClient.

    Responses are queued per (access token, cursor) with script(). Each fetch
    pops the next response for its key, preferring a token-specific script
    over one registered for any token. Exception instances are raised instead
    of returned. With nothing queued the provider reports no changes and
    echoes the cursor back, which is what Plaid does for an up-to-date item.
    """

    def __init__(self):
        self._responses: dict[tuple[str | None, str | None], deque] = defaultdict(deque)
        self._lock = threading.Lock()
        self._release: threading.Event | None = None
        self.started = threading.Event()
        self.calls: list[tuple[str, str | None]] = []
        self.removed_items: list[str] = []
        self.link_token_requests: list[tuple[str, str | None]] = []
        self.exchanged_tokens: list[str] = []
        self.exchange_result = TokenExchange(item_id="item-linked", access_token="access-item-linked")

    def script(self, cursor: str | None, *responses: ChangePage | Exception, access_token: str | None = None) -> None:
        with self._lock:
            self._responses[(access_token, cursor)].extend(responses)

    def hold(self) -> threading.Event:
        """Block every fetch until the returned event is set."""
        self._release = threading.Event()
        return self._release

    def fetch_changes(self, access_token: str, cursor: str | None) -> ChangePage:
        with self._lock:
            self.calls.append((access_token, cursor))
            queue = self._responses.get((access_token, cursor))
            if not queue:
                queue = self._responses.get((None, cursor))
            response = queue.popleft() if queue else None

        if self._release is not None:
            self.started.set()
            self._release.wait(timeout=5)

        if response is None:
            return ChangePage(next_cursor=cursor or "cursor-empty", has_more=False)
        if isinstance(response, Exception):
            raise response
        return response

    def exchange_public_token(self, public_token: str) -> TokenExchange:
        self.exchanged_tokens.append(public_token)
        return self.exchange_result

    def create_link_token(self, user_id: str, access_token: str | None = None) -> LinkToken:
        self.link_token_requests.append((user_id, access_token))
        return LinkToken(link_token=f"link-sandbox-{user_id}", expiration="2024-08-15T12:00:00Z")

    def remove_item(self, access_token: str) -> None:
        self.removed_items.append(access_token)
