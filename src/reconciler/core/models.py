#!/usr/bin/env python3
"""
Core Data Models

Domain models shared by the sync, matching, and ledger layers. Every model
round-trips through plain dicts (from_dict/to_dict) so the ledger file and
orchestrator results stay JSON-serializable.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .dates import FinancialDate, parse_timestamp, to_timestamp
from .errors import UnsupportedAccountType, ValidationError
from .money import Money

INCOME_CATEGORY = "Income"
UNCATEGORIZED = "Uncategorized"


class AccountType(Enum):
    """Closed set of account types with a known sign convention."""

    BANK = "bank"
    CREDIT_CARD = "credit_card"
    CASH = "cash"

    @classmethod
    def parse(cls, value: "str | AccountType") -> "AccountType":
        """
        Parse an account type string.

        Raises:
            UnsupportedAccountType: For anything outside the enum
        """
        if isinstance(value, AccountType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            raise UnsupportedAccountType(f"Unsupported account type: {value!r}") from e


class ErrorState(Enum):
    """Per-account aggregator health."""

    NONE = "none"
    REAUTH_REQUIRED = "reauth_required"
    PROVIDER_ERROR = "provider_error"


class TransactionSource(Enum):
    """Where a transaction row came from."""

    SYNC = "sync"
    IMPORT = "import"


class MatchStatus(Enum):
    """Outcome of the last automatic order match."""

    UNMATCHED = "unmatched"
    MATCHED = "matched"
    AMBIGUOUS = "ambiguous"


class PeriodStatus(Enum):
    OPEN = "open"
    CLOSED = "closed"


class ScheduleKind(Enum):
    """Recurring cadence types."""

    MONTHLY = "monthly"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    TWICE_MONTHLY = "twice_monthly"


def _stable_hash(*parts: str) -> str:
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def synced_transaction_id(account_id: str, provider_transaction_id: str) -> str:
    """Deterministic row id for a synced transaction."""
    return f"txn_{_stable_hash(account_id, provider_transaction_id)[:20]}"


def imported_transaction_id(import_hash: str) -> str:
    """Deterministic row id for an imported transaction."""
    return f"imp_{import_hash[:20]}"


@dataclass
class Account:
    """
    A financial account, optionally linked to an aggregator item.

    Identity fields belong to account management. The cursor and error
    fields are written only through SyncCursorStore.
    """

    id: str
    name: str
    type: AccountType
    invert_amounts: bool = False
    provider_item_id: str | None = None
    provider_account_id: str | None = None
    institution_name: str | None = None
    access_token: str | None = None
    sync_cursor: str | None = None
    last_sync_at: datetime | None = None
    error_state: ErrorState = ErrorState.NONE
    last_error: str | None = None

    @property
    def is_linked(self) -> bool:
        """True when the account has both an item id and an access token."""
        return bool(self.provider_item_id and self.access_token)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        """
        Create Account from a ledger dict.

        Raises:
            UnsupportedAccountType: If "type" is not a known account type
        """
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            type=AccountType.parse(data["type"]),
            invert_amounts=bool(data.get("invert_amounts", False)),
            provider_item_id=data.get("provider_item_id"),
            provider_account_id=data.get("provider_account_id"),
            institution_name=data.get("institution_name"),
            access_token=data.get("access_token"),
            sync_cursor=data.get("sync_cursor"),
            last_sync_at=parse_timestamp(data.get("last_sync_at")),
            error_state=ErrorState(data.get("error_state", "none")),
            last_error=data.get("last_error"),
        )

    def to_dict(self, include_sensitive: bool = False) -> dict[str, Any]:
        """Serialize; the access token is redacted unless include_sensitive."""
        token = self.access_token
        if token and not include_sensitive:
            token = "***REDACTED***"
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "invert_amounts": self.invert_amounts,
            "provider_item_id": self.provider_item_id,
            "provider_account_id": self.provider_account_id,
            "institution_name": self.institution_name,
            "access_token": token,
            "sync_cursor": self.sync_cursor,
            "last_sync_at": to_timestamp(self.last_sync_at),
            "error_state": self.error_state.value,
            "last_error": self.last_error,
        }


@dataclass
class Transaction:
    """
    A ledger transaction row.

    The amount is stored exactly as the source reported it. Canonical and
    expense views are computed on read by reconciler.ledger.amounts.
    """

    id: str
    account_id: str
    amount: Money
    date: FinancialDate
    description: str
    source: TransactionSource
    provider_transaction_id: str | None = None
    sub_description: str | None = None
    pending: bool = False
    category: str | None = None
    ignored: bool = False
    ignored_by_rule_id: str | None = None
    matched_order_id: str | None = None
    matched_recurring_id: str | None = None
    import_hash: str | None = None

    @property
    def full_description(self) -> str:
        """Description and sub-description joined for text matching."""
        base = (self.description or "").strip()
        sub = (self.sub_description or "").strip()
        if not base:
            return sub
        if not sub:
            return base
        return f"{base} {sub}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transaction":
        return cls(
            id=data["id"],
            account_id=data["account_id"],
            amount=Money.from_cents(data["amount"]),
            date=FinancialDate.from_string(data["date"]),
            description=data.get("description", ""),
            source=TransactionSource(data["source"]),
            provider_transaction_id=data.get("provider_transaction_id"),
            sub_description=data.get("sub_description"),
            pending=bool(data.get("pending", False)),
            category=data.get("category"),
            ignored=bool(data.get("ignored", False)),
            ignored_by_rule_id=data.get("ignored_by_rule_id"),
            matched_order_id=data.get("matched_order_id"),
            matched_recurring_id=data.get("matched_recurring_id"),
            import_hash=data.get("import_hash"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "amount": self.amount.to_cents(),
            "date": self.date.to_iso_string(),
            "description": self.description,
            "source": self.source.value,
            "provider_transaction_id": self.provider_transaction_id,
            "sub_description": self.sub_description,
            "pending": self.pending,
            "category": self.category,
            "ignored": self.ignored,
            "ignored_by_rule_id": self.ignored_by_rule_id,
            "matched_order_id": self.matched_order_id,
            "matched_recurring_id": self.matched_recurring_id,
            "import_hash": self.import_hash,
        }


@dataclass
class ExternalOrder:
    """
    A marketplace purchase to reconcile against card or bank rows.

    account_ids restricts matching to the owning accounts; empty means any.
    """

    order_id: str
    order_date: FinancialDate
    total: Money
    currency: str = "USD"
    items: list[str] = field(default_factory=list)
    account_ids: list[str] = field(default_factory=list)
    ignored: bool = False
    linked_transaction_id: str | None = None
    match_status: MatchStatus = MatchStatus.UNMATCHED
    candidates: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExternalOrder":
        return cls(
            order_id=data["order_id"],
            order_date=FinancialDate.from_string(data["order_date"]),
            total=Money.from_cents(data["total"]),
            currency=data.get("currency", "USD"),
            items=list(data.get("items", [])),
            account_ids=list(data.get("account_ids", [])),
            ignored=bool(data.get("ignored", False)),
            linked_transaction_id=data.get("linked_transaction_id"),
            match_status=MatchStatus(data.get("match_status", "unmatched")),
            candidates=list(data.get("candidates", [])),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_date": self.order_date.to_iso_string(),
            "total": self.total.to_cents(),
            "currency": self.currency,
            "items": list(self.items),
            "account_ids": list(self.account_ids),
            "ignored": self.ignored,
            "linked_transaction_id": self.linked_transaction_id,
            "match_status": self.match_status.value,
            "candidates": list(self.candidates),
        }


@dataclass(frozen=True)
class SchedulingRule:
    """
    When a recurring charge is expected.

    Weekdays follow Python's date.weekday(): Monday is 0, Sunday is 6.
    """

    kind: ScheduleKind
    day_of_month: int | None = None
    weekday: int | None = None
    anchor_date: FinancialDate | None = None
    first_day: int | None = None
    second_day: int | None = None
    nearest_business_day: bool = False

    def __post_init__(self) -> None:
        if self.kind == ScheduleKind.MONTHLY:
            _require_day(self.day_of_month, "day_of_month")
        elif self.kind == ScheduleKind.WEEKLY:
            _require_weekday(self.weekday)
        elif self.kind == ScheduleKind.BIWEEKLY:
            if self.anchor_date is None:
                raise ValidationError("biweekly schedule requires anchor_date")
        elif self.kind == ScheduleKind.TWICE_MONTHLY:
            _require_day(self.first_day, "first_day")
            _require_day(self.second_day, "second_day")

    @classmethod
    def monthly(cls, day_of_month: int, nearest_business_day: bool = False) -> "SchedulingRule":
        return cls(ScheduleKind.MONTHLY, day_of_month=day_of_month, nearest_business_day=nearest_business_day)

    @classmethod
    def weekly(cls, weekday: int) -> "SchedulingRule":
        return cls(ScheduleKind.WEEKLY, weekday=weekday)

    @classmethod
    def biweekly(cls, anchor_date: FinancialDate) -> "SchedulingRule":
        return cls(ScheduleKind.BIWEEKLY, anchor_date=anchor_date)

    @classmethod
    def twice_monthly(
        cls, first_day: int, second_day: int, nearest_business_day: bool = False
    ) -> "SchedulingRule":
        return cls(
            ScheduleKind.TWICE_MONTHLY,
            first_day=first_day,
            second_day=second_day,
            nearest_business_day=nearest_business_day,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SchedulingRule":
        try:
            kind = ScheduleKind(data["type"])
        except (KeyError, ValueError) as e:
            raise ValidationError(f"Unknown schedule type: {data.get('type')!r}") from e
        anchor = data.get("anchor_date")
        return cls(
            kind=kind,
            day_of_month=data.get("day_of_month"),
            weekday=data.get("weekday"),
            anchor_date=FinancialDate.parse(anchor) if anchor else None,
            first_day=data.get("first_day"),
            second_day=data.get("second_day"),
            nearest_business_day=bool(data.get("nearest_business_day", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.kind.value}
        if self.day_of_month is not None:
            result["day_of_month"] = self.day_of_month
        if self.weekday is not None:
            result["weekday"] = self.weekday
        if self.anchor_date is not None:
            result["anchor_date"] = self.anchor_date.to_iso_string()
        if self.first_day is not None:
            result["first_day"] = self.first_day
        if self.second_day is not None:
            result["second_day"] = self.second_day
        if self.nearest_business_day:
            result["nearest_business_day"] = True
        return result


def _require_day(value: int | None, name: str) -> None:
    if value is None or not 1 <= int(value) <= 31:
        raise ValidationError(f"{name} must be between 1 and 31")


def _require_weekday(value: int | None) -> None:
    if value is None or not 0 <= int(value) <= 6:
        raise ValidationError("weekday must be between 0 (Monday) and 6 (Sunday)")


@dataclass
class RecurringDefinition:
    """User-declared recurring bill or paycheck."""

    id: str
    merchant_label: str
    expected_amount: Money
    schedule: SchedulingRule
    display_label: str | None = None
    category: str | None = None
    amount_tolerance_pct: float | None = None
    active: bool = True

    @property
    def is_income(self) -> bool:
        return (self.category or "").strip().lower() == INCOME_CATEGORY.lower()

    @property
    def labels(self) -> list[str]:
        return [label for label in (self.merchant_label, self.display_label) if label]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecurringDefinition":
        tolerance = data.get("amount_tolerance_pct")
        return cls(
            id=data["id"],
            merchant_label=data["merchant_label"],
            expected_amount=Money.from_cents(data["expected_amount"]),
            schedule=SchedulingRule.from_dict(data["schedule"]),
            display_label=data.get("display_label"),
            category=data.get("category"),
            amount_tolerance_pct=float(tolerance) if tolerance is not None else None,
            active=bool(data.get("active", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "merchant_label": self.merchant_label,
            "expected_amount": self.expected_amount.to_cents(),
            "schedule": self.schedule.to_dict(),
            "display_label": self.display_label,
            "category": self.category,
            "amount_tolerance_pct": self.amount_tolerance_pct,
            "active": self.active,
        }


@dataclass
class IgnoreRule:
    """A description pattern whose matches are kept out of budgeting views."""

    id: str
    pattern: str
    normalized_pattern: str
    active: bool = True
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IgnoreRule":
        return cls(
            id=data["id"],
            pattern=data["pattern"],
            normalized_pattern=data["normalized_pattern"],
            active=bool(data.get("active", True)),
            created_at=parse_timestamp(data.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "pattern": self.pattern,
            "normalized_pattern": self.normalized_pattern,
            "active": self.active,
            "created_at": to_timestamp(self.created_at),
        }


@dataclass
class BudgetPeriod:
    """A budgeting month."""

    year: int
    month: int
    status: PeriodStatus = PeriodStatus.OPEN

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def is_open(self) -> bool:
        return self.status == PeriodStatus.OPEN

    def contains(self, value: FinancialDate) -> bool:
        return value.in_period(self.year, self.month)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BudgetPeriod":
        month = int(data["month"])
        if not 1 <= month <= 12:
            raise ValidationError(f"Invalid month: {month}")
        return cls(
            year=int(data["year"]),
            month=month,
            status=PeriodStatus(data.get("status", "open")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"year": self.year, "month": self.month, "status": self.status.value}


@dataclass
class WebhookLogEntry:
    """
    Append-only audit record of a provider notification.

    processed_at and error are filled in once, when the triggered work ends.
    """

    id: str
    webhook_type: str | None
    webhook_code: str | None
    item_id: str | None
    created_at: datetime
    error: str | None = None
    processed_at: datetime | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WebhookLogEntry":
        created_at = parse_timestamp(data.get("created_at"))
        if created_at is None:
            raise ValidationError("Webhook log entry missing created_at")
        return cls(
            id=data["id"],
            webhook_type=data.get("webhook_type"),
            webhook_code=data.get("webhook_code"),
            item_id=data.get("item_id"),
            created_at=created_at,
            error=data.get("error"),
            processed_at=parse_timestamp(data.get("processed_at")),
            payload=dict(data.get("payload", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "webhook_type": self.webhook_type,
            "webhook_code": self.webhook_code,
            "item_id": self.item_id,
            "created_at": to_timestamp(self.created_at),
            "error": self.error,
            "processed_at": to_timestamp(self.processed_at),
            "payload": self.payload,
        }


@dataclass(frozen=True)
class SyncState:
    """
    Snapshot of an account's sync position.

    Read from and written through SyncCursorStore; never cached elsewhere.
    """

    account_id: str
    cursor: str | None
    last_sync_at: datetime | None
    error_state: ErrorState
    last_error: str | None = None

    @classmethod
    def from_account(cls, account: Account) -> "SyncState":
        return cls(
            account_id=account.id,
            cursor=account.sync_cursor,
            last_sync_at=account.last_sync_at,
            error_state=account.error_state,
            last_error=account.last_error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": self.account_id,
            "cursor": self.cursor,
            "last_sync_at": to_timestamp(self.last_sync_at),
            "error_state": self.error_state.value,
            "last_error": self.last_error,
        }
