#!/usr/bin/env python3
"""
Plaid Domain Models

Typed views of the /transactions/sync payload and the linking endpoints.
These models are true to the Plaid API format and use Money/FinancialDate
primitives; amounts keep Plaid's sign (positive = money leaving the account).
"""

from dataclasses import dataclass, field
from typing import Any

from ..core.dates import FinancialDate
from ..core.money import Money


@dataclass(frozen=True)
class ProviderTransaction:
    """
    One transaction record from the aggregator.

    Represents an added or modified entry in a transactions/sync page.
    """

    transaction_id: str
    account_id: str
    amount: Money
    date: FinancialDate
    name: str
    merchant_name: str | None = None
    pending: bool = False
    category_primary: str | None = None
    category_detailed: str | None = None

    @property
    def description(self) -> str:
        return self.name or self.merchant_name or "Unknown"

    @property
    def sub_description(self) -> str | None:
        """Merchant name when it adds something beyond the description."""
        if self.merchant_name and self.merchant_name != self.description:
            return self.merchant_name
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProviderTransaction":
        """
        Create ProviderTransaction from a Plaid transaction object.

        Args:
            data: Transaction dict from /transactions/sync

        Returns:
            ProviderTransaction instance
        """
        category = data.get("personal_finance_category") or {}
        return cls(
            transaction_id=data["transaction_id"],
            account_id=data["account_id"],
            amount=Money.from_float(data["amount"]),
            date=FinancialDate.parse(data["date"]),
            name=data.get("name") or "",
            merchant_name=data.get("merchant_name"),
            pending=bool(data.get("pending", False)),
            category_primary=category.get("primary"),
            category_detailed=category.get("detailed"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "transaction_id": self.transaction_id,
            "account_id": self.account_id,
            "amount": self.amount.to_cents() / 100,
            "date": self.date.to_iso_string(),
            "name": self.name,
            "merchant_name": self.merchant_name,
            "pending": self.pending,
        }
        if self.category_primary:
            result["personal_finance_category"] = {
                "primary": self.category_primary,
                "detailed": self.category_detailed,
            }
        return result


@dataclass(frozen=True)
class RemovedRecord:
    """A transaction the aggregator has withdrawn."""

    transaction_id: str
    account_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemovedRecord":
        return cls(transaction_id=data["transaction_id"], account_id=data.get("account_id"))

    def to_dict(self) -> dict[str, Any]:
        return {"transaction_id": self.transaction_id, "account_id": self.account_id}


@dataclass
class ChangePage:
    """One page of incremental changes."""

    added: list[ProviderTransaction] = field(default_factory=list)
    modified: list[ProviderTransaction] = field(default_factory=list)
    removed: list[RemovedRecord] = field(default_factory=list)
    next_cursor: str = ""
    has_more: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChangePage":
        """Create ChangePage from a /transactions/sync response body."""
        return cls(
            added=[ProviderTransaction.from_dict(t) for t in data.get("added", [])],
            modified=[ProviderTransaction.from_dict(t) for t in data.get("modified", [])],
            removed=[RemovedRecord.from_dict(t) for t in data.get("removed", [])],
            next_cursor=data.get("next_cursor", ""),
            has_more=bool(data.get("has_more", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "added": [t.to_dict() for t in self.added],
            "modified": [t.to_dict() for t in self.modified],
            "removed": [r.to_dict() for r in self.removed],
            "next_cursor": self.next_cursor,
            "has_more": self.has_more,
        }


@dataclass(frozen=True)
class TokenExchange:
    """Result of exchanging a Link public token."""

    item_id: str
    access_token: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TokenExchange":
        return cls(item_id=data["item_id"], access_token=data["access_token"])


@dataclass(frozen=True)
class LinkToken:
    """A short-lived Link token for the front end."""

    link_token: str
    expiration: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LinkToken":
        return cls(link_token=data["link_token"], expiration=data.get("expiration"))
