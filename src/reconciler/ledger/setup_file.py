#!/usr/bin/env python3
"""
Ledger Setup File

Hand-maintained YAML describing accounts, recurring bills, ignore rules, and
open budget months. Loading it upserts identity fields only: sync cursors,
error states, and access tokens already in the ledger are preserved.

Example file:

    accounts:
      - id: checking
        name: Household Checking
        type: bank
        provider_item_id: item-123
        provider_account_id: acc-456
    recurring:
      - id: netflix
        merchant_label: Netflix
        expected_amount: "15.49"
        category: Subscriptions
        schedule: {type: monthly, day_of_month: 12}
    ignore_rules:
      - "ONLINE TRANSFER"
    periods:
      - {year: 2024, month: 8}
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..core.errors import ValidationError
from ..core.models import Account, BudgetPeriod, RecurringDefinition, SchedulingRule
from ..core.money import Money
from .store import LedgerStore

logger = logging.getLogger(__name__)

# Fields a setup file may change on an existing account
_ACCOUNT_IDENTITY_FIELDS = (
    "name",
    "type",
    "invert_amounts",
    "provider_item_id",
    "provider_account_id",
    "institution_name",
)


@dataclass
class SetupResult:
    accounts: int = 0
    recurring: int = 0
    ignore_rules_created: int = 0
    periods: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "accounts": self.accounts,
            "recurring": self.recurring,
            "ignore_rules_created": self.ignore_rules_created,
            "periods": self.periods,
            "warnings": list(self.warnings),
        }


def read_setup_file(path: str | Path) -> dict[str, Any]:
    """
    Parse a setup YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValidationError: If the YAML is malformed or not a mapping
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Setup file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML in {path.name}: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError(f"{path.name} must contain a mapping at the top level")
    return data


def _parse_recurring(raw: dict[str, Any]) -> RecurringDefinition:
    amount = raw.get("expected_amount")
    if amount is None:
        raise ValidationError(f"Recurring definition {raw.get('id')!r} needs expected_amount")
    # YAML gives ints for whole dollars and floats otherwise
    expected = Money.from_dollars(amount) if isinstance(amount, int) else Money.from_dollars(str(amount))
    schedule = raw.get("schedule")
    if not isinstance(schedule, dict):
        raise ValidationError(f"Recurring definition {raw.get('id')!r} needs a schedule mapping")
    tolerance = raw.get("amount_tolerance_pct")
    return RecurringDefinition(
        id=str(raw["id"]),
        merchant_label=str(raw["merchant_label"]),
        expected_amount=expected,
        schedule=SchedulingRule.from_dict(schedule),
        display_label=raw.get("display_label"),
        category=raw.get("category"),
        amount_tolerance_pct=float(tolerance) if tolerance is not None else None,
        active=bool(raw.get("active", True)),
    )


def apply_setup(store: LedgerStore, data: dict[str, Any]) -> SetupResult:
    """
    Upsert setup data into the ledger in one unit of work.

    Args:
        store: Ledger to update
        data: Parsed setup mapping

    Returns:
        SetupResult counts

    Raises:
        ValidationError: On any malformed entry (nothing is written)
    """
    result = SetupResult()
    try:
        with store.unit_of_work():
            for raw in data.get("accounts") or []:
                incoming = Account.from_dict(raw)
                existing = store.find_account(incoming.id)
                if existing is not None:
                    for name in _ACCOUNT_IDENTITY_FIELDS:
                        setattr(existing, name, getattr(incoming, name))
                    if incoming.access_token:
                        existing.access_token = incoming.access_token
                    incoming = existing
                store.put_account(incoming)
                result.accounts += 1

            for raw in data.get("recurring") or []:
                store.put_recurring(_parse_recurring(raw))
                result.recurring += 1

            for pattern in data.get("ignore_rules") or []:
                _, created = store.add_ignore_rule(str(pattern))
                if created:
                    result.ignore_rules_created += 1
                else:
                    result.warnings.append(f"Ignore rule already exists: {pattern}")

            for raw in data.get("periods") or []:
                store.put_period(BudgetPeriod.from_dict(raw))
                result.periods += 1
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid setup entry: {e}") from e

    logger.info(
        "Applied setup: %d accounts, %d recurring, %d new ignore rules, %d periods",
        result.accounts,
        result.recurring,
        result.ignore_rules_created,
        result.periods,
    )
    return result
