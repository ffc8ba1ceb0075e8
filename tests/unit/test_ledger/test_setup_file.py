#!/usr/bin/env python3
"""Tests for the YAML setup file loader."""

import pytest

from reconciler.core.errors import UnsupportedAccountType, ValidationError
from reconciler.core.models import AccountType, ErrorState, ScheduleKind
from reconciler.ledger.setup_file import apply_setup, read_setup_file

from tests.fixtures.synthetic_data import make_account

SETUP_YAML = """
accounts:
  - id: checking
    name: Household Checking
    type: bank
  - id: visa
    name: Rewards Visa
    type: credit_card
    invert_amounts: true
recurring:
  - id: netflix
    merchant_label: Netflix
    expected_amount: 15.49
    category: Subscriptions
    schedule: {type: monthly, day_of_month: 12}
  - id: paycheck
    merchant_label: ACME PAYROLL
    expected_amount: "2500.00"
    category: Income
    amount_tolerance_pct: 2
    schedule: {type: twice_monthly, first_day: 1, second_day: 15, nearest_business_day: true}
ignore_rules:
  - ONLINE TRANSFER
  - Payment Thank You
periods:
  - {year: 2024, month: 8}
"""


@pytest.mark.unit
class TestReadSetupFile:
    def test_reads_mapping(self, temp_dir):
        path = temp_dir / "setup.yaml"
        path.write_text(SETUP_YAML, encoding="utf-8")
        data = read_setup_file(path)
        assert [a["id"] for a in data["accounts"]] == ["checking", "visa"]

    def test_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            read_setup_file(temp_dir / "missing.yaml")

    def test_malformed_yaml(self, temp_dir):
        path = temp_dir / "bad.yaml"
        path.write_text("accounts: [unclosed", encoding="utf-8")
        with pytest.raises(ValidationError):
            read_setup_file(path)

    def test_top_level_must_be_mapping(self, temp_dir):
        path = temp_dir / "list.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            read_setup_file(path)


@pytest.mark.unit
class TestApplySetup:
    def test_applies_everything(self, store, temp_dir):
        path = temp_dir / "setup.yaml"
        path.write_text(SETUP_YAML, encoding="utf-8")

        result = apply_setup(store, read_setup_file(path))

        assert result.to_dict() == {
            "accounts": 2,
            "recurring": 2,
            "ignore_rules_created": 2,
            "periods": 1,
            "warnings": [],
        }
        assert store.get_account("visa").type == AccountType.CREDIT_CARD
        assert store.get_account("visa").invert_amounts
        netflix = store.get_recurring("netflix")
        assert netflix.expected_amount.to_cents() == 1549
        assert netflix.schedule.kind == ScheduleKind.MONTHLY
        paycheck = store.get_recurring("paycheck")
        assert paycheck.is_income
        assert paycheck.amount_tolerance_pct == 2.0
        assert paycheck.schedule.nearest_business_day
        assert [p.key for p in store.list_periods()] == ["2024-08"]

    def test_existing_sync_state_is_preserved(self, store):
        store.put_account(make_account("checking", cursor="cursor-7", error_state=ErrorState.REAUTH_REQUIRED))

        apply_setup(store, {"accounts": [{"id": "checking", "name": "Renamed", "type": "bank"}]})

        account = store.get_account("checking")
        assert account.name == "Renamed"
        assert account.sync_cursor == "cursor-7"
        assert account.error_state == ErrorState.REAUTH_REQUIRED
        assert account.access_token == "access-item-household"

    def test_reapplying_warns_on_existing_rules(self, store):
        data = {"ignore_rules": ["ONLINE TRANSFER"]}
        apply_setup(store, data)
        result = apply_setup(store, data)
        assert result.ignore_rules_created == 0
        assert result.warnings == ["Ignore rule already exists: ONLINE TRANSFER"]

    def test_invalid_entry_writes_nothing(self, store):
        data = {
            "accounts": [{"id": "checking", "type": "bank"}],
            "recurring": [{"id": "broken", "merchant_label": "X", "schedule": {"type": "monthly", "day_of_month": 1}}],
        }
        with pytest.raises(ValidationError):
            apply_setup(store, data)
        assert store.list_accounts() == []

    def test_unsupported_account_type(self, store):
        with pytest.raises(UnsupportedAccountType):
            apply_setup(store, {"accounts": [{"id": "brokerage", "type": "investment"}]})
