#!/usr/bin/env python3
"""
Integration tests for configuration module.

Tests environment loading, validation, and redaction.
"""

from pathlib import Path

import pytest

from reconciler.core.config import Environment, get_config, get_data_dir, is_production, reload_config


@pytest.mark.integration
class TestConfigLoading:
    """Test configuration loading and structure."""

    def test_config_loads_in_test_environment(self, temp_dir, monkeypatch):
        monkeypatch.setenv("RECONCILER_DATA_DIR", str(temp_dir))
        config = reload_config()

        assert config.environment == Environment.TEST
        assert config.data_dir == temp_dir
        assert config.ledger_file == temp_dir / "ledger.json"
        assert not is_production()
        assert get_data_dir() == temp_dir

    def test_config_is_cached(self):
        assert get_config() is get_config()

    def test_defaults(self, test_config):
        assert test_config.plaid.environment == "sandbox"
        assert test_config.plaid.base_url == "https://sandbox.plaid.com"
        assert not test_config.plaid.is_configured
        assert test_config.sync.skip_transfers is True
        assert test_config.sync.retry_backoff_seconds == 0.0
        assert test_config.matching.order_lookback_days == 30
        assert test_config.matching.marketplace_keywords == ["amazon", "amzn"]

    def test_ledger_file_override(self, temp_dir, monkeypatch):
        ledger = temp_dir / "custom.json"
        monkeypatch.setenv("RECONCILER_LEDGER_FILE", str(ledger))
        monkeypatch.setenv("RECONCILER_DATA_DIR", str(temp_dir))
        assert reload_config().ledger_file == ledger


@pytest.mark.integration
class TestMatchWindow:
    def test_shared_window_fallback(self, temp_dir, monkeypatch):
        monkeypatch.setenv("RECONCILER_DATA_DIR", str(temp_dir))
        monkeypatch.setenv("AMAZON_MATCH_WINDOW_DAYS", "10")
        config = reload_config()
        assert config.matching.order_lookback_days == 10
        assert config.matching.order_lookahead_days == 10

    def test_direction_overrides(self, temp_dir, monkeypatch):
        monkeypatch.setenv("RECONCILER_DATA_DIR", str(temp_dir))
        monkeypatch.setenv("AMAZON_MATCH_WINDOW_DAYS", "10")
        monkeypatch.setenv("AMAZON_MATCH_LOOKAHEAD_DAYS", "3")
        config = reload_config()
        assert config.matching.order_lookback_days == 10
        assert config.matching.order_lookahead_days == 3


@pytest.mark.integration
class TestConfigValidation:
    def test_invalid_plaid_env(self, temp_dir, monkeypatch):
        monkeypatch.setenv("RECONCILER_DATA_DIR", str(temp_dir))
        monkeypatch.setenv("PLAID_ENV", "staging")
        with pytest.raises(ValueError, match="PLAID_ENV"):
            reload_config()

    def test_production_requires_credentials(self, temp_dir, monkeypatch):
        monkeypatch.setenv("RECONCILER_ENV", "production")
        monkeypatch.setenv("RECONCILER_DATA_DIR", str(temp_dir))
        with pytest.raises(ValueError, match="PLAID_CLIENT_ID"):
            reload_config()

    @pytest.mark.parametrize(
        "name, value",
        [
            ("PLAID_TIMEOUT", "0"),
            ("PLAID_PAGE_SIZE", "501"),
            ("SYNC_WORKERS", "0"),
            ("ORDER_AUTO_LINK_THRESHOLD", "1.5"),
            ("RECURRING_DATE_WINDOW_DAYS", "-1"),
        ],
    )
    def test_out_of_range_values(self, temp_dir, monkeypatch, name, value):
        monkeypatch.setenv("RECONCILER_DATA_DIR", str(temp_dir))
        monkeypatch.setenv(name, value)
        with pytest.raises(ValueError, match="Configuration validation failed"):
            reload_config()


@pytest.mark.integration
class TestConfigSerialization:
    def test_secrets_are_redacted(self, temp_dir, monkeypatch):
        monkeypatch.setenv("RECONCILER_DATA_DIR", str(temp_dir))
        monkeypatch.setenv("PLAID_CLIENT_ID", "client-123")
        monkeypatch.setenv("PLAID_SECRET", "secret-456")
        config = reload_config()

        redacted = config.to_dict()
        assert redacted["plaid"]["client_id"] == "***REDACTED***"
        assert redacted["plaid"]["secret"] == "***REDACTED***"
        assert redacted["environment"] == "test"
        assert isinstance(redacted["data_dir"], str)

        full = config.to_dict(include_sensitive=True)
        assert full["plaid"]["secret"] == "secret-456"

    def test_unset_secret_serializes_as_none(self, test_config):
        assert test_config.to_dict()["plaid"]["secret"] is None
        assert isinstance(Path(test_config.to_dict()["ledger_file"]), Path)
