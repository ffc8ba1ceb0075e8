#!/usr/bin/env python3
"""
Integration tests for CLI Main Entry Point

Tests end-to-end CLI command execution with real command invocation.
Focuses on meaningful workflows, not trivial code coverage.
"""

import json

import pytest
from click.testing import CliRunner

from reconciler.cli.main import main


@pytest.mark.integration
class TestCLIMainIntegration:
    """Test main CLI entry point with real command execution."""

    def setup_method(self):
        """Set up test environment."""
        self.runner = CliRunner()

    def test_help_command_lists_all_subcommands(self):
        """Test reconciler --help shows all registered subcommands."""
        result = self.runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "Budget Reconciler" in result.output

        expected_commands = [
            "sync",
            "webhook",
            "orders",
            "recurring",
            "ignore",
            "import",
            "budget",
            "setup",
            "plaid",
            "status",
        ]
        for command in expected_commands:
            assert command in result.output

    def test_version_command_shows_version_info(self):
        """Test reconciler version displays version and author."""
        result = self.runner.invoke(main, ["version"])

        assert result.exit_code == 0
        assert "Budget Reconciler v0.3.0" in result.output
        assert "Author:" in result.output

    def test_config_command_redacts_secrets(self, monkeypatch):
        """Test reconciler config prints JSON with credentials redacted."""
        monkeypatch.setenv("PLAID_CLIENT_ID", "client-123")
        monkeypatch.setenv("PLAID_SECRET", "secret-456")

        result = self.runner.invoke(main, ["config"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["environment"] == "test"
        assert data["plaid"]["client_id"] == "***REDACTED***"
        assert data["plaid"]["secret"] == "***REDACTED***"
        assert "secret-456" not in result.output

    def test_invalid_command_shows_error(self):
        """Test that invalid command shows helpful error."""
        result = self.runner.invoke(main, ["invalid-command"])

        assert result.exit_code != 0
        assert "Error" in result.output or "No such" in result.output

    def test_verbose_flag_shows_environment(self):
        """Test --verbose prints the environment and ledger file first."""
        result = self.runner.invoke(main, ["--verbose", "version"])

        assert result.exit_code == 0
        assert "Environment: test" in result.output
        assert "Ledger file:" in result.output

    def test_ledger_file_override(self, temp_dir):
        """Test --ledger-file points the orchestrator at another ledger."""
        ledger_file = temp_dir / "household.json"

        result = self.runner.invoke(main, ["--ledger-file", str(ledger_file), "status"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["ledger_file"] == str(ledger_file)
        assert data["accounts"] == []

    def test_config_env_rejects_unknown_environment(self):
        """Test --config-env only accepts known environments."""
        result = self.runner.invoke(main, ["--config-env", "staging", "config"])

        assert result.exit_code != 0
        assert "staging" in result.output
