"""
Pytest Configuration and Shared Fixtures

Provides common test fixtures and configuration for the entire test suite.
"""

import pytest
import tempfile
from pathlib import Path

from reconciler.core import config as config_module
from reconciler.core.config import MatchingConfig, SyncConfig, reload_config
from reconciler.ledger.store import LedgerStore
from reconciler.plaid.work_queue import AccountWorkQueue

from tests.fixtures.synthetic_data import FakeAggregator


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_path:
        yield Path(temp_path)


@pytest.fixture
def store() -> LedgerStore:
    """Empty in-memory ledger."""
    return LedgerStore()


@pytest.fixture
def aggregator() -> FakeAggregator:
    """Scripted aggregator client with no pages queued."""
    return FakeAggregator()


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(retry_backoff_seconds=0.0)


@pytest.fixture
def matching_config() -> MatchingConfig:
    return MatchingConfig()


@pytest.fixture
def work_queue():
    """Two-worker queue that never sleeps between retries."""
    queue = AccountWorkQueue(max_workers=2, retry_attempts=3, retry_backoff_seconds=0.0, sleep=lambda _: None)
    yield queue
    queue.shutdown()


@pytest.fixture
def test_config(temp_dir, monkeypatch):
    """Configuration loaded from the test environment with a throwaway data dir."""
    monkeypatch.setenv('RECONCILER_DATA_DIR', str(temp_dir))
    monkeypatch.setenv('SYNC_RETRY_BACKOFF', '0')
    config = reload_config()
    yield config
    # Drop the cached instance so later tests load their own environment
    config_module._config = None


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Set up test environment variables."""
    # Ensure tests don't use production data
    monkeypatch.setenv('RECONCILER_ENV', 'test')
    monkeypatch.setenv('RECONCILER_DATA_DIR', str(Path(tempfile.gettempdir()) / 'test_reconciler'))
    monkeypatch.delenv('RECONCILER_LEDGER_FILE', raising=False)

    # Never talk to a real provider
    monkeypatch.delenv('PLAID_CLIENT_ID', raising=False)
    monkeypatch.delenv('PLAID_SECRET', raising=False)
    monkeypatch.setenv('PLAID_ENV', 'sandbox')

    config_module._config = None
    yield
    config_module._config = None


# Test markers for categorizing tests
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests for individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests for complete workflows"
    )
    config.addinivalue_line(
        "markers", "currency: Tests for currency handling and precision"
    )
    config.addinivalue_line(
        "markers", "plaid: Tests for aggregator sync and webhooks"
    )
    config.addinivalue_line(
        "markers", "matching: Tests for order and recurring matching"
    )
