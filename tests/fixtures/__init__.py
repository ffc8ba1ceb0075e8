"""
Test Fixtures and Utilities

This module provides:
- Builders for accounts, transactions, orders, and recurring definitions
- Plaid-shaped provider records and change pages
- FakeAggregator, a scripted stand-in for the Plaid client

All test data is synthetic and does not contain real financial information.
"""
