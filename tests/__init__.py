"""
Test Suite for the Budget Reconciler

Test Structure:
- fixtures/: Shared test data, builders, and a scripted aggregator
- unit/: Unit tests mirroring src/ package structure
- integration/: Orchestrator and CLI workflow tests

Test Categories:
- Core utilities (currency, money, dates, text, models, config)
- Ledger persistence, amount rules, ignore rules, CSV import, budgets
- Plaid client, incremental sync, work queue, webhooks
- Order and recurring matching

Test Data:
All test data uses synthetic financial information.
"""
