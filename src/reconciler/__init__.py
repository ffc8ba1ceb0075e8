"""
Budget Reconciler - Incremental Sync and Transaction Reconciliation

Keeps a household ledger in step with bank data pulled from an aggregation
provider, then reconciles those transactions against the records a budget
actually cares about.

Key Features:
- Cursor-based incremental sync per linked account (Plaid /transactions/sync)
- Webhook-driven re-sync with credential error recovery
- Sign canonicalization across bank, credit card, and cash accounts
- Deterministic order matching (e.g. Amazon purchases) with auto and suggest modes
- Recurring bill matching against projected schedule dates
- Ignore rules that keep noise out of budgeting views

Domain Packages:
- core: Money, dates, models, errors, configuration
- ledger: persistence, cursor store, amount rules, ignore rules, CSV import, budget views
- plaid: aggregator client, sync engine, webhook processing, work queue
- matching: scoring primitive, order matcher, recurring matcher, schedules
- cli: Command-line interface

Example Usage:
    from reconciler.ledger import LedgerStore
    from reconciler.orchestrator import ReconciliationOrchestrator

    store = LedgerStore.open("data/ledger.json")
    orchestrator = ReconciliationOrchestrator(store, client)
    orchestrator.run_account_sync("checking")
"""

__version__ = "0.3.0"
__author__ = "Karl Davis"

from .core.config import Environment, get_config
from .core.errors import ReconcilerError
from .core.models import Account, AccountType, ExternalOrder, Transaction

__all__ = [
    # Core models
    "Account",
    "AccountType",
    "ExternalOrder",
    "Transaction",
    # Errors
    "ReconcilerError",
    # Configuration
    "get_config",
    "Environment",
]
