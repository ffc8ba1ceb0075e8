"""
Ledger Package

Persistence and the pure rules applied to stored transactions.

Modules:
- store: LedgerStore with unit-of-work rollback and atomic JSON writes
- cursor_store: SyncCursorStore, the atomic per-account cursor record
- amounts: canonical and expense-positive amount views
- ignore_rules: IgnoreRuleFilter for user-defined suppression patterns
- importer: bank CSV import with hash deduplication
- budget: monthly spending aggregation
- setup_file: YAML account and recurring bill definitions
"""

from .amounts import canonical_amount, expense_amount, is_inflow, normalize_import_amount
from .budget import BudgetSummary, budget_summary
from .cursor_store import SyncCursorStore
from .ignore_rules import IgnoreMatch, IgnoreRuleFilter
from .importer import ColumnMapping, ImportResult, TransactionImporter, detect_column_mapping
from .setup_file import apply_setup, read_setup_file
from .store import LedgerStore

__all__ = [
    "BudgetSummary",
    "ColumnMapping",
    "IgnoreMatch",
    "IgnoreRuleFilter",
    "ImportResult",
    "LedgerStore",
    "SyncCursorStore",
    "TransactionImporter",
    "apply_setup",
    "budget_summary",
    "canonical_amount",
    "detect_column_mapping",
    "expense_amount",
    "is_inflow",
    "normalize_import_amount",
    "read_setup_file",
]
