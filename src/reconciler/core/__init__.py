"""
Core Utilities Package

Shared primitives, data models, and configuration used by every other package.

This package provides:
- Money and FinancialDate value types with integer-cent arithmetic
- Domain models for accounts, transactions, orders, and recurring bills
- The typed error taxonomy surfaced as {code, message}
- Environment-driven configuration
- Description normalization and fuzzy label matching
"""

from .config import (
    Config,
    Environment,
    MatchingConfig,
    PlaidConfig,
    SyncConfig,
    get_config,
    get_data_dir,
    is_production,
    reload_config,
)
from .dates import FinancialDate
from .errors import (
    NotFound,
    NotLinked,
    PersistenceConflict,
    ProviderError,
    ProviderTransient,
    ReauthRequired,
    ReconcilerError,
    SyncInProgress,
    UnsupportedAccountType,
    ValidationError,
    error_to_dict,
)
from .models import (
    Account,
    AccountType,
    BudgetPeriod,
    ErrorState,
    ExternalOrder,
    IgnoreRule,
    MatchStatus,
    PeriodStatus,
    RecurringDefinition,
    ScheduleKind,
    SchedulingRule,
    SyncState,
    Transaction,
    TransactionSource,
    WebhookLogEntry,
)
from .money import Money

__all__ = [
    # Configuration
    "Config",
    "Environment",
    "MatchingConfig",
    "PlaidConfig",
    "SyncConfig",
    "get_config",
    "get_data_dir",
    "is_production",
    "reload_config",
    # Primitives
    "FinancialDate",
    "Money",
    # Errors
    "NotFound",
    "NotLinked",
    "PersistenceConflict",
    "ProviderError",
    "ProviderTransient",
    "ReauthRequired",
    "ReconcilerError",
    "SyncInProgress",
    "UnsupportedAccountType",
    "ValidationError",
    "error_to_dict",
    # Models
    "Account",
    "AccountType",
    "BudgetPeriod",
    "ErrorState",
    "ExternalOrder",
    "IgnoreRule",
    "MatchStatus",
    "PeriodStatus",
    "RecurringDefinition",
    "ScheduleKind",
    "SchedulingRule",
    "SyncState",
    "Transaction",
    "TransactionSource",
    "WebhookLogEntry",
]
