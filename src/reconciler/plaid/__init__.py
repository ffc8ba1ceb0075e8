"""
Plaid Package

Aggregator integration: the REST client, the incremental sync engine, the
per-account work queue, and webhook handling.

Modules:
- client: PlaidClient and the AggregatorClient protocol
- models: typed transactions/sync payloads
- categories: Plaid category mapping and transfer detection
- sync: SyncEngine, cursor-based incremental sync per account
- work_queue: AccountWorkQueue, one sync in flight per account
- webhooks: WebhookProcessor
"""

from .categories import is_transfer_category, is_transfer_description, map_plaid_category
from .client import AggregatorClient, MutationDuringPagination, PlaidClient, classify_provider_error
from .models import ChangePage, LinkToken, ProviderTransaction, RemovedRecord, TokenExchange
from .sync import SyncEngine, SyncResult
from .webhooks import WebhookProcessor, WebhookResult
from .work_queue import AccountWorkQueue

__all__ = [
    "AccountWorkQueue",
    "AggregatorClient",
    "ChangePage",
    "LinkToken",
    "MutationDuringPagination",
    "PlaidClient",
    "ProviderTransaction",
    "RemovedRecord",
    "SyncEngine",
    "SyncResult",
    "TokenExchange",
    "WebhookProcessor",
    "WebhookResult",
    "classify_provider_error",
    "is_transfer_category",
    "is_transfer_description",
    "map_plaid_category",
]
