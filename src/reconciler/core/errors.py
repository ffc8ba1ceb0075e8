#!/usr/bin/env python3
"""
Reconciler Error Taxonomy

Typed failures raised by the sync and matching engines. The orchestrator
converts them to the stable {"code", "message"} shape at its boundary, so
callers never see tracebacks or exception objects.

Retry semantics:
- NotLinked, ValidationError: caller mistakes, never retried
- ReauthRequired: recorded on the account, needs user action
- ProviderTransient: safe to retry with backoff, cursor untouched
- PersistenceConflict: retried once by the orchestrator, then surfaced
"""

from typing import Any


class ReconcilerError(Exception):
    """Base class for all reconciler failures."""

    code = "RECONCILER_ERROR"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Stable error shape exposed to the request layer."""
        return {"code": self.code, "message": self.message}


class NotLinked(ReconcilerError):
    """Account has no aggregator item or access token."""

    code = "NOT_LINKED"


class ReauthRequired(ReconcilerError):
    """Aggregator credentials expired or were revoked."""

    code = "REAUTH_REQUIRED"

    def __init__(self, message: str, provider_code: str | None = None):
        super().__init__(message)
        self.provider_code = provider_code


class ProviderTransient(ReconcilerError):
    """Network failure, rate limit, or provider outage."""

    code = "PROVIDER_TRANSIENT"
    retryable = True

    def __init__(self, message: str, provider_code: str | None = None):
        super().__init__(message)
        self.provider_code = provider_code


class ProviderError(ReconcilerError):
    """Non-retryable provider failure that is not a credential problem."""

    code = "PROVIDER_ERROR"

    def __init__(self, message: str, provider_code: str | None = None):
        super().__init__(message)
        self.provider_code = provider_code


class ValidationError(ReconcilerError):
    """Bad input from the caller."""

    code = "VALIDATION_ERROR"


class NotFound(ValidationError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"


class UnsupportedAccountType(ValidationError):
    """Account type string outside the closed AccountType set."""

    code = "UNSUPPORTED_ACCOUNT_TYPE"


class PersistenceConflict(ReconcilerError):
    """Concurrent mutation detected by a compare-and-set."""

    code = "PERSISTENCE_CONFLICT"
    retryable = True


class SyncInProgress(ReconcilerError):
    """Another sync for the same account is already running."""

    code = "SYNC_IN_PROGRESS"


def error_to_dict(error: BaseException) -> dict[str, Any]:
    """
    Convert any exception to the external error shape.

    Unknown exceptions become INTERNAL_ERROR with the message only.
    """
    if isinstance(error, ReconcilerError):
        return error.to_dict()
    return {"code": "INTERNAL_ERROR", "message": str(error) or error.__class__.__name__}
