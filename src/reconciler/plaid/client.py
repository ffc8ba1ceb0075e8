#!/usr/bin/env python3
"""
Plaid API Client

Thin requests-based client for the Plaid endpoints the reconciler needs, plus
the AggregatorClient protocol the sync engine depends on. Provider failures
are translated into the reconciler error taxonomy here, so nothing above
this module ever inspects an HTTP status or a Plaid error body.

Error classification:
- Credential problems (ITEM_LOGIN_REQUIRED, INVALID_ACCESS_TOKEN, ...) -> ReauthRequired
- Rate limits, 5xx, institution outages, network failures -> ProviderTransient
- TRANSACTIONS_SYNC_MUTATION_DURING_PAGINATION -> MutationDuringPagination
- Anything else -> ProviderError
"""

import logging
from typing import Any, Protocol

import requests

from ..core.config import PlaidConfig
from ..core.errors import ProviderError, ProviderTransient, ReauthRequired, ReconcilerError
from .models import ChangePage, LinkToken, TokenExchange

logger = logging.getLogger(__name__)

PLAID_API_VERSION = "2020-09-14"

CREDENTIAL_ERROR_CODES = frozenset(
    {
        "ITEM_LOGIN_REQUIRED",
        "INVALID_ACCESS_TOKEN",
        "INVALID_CREDENTIALS",
        "ITEM_LOCKED",
        "ITEM_NOT_FOUND",
        "ACCESS_NOT_GRANTED",
        "USER_PERMISSION_REVOKED",
        "INSUFFICIENT_CREDENTIALS",
        "INVALID_MFA",
    }
)

TRANSIENT_ERROR_TYPES = frozenset({"RATE_LIMIT_EXCEEDED", "API_ERROR", "INSTITUTION_ERROR"})

TRANSIENT_ERROR_CODES = frozenset(
    {
        "INTERNAL_SERVER_ERROR",
        "PLANNED_MAINTENANCE",
        "INSTITUTION_DOWN",
        "INSTITUTION_NOT_RESPONDING",
        "INSTITUTION_NOT_AVAILABLE",
        "PRODUCT_NOT_READY",
        "TRANSACTIONS_LIMIT",
    }
)

MUTATION_DURING_PAGINATION = "TRANSACTIONS_SYNC_MUTATION_DURING_PAGINATION"


class MutationDuringPagination(ProviderTransient):
    """The item's data changed mid-pagination; restart from the original cursor."""


class AggregatorClient(Protocol):
    """What the sync engine and account linking need from a bank-data provider."""

    def fetch_changes(self, access_token: str, cursor: str | None) -> ChangePage:
        """Fetch one page of changes after cursor (None means from the beginning)."""
        ...

    def exchange_public_token(self, public_token: str) -> TokenExchange:
        ...

    def create_link_token(self, user_id: str, access_token: str | None = None) -> LinkToken:
        ...

    def remove_item(self, access_token: str) -> None:
        ...


def classify_provider_error(status_code: int, body: dict[str, Any] | None) -> ReconcilerError:
    """
    Translate a Plaid error response into a reconciler error.

    Args:
        status_code: HTTP status
        body: Parsed Plaid error body, if it was JSON

    Returns:
        The exception to raise (not raised here)
    """
    body = body or {}
    error_type = str(body.get("error_type") or "")
    error_code = str(body.get("error_code") or "")
    message = body.get("display_message") or body.get("error_message") or f"Plaid request failed ({status_code})"
    detail = f"{error_code or error_type or status_code}: {message}"

    if error_code == MUTATION_DURING_PAGINATION:
        return MutationDuringPagination(detail, provider_code=error_code)
    if error_code in CREDENTIAL_ERROR_CODES:
        return ReauthRequired(detail, provider_code=error_code)
    if error_type in TRANSIENT_ERROR_TYPES or error_code in TRANSIENT_ERROR_CODES:
        return ProviderTransient(detail, provider_code=error_code or error_type)
    if status_code == 429 or status_code >= 500:
        return ProviderTransient(detail, provider_code=error_code or None)
    return ProviderError(detail, provider_code=error_code or None)


class PlaidClient:
    """
    Plaid REST client.

    Example:
        >>> client = PlaidClient(get_config().plaid)
        >>> page = client.fetch_changes(access_token, cursor=None)
        >>> page.has_more
        False
    """

    def __init__(self, config: PlaidConfig, session: requests.Session | None = None):
        """
        Initialize the client.

        Args:
            config: Plaid credentials and environment
            session: Optional session (tests inject one)
        """
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "Plaid-Version": PLAID_API_VERSION,
                "PLAID-CLIENT-ID": config.client_id or "",
                "PLAID-SECRET": config.secret or "",
            }
        )

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.config.base_url}{path}"
        try:
            response = self.session.post(url, json=payload, timeout=self.config.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise ProviderTransient(f"Network error calling {path}: {e}") from e
        except requests.RequestException as e:
            raise ProviderTransient(f"Request to {path} failed: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            error = classify_provider_error(response.status_code, body)
            logger.warning("Plaid %s failed with HTTP %d: %s", path, response.status_code, error.message)
            raise error

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Plaid {path} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise ProviderError(f"Plaid {path} returned an unexpected body")
        return data

    def fetch_changes(self, access_token: str, cursor: str | None) -> ChangePage:
        """
        Call /transactions/sync for one page.

        Args:
            access_token: Item access token
            cursor: Cursor from the previous page, or None for a full sync

        Returns:
            ChangePage with added/modified/removed records
        """
        payload: dict[str, Any] = {"access_token": access_token, "count": self.config.page_size}
        if cursor:
            payload["cursor"] = cursor
        data = self._post("/transactions/sync", payload)
        try:
            return ChangePage.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"Malformed transactions/sync page: {e}") from e

    def exchange_public_token(self, public_token: str) -> TokenExchange:
        """Swap a Link public token for a long-lived access token."""
        data = self._post("/item/public_token/exchange", {"public_token": public_token})
        return TokenExchange.from_dict(data)

    def create_link_token(self, user_id: str, access_token: str | None = None) -> LinkToken:
        """
        Create a Link token.

        Passing an access token creates an update-mode token, used to repair
        an item in reauth_required.
        """
        payload: dict[str, Any] = {
            "client_name": self.config.client_name,
            "country_codes": list(self.config.country_codes),
            "language": "en",
            "user": {"client_user_id": user_id},
        }
        if access_token:
            payload["access_token"] = access_token
        else:
            payload["products"] = ["transactions"]
        if self.config.webhook_url:
            payload["webhook"] = self.config.webhook_url
        data = self._post("/link/token/create", payload)
        return LinkToken.from_dict(data)

    def remove_item(self, access_token: str) -> None:
        """Revoke the access token and delete the item at Plaid."""
        self._post("/item/remove", {"access_token": access_token})
