#!/usr/bin/env python3
"""
Configuration Management for Budget Reconciler

Handles environment-based configuration with secure defaults and validation.
Supports multiple environments (development, test, production) with appropriate
security measures for each.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Environment(Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


PLAID_BASE_URLS = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}


@dataclass
class PlaidConfig:
    """Plaid API configuration."""

    client_id: str | None = None
    secret: str | None = None
    environment: str = "sandbox"
    webhook_url: str | None = None
    timeout: int = 30
    page_size: int = 500  # transactions/sync maximum
    client_name: str = "Budget Reconciler"
    country_codes: list = field(default_factory=lambda: ["US"])

    @property
    def base_url(self) -> str:
        return PLAID_BASE_URLS.get(self.environment, PLAID_BASE_URLS["sandbox"])

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.secret)


@dataclass
class SyncConfig:
    """Sync engine and work queue settings."""

    skip_transfers: bool = True
    max_pagination_restarts: int = 2
    workers: int = 4
    retry_attempts: int = 3
    retry_backoff_seconds: float = 2.0
    match_recurring_after_sync: bool = True


@dataclass
class MatchingConfig:
    """Order and recurring matcher settings."""

    order_lookback_days: int = 30
    order_lookahead_days: int = 30
    order_amount_tolerance_cents: int = 1
    auto_link_threshold: float = 0.85
    require_marketplace_keyword: bool = True
    marketplace_keywords: list = field(default_factory=lambda: ["amazon", "amzn"])
    recurring_amount_tolerance_pct: float = 0.0
    recurring_date_window_days: int = 5


@dataclass
class Config:
    """
    Main configuration class for the reconciler.

    Loads configuration from environment variables with secure defaults
    and validation for each environment type.
    """

    environment: Environment

    # Core directories
    data_dir: Path
    ledger_file: Path

    # Component configurations
    plaid: PlaidConfig
    sync: SyncConfig
    matching: MatchingConfig

    # Application settings
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> "Config":
        """Create configuration from environment variables."""
        env = Environment(os.getenv("RECONCILER_ENV", "development"))

        # Base directories
        if env == Environment.TEST:
            default_test_dir = Path(tempfile.gettempdir()) / "test_reconciler"
            base_dir = Path(os.getenv("RECONCILER_DATA_DIR", str(default_test_dir)))
        else:
            base_dir = Path(os.getenv("RECONCILER_DATA_DIR", "./data")).expanduser().resolve()

        data_dir = base_dir
        data_dir.mkdir(parents=True, exist_ok=True)

        plaid = PlaidConfig(
            client_id=os.getenv("PLAID_CLIENT_ID"),
            secret=os.getenv("PLAID_SECRET"),
            environment=os.getenv("PLAID_ENV", "sandbox").lower(),
            webhook_url=os.getenv("PLAID_WEBHOOK_URL"),
            timeout=int(os.getenv("PLAID_TIMEOUT", "30")),
            page_size=int(os.getenv("PLAID_PAGE_SIZE", "500")),
            country_codes=_parse_list(os.getenv("PLAID_COUNTRY_CODES", "US")),
        )

        sync = SyncConfig(
            skip_transfers=_parse_bool(os.getenv("SYNC_SKIP_TRANSFERS", "true")),
            max_pagination_restarts=int(os.getenv("SYNC_MAX_PAGINATION_RESTARTS", "2")),
            workers=int(os.getenv("SYNC_WORKERS", "4")),
            retry_attempts=int(os.getenv("SYNC_RETRY_ATTEMPTS", "3")),
            retry_backoff_seconds=float(os.getenv("SYNC_RETRY_BACKOFF", "2.0")),
            match_recurring_after_sync=_parse_bool(os.getenv("MATCH_RECURRING_AFTER_SYNC", "true")),
        )

        # AMAZON_MATCH_WINDOW_DAYS is the shared fallback for both directions
        window = os.getenv("AMAZON_MATCH_WINDOW_DAYS", "30")
        matching = MatchingConfig(
            order_lookback_days=int(os.getenv("AMAZON_MATCH_LOOKBACK_DAYS", window)),
            order_lookahead_days=int(os.getenv("AMAZON_MATCH_LOOKAHEAD_DAYS", window)),
            order_amount_tolerance_cents=int(os.getenv("ORDER_AMOUNT_TOLERANCE_CENTS", "1")),
            auto_link_threshold=float(os.getenv("ORDER_AUTO_LINK_THRESHOLD", "0.85")),
            require_marketplace_keyword=_parse_bool(os.getenv("ORDER_REQUIRE_KEYWORD", "true")),
            marketplace_keywords=_parse_list(os.getenv("ORDER_MARKETPLACE_KEYWORDS", "amazon,amzn")),
            recurring_amount_tolerance_pct=float(os.getenv("RECURRING_AMOUNT_TOLERANCE_PCT", "0")),
            recurring_date_window_days=int(os.getenv("RECURRING_DATE_WINDOW_DAYS", "5")),
        )

        return cls(
            environment=env,
            data_dir=data_dir,
            ledger_file=Path(os.getenv("RECONCILER_LEDGER_FILE", str(data_dir / "ledger.json"))),
            plaid=plaid,
            sync=sync,
            matching=matching,
            debug=_parse_bool(os.getenv("DEBUG", "false")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> list:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.data_dir.exists():
            errors.append(f"data_dir does not exist: {self.data_dir}")

        # Plaid credentials are mandatory in production
        if self.environment == Environment.PRODUCTION and not self.plaid.is_configured:
            errors.append("PLAID_CLIENT_ID and PLAID_SECRET are required in production")

        if self.plaid.environment not in PLAID_BASE_URLS:
            errors.append(f"PLAID_ENV must be one of {sorted(PLAID_BASE_URLS)}")

        # Validate numeric values
        if self.plaid.timeout <= 0:
            errors.append("Plaid timeout must be positive")
        if not 1 <= self.plaid.page_size <= 500:
            errors.append("Plaid page size must be 1-500")
        if self.sync.workers <= 0:
            errors.append("Sync workers must be positive")
        if self.sync.max_pagination_restarts < 0:
            errors.append("Pagination restarts must be non-negative")
        if self.matching.order_lookback_days < 0 or self.matching.order_lookahead_days < 0:
            errors.append("Order match window must be non-negative")
        if self.matching.order_amount_tolerance_cents < 0:
            errors.append("Order amount tolerance must be non-negative")
        if not 0.0 <= self.matching.auto_link_threshold <= 1.0:
            errors.append("Auto-link threshold must be between 0 and 1")
        if self.matching.recurring_amount_tolerance_pct < 0:
            errors.append("Recurring amount tolerance must be non-negative")
        if self.matching.recurring_date_window_days < 0:
            errors.append("Recurring date window must be non-negative")

        return errors

    def setup_logging(self) -> None:
        """Configure logging based on configuration."""
        level = getattr(logging, self.log_level, logging.INFO)

        # Configure format based on environment
        if self.environment == Environment.DEVELOPMENT:
            format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        else:
            format_str = "%(asctime)s - %(levelname)s - %(message)s"

        logging.basicConfig(level=level, format=format_str, datefmt="%Y-%m-%d %H:%M:%S")

        # Reduce noise from external libraries in production
        if self.environment == Environment.PRODUCTION:
            logging.getLogger("urllib3").setLevel(logging.WARNING)
            logging.getLogger("requests").setLevel(logging.WARNING)

    def get_sensitive_fields(self) -> list:
        """Get list of field names that contain sensitive data."""
        return [
            "plaid.client_id",
            "plaid.secret",
        ]

    def to_dict(self, include_sensitive: bool = False) -> dict[str, Any]:
        """Convert configuration to dictionary, optionally excluding sensitive data."""
        result: dict[str, Any] = {}

        for field_name, field_value in self.__dict__.items():
            if hasattr(field_value, "__dict__") and not isinstance(field_value, (Path, Enum)):
                # Nested dataclass
                nested_dict: dict[str, Any] = {}
                for nested_name, nested_value in field_value.__dict__.items():
                    full_field_name = f"{field_name}.{nested_name}"

                    if not include_sensitive and full_field_name in self.get_sensitive_fields():
                        nested_dict[nested_name] = "***REDACTED***" if nested_value else None
                    elif isinstance(nested_value, Path):
                        nested_dict[nested_name] = str(nested_value)
                    elif isinstance(nested_value, Enum):
                        nested_dict[nested_name] = nested_value.value
                    else:
                        nested_dict[nested_name] = nested_value

                result[field_name] = nested_dict
            elif isinstance(field_value, Path):
                result[field_name] = str(field_value)
            elif isinstance(field_value, Enum):
                result[field_name] = field_value.value
            else:
                result[field_name] = field_value

        return result


def _parse_list(value: str, delimiter: str = ",") -> list:
    """Parse comma-separated string into list, handling empty values."""
    if not value:
        return []
    return [item.strip() for item in value.split(delimiter) if item.strip()]


def _parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


# Global configuration instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_environment()

        # Validate configuration
        errors = _config.validate()
        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

        # Setup logging
        _config.setup_logging()

    return _config


def reload_config() -> Config:
    """Reload configuration from environment (useful for testing)."""
    global _config
    _config = None
    return get_config()


def get_data_dir() -> Path:
    """Get the data directory path."""
    return get_config().data_dir


def is_production() -> bool:
    """Check if running in production environment."""
    return get_config().environment == Environment.PRODUCTION
