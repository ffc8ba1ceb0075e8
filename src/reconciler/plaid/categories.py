#!/usr/bin/env python3
"""
Plaid Category Mapping

Maps Plaid personal finance categories onto budget categories and detects
internal transfers (card payments, moves between own accounts) that should
not be counted as spending.

Plaid categories:
https://plaid.com/docs/api/products/transactions/#transactionspersonal_finance_category
"""

import re

from ..core.models import UNCATEGORIZED

# Plaid primary category -> budget category
CATEGORY_MAP = {
    "INCOME": "Income",
    "TRANSPORTATION": "Auto",
    "FOOD_AND_DRINK": "Dining",
    "ENTERTAINMENT": "Entertainment",
    "PERSONAL_CARE": "Other - Fun",
    "GENERAL_MERCHANDISE": "Other - Fun",
    "HOME_IMPROVEMENT": "Other - Responsible",
    "MEDICAL": "Other - Responsible",
    "RENT_AND_UTILITIES": "Recurring - Essential",
    "LOAN_PAYMENTS": "Recurring - Essential",
    "BANK_FEES": "Other - Responsible",
    "GOVERNMENT_AND_NON_PROFIT": "Other - Responsible",
    "TRAVEL": "Other - Fun",
    "GENERAL_SERVICES": "Other - Responsible",
    "TRANSFER_IN": "Income",
    "TRANSFER_OUT": UNCATEGORIZED,
}

# Plaid detailed category (with or without the primary prefix) -> budget category
DETAILED_CATEGORY_MAP = {
    "FOOD_AND_DRINK_GROCERIES": "Grocery",
    "FOOD_AND_DRINK_SUPERMARKETS_AND_GROCERIES": "Grocery",
    "FOOD_AND_DRINK_RESTAURANT": "Dining",
    "FOOD_AND_DRINK_FAST_FOOD": "Dining",
    "FOOD_AND_DRINK_COFFEE": "Dining",
    "FOOD_AND_DRINK_BEER_WINE_AND_LIQUOR": "Dining",
    "GENERAL_SERVICES_INSURANCE": "Recurring - Essential",
    "LOAN_PAYMENTS_INSURANCE_PAYMENT": "Recurring - Essential",
    "ENTERTAINMENT_TV_AND_MOVIES": "Recurring - Non-Essential",
    "ENTERTAINMENT_MUSIC_AND_AUDIO": "Entertainment",
    "ENTERTAINMENT_SPORTING_EVENTS_AMUSEMENT_PARKS_AND_MUSEUMS": "Entertainment",
    "ENTERTAINMENT_VIDEO_GAMES": "Entertainment",
    "RENT_AND_UTILITIES_GAS_AND_ELECTRICITY": "Recurring - Essential",
    "RENT_AND_UTILITIES_WATER": "Recurring - Essential",
    "RENT_AND_UTILITIES_INTERNET_AND_CABLE": "Recurring - Essential",
    "RENT_AND_UTILITIES_TELEPHONE": "Recurring - Essential",
    "RENT_AND_UTILITIES_RENT": "Recurring - Essential",
    "TRANSPORTATION_GAS": "Auto",
    "TRANSPORTATION_PARKING": "Auto",
    "TRANSPORTATION_PUBLIC_TRANSIT": "Auto",
    "TRANSPORTATION_TAXIS_AND_RIDE_SHARES": "Auto",
}

_TRANSFER_PATTERNS = [
    re.compile(r"^TRANSFER\s+(TO|FROM)", re.IGNORECASE),
    re.compile(r"^(TO|FROM)\s+.*\d{4}$", re.IGNORECASE),
    re.compile(r"^ONLINE\s+TRANSFER", re.IGNORECASE),
    re.compile(r"^INTERNET\s+TRANSFER", re.IGNORECASE),
    re.compile(r"^PAYMENT\s+-\s+THANK\s+YOU", re.IGNORECASE),
]


def map_plaid_category(primary: str | None, detailed: str | None = None) -> str:
    """
    Map a Plaid category pair to a budget category.

    Detailed categories win over primary ones; anything unknown is
    Uncategorized.
    """
    if not primary:
        return UNCATEGORIZED
    primary = primary.upper()
    if detailed:
        detailed = detailed.upper()
        key = detailed if detailed.startswith(primary) else f"{primary}_{detailed}"
        if key in DETAILED_CATEGORY_MAP:
            return DETAILED_CATEGORY_MAP[key]
    return CATEGORY_MAP.get(primary, UNCATEGORIZED)


def is_transfer_category(primary: str | None, detailed: str | None = None) -> bool:
    """Check if a Plaid category marks an internal transfer or card payment."""
    if not primary:
        return False
    if primary.upper() in ("TRANSFER_IN", "TRANSFER_OUT"):
        return True
    if detailed:
        detailed = detailed.upper()
        if "TRANSFER" in detailed or "CREDIT_CARD" in detailed:
            return True
    return False


def is_transfer_description(description: str | None) -> bool:
    """Fallback transfer detection from the description text."""
    if not description:
        return False
    upper = description.upper()
    if "CREDIT CARD" in upper and "PAYMENT" in upper:
        return True
    return any(pattern.search(description.strip()) for pattern in _TRANSFER_PATTERNS)
