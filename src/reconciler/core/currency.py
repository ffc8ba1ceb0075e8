#!/usr/bin/env python3
"""
Currency Conversion and Handling Utilities

All ledger arithmetic uses integer cents to avoid floating-point errors.

Currency Systems:
- Internal calculations use cents: 100 cents = $1.00
- The aggregator reports float dollars: 12.34
- CSV exports use dollar strings: "$12.34", "1,234.56", "(12.34)"

Key Principles:
- Never use floating-point arithmetic for stored amounts
- Convert provider floats exactly once, at the edge, via Decimal
- Accounting parentheses denote negative amounts
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


def cents_to_dollars_str(cents: int) -> str:
    """
    Convert cents to dollar string using pure integer arithmetic.

    Args:
        cents: Amount in cents

    Returns:
        Formatted dollar string

    Example:
        cents_to_dollars_str(4599) -> "45.99"
    """
    is_negative = cents < 0
    abs_cents = abs(int(cents))

    dollars = abs_cents // 100
    remainder = abs_cents % 100

    if is_negative:
        return f"-{dollars}.{remainder:02d}"
    return f"{dollars}.{remainder:02d}"


def parse_dollars_to_cents(dollars_str: str) -> int:
    """
    Parse dollar string to cents using integer arithmetic only.

    Handles currency symbols, thousands separators, and accounting-style
    parentheses for negative amounts.

    Args:
        dollars_str: String representation of dollar amount

    Returns:
        Amount in cents

    Raises:
        ValueError: If the string is not a number

    Examples:
        parse_dollars_to_cents("12.34") -> 1234
        parse_dollars_to_cents("$1,234.56") -> 123456
        parse_dollars_to_cents("(12.34)") -> -1234
        parse_dollars_to_cents("12.5") -> 1250
    """
    clean = dollars_str.replace("$", "").replace(",", "").replace(" ", "").strip()

    if not clean:
        raise ValueError("Empty amount")

    is_negative = False
    if clean.startswith("(") and clean.endswith(")"):
        is_negative = True
        clean = clean[1:-1]
    if clean.startswith("-"):
        is_negative = not is_negative
        clean = clean[1:]
    elif clean.startswith("+"):
        clean = clean[1:]

    if "." in clean:
        whole, _, fraction = clean.partition(".")
        if (whole and not whole.isdigit()) or (fraction and not fraction.isdigit()) or not (whole or fraction):
            raise ValueError(f"Invalid amount: {dollars_str!r}")
        total = int(whole or "0") * 100 + int(fraction.ljust(2, "0")[:2])
        # Round on the third fractional digit
        if len(fraction) > 2 and int(fraction[2]) >= 5:
            total += 1
    else:
        if not clean.isdigit():
            raise ValueError(f"Invalid amount: {dollars_str!r}")
        total = int(clean) * 100

    return -total if is_negative else total


def float_dollars_to_cents(amount: float | int | str) -> int:
    """
    Convert an aggregator float dollar amount to cents.

    Goes through Decimal(str(amount)) so 0.1 + 0.2 style float noise never
    leaks into stored cents.

    Example:
        float_dollars_to_cents(12.345) -> 1235
        float_dollars_to_cents(-42.0) -> -4200
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
