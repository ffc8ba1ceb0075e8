#!/usr/bin/env python3
"""
FinancialDate Primitive Type

Immutable date wrapper with consistent formatting for financial operations.
Provides standardized date handling across synced, imported, and order records.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

# CSV exports seen in the wild, tried in order after ISO
_FALLBACK_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d", "%d-%b-%Y", "%b %d, %Y")


@dataclass(frozen=True)
class FinancialDate:
    """Immutable financial date wrapper with consistent formatting."""

    date: date

    @classmethod
    def from_string(cls, date_str: str, format: str = "%Y-%m-%d") -> "FinancialDate":
        """
        Parse from string in specified format.

        Args:
            date_str: Date string to parse
            format: Date format (default: ISO format "%Y-%m-%d")

        Returns:
            FinancialDate object
        """
        return cls(date=datetime.strptime(date_str.strip(), format).date())

    @classmethod
    def parse(cls, value: "str | date | FinancialDate") -> "FinancialDate":
        """
        Parse a loosely formatted date.

        Accepts ISO dates, ISO timestamps (date part only, no timezone shift),
        and the common bank export formats.

        Raises:
            ValueError: If no known format matches
        """
        if isinstance(value, FinancialDate):
            return value
        if isinstance(value, datetime):
            return cls(date=value.date())
        if isinstance(value, date):
            return cls(date=value)

        text = str(value).strip()
        if len(text) >= 10 and text[4] == "-" and text[7] == "-":
            return cls.from_string(text[:10])
        for fmt in _FALLBACK_FORMATS:
            try:
                return cls.from_string(text, fmt)
            except ValueError:
                continue
        raise ValueError(f"Invalid date: {value!r}")

    @property
    def year(self) -> int:
        return self.date.year

    @property
    def month(self) -> int:
        return self.date.month

    def to_iso_string(self) -> str:
        """Format as YYYY-MM-DD."""
        return self.date.isoformat()

    def add_days(self, days: int) -> "FinancialDate":
        """Return a new date shifted by the given number of days."""
        return FinancialDate(date=self.date + timedelta(days=days))

    def days_between(self, other: "FinancialDate") -> int:
        """Absolute number of days between two dates."""
        return abs((other.date - self.date).days)

    def in_period(self, year: int, month: int) -> bool:
        """Check if the date falls within the given budget month."""
        return self.date.year == year and self.date.month == month

    def __str__(self) -> str:
        return self.to_iso_string()

    def __lt__(self, other: "FinancialDate") -> bool:
        return self.date < other.date

    def __le__(self, other: "FinancialDate") -> bool:
        return self.date <= other.date

    def __gt__(self, other: "FinancialDate") -> bool:
        return self.date > other.date

    def __ge__(self, other: "FinancialDate") -> bool:
        return self.date >= other.date

    def __repr__(self) -> str:
        return f"FinancialDate(date={self.date!r})"


def utc_now() -> datetime:
    """Timezone-aware current time used for audit timestamps."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO timestamp written by to_timestamp, or None."""
    if not value:
        return None
    return datetime.fromisoformat(value)


def to_timestamp(value: datetime | None) -> str | None:
    """Serialize a timestamp as ISO 8601, or None."""
    if value is None:
        return None
    return value.isoformat()
