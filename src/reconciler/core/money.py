#!/usr/bin/env python3
"""
Money Primitive Type

Immutable currency value wrapper that uses integer cents internally.
Prevents floating-point errors and provides type-safe currency operations.
"""

from dataclasses import dataclass

from .currency import cents_to_dollars_str, float_dollars_to_cents, parse_dollars_to_cents


@dataclass(frozen=True)
class Money:
    """
    Immutable money value in cents.

    Sign is whatever convention the caller is in: raw provider amounts,
    canonical amounts, and expense amounts all use the same type, so the
    function producing a Money documents which one it returns.

    Examples:
        >>> Money.from_cents(1234)
        Money(cents=1234)
        >>> str(Money.from_dollars("(45.99)"))
        '$-45.99'
        >>> Money.from_float(42.0).negate().to_cents()
        -4200
    """

    cents: int

    @classmethod
    def from_cents(cls, cents: int) -> "Money":
        """Create Money from cents."""
        return cls(cents=int(cents))

    @classmethod
    def from_dollars(cls, dollars: str | int) -> "Money":
        """
        Parse from dollar string like '$123.45' or integer dollars.

        Args:
            dollars: String like "$12.34" or integer like 12

        Returns:
            Money object
        """
        if isinstance(dollars, int):
            return cls(cents=dollars * 100)
        return cls(cents=parse_dollars_to_cents(dollars))

    @classmethod
    def from_float(cls, amount: float | int) -> "Money":
        """Create Money from the aggregator's float dollar amount."""
        return cls(cents=float_dollars_to_cents(amount))

    @classmethod
    def zero(cls) -> "Money":
        return cls(cents=0)

    def to_cents(self) -> int:
        """Get value in cents."""
        return self.cents

    def to_dollars(self) -> str:
        """Get formatted dollar string."""
        return str(self)

    def abs(self) -> "Money":
        """Return absolute value of Money."""
        return Money(cents=abs(self.cents))

    def negate(self) -> "Money":
        """Return the same amount with the sign flipped."""
        return Money(cents=-self.cents)

    def is_zero(self) -> bool:
        return self.cents == 0

    def __neg__(self) -> "Money":
        return self.negate()

    def __add__(self, other: "Money") -> "Money":
        """Add two Money objects."""
        return Money(cents=self.cents + other.cents)

    def __sub__(self, other: "Money") -> "Money":
        """Subtract two Money objects."""
        return Money(cents=self.cents - other.cents)

    def __mul__(self, scalar: int) -> "Money":
        """Multiply Money by integer scalar."""
        return Money(cents=self.cents * scalar)

    def __lt__(self, other: "Money") -> bool:
        return self.cents < other.cents

    def __le__(self, other: "Money") -> bool:
        return self.cents <= other.cents

    def __gt__(self, other: "Money") -> bool:
        return self.cents > other.cents

    def __ge__(self, other: "Money") -> bool:
        return self.cents >= other.cents

    def __str__(self) -> str:
        """Format as dollar string."""
        return f"${cents_to_dollars_str(self.cents)}"

    def __repr__(self) -> str:
        return f"Money(cents={self.cents})"
