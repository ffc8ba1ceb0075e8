#!/usr/bin/env python3
"""Tests for core currency utilities."""

import pytest

from reconciler.core.currency import (
    cents_to_dollars_str,
    float_dollars_to_cents,
    parse_dollars_to_cents,
)


class TestCurrencyConversions:
    """Test core currency conversion functions."""

    @pytest.mark.currency
    def test_cents_to_dollars_str(self):
        """Test formatting cents as dollar strings."""
        assert cents_to_dollars_str(4599) == "45.99"
        assert cents_to_dollars_str(100) == "1.00"
        assert cents_to_dollars_str(0) == "0.00"
        assert cents_to_dollars_str(5) == "0.05"
        assert cents_to_dollars_str(-4599) == "-45.99"

    @pytest.mark.currency
    def test_parse_dollars_to_cents(self):
        """Test parsing the formats bank exports use."""
        assert parse_dollars_to_cents("12.34") == 1234
        assert parse_dollars_to_cents("$1,234.56") == 123456
        assert parse_dollars_to_cents("12.5") == 1250
        assert parse_dollars_to_cents("12") == 1200
        assert parse_dollars_to_cents("-0.99") == -99
        assert parse_dollars_to_cents("+3.00") == 300

    @pytest.mark.currency
    def test_parse_accounting_parentheses_are_negative(self):
        assert parse_dollars_to_cents("(12.34)") == -1234
        assert parse_dollars_to_cents("$(1,000.00)") == -100000

    @pytest.mark.currency
    def test_parse_rounds_on_third_decimal(self):
        assert parse_dollars_to_cents("12.345") == 1235
        assert parse_dollars_to_cents("12.344") == 1234

    @pytest.mark.currency
    @pytest.mark.parametrize("text", ["", "   ", "abc", "12.3.4", "$", "1O.00"])
    def test_parse_rejects_garbage(self, text):
        with pytest.raises(ValueError):
            parse_dollars_to_cents(text)

    @pytest.mark.currency
    def test_float_dollars_to_cents_avoids_float_noise(self):
        """Provider floats go through Decimal exactly once."""
        assert float_dollars_to_cents(12.345) == 1235
        assert float_dollars_to_cents(-42.0) == -4200
        assert float_dollars_to_cents(0.1 + 0.2) == 30
        assert float_dollars_to_cents(89.4) == 8940
