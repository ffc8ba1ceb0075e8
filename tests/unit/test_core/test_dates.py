#!/usr/bin/env python3
"""Tests for FinancialDate and timestamp helpers."""

from datetime import date, datetime, timezone

import pytest

from reconciler.core.dates import FinancialDate, parse_timestamp, to_timestamp, utc_now


class TestFinancialDateParsing:
    """Test the loose date parser used by imports and provider payloads."""

    @pytest.mark.parametrize(
        "text",
        [
            "2024-08-15",
            "2024-08-15T23:30:00Z",
            "08/15/2024",
            "08/15/24",
            "2024/08/15",
            "15-Aug-2024",
            "Aug 15, 2024",
        ],
    )
    def test_parse_known_formats(self, text):
        assert FinancialDate.parse(text).date == date(2024, 8, 15)

    def test_parse_timestamp_keeps_calendar_day(self):
        """A late-evening UTC timestamp stays on its own date."""
        assert FinancialDate.parse("2024-08-31T23:59:59+00:00").to_iso_string() == "2024-08-31"

    def test_parse_passthrough_types(self):
        fd = FinancialDate(date=date(2024, 1, 2))
        assert FinancialDate.parse(fd) is fd
        assert FinancialDate.parse(date(2024, 1, 2)) == fd
        assert FinancialDate.parse(datetime(2024, 1, 2, 9, 30)) == fd

    @pytest.mark.parametrize("text", ["", "yesterday", "2024-13-01", "31/31/2024"])
    def test_parse_invalid(self, text):
        with pytest.raises(ValueError):
            FinancialDate.parse(text)

    def test_from_string_with_format(self):
        assert FinancialDate.from_string("15.08.2024", "%d.%m.%Y").date == date(2024, 8, 15)


class TestFinancialDateArithmetic:
    def test_add_days_crosses_month(self):
        assert FinancialDate.parse("2024-01-30").add_days(3).to_iso_string() == "2024-02-02"
        assert FinancialDate.parse("2024-03-01").add_days(-1).to_iso_string() == "2024-02-29"

    def test_days_between_is_absolute(self):
        a = FinancialDate.parse("2024-08-10")
        b = FinancialDate.parse("2024-08-15")
        assert a.days_between(b) == 5
        assert b.days_between(a) == 5

    def test_in_period(self):
        d = FinancialDate.parse("2024-08-31")
        assert d.in_period(2024, 8)
        assert not d.in_period(2024, 9)

    def test_ordering_and_hashing(self):
        a = FinancialDate.parse("2024-08-10")
        b = FinancialDate.parse("2024-08-11")
        assert a < b and b > a and a <= a and b >= a
        assert len({a, FinancialDate.parse("2024-08-10")}) == 1

    def test_year_month_and_str(self):
        d = FinancialDate.parse("2024-08-15")
        assert (d.year, d.month) == (2024, 8)
        assert str(d) == "2024-08-15"


class TestTimestamps:
    def test_utc_now_is_timezone_aware(self):
        assert utc_now().tzinfo is not None

    def test_timestamp_round_trip(self):
        value = datetime(2024, 8, 15, 12, 0, tzinfo=timezone.utc)
        assert parse_timestamp(to_timestamp(value)) == value

    def test_none_passthrough(self):
        assert to_timestamp(None) is None
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None
