#!/usr/bin/env python3
"""
Recurring Schedule Projection

Expands a SchedulingRule into the dates a charge is expected within a month.
Weekdays use Python's convention (Monday is 0).
"""

import calendar
from datetime import date, timedelta

from ..core.dates import FinancialDate
from ..core.models import ScheduleKind, SchedulingRule


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def nearest_business_day(value: date) -> date:
    """Move a Saturday or Sunday back to the preceding Friday."""
    weekday = value.weekday()
    if weekday == 5:
        return value - timedelta(days=1)
    if weekday == 6:
        return value - timedelta(days=2)
    return value


def _day_in_month(year: int, month: int, day: int, business_day: bool) -> date:
    # Day 31 in a 30-day month lands on the 30th
    result = date(year, month, min(day, days_in_month(year, month)))
    return nearest_business_day(result) if business_day else result


def projected_dates(rule: SchedulingRule, year: int, month: int) -> list[FinancialDate]:
    """
    Expected occurrence dates for one month, sorted and unique.

    Args:
        rule: Recurring schedule
        year: Calendar year
        month: Calendar month (1-12)

    Returns:
        List of FinancialDate; business-day adjustment can move a date into
        the previous month
    """
    dates: set[date] = set()

    if rule.kind == ScheduleKind.MONTHLY:
        dates.add(_day_in_month(year, month, int(rule.day_of_month or 1), rule.nearest_business_day))

    elif rule.kind == ScheduleKind.TWICE_MONTHLY:
        for day in (rule.first_day, rule.second_day):
            dates.add(_day_in_month(year, month, int(day or 1), rule.nearest_business_day))

    elif rule.kind == ScheduleKind.WEEKLY:
        for day in range(1, days_in_month(year, month) + 1):
            current = date(year, month, day)
            if current.weekday() == rule.weekday:
                dates.add(current)

    elif rule.kind == ScheduleKind.BIWEEKLY:
        anchor = rule.anchor_date.date if rule.anchor_date else None
        if anchor is not None:
            for day in range(1, days_in_month(year, month) + 1):
                current = date(year, month, day)
                offset = (current - anchor).days
                if offset >= 0 and offset % 14 == 0:
                    dates.add(current)

    return [FinancialDate(date=d) for d in sorted(dates)]


def projected_dates_around(rule: SchedulingRule, year: int, month: int) -> list[FinancialDate]:
    """
    Projected dates for the month and its neighbors.

    A charge due on the 31st that posts on the 2nd belongs to the previous
    month's occurrence, so matching looks one month either side.
    """
    months = []
    for offset in (-1, 0, 1):
        index = year * 12 + (month - 1) + offset
        months.append((index // 12, index % 12 + 1))
    result: list[FinancialDate] = []
    for y, m in months:
        result.extend(projected_dates(rule, y, m))
    return sorted(set(result))
