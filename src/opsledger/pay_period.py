from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import List, Optional

from .models import PayPeriod, PayPeriodSpec

PERIOD_KINDS = ("weekly", "biweekly", "semimonthly", "monthly")
DEFAULT_REFERENCE_DATE = date(2025, 1, 5)  # a Sunday


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def day_of_week(day: date) -> int:
    """Day of week numbered 0 (Sunday) through 6 (Saturday)."""

    return (day.weekday() + 1) % 7


def week_start(day: date, start_day_of_week: int = 0) -> date:
    diff = (day_of_week(day) - start_day_of_week + 7) % 7
    return day - timedelta(days=diff)


def month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def format_period_label(start: date, end: date) -> str:
    start_month = calendar.month_abbr[start.month]
    end_month = calendar.month_abbr[end.month]
    if start_month == end_month:
        return f"{start_month} {start.day} - {end.day}, {end.year}"
    return f"{start_month} {start.day} - {end_month} {end.day}, {end.year}"


def _period(start: date, end: date, kind: str) -> PayPeriod:
    return PayPeriod(start_date=start, end_date=end, label=format_period_label(start, end), kind=kind)


def weekly_period(day: date, start_day_of_week: int = 0) -> PayPeriod:
    start = week_start(day, start_day_of_week)
    return _period(start, start + timedelta(days=6), "weekly")


def week_phase(day: date | datetime, spec: PayPeriodSpec) -> int:
    """Return 0 for the first week of a biweekly cycle and 1 for the second."""

    start_day = spec.week_start_day if spec.week_start_day is not None else 0
    reference = _as_date(spec.reference_date) if spec.reference_date else DEFAULT_REFERENCE_DATE
    current_week = week_start(_as_date(day), start_day)
    reference_week = week_start(reference, start_day)
    weeks_since_reference = (current_week - reference_week).days // 7
    return weeks_since_reference % 2


def biweekly_period(day: date, spec: PayPeriodSpec) -> PayPeriod:
    start_day = spec.week_start_day if spec.week_start_day is not None else 0
    start = week_start(day, start_day) - timedelta(days=7 * week_phase(day, spec))
    return _period(start, start + timedelta(days=13), "biweekly")


def semimonthly_period(day: date) -> PayPeriod:
    if day.day <= 15:
        return _period(date(day.year, day.month, 1), date(day.year, day.month, 15), "semimonthly")
    return _period(date(day.year, day.month, 16), month_end(day.year, day.month), "semimonthly")


def monthly_period(day: date) -> PayPeriod:
    return _period(date(day.year, day.month, 1), month_end(day.year, day.month), "monthly")


def pay_period_for(day: date | datetime, spec: Optional[PayPeriodSpec]) -> PayPeriod:
    """Return the pay period containing ``day``.

    A missing spec, or one with an unrecognised ``kind``, yields a weekly
    period starting on Sunday.
    """
    day = _as_date(day)
    if spec is None:
        return weekly_period(day, 0)

    start_day = spec.week_start_day if spec.week_start_day is not None else 0
    if spec.kind == "weekly":
        return weekly_period(day, start_day)
    if spec.kind == "biweekly":
        return biweekly_period(day, spec)
    if spec.kind == "semimonthly":
        return semimonthly_period(day)
    if spec.kind == "monthly":
        return monthly_period(day)
    return weekly_period(day, 0)


def current_pay_period(spec: Optional[PayPeriodSpec], today: Optional[date] = None) -> PayPeriod:
    return pay_period_for(today or date.today(), spec)


def previous_period(period: PayPeriod, spec: Optional[PayPeriodSpec]) -> PayPeriod:
    return pay_period_for(period.start_date - timedelta(days=1), spec)


def next_period(period: PayPeriod, spec: Optional[PayPeriodSpec]) -> PayPeriod:
    return pay_period_for(period.end_date + timedelta(days=1), spec)


def recent_periods(spec: Optional[PayPeriodSpec], count: int = 5, today: Optional[date] = None) -> List[PayPeriod]:
    """Current period followed by the ``count - 1`` periods before it."""

    periods: List[PayPeriod] = []
    current = current_pay_period(spec, today)
    for _ in range(count):
        periods.append(current)
        current = previous_period(current, spec)
    return periods
