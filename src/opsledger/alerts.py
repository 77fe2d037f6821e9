from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
from typing import Iterable, Optional

from .models import AlertStatus, ClockInterval, OvertimeThresholds, ThresholdStatus
from .overtime import local_date, week_bounds


def daily_minutes(intervals: Iterable[ClockInterval], reference: datetime, tz: Optional[tzinfo] = None) -> int:
    """Completed minutes whose clock-in falls on the reference day."""

    day = local_date(reference, tz)
    return sum(
        interval.minutes()
        for interval in intervals
        if interval.duration_seconds is not None and local_date(interval.clock_in, tz) == day
    )


def weekly_minutes(intervals: Iterable[ClockInterval], reference: datetime, tz: Optional[tzinfo] = None) -> int:
    """Completed minutes whose clock-in falls in the reference day's Sunday week."""

    start, end = week_bounds(local_date(reference, tz))
    return sum(
        interval.minutes()
        for interval in intervals
        if interval.duration_seconds is not None and start <= local_date(interval.clock_in, tz) <= end
    )


def active_session_minutes(intervals: Iterable[ClockInterval], now: datetime) -> int:
    for interval in intervals:
        if interval.clock_out is None:
            elapsed = now - interval.clock_in
            return max(int(elapsed // timedelta(minutes=1)), 0)
    return 0


def _threshold_status(current: int, threshold: Optional[int], alert_before: Optional[int]) -> ThresholdStatus:
    if threshold is None:
        return ThresholdStatus(current_minutes=current, threshold_minutes=None)
    exceeded = current >= threshold
    approaching = False
    if not exceeded and alert_before is not None:
        approaching = current >= threshold - alert_before
    return ThresholdStatus(
        current_minutes=current,
        threshold_minutes=threshold,
        approaching=approaching,
        exceeded=exceeded,
    )


def check_alert_status(
    intervals: Iterable[ClockInterval],
    thresholds: Optional[OvertimeThresholds],
    reference: datetime,
    active_minutes: int = 0,
    tz: Optional[tzinfo] = None,
) -> Optional[AlertStatus]:
    """Approaching/exceeded flags for the daily and weekly thresholds.

    ``active_minutes`` is the time so far in a session that has not been
    clocked out yet; it counts toward both the day and the week. Returns
    ``None`` when overtime tracking is switched off.
    """
    if thresholds is None or not thresholds.enabled:
        return None

    intervals = list(intervals)
    day_total = daily_minutes(intervals, reference, tz) + active_minutes
    week_total = weekly_minutes(intervals, reference, tz) + active_minutes

    return AlertStatus(
        daily=_threshold_status(day_total, thresholds.daily_threshold_minutes, thresholds.alert_before_daily_minutes),
        weekly=_threshold_status(week_total, thresholds.weekly_threshold_minutes, thresholds.alert_before_weekly_minutes),
    )
