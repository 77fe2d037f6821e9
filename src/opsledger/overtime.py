from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Tuple

from .models import ClockInterval, EmployeeOvertimeResult, OvertimeCalculation, OvertimeThresholds


def local_date(instant: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of ``instant`` as recorded, or in ``tz`` when given.

    With a ``tz``, naive instants are read as UTC.
    """

    if tz is None:
        return instant.date()
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz).date()


def week_start_sunday(day: date) -> date:
    # Weekly overtime always buckets by Sunday weeks, whatever the pay period start day.
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_bounds(anchor: date) -> Tuple[date, date]:
    start = week_start_sunday(anchor)
    end = start + timedelta(days=6)
    return start, end


class OvertimeEngine:
    """Splits worked minutes into regular, daily overtime and weekly overtime.

    Daily overtime is resolved first; the weekly threshold then applies to the
    regular minutes left over in each Sunday-to-Saturday week.
    """

    def __init__(self, thresholds: Optional[OvertimeThresholds], tz: Optional[tzinfo] = None) -> None:
        self.thresholds = thresholds
        self.tz = tz

    def calculate(self, intervals: Iterable[ClockInterval]) -> OvertimeCalculation:
        by_employee: Dict[str, List[ClockInterval]] = defaultdict(list)
        for interval in intervals:
            if not interval.is_complete:
                continue
            by_employee[interval.employee_id].append(interval)

        result = OvertimeCalculation()
        for employee_id in by_employee:
            result.add_employee(self.classify_employee(by_employee[employee_id]))
        return result

    def classify_employee(self, intervals: List[ClockInterval]) -> EmployeeOvertimeResult:
        employee_id = intervals[0].employee_id if intervals else ""

        if self.thresholds is None or not self.thresholds.enabled:
            total = sum(interval.minutes() for interval in intervals)
            return EmployeeOvertimeResult(
                employee_id=employee_id,
                regular_minutes=total,
                total_minutes=total,
                entries_processed=len(intervals),
            )

        daily_threshold = self.thresholds.daily_threshold_minutes
        weekly_threshold = self.thresholds.weekly_threshold_minutes

        # Group by day
        daily_minutes: Dict[date, int] = defaultdict(int)
        for interval in intervals:
            daily_minutes[local_date(interval.clock_in, self.tz)] += interval.minutes()

        # Daily classification
        daily_regular: Dict[date, int] = {}
        total_daily_overtime = 0
        for day, minutes in sorted(daily_minutes.items()):
            if daily_threshold is not None and minutes > daily_threshold:
                daily_regular[day] = daily_threshold
                total_daily_overtime += minutes - daily_threshold
            else:
                daily_regular[day] = minutes

        # Weekly adjustment on what is still regular
        weekly_overtime = 0
        if weekly_threshold is not None:
            weekly_regular: Dict[date, int] = defaultdict(int)
            for day, minutes in daily_regular.items():
                weekly_regular[week_start_sunday(day)] += minutes
            for minutes in weekly_regular.values():
                if minutes > weekly_threshold:
                    weekly_overtime += minutes - weekly_threshold

        regular = sum(daily_regular.values()) - weekly_overtime
        return EmployeeOvertimeResult(
            employee_id=employee_id,
            regular_minutes=regular,
            daily_overtime_minutes=total_daily_overtime,
            weekly_overtime_minutes=weekly_overtime,
            total_minutes=regular + total_daily_overtime + weekly_overtime,
            entries_processed=len(intervals),
        )


def calculate_overtime(
    intervals: Iterable[ClockInterval],
    thresholds: Optional[OvertimeThresholds],
    tz: Optional[tzinfo] = None,
) -> OvertimeCalculation:
    return OvertimeEngine(thresholds, tz=tz).calculate(intervals)
