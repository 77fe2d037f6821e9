from datetime import date, datetime, timedelta, timezone
from itertools import count
from zoneinfo import ZoneInfo

from opsledger.models import ClockInterval, OvertimeThresholds
from opsledger.overtime import calculate_overtime, local_date

_ids = count(1)

THRESHOLDS = OvertimeThresholds(daily_threshold_minutes=480, weekly_threshold_minutes=2400)


def worked(employee_id, day: date, minutes: int, start_hour: int = 8, seconds: int = 0) -> ClockInterval:
    clock_in = datetime(day.year, day.month, day.day, start_hour)
    duration = minutes * 60 + seconds
    return ClockInterval(
        id=next(_ids),
        employee_id=employee_id,
        clock_in=clock_in,
        clock_out=clock_in + timedelta(seconds=duration),
        duration_seconds=duration,
        status="approved",
    )


def work_week(employee_id="emp1", minutes=600):
    monday = date(2025, 1, 6)
    return [worked(employee_id, monday + timedelta(days=offset), minutes) for offset in range(5)]


def test_long_weekdays_are_daily_overtime_only():
    result = calculate_overtime(work_week(), THRESHOLDS).employees["emp1"]

    assert result.daily_overtime_minutes == 600
    assert result.regular_minutes == 2400
    assert result.weekly_overtime_minutes == 0
    assert result.total_minutes == 3000
    assert result.entries_processed == 5


def test_saturday_shift_spills_into_weekly_overtime():
    intervals = work_week() + [worked("emp1", date(2025, 1, 11), 480)]

    result = calculate_overtime(intervals, THRESHOLDS).employees["emp1"]

    assert result.daily_overtime_minutes == 600
    assert result.weekly_overtime_minutes == 480
    assert result.regular_minutes == 2400
    assert result.total_minutes == 3480


def test_weeks_start_on_sunday():
    thresholds = OvertimeThresholds(weekly_threshold_minutes=600)
    intervals = [worked("emp1", date(2025, 1, 11), 480), worked("emp1", date(2025, 1, 12), 480)]

    result = calculate_overtime(intervals, thresholds).employees["emp1"]

    assert result.weekly_overtime_minutes == 0
    assert result.regular_minutes == 960


def test_buckets_always_sum_to_worked_minutes():
    threshold_options = [
        OvertimeThresholds(daily_threshold_minutes=480),
        OvertimeThresholds(weekly_threshold_minutes=1200),
        OvertimeThresholds(daily_threshold_minutes=300, weekly_threshold_minutes=900),
        THRESHOLDS,
    ]
    intervals = []
    for offset in range(21):
        day = date(2025, 3, 2) + timedelta(days=offset)
        intervals.append(worked("a", day, 200 + offset * 23, seconds=offset))
        intervals.append(worked("a", day, 95, start_hour=18, seconds=59))
        intervals.append(worked("b", day, 510 - offset * 7))

    for thresholds in threshold_options:
        result = calculate_overtime(intervals, thresholds)
        for employee_id, employee in result.employees.items():
            worked_minutes = sum(i.minutes() for i in intervals if i.employee_id == employee_id)
            buckets = employee.regular_minutes + employee.daily_overtime_minutes + employee.weekly_overtime_minutes

            assert buckets == employee.total_minutes == worked_minutes
        assert result.total_minutes == sum(i.minutes() for i in intervals)


def test_minutes_truncate_per_interval():
    intervals = [worked("emp1", date(2025, 1, 6), 0, seconds=90), worked("emp1", date(2025, 1, 6), 0, seconds=90)]

    result = calculate_overtime(intervals, None).employees["emp1"]

    assert result.total_minutes == 2


def test_without_thresholds_everything_is_regular():
    intervals = work_week() + [worked("emp1", date(2025, 1, 11), 480)]

    for thresholds in (None, OvertimeThresholds()):
        result = calculate_overtime(intervals, thresholds).employees["emp1"]

        assert result.regular_minutes == result.total_minutes == 3480
        assert result.daily_overtime_minutes == 0
        assert result.weekly_overtime_minutes == 0


def test_no_intervals_gives_empty_result():
    result = calculate_overtime([], THRESHOLDS)

    assert result.employees == {}
    assert result.total_regular_minutes == 0
    assert result.total_daily_overtime_minutes == 0
    assert result.total_weekly_overtime_minutes == 0


def test_open_sessions_are_ignored():
    still_working = ClockInterval(id=99, employee_id="emp2", clock_in=datetime(2025, 1, 6, 9))

    result = calculate_overtime(work_week() + [still_working], THRESHOLDS)

    assert "emp2" not in result.employees
    assert set(result.employees) == {"emp1"}


def test_days_bucket_in_requested_zone():
    new_york = ZoneInfo("America/New_York")
    # 23:00 and 01:00 local on Jan 6 and Jan 7; both fall on Jan 7 in UTC.
    late = datetime(2025, 1, 7, 4, tzinfo=timezone.utc)
    early = datetime(2025, 1, 7, 6, tzinfo=timezone.utc)
    intervals = [
        ClockInterval(1, "emp1", late, late + timedelta(minutes=300), 300 * 60),
        ClockInterval(2, "emp1", early, early + timedelta(minutes=300), 300 * 60),
    ]
    thresholds = OvertimeThresholds(daily_threshold_minutes=480)

    in_utc = calculate_overtime(intervals, thresholds).employees["emp1"]
    local = calculate_overtime(intervals, thresholds, tz=new_york).employees["emp1"]

    assert in_utc.daily_overtime_minutes == 120
    assert local.daily_overtime_minutes == 0


def test_naive_instants_are_read_as_utc_in_a_zone():
    new_york = ZoneInfo("America/New_York")
    naive = datetime(2025, 1, 7, 4)

    assert local_date(naive) == date(2025, 1, 7)
    assert local_date(naive, new_york) == date(2025, 1, 6)
    assert local_date(naive, new_york) == local_date(naive.replace(tzinfo=timezone.utc), new_york)


def test_hours_round_to_two_places():
    result = calculate_overtime([worked("emp1", date(2025, 1, 6), 500)], THRESHOLDS).employees["emp1"]

    assert result.hours("regular") == 8.0
    assert result.hours("daily_overtime") == 0.33
