from __future__ import annotations
import argparse
import json
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path

from .alerts import active_session_minutes, check_alert_status
from .csv_io import import_intervals
from .models import OvertimeThresholds, PayPeriodSpec
from .overtime import calculate_overtime
from .pay_period import PERIOD_KINDS, pay_period_for, recent_periods


def parse_date(value: str) -> date:
    return date.fromisoformat(value)


def spec_from_args(args: argparse.Namespace) -> PayPeriodSpec:
    reference = parse_date(args.reference_date) if args.reference_date else None
    return PayPeriodSpec(kind=args.kind, week_start_day=args.week_start_day, reference_date=reference)


def thresholds_from_args(args: argparse.Namespace) -> OvertimeThresholds:
    return OvertimeThresholds(
        daily_threshold_minutes=args.daily_threshold,
        weekly_threshold_minutes=args.weekly_threshold,
        alert_before_daily_minutes=getattr(args, "alert_before_daily", None),
        alert_before_weekly_minutes=getattr(args, "alert_before_weekly", None),
    )


def cmd_period(args: argparse.Namespace) -> None:
    period = pay_period_for(parse_date(args.date), spec_from_args(args))
    print(f"{period.label} ({period.start_date.isoformat()} - {period.end_date.isoformat()}, {period.kind})")


def cmd_periods(args: argparse.Namespace) -> None:
    today = parse_date(args.today) if args.today else None
    for period in recent_periods(spec_from_args(args), count=args.count, today=today):
        print(f"{period.start_date.isoformat()} {period.end_date.isoformat()} {period.label}")


def cmd_overtime(args: argparse.Namespace) -> None:
    intervals = import_intervals(Path(args.path))
    result = calculate_overtime(intervals, thresholds_from_args(args))
    payload = {
        "employees": [asdict(r) for _, r in sorted(result.employees.items(), key=lambda item: str(item[0]))],
        "total_regular_minutes": result.total_regular_minutes,
        "total_daily_overtime_minutes": result.total_daily_overtime_minutes,
        "total_weekly_overtime_minutes": result.total_weekly_overtime_minutes,
    }
    print(json.dumps(payload, indent=2))


def cmd_alerts(args: argparse.Namespace) -> None:
    intervals = [i for i in import_intervals(Path(args.path)) if str(i.employee_id) == args.employee]
    now = datetime.fromisoformat(args.at) if args.at else datetime.now()
    status = check_alert_status(
        intervals,
        thresholds_from_args(args),
        now,
        active_minutes=active_session_minutes(intervals, now),
    )
    print(json.dumps(asdict(status) if status else None, indent=2))


def add_period_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--kind", default="biweekly", choices=PERIOD_KINDS)
    parser.add_argument("--week-start-day", type=int, default=0, help="0 = Sunday ... 6 = Saturday")
    parser.add_argument("--reference-date", help="Anchor date for biweekly periods")


def add_threshold_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--daily-threshold", type=int, help="Daily overtime threshold in minutes")
    parser.add_argument("--weekly-threshold", type=int, help="Weekly overtime threshold in minutes")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pay period and overtime calculator")
    sub = parser.add_subparsers(dest="command", required=True)

    period = sub.add_parser("period", help="Show the pay period containing a date")
    period.add_argument("date")
    add_period_arguments(period)
    period.set_defaults(func=cmd_period)

    periods = sub.add_parser("periods", help="List recent pay periods")
    periods.add_argument("--count", type=int, default=5)
    periods.add_argument("--today")
    add_period_arguments(periods)
    periods.set_defaults(func=cmd_periods)

    overtime = sub.add_parser("overtime", help="Regular/overtime split from a clock interval CSV")
    overtime.add_argument("path")
    add_threshold_arguments(overtime)
    overtime.set_defaults(func=cmd_overtime)

    alerts = sub.add_parser("alerts", help="Overtime alert status for one employee")
    alerts.add_argument("path")
    alerts.add_argument("employee")
    alerts.add_argument("--at", help="Reference time, ISO-8601 (defaults to now)")
    add_threshold_arguments(alerts)
    alerts.add_argument("--alert-before-daily", type=int)
    alerts.add_argument("--alert-before-weekly", type=int)
    alerts.set_defaults(func=cmd_alerts)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
