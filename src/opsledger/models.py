from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Optional, Union

RecordId = Union[int, str]


@dataclass
class ClockInterval:
    id: RecordId
    employee_id: RecordId
    clock_in: datetime
    clock_out: Optional[datetime] = None
    duration_seconds: Optional[int] = None  # None while clocked in
    status: str = "pending"

    @property
    def is_complete(self) -> bool:
        return self.clock_out is not None and self.duration_seconds is not None

    def minutes(self) -> int:
        # Truncated per interval, before any summing.
        return (self.duration_seconds or 0) // 60


@dataclass(frozen=True)
class OvertimeThresholds:
    daily_threshold_minutes: Optional[int] = None
    weekly_threshold_minutes: Optional[int] = None
    alert_before_daily_minutes: Optional[int] = None
    alert_before_weekly_minutes: Optional[int] = None
    notify_employee: bool = True
    notify_manager: bool = True

    @property
    def enabled(self) -> bool:
        return self.daily_threshold_minutes is not None or self.weekly_threshold_minutes is not None


@dataclass(frozen=True)
class PayPeriodSpec:
    kind: str = "weekly"  # weekly, biweekly, semimonthly, monthly
    week_start_day: Optional[int] = 0  # 0 = Sunday ... 6 = Saturday
    reference_date: Optional[date] = None


@dataclass(frozen=True)
class PayPeriod:
    start_date: date
    end_date: date
    label: str
    kind: str

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def dates(self):
        current = self.start_date
        while current <= self.end_date:
            yield current
            current += timedelta(days=1)


@dataclass
class EmployeeOvertimeResult:
    employee_id: RecordId
    regular_minutes: int = 0
    daily_overtime_minutes: int = 0
    weekly_overtime_minutes: int = 0
    total_minutes: int = 0
    entries_processed: int = 0

    def hours(self, bucket: str) -> float:
        """Minutes in ``bucket`` (e.g. ``"regular"``) expressed as hours."""

        return round(getattr(self, f"{bucket}_minutes") / 60, 2)


@dataclass
class OvertimeCalculation:
    employees: Dict[RecordId, EmployeeOvertimeResult] = field(default_factory=dict)
    total_regular_minutes: int = 0
    total_daily_overtime_minutes: int = 0
    total_weekly_overtime_minutes: int = 0

    def add_employee(self, result: EmployeeOvertimeResult) -> None:
        self.employees[result.employee_id] = result
        self.total_regular_minutes += result.regular_minutes
        self.total_daily_overtime_minutes += result.daily_overtime_minutes
        self.total_weekly_overtime_minutes += result.weekly_overtime_minutes

    @property
    def total_minutes(self) -> int:
        return self.total_regular_minutes + self.total_daily_overtime_minutes + self.total_weekly_overtime_minutes


@dataclass(frozen=True)
class ThresholdStatus:
    current_minutes: int
    threshold_minutes: Optional[int]
    approaching: bool = False
    exceeded: bool = False


@dataclass(frozen=True)
class AlertStatus:
    daily: ThresholdStatus
    weekly: ThresholdStatus

    @property
    def any_alert(self) -> bool:
        return any(s.approaching or s.exceeded for s in (self.daily, self.weekly))


@dataclass(frozen=True)
class LineItem:
    purchase_order_id: RecordId
    budget_item_id: RecordId
    amount: Decimal


@dataclass(frozen=True)
class LedgerDelta:
    budget_item_id: RecordId
    encumbered: Decimal
    actual_spent: Decimal

    @property
    def is_zero(self) -> bool:
        return self.encumbered == 0 and self.actual_spent == 0


@dataclass(frozen=True)
class LedgerBalance:
    budget_item_id: RecordId
    budget_amount: Decimal
    encumbered: Decimal
    actual_spent: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.budget_amount - self.encumbered - self.actual_spent


@dataclass(frozen=True)
class RecalculationSummary:
    budget_items_updated: int
    approved_orders_processed: int
    completed_orders_processed: int


@dataclass(frozen=True)
class LedgerDrift:
    budget_item_id: RecordId
    stored_encumbered: Decimal
    expected_encumbered: Decimal
    stored_actual_spent: Decimal
    expected_actual_spent: Decimal
