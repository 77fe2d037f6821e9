from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.orm import Session

from opsledger.models import AlertStatus, ThresholdStatus
from opsledger.pay_period import current_pay_period, format_period_label, recent_periods
from opsledger_api.core.config import Settings, get_settings
from opsledger_api.core.logging import bind_request_context
from opsledger_api.db.session import get_session
from opsledger_api.domains.timeclock import service
from opsledger_api.models import TimeclockEntry

router = APIRouter(prefix="/timeclock", tags=["timeclock"])

PeriodKind = Literal["weekly", "biweekly", "semimonthly", "monthly"]


class OvertimeConfigIn(BaseModel):
    daily_threshold: Optional[int] = Field(default=None, ge=0)
    weekly_threshold: Optional[int] = Field(default=None, ge=0)
    alert_before_daily: Optional[int] = Field(default=None, ge=0)
    alert_before_weekly: Optional[int] = Field(default=None, ge=0)
    notify_employee: bool = True
    notify_manager: bool = True


class PayPeriodConfigIn(BaseModel):
    type: PeriodKind = "biweekly"
    start_day_of_week: int = Field(default=0, ge=0, le=6)
    start_date: Optional[date] = None


class ConfigUpdate(BaseModel):
    actor_id: str = Field(..., min_length=1)
    overtime: Optional[OvertimeConfigIn] = None
    pay_period: Optional[PayPeriodConfigIn] = None


class ConfigOut(BaseModel):
    overtime: OvertimeConfigIn
    pay_period: PayPeriodConfigIn


class ClockRequest(BaseModel):
    user_id: int


class EntryOut(BaseModel):
    id: int
    user_id: int
    clock_in: datetime
    clock_out: Optional[datetime]
    duration: Optional[int]
    raw_duration: Optional[int]
    break_deducted: int
    status: str
    flag_reason: Optional[str]
    rejected_note: Optional[str]
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None


class ClockOutOut(EntryOut):
    auto_approved: bool


class ApproveIn(BaseModel):
    actor_id: str = Field(..., min_length=1)


class RejectIn(BaseModel):
    actor_id: str = Field(..., min_length=1)
    note: str = Field(..., min_length=1)

    @field_validator("note")
    @classmethod
    def note_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("A rejection note is required")
        return value


class BulkApproveIn(BaseModel):
    actor_id: str = Field(..., min_length=1)
    entry_ids: list[int] = Field(..., min_length=1)


class BulkResultOut(BaseModel):
    id: int
    result: Literal["approved", "skipped", "failed"]
    reason: Optional[str] = None


class BulkApproveOut(BaseModel):
    approved: int
    skipped: int
    failed: int
    details: list[BulkResultOut]


class ThresholdOut(BaseModel):
    current_minutes: int
    threshold_minutes: Optional[int]
    approaching: bool
    exceeded: bool


class AlertOut(BaseModel):
    daily: ThresholdOut
    weekly: ThresholdOut


class PeriodOut(BaseModel):
    start_date: date
    end_date: date
    label: str
    type: str


class EmployeeHoursOut(BaseModel):
    employee_id: int
    regular_hours: float
    daily_overtime_hours: float
    weekly_overtime_hours: float
    total_hours: float
    entries: int


class ExportOut(BaseModel):
    period_start: date
    period_end: date
    label: str
    locked: bool
    employees: list[EmployeeHoursOut]
    total_regular_hours: float
    total_overtime_hours: float


class LockIn(BaseModel):
    period_start: date
    period_end: date
    locked_by: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_range(self) -> "LockIn":
        if self.period_end < self.period_start:
            raise ValueError("period_end must not be before period_start")
        return self


class LockOut(BaseModel):
    period_start: date
    period_end: date
    locked: bool
    locked_by: Optional[str] = None
    locked_at: Optional[datetime] = None


def _entry(entry: TimeclockEntry) -> dict:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "clock_in": entry.clock_in,
        "clock_out": entry.clock_out,
        "duration": entry.duration,
        "raw_duration": entry.raw_duration,
        "break_deducted": entry.break_deducted or 0,
        "status": entry.status,
        "flag_reason": entry.flag_reason,
        "rejected_note": entry.rejected_note,
        "approved_by": entry.approved_by,
        "approved_at": entry.approved_at,
    }


def _threshold(status: ThresholdStatus) -> ThresholdOut:
    return ThresholdOut(
        current_minutes=status.current_minutes,
        threshold_minutes=status.threshold_minutes,
        approaching=status.approaching,
        exceeded=status.exceeded,
    )


def _config_out(db: Session) -> ConfigOut:
    overtime = service.get_overtime_config(db)
    pay_period = service.get_pay_period_config(db)
    return ConfigOut(
        overtime=OvertimeConfigIn(
            daily_threshold=overtime.daily_threshold,
            weekly_threshold=overtime.weekly_threshold,
            alert_before_daily=overtime.alert_before_daily,
            alert_before_weekly=overtime.alert_before_weekly,
            notify_employee=overtime.notify_employee,
            notify_manager=overtime.notify_manager,
        ),
        pay_period=PayPeriodConfigIn(
            type=pay_period.type,
            start_day_of_week=pay_period.start_day_of_week if pay_period.start_day_of_week is not None else 0,
            start_date=pay_period.start_date,
        ),
    )


@router.get("/config", response_model=ConfigOut)
def read_config(db: Session = Depends(get_session)) -> ConfigOut:
    return _config_out(db)


@router.put("/config", response_model=ConfigOut)
def update_config(payload: ConfigUpdate, db: Session = Depends(get_session)) -> ConfigOut:
    if payload.overtime is not None:
        service.update_config(
            db, service.get_overtime_config(db), payload.overtime.model_dump(), payload.actor_id, "overtime_config"
        )
    if payload.pay_period is not None:
        service.update_config(
            db, service.get_pay_period_config(db), payload.pay_period.model_dump(), payload.actor_id, "pay_period_config"
        )
    return _config_out(db)


@router.post("/clock-in", response_model=EntryOut, status_code=201)
def clock_in(
    payload: ClockRequest,
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> EntryOut:
    bind_request_context(user_id=payload.user_id)
    entry = service.clock_in(db, payload.user_id, datetime.utcnow(), settings)
    return EntryOut(**_entry(entry))


@router.post("/clock-out", response_model=ClockOutOut)
def clock_out(
    payload: ClockRequest,
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> ClockOutOut:
    bind_request_context(user_id=payload.user_id)
    entry, result = service.clock_out(db, payload.user_id, datetime.utcnow(), settings)
    return ClockOutOut(**_entry(entry), auto_approved=result.auto_approved)


@router.post("/bulk-approve", response_model=BulkApproveOut)
def bulk_approve_entries(
    payload: BulkApproveIn,
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> BulkApproveOut:
    results = service.bulk_approve(db, payload.entry_ids, payload.actor_id, settings)
    counts = {
        outcome: sum(1 for item in results if item["result"] == outcome) for outcome in ("approved", "skipped", "failed")
    }
    return BulkApproveOut(**counts, details=[BulkResultOut(**item) for item in results])


@router.post("/{entry_id}/approve", response_model=EntryOut)
def approve_entry(
    entry_id: int,
    payload: ApproveIn,
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> EntryOut:
    entry = service.approve_entry(db, entry_id, payload.actor_id, settings)
    return EntryOut(**_entry(entry))


@router.post("/{entry_id}/reject", response_model=EntryOut)
def reject_entry(
    entry_id: int,
    payload: RejectIn,
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> EntryOut:
    entry = service.reject_entry(db, entry_id, payload.actor_id, payload.note, settings)
    return EntryOut(**_entry(entry))


@router.get("/alerts", response_model=Optional[AlertOut])
def read_alerts(
    user_id: int,
    at: Optional[datetime] = Query(default=None, description="Reference instant, defaults to now"),
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Optional[AlertOut]:
    status: Optional[AlertStatus] = service.alert_status(db, user_id, at or datetime.utcnow(), settings)
    if status is None:
        return None
    return AlertOut(daily=_threshold(status.daily), weekly=_threshold(status.weekly))


@router.get("/periods", response_model=list[PeriodOut])
def list_periods(
    count: int = Query(default=5, ge=1, le=52),
    today: Optional[date] = None,
    db: Session = Depends(get_session),
) -> list[PeriodOut]:
    spec = service.spec_from_config(service.get_pay_period_config(db))
    return [
        PeriodOut(start_date=period.start_date, end_date=period.end_date, label=period.label, type=period.kind)
        for period in recent_periods(spec, count=count, today=today)
    ]


@router.get("/export", response_model=ExportOut)
def export_period(
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
    user_id: Optional[int] = None,
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> ExportOut:
    if (period_start is None) != (period_end is None):
        raise HTTPException(status_code=422, detail="period_start and period_end must be given together")
    if period_start is None:
        period = current_pay_period(service.spec_from_config(service.get_pay_period_config(db)))
        period_start, period_end = period.start_date, period.end_date
    if period_end < period_start:
        raise HTTPException(status_code=422, detail="period_end must not be before period_start")

    calculation = service.overtime_for_period(db, period_start, period_end, settings, user_id=user_id)
    lock = service.find_lock(db, period_start, period_end)
    employees = [
        EmployeeHoursOut(
            employee_id=result.employee_id,
            regular_hours=result.hours("regular"),
            daily_overtime_hours=result.hours("daily_overtime"),
            weekly_overtime_hours=result.hours("weekly_overtime"),
            total_hours=result.hours("total"),
            entries=result.entries_processed,
        )
        for _, result in sorted(calculation.employees.items())
    ]
    overtime_minutes = calculation.total_daily_overtime_minutes + calculation.total_weekly_overtime_minutes
    return ExportOut(
        period_start=period_start,
        period_end=period_end,
        label=format_period_label(period_start, period_end),
        locked=bool(lock and lock.is_active),
        employees=employees,
        total_regular_hours=round(calculation.total_regular_minutes / 60, 2),
        total_overtime_hours=round(overtime_minutes / 60, 2),
    )


@router.get("/pay-period-lock", response_model=LockOut)
def read_lock(period_start: date, period_end: date, db: Session = Depends(get_session)) -> LockOut:
    lock = service.find_lock(db, period_start, period_end)
    if lock is None or not lock.is_active:
        return LockOut(period_start=period_start, period_end=period_end, locked=False)
    return LockOut(
        period_start=period_start,
        period_end=period_end,
        locked=True,
        locked_by=lock.locked_by,
        locked_at=lock.locked_at,
    )


@router.post("/pay-period-lock", response_model=LockOut, status_code=201)
def create_lock(payload: LockIn, db: Session = Depends(get_session)) -> LockOut:
    lock = service.lock_period(db, payload.period_start, payload.period_end, payload.locked_by)
    return LockOut(
        period_start=lock.period_start,
        period_end=lock.period_end,
        locked=True,
        locked_by=lock.locked_by,
        locked_at=lock.locked_at,
    )


@router.delete("/pay-period-lock", status_code=204)
def delete_lock(period_start: date, period_end: date, db: Session = Depends(get_session)) -> Response:
    if service.unlock_period(db, period_start, period_end) is None:
        raise HTTPException(status_code=404, detail="Pay period is not locked")
    return Response(status_code=204)
