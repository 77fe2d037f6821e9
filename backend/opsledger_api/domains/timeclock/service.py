from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from opsledger.alerts import active_session_minutes, check_alert_status
from opsledger.exceptions import (
    AlreadyClockedIn,
    EntryNotReviewable,
    NotClockedIn,
    PayPeriodLocked,
    TimeclockEntryNotFound,
)
from opsledger.models import AlertStatus, ClockInterval, OvertimeCalculation, OvertimeThresholds, PayPeriodSpec
from opsledger.overtime import calculate_overtime, local_date, week_bounds
from opsledger.timeclock_rules import ClockOutResult, process_clock_out
from opsledger_api.core.config import Settings
from opsledger_api.core.logging import get_logger
from opsledger_api.models import AuditLog, OvertimeConfig, PayPeriodConfig, PayPeriodLock, TimeclockEntry

logger = get_logger(__name__)

DEFAULT_OVERTIME = {
    "daily_threshold": 480,
    "weekly_threshold": 2400,
    "alert_before_daily": 30,
    "alert_before_weekly": 120,
    "notify_employee": True,
    "notify_manager": True,
}


def zone(settings: Settings) -> tzinfo:
    return ZoneInfo(settings.timezone)


def as_utc(value: datetime) -> datetime:
    """Stored timestamps are naive UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def naive_utc(value: datetime) -> datetime:
    return as_utc(value).replace(tzinfo=None)


def utc_range(start: date, end: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Half-open naive UTC bounds covering local days ``start`` through ``end``."""
    lower = datetime.combine(start, time.min, tzinfo=tz)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=tz)
    return naive_utc(lower), naive_utc(upper)


def find_overtime_config(db: Session) -> Optional[OvertimeConfig]:
    return db.query(OvertimeConfig).order_by(OvertimeConfig.id).first()


def get_overtime_config(db: Session) -> OvertimeConfig:
    config = find_overtime_config(db)
    if config is None:
        config = OvertimeConfig(**DEFAULT_OVERTIME)
        db.add(config)
        db.commit()
        db.refresh(config)
    return config


def get_pay_period_config(db: Session) -> PayPeriodConfig:
    config = db.query(PayPeriodConfig).order_by(PayPeriodConfig.id).first()
    if config is None:
        config = PayPeriodConfig(type="biweekly", start_day_of_week=0, start_date=date.today())
        db.add(config)
        db.commit()
        db.refresh(config)
    return config


def thresholds_from_config(config: Optional[OvertimeConfig]) -> Optional[OvertimeThresholds]:
    if config is None:
        return None
    return OvertimeThresholds(
        daily_threshold_minutes=config.daily_threshold,
        weekly_threshold_minutes=config.weekly_threshold,
        alert_before_daily_minutes=config.alert_before_daily,
        alert_before_weekly_minutes=config.alert_before_weekly,
        notify_employee=config.notify_employee,
        notify_manager=config.notify_manager,
    )


def spec_from_config(config: PayPeriodConfig) -> PayPeriodSpec:
    return PayPeriodSpec(kind=config.type, week_start_day=config.start_day_of_week, reference_date=config.start_date)


def update_config(db: Session, row, values: dict, actor_id: str, entity_type: str):
    before = {key: _jsonable(getattr(row, key)) for key in values}
    for key, value in values.items():
        setattr(row, key, value)
    db.add(
        AuditLog(
            actor_id=actor_id,
            action="CONFIG_UPDATED",
            entity_type=entity_type,
            entity_id=str(row.id),
            changes={"before": before, "after": {key: _jsonable(value) for key, value in values.items()}},
        )
    )
    db.commit()
    db.refresh(row)
    logger.info("timeclock_config_updated", entity_type=entity_type, fields=sorted(values))
    return row


def _jsonable(value):
    return value.isoformat() if isinstance(value, date) else value


def to_interval(entry: TimeclockEntry) -> ClockInterval:
    return ClockInterval(
        id=entry.id,
        employee_id=entry.user_id,
        clock_in=as_utc(entry.clock_in),
        clock_out=as_utc(entry.clock_out) if entry.clock_out else None,
        duration_seconds=entry.duration,
        status=entry.status,
    )


def find_lock(db: Session, start: date, end: date) -> Optional[PayPeriodLock]:
    return (
        db.query(PayPeriodLock)
        .filter(PayPeriodLock.period_start == start, PayPeriodLock.period_end == end)
        .one_or_none()
    )


def lock_covering(db: Session, day: date) -> Optional[PayPeriodLock]:
    return (
        db.query(PayPeriodLock)
        .filter(
            PayPeriodLock.is_active.is_(True),
            PayPeriodLock.period_start <= day,
            PayPeriodLock.period_end >= day,
        )
        .first()
    )


def ensure_unlocked(db: Session, day: date) -> None:
    lock = lock_covering(db, day)
    if lock is not None:
        raise PayPeriodLocked(lock.period_start, lock.period_end)


def lock_period(db: Session, start: date, end: date, locked_by: str) -> PayPeriodLock:
    lock = find_lock(db, start, end)
    if lock is None:
        lock = PayPeriodLock(period_start=start, period_end=end, locked_by=locked_by)
        db.add(lock)
    else:
        lock.is_active = True
        lock.locked_by = locked_by
        lock.locked_at = datetime.utcnow()
    db.commit()
    db.refresh(lock)
    logger.info("pay_period_locked", period_start=start.isoformat(), period_end=end.isoformat(), locked_by=locked_by)
    return lock


def unlock_period(db: Session, start: date, end: date) -> Optional[PayPeriodLock]:
    lock = find_lock(db, start, end)
    if lock is None or not lock.is_active:
        return None
    lock.is_active = False
    db.commit()
    db.refresh(lock)
    logger.info("pay_period_unlocked", period_start=start.isoformat(), period_end=end.isoformat())
    return lock


def open_entry(db: Session, user_id: int) -> Optional[TimeclockEntry]:
    return (
        db.query(TimeclockEntry)
        .filter(TimeclockEntry.user_id == user_id, TimeclockEntry.clock_out.is_(None))
        .order_by(TimeclockEntry.clock_in.desc())
        .first()
    )


def clock_in(db: Session, user_id: int, now: datetime, settings: Settings) -> TimeclockEntry:
    if open_entry(db, user_id) is not None:
        raise AlreadyClockedIn(user_id)
    ensure_unlocked(db, local_date(as_utc(now), zone(settings)))

    entry = TimeclockEntry(user_id=user_id, clock_in=naive_utc(now), status="pending")
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("clocked_in", user_id=user_id, entry_id=entry.id)
    return entry


def clock_out(db: Session, user_id: int, now: datetime, settings: Settings) -> tuple[TimeclockEntry, ClockOutResult]:
    entry = open_entry(db, user_id)
    if entry is None:
        raise NotClockedIn(user_id)
    ensure_unlocked(db, local_date(as_utc(entry.clock_in), zone(settings)))

    clocked_out = naive_utc(now)
    raw_duration = max(int((clocked_out - entry.clock_in).total_seconds()), 0)
    result = process_clock_out(raw_duration, settings.timeclock_rules(), thresholds_from_config(find_overtime_config(db)))

    entry.clock_out = clocked_out
    entry.raw_duration = result.raw_duration
    entry.duration = result.final_duration
    entry.break_deducted = result.break_deducted
    entry.status = result.status
    entry.flag_reason = result.flag_reason
    entry.rejected_note = result.rejected_note
    db.commit()
    db.refresh(entry)
    logger.info(
        "clocked_out",
        user_id=user_id,
        entry_id=entry.id,
        duration=entry.duration,
        status=entry.status,
        auto_approved=result.auto_approved,
    )
    return entry, result


def get_entry(db: Session, entry_id: int) -> TimeclockEntry:
    entry = db.get(TimeclockEntry, entry_id)
    if entry is None:
        raise TimeclockEntryNotFound(entry_id)
    return entry


def _audit_review(db: Session, actor_id: str, action: str, entry: TimeclockEntry, before: dict, after: dict) -> None:
    db.add(
        AuditLog(
            actor_id=actor_id,
            action=action,
            entity_type="timeclock_entry",
            entity_id=str(entry.id),
            changes={"before": before, "after": after},
        )
    )


def _check_reviewable(db: Session, entry: TimeclockEntry, settings: Settings) -> None:
    if entry.clock_out is None:
        raise EntryNotReviewable(entry.id, "entry is still open")
    ensure_unlocked(db, local_date(as_utc(entry.clock_in), zone(settings)))


def _mark_approved(db: Session, entry: TimeclockEntry, actor_id: str, now: datetime, bulk: bool = False) -> None:
    before = {"status": entry.status}
    entry.status = "approved"
    entry.approved_by = actor_id
    entry.approved_at = now
    entry.rejected_note = None
    after = {"status": "approved", "approved_by": actor_id, "approved_at": now.isoformat()}
    if bulk:
        after["bulk"] = True
    _audit_review(db, actor_id, "TIMECLOCK_ENTRY_APPROVED", entry, before, after)


def approve_entry(db: Session, entry_id: int, actor_id: str, settings: Settings) -> TimeclockEntry:
    """Approve a closed entry so it counts towards period overtime and exports."""
    entry = get_entry(db, entry_id)
    _check_reviewable(db, entry, settings)
    if entry.status == "approved":
        raise EntryNotReviewable(entry.id, "entry is already approved")

    _mark_approved(db, entry, actor_id, datetime.utcnow())
    db.commit()
    db.refresh(entry)
    logger.info("timeclock_entry_approved", entry_id=entry.id, user_id=entry.user_id, actor_id=actor_id)
    return entry


def reject_entry(db: Session, entry_id: int, actor_id: str, note: str, settings: Settings) -> TimeclockEntry:
    note = (note or "").strip()
    if not note:
        raise EntryNotReviewable(entry_id, "a rejection note is required")
    entry = get_entry(db, entry_id)
    _check_reviewable(db, entry, settings)

    before = {"status": entry.status}
    entry.status = "rejected"
    entry.rejected_note = note
    entry.approved_by = None
    entry.approved_at = None
    _audit_review(db, actor_id, "TIMECLOCK_ENTRY_REJECTED", entry, before, {"status": "rejected", "rejected_note": note})
    db.commit()
    db.refresh(entry)
    logger.info("timeclock_entry_rejected", entry_id=entry.id, user_id=entry.user_id, actor_id=actor_id)
    return entry


def bulk_approve(db: Session, entry_ids: Iterable[int], actor_id: str, settings: Settings) -> list[dict]:
    """Approve every reviewable entry in one transaction; report the rest per id.

    Each result is ``{"id", "result", "reason"}`` with ``result`` one of
    approved, skipped or failed.
    """
    now = datetime.utcnow()
    results: list[dict] = []
    try:
        for entry_id in entry_ids:
            entry = db.get(TimeclockEntry, entry_id)
            if entry is None:
                results.append({"id": entry_id, "result": "failed", "reason": "entry not found"})
                continue
            if entry.status == "approved":
                results.append({"id": entry_id, "result": "skipped", "reason": "already approved"})
                continue
            try:
                _check_reviewable(db, entry, settings)
            except (EntryNotReviewable, PayPeriodLocked) as exc:
                results.append({"id": entry_id, "result": "skipped", "reason": str(exc)})
                continue
            _mark_approved(db, entry, actor_id, now, bulk=True)
            results.append({"id": entry_id, "result": "approved", "reason": None})
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "timeclock_bulk_approved",
        actor_id=actor_id,
        approved=sum(1 for item in results if item["result"] == "approved"),
        skipped=sum(1 for item in results if item["result"] == "skipped"),
        failed=sum(1 for item in results if item["result"] == "failed"),
    )
    return results


def entries_between(
    db: Session,
    start: date,
    end: date,
    tz: tzinfo,
    user_id: Optional[int] = None,
    status: Optional[str] = None,
) -> list[TimeclockEntry]:
    lower, upper = utc_range(start, end, tz)
    query = db.query(TimeclockEntry).filter(
        TimeclockEntry.clock_in >= lower,
        TimeclockEntry.clock_in < upper,
        TimeclockEntry.clock_out.isnot(None),
    )
    if user_id is not None:
        query = query.filter(TimeclockEntry.user_id == user_id)
    if status is not None:
        query = query.filter(TimeclockEntry.status == status)
    return query.order_by(TimeclockEntry.clock_in).all()


def alert_status(db: Session, user_id: int, now: datetime, settings: Settings) -> Optional[AlertStatus]:
    config = find_overtime_config(db)
    if config is None or not config.notify_employee:
        return None

    tz = zone(settings)
    reference = as_utc(now)
    week_start, week_end = week_bounds(local_date(reference, tz))
    completed = [to_interval(entry) for entry in entries_between(db, week_start, week_end, tz, user_id=user_id)]
    current = open_entry(db, user_id)
    active = active_session_minutes([to_interval(current)], reference) if current is not None else 0
    return check_alert_status(completed, thresholds_from_config(config), reference, active_minutes=active, tz=tz)


def overtime_for_period(
    db: Session,
    start: date,
    end: date,
    settings: Settings,
    user_id: Optional[int] = None,
) -> OvertimeCalculation:
    """Overtime over approved, completed entries clocked in within the period."""
    tz = zone(settings)
    entries = entries_between(db, start, end, tz, user_id=user_id, status="approved")
    thresholds = thresholds_from_config(find_overtime_config(db))
    return calculate_overtime([to_interval(entry) for entry in entries], thresholds, tz=tz)
