from __future__ import annotations

from datetime import datetime, timedelta

from opsledger_api.models import AuditLog, OvertimeConfig, TimeclockEntry


def add_entry(db_session, user_id, clock_in, minutes=None, status="approved"):
    entry = TimeclockEntry(user_id=user_id, clock_in=clock_in, status=status)
    if minutes is not None:
        entry.clock_out = clock_in + timedelta(minutes=minutes)
        entry.duration = minutes * 60
        entry.raw_duration = minutes * 60
    db_session.add(entry)
    db_session.commit()
    return entry


def test_config_defaults(client):
    response = client.get("/timeclock/config")

    assert response.status_code == 200
    body = response.json()
    assert body["overtime"] == {
        "daily_threshold": 480,
        "weekly_threshold": 2400,
        "alert_before_daily": 30,
        "alert_before_weekly": 120,
        "notify_employee": True,
        "notify_manager": True,
    }
    assert body["pay_period"]["type"] == "biweekly"
    assert body["pay_period"]["start_day_of_week"] == 0


def test_config_update_is_validated_and_audited(client, db_session):
    bad_day = client.put("/timeclock/config", json={"actor_id": "admin", "pay_period": {"start_day_of_week": 7}})
    bad_kind = client.put("/timeclock/config", json={"actor_id": "admin", "pay_period": {"type": "quarterly"}})
    negative = client.put("/timeclock/config", json={"actor_id": "admin", "overtime": {"daily_threshold": -5}})

    assert bad_day.status_code == 422
    assert bad_kind.status_code == 422
    assert negative.status_code == 422

    updated = client.put(
        "/timeclock/config",
        json={
            "actor_id": "admin",
            "overtime": {"daily_threshold": 600, "weekly_threshold": None},
            "pay_period": {"type": "weekly", "start_day_of_week": 1},
        },
    )

    assert updated.status_code == 200
    assert updated.json()["overtime"]["daily_threshold"] == 600
    assert updated.json()["overtime"]["weekly_threshold"] is None
    assert updated.json()["pay_period"]["type"] == "weekly"
    actions = [row.entity_type for row in db_session.query(AuditLog).order_by(AuditLog.id)]
    assert actions == ["overtime_config", "pay_period_config"]


def test_clock_in_and_out(client):
    first = client.post("/timeclock/clock-in", json={"user_id": 3})
    again = client.post("/timeclock/clock-in", json={"user_id": 3})

    assert first.status_code == 201
    assert first.json()["clock_out"] is None
    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_CLOCKED_IN"

    out = client.post("/timeclock/clock-out", json={"user_id": 3})

    assert out.status_code == 200
    assert out.json()["id"] == first.json()["id"]
    assert out.json()["status"] == "pending"
    assert out.json()["auto_approved"] is False
    assert out.json()["duration"] >= 0

    assert client.post("/timeclock/clock-out", json={"user_id": 3}).status_code == 409


def test_clock_in_blocked_by_locked_period(client):
    today = datetime.utcnow().date()
    client.post(
        "/timeclock/pay-period-lock",
        json={
            "period_start": (today - timedelta(days=1)).isoformat(),
            "period_end": (today + timedelta(days=1)).isoformat(),
            "locked_by": "payroll",
        },
    )

    response = client.post("/timeclock/clock-in", json={"user_id": 3})

    assert response.status_code == 409
    assert response.json()["code"] == "PAY_PERIOD_LOCKED"


def test_alerts_null_without_config(client):
    response = client.get("/timeclock/alerts", params={"user_id": 1})

    assert response.status_code == 200
    assert response.json() is None


def test_alerts_null_when_employee_notifications_off(client, db_session):
    db_session.add(OvertimeConfig(daily_threshold=480, weekly_threshold=2400, notify_employee=False))
    db_session.commit()

    assert client.get("/timeclock/alerts", params={"user_id": 1}).json() is None


def test_alerts_count_open_session(client, db_session):
    client.get("/timeclock/config")
    add_entry(db_session, 7, datetime(2025, 1, 14, 6), minutes=420)
    add_entry(db_session, 7, datetime(2025, 1, 13, 6), minutes=480)
    add_entry(db_session, 8, datetime(2025, 1, 14, 6), minutes=600)
    add_entry(db_session, 7, datetime(2025, 1, 14, 14, 25))

    response = client.get("/timeclock/alerts", params={"user_id": 7, "at": "2025-01-14T15:00:00"})

    body = response.json()
    assert body["daily"] == {"current_minutes": 455, "threshold_minutes": 480, "approaching": True, "exceeded": False}
    assert body["weekly"]["current_minutes"] == 935
    assert body["weekly"]["approaching"] is False


def test_recent_periods_follow_config(client):
    client.put(
        "/timeclock/config",
        json={"actor_id": "admin", "pay_period": {"type": "biweekly", "start_day_of_week": 0, "start_date": "2025-01-05"}},
    )

    periods = client.get("/timeclock/periods", params={"count": 2, "today": "2025-01-20"}).json()

    assert periods == [
        {"start_date": "2025-01-19", "end_date": "2025-02-01", "label": "Jan 19 - Feb 1, 2025", "type": "biweekly"},
        {"start_date": "2025-01-05", "end_date": "2025-01-18", "label": "Jan 5 - 18, 2025", "type": "biweekly"},
    ]


def test_export_uses_approved_completed_entries(client, db_session):
    client.get("/timeclock/config")
    monday = datetime(2025, 1, 6, 7)
    for offset in range(5):
        add_entry(db_session, 1, monday + timedelta(days=offset), minutes=600)
    add_entry(db_session, 1, datetime(2025, 1, 11, 8), minutes=240, status="pending")
    add_entry(db_session, 1, datetime(2025, 1, 12, 8))
    add_entry(db_session, 1, datetime(2025, 1, 20, 8), minutes=600)
    add_entry(db_session, 2, datetime(2025, 1, 7, 9), minutes=90)

    response = client.get("/timeclock/export", params={"period_start": "2025-01-05", "period_end": "2025-01-18"})

    assert response.status_code == 200
    body = response.json()
    assert body["label"] == "Jan 5 - 18, 2025"
    assert body["locked"] is False
    assert body["employees"] == [
        {
            "employee_id": 1,
            "regular_hours": 40.0,
            "daily_overtime_hours": 10.0,
            "weekly_overtime_hours": 0.0,
            "total_hours": 50.0,
            "entries": 5,
        },
        {
            "employee_id": 2,
            "regular_hours": 1.5,
            "daily_overtime_hours": 0.0,
            "weekly_overtime_hours": 0.0,
            "total_hours": 1.5,
            "entries": 1,
        },
    ]
    assert body["total_regular_hours"] == 41.5
    assert body["total_overtime_hours"] == 10.0


def test_export_rejects_half_range(client):
    response = client.get("/timeclock/export", params={"period_start": "2025-01-05"})

    assert response.status_code == 422


def test_pay_period_lock_cycle(client):
    params = {"period_start": "2025-01-05", "period_end": "2025-01-18"}

    assert client.get("/timeclock/pay-period-lock", params=params).json()["locked"] is False

    created = client.post("/timeclock/pay-period-lock", json={**params, "locked_by": "payroll"})
    assert created.status_code == 201
    assert created.json()["locked_by"] == "payroll"

    status = client.get("/timeclock/pay-period-lock", params=params).json()
    assert status["locked"] is True
    assert client.get("/timeclock/export", params=params).json()["locked"] is True

    assert client.delete("/timeclock/pay-period-lock", params=params).status_code == 204
    assert client.get("/timeclock/pay-period-lock", params=params).json()["locked"] is False
    assert client.delete("/timeclock/pay-period-lock", params=params).status_code == 404


def test_lock_range_must_be_ordered(client):
    response = client.post(
        "/timeclock/pay-period-lock",
        json={"period_start": "2025-01-18", "period_end": "2025-01-05", "locked_by": "payroll"},
    )

    assert response.status_code == 422


def test_clocked_time_reaches_export_after_approval(client, db_session):
    client.get("/timeclock/config")
    entry_id = client.post("/timeclock/clock-in", json={"user_id": 4}).json()["id"]
    entry = db_session.get(TimeclockEntry, entry_id)
    entry.clock_in = entry.clock_in - timedelta(hours=2)
    db_session.commit()
    params = {"period_start": entry.clock_in.date().isoformat(), "period_end": datetime.utcnow().date().isoformat()}

    out = client.post("/timeclock/clock-out", json={"user_id": 4})

    assert out.json()["status"] == "pending"
    assert client.get("/timeclock/export", params=params).json()["employees"] == []

    approved = client.post(f"/timeclock/{entry_id}/approve", json={"actor_id": "manager"})

    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["approved_by"] == "manager"
    employees = client.get("/timeclock/export", params=params).json()["employees"]
    assert [(row["employee_id"], row["total_hours"], row["entries"]) for row in employees] == [(4, 2.0, 1)]
    actions = [row.action for row in db_session.query(AuditLog).filter_by(entity_type="timeclock_entry")]
    assert actions == ["TIMECLOCK_ENTRY_APPROVED"]

    again = client.post(f"/timeclock/{entry_id}/approve", json={"actor_id": "manager"})
    assert again.status_code == 400
    assert again.json()["code"] == "ENTRY_NOT_REVIEWABLE"


def test_open_entry_cannot_be_reviewed(client):
    entry_id = client.post("/timeclock/clock-in", json={"user_id": 5}).json()["id"]

    approve = client.post(f"/timeclock/{entry_id}/approve", json={"actor_id": "manager"})
    reject = client.post(f"/timeclock/{entry_id}/reject", json={"actor_id": "manager", "note": "no"})

    assert approve.status_code == 400
    assert reject.status_code == 400
    assert approve.json()["code"] == "ENTRY_NOT_REVIEWABLE"


def test_reject_requires_note_then_entry_can_be_approved(client, db_session):
    entry_id = add_entry(db_session, 1, datetime(2025, 2, 4, 8), minutes=60, status="pending").id

    blank = client.post(f"/timeclock/{entry_id}/reject", json={"actor_id": "manager", "note": "   "})
    assert blank.status_code == 422

    rejected = client.post(f"/timeclock/{entry_id}/reject", json={"actor_id": "manager", "note": " wrong job code "})
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"
    assert rejected.json()["rejected_note"] == "wrong job code"

    approved = client.post(f"/timeclock/{entry_id}/approve", json={"actor_id": "manager"})
    assert approved.json()["status"] == "approved"
    assert approved.json()["rejected_note"] is None

    actions = [row.action for row in db_session.query(AuditLog).order_by(AuditLog.id)]
    assert actions == ["TIMECLOCK_ENTRY_REJECTED", "TIMECLOCK_ENTRY_APPROVED"]


def test_review_refused_inside_locked_period(client, db_session):
    entry_id = add_entry(db_session, 1, datetime(2025, 1, 7, 8), minutes=60, status="pending").id
    client.post(
        "/timeclock/pay-period-lock",
        json={"period_start": "2025-01-05", "period_end": "2025-01-18", "locked_by": "payroll"},
    )

    approve = client.post(f"/timeclock/{entry_id}/approve", json={"actor_id": "manager"})
    reject = client.post(f"/timeclock/{entry_id}/reject", json={"actor_id": "manager", "note": "late"})

    assert approve.status_code == 409
    assert approve.json()["code"] == "PAY_PERIOD_LOCKED"
    assert reject.status_code == 409
    assert db_session.query(AuditLog).filter_by(entity_type="timeclock_entry").count() == 0


def test_review_unknown_entry(client):
    response = client.post("/timeclock/999/approve", json={"actor_id": "manager"})

    assert response.status_code == 404
    assert response.json()["code"] == "TIMECLOCK_ENTRY_NOT_FOUND"


def test_bulk_approve_reports_each_entry(client, db_session):
    pending = add_entry(db_session, 1, datetime(2025, 2, 4, 8), minutes=60, status="pending").id
    done = add_entry(db_session, 1, datetime(2025, 2, 5, 8), minutes=60, status="approved").id
    still_open = add_entry(db_session, 2, datetime(2025, 2, 5, 9), status="pending").id
    locked = add_entry(db_session, 2, datetime(2025, 1, 7, 8), minutes=60, status="pending").id
    client.post(
        "/timeclock/pay-period-lock",
        json={"period_start": "2025-01-05", "period_end": "2025-01-18", "locked_by": "payroll"},
    )

    response = client.post(
        "/timeclock/bulk-approve",
        json={"actor_id": "manager", "entry_ids": [pending, done, still_open, locked, 999]},
    )

    assert response.status_code == 200
    body = response.json()
    assert (body["approved"], body["skipped"], body["failed"]) == (1, 3, 1)
    assert [(row["id"], row["result"]) for row in body["details"]] == [
        (pending, "approved"),
        (done, "skipped"),
        (still_open, "skipped"),
        (locked, "skipped"),
        (999, "failed"),
    ]
    assert body["details"][4]["reason"] == "entry not found"
    audit = db_session.query(AuditLog).filter_by(entity_type="timeclock_entry").one()
    assert audit.entity_id == str(pending)
    assert audit.changes["after"]["bulk"] is True


def test_bulk_approve_needs_ids(client):
    response = client.post("/timeclock/bulk-approve", json={"actor_id": "manager", "entry_ids": []})

    assert response.status_code == 422


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/health/db").json()["database"] == "reachable"
