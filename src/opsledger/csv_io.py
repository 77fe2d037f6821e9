from __future__ import annotations
import csv
from datetime import datetime
from pathlib import Path
from typing import Iterable

from .models import ClockInterval


CSV_HEADERS = [
    "id",
    "employee_id",
    "clock_in",
    "clock_out",
    "duration_seconds",
    "status",
]


def export_intervals(path: Path, intervals: Iterable[ClockInterval]) -> None:
    with path.open("w", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=CSV_HEADERS)
        writer.writeheader()
        for interval in intervals:
            writer.writerow(
                {
                    "id": interval.id,
                    "employee_id": interval.employee_id,
                    "clock_in": interval.clock_in.isoformat(),
                    "clock_out": interval.clock_out.isoformat() if interval.clock_out else "",
                    "duration_seconds": "" if interval.duration_seconds is None else interval.duration_seconds,
                    "status": interval.status,
                }
            )


def import_intervals(path: Path) -> list[ClockInterval]:
    """Read clock intervals; a missing ``duration_seconds`` is derived from the timestamps."""

    intervals: list[ClockInterval] = []
    with path.open() as handle:
        reader = csv.DictReader(handle)
        for row in reader:
            clock_in = datetime.fromisoformat(row["clock_in"])
            clock_out = datetime.fromisoformat(row["clock_out"]) if row.get("clock_out") else None
            duration = row.get("duration_seconds") or None
            if duration is not None:
                duration = int(float(duration))
            elif clock_out is not None:
                duration = int((clock_out - clock_in).total_seconds())
            intervals.append(
                ClockInterval(
                    id=row["id"],
                    employee_id=row["employee_id"],
                    clock_in=clock_in,
                    clock_out=clock_out,
                    duration_seconds=duration,
                    status=row.get("status") or "pending",
                )
            )
    return intervals
