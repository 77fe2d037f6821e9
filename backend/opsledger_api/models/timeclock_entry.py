from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from opsledger_api.db.session import Base


class TimeclockEntry(Base):
    __tablename__ = "timeclock_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    clock_in = Column(DateTime, nullable=False, index=True)
    clock_out = Column(DateTime, nullable=True)

    # Seconds; duration is after break deduction and rounding.
    duration = Column(Integer, nullable=True)
    raw_duration = Column(Integer, nullable=True)
    break_deducted = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default="pending")  # pending|approved|rejected
    flag_reason = Column(String(50), nullable=True)
    rejected_note = Column(Text, nullable=True)
    approved_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
