from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, UniqueConstraint

from opsledger_api.db.session import Base


class PayPeriodLock(Base):
    __tablename__ = "pay_period_locks"
    __table_args__ = (UniqueConstraint("period_start", "period_end", name="uq_pay_period_lock_range"),)

    id = Column(Integer, primary_key=True, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    locked_by = Column(String(100), nullable=False)
    locked_at = Column(DateTime, default=datetime.utcnow)
    is_active = Column(Boolean, nullable=False, default=True)
