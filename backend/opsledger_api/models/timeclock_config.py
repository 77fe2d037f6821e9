from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String

from opsledger_api.db.session import Base


class OvertimeConfig(Base):
    __tablename__ = "overtime_config"

    id = Column(Integer, primary_key=True)
    daily_threshold = Column(Integer, nullable=True)  # minutes, null = no daily cap
    weekly_threshold = Column(Integer, nullable=True)
    alert_before_daily = Column(Integer, nullable=True)
    alert_before_weekly = Column(Integer, nullable=True)
    notify_employee = Column(Boolean, nullable=False, default=True)
    notify_manager = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PayPeriodConfig(Base):
    __tablename__ = "pay_period_config"

    id = Column(Integer, primary_key=True)
    type = Column(String(20), nullable=False, default="biweekly")
    start_day_of_week = Column(Integer, nullable=True, default=0)
    start_date = Column(Date, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
