from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String

from opsledger_api.db.session import Base


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(String(100), nullable=False)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(50), nullable=False)
    changes = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
