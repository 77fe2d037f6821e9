from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, Numeric, String

from opsledger_api.db.session import Base


class BudgetItem(Base):
    __tablename__ = "budget_items"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), nullable=False, unique=True)
    description = Column(String(255), nullable=False)
    fiscal_year = Column(Integer, nullable=False, index=True)
    budget_amount = Column(Numeric(12, 2), nullable=False, default=0)

    # Running balances, only ever moved by the budget ledger.
    encumbered = Column(Numeric(12, 2), nullable=False, default=0)
    actual_spent = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
