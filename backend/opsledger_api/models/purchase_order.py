from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from opsledger_api.db.session import Base


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)
    po_number = Column(String(50), nullable=False, unique=True)
    vendor_name = Column(String(200), nullable=False)
    status = Column(String(30), nullable=False, default="DRAFT", index=True)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    requested_by = Column(String(100), nullable=False)
    receipt_file_name = Column(String(255), nullable=True)

    auto_approval_note = Column(Text, nullable=True)
    approved_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_by = Column(String(100), nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_note = Column(Text, nullable=True)
    voided_by = Column(String(100), nullable=True)
    voided_at = Column(DateTime, nullable=True)
    void_note = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    line_items = relationship("POLineItem", back_populates="purchase_order", cascade="all, delete-orphan")


class POLineItem(Base):
    __tablename__ = "po_line_items"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=False, index=True)
    budget_item_id = Column(Integer, ForeignKey("budget_items.id"), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    purchase_order = relationship("PurchaseOrder", back_populates="line_items")
    budget_item = relationship("BudgetItem")
