from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from opsledger.purchase_orders import PurchaseOrderStatus
from opsledger_api.core.config import Settings, get_settings
from opsledger_api.core.logging import bind_request_context
from opsledger_api.db.session import get_session
from opsledger_api.domains.purchase_orders.service import NewLineItem, change_status, create_order, get_order
from opsledger_api.models import BudgetItem, PurchaseOrder

router = APIRouter(prefix="/purchase-orders", tags=["purchase-orders"])


class LineItemIn(BaseModel):
    budget_item_id: int
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class PurchaseOrderCreate(BaseModel):
    po_number: str = Field(..., min_length=1)
    vendor_name: str = Field(..., min_length=1)
    requested_by: str = Field(..., min_length=1)
    receipt_file_name: Optional[str] = None
    status: Literal["DRAFT", "PENDING_APPROVAL"] = "DRAFT"
    line_items: list[LineItemIn] = Field(..., min_length=1)

    @field_validator("po_number")
    @classmethod
    def strip_po_number(cls, value: str) -> str:
        return value.strip()


class StatusChange(BaseModel):
    status: PurchaseOrderStatus
    actor_id: str = Field(..., min_length=1)
    note: Optional[str] = None


class LineItemOut(BaseModel):
    id: int
    budget_item_id: int
    description: str
    amount: float


class PurchaseOrderOut(BaseModel):
    id: int
    po_number: str
    vendor_name: str
    status: PurchaseOrderStatus
    total_amount: float
    requested_by: str
    receipt_file_name: Optional[str]
    auto_approval_note: Optional[str]
    approved_by: Optional[str]
    approved_at: Optional[datetime]
    rejection_note: Optional[str]
    void_note: Optional[str]
    completed_at: Optional[datetime]
    line_items: list[LineItemOut]


def _serialize(order: PurchaseOrder) -> PurchaseOrderOut:
    return PurchaseOrderOut(
        id=order.id,
        po_number=order.po_number,
        vendor_name=order.vendor_name,
        status=order.status,
        total_amount=float(order.total_amount),
        requested_by=order.requested_by,
        receipt_file_name=order.receipt_file_name,
        auto_approval_note=order.auto_approval_note,
        approved_by=order.approved_by,
        approved_at=order.approved_at,
        rejection_note=order.rejection_note,
        void_note=order.void_note,
        completed_at=order.completed_at,
        line_items=[
            LineItemOut(
                id=item.id,
                budget_item_id=item.budget_item_id,
                description=item.description,
                amount=float(item.amount),
            )
            for item in order.line_items
        ],
    )


@router.get("", response_model=list[PurchaseOrderOut])
def list_purchase_orders(
    status: Optional[PurchaseOrderStatus] = None, db: Session = Depends(get_session)
) -> list[PurchaseOrderOut]:
    query = db.query(PurchaseOrder)
    if status is not None:
        query = query.filter(PurchaseOrder.status == status.value)
    return [_serialize(order) for order in query.order_by(PurchaseOrder.id).all()]


@router.post("", response_model=PurchaseOrderOut, status_code=201)
def create_purchase_order(payload: PurchaseOrderCreate, db: Session = Depends(get_session)) -> PurchaseOrderOut:
    if db.query(PurchaseOrder).filter(PurchaseOrder.po_number == payload.po_number).one_or_none():
        raise HTTPException(status_code=400, detail="Purchase order number already exists")

    budget_item_ids = {item.budget_item_id for item in payload.line_items}
    known = {row.id for row in db.query(BudgetItem.id).filter(BudgetItem.id.in_(budget_item_ids)).all()}
    missing = sorted(budget_item_ids - known)
    if missing:
        raise HTTPException(status_code=404, detail=f"Budget item {missing[0]} not found")

    order = create_order(
        db,
        po_number=payload.po_number,
        vendor_name=payload.vendor_name,
        requested_by=payload.requested_by,
        receipt_file_name=payload.receipt_file_name,
        status=PurchaseOrderStatus(payload.status),
        line_items=[
            NewLineItem(budget_item_id=item.budget_item_id, description=item.description, amount=item.amount)
            for item in payload.line_items
        ],
    )
    return _serialize(order)


@router.get("/{purchase_order_id}", response_model=PurchaseOrderOut)
def read_purchase_order(purchase_order_id: int, db: Session = Depends(get_session)) -> PurchaseOrderOut:
    return _serialize(get_order(db, purchase_order_id))


@router.post("/{purchase_order_id}/status", response_model=PurchaseOrderOut)
def update_purchase_order_status(
    purchase_order_id: int,
    payload: StatusChange,
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> PurchaseOrderOut:
    bind_request_context(actor_id=payload.actor_id, purchase_order_id=purchase_order_id)
    order = change_status(
        db,
        purchase_order_id,
        payload.status,
        actor_id=payload.actor_id,
        note=payload.note,
        settings=settings,
    )
    return _serialize(order)
