from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from opsledger.exceptions import PurchaseOrderNotFound, ReceiptRequired
from opsledger.ledger import BudgetLedger
from opsledger.models import LineItem
from opsledger.purchase_orders import (
    AUTO_APPROVAL_DISABLED,
    AutoApprovalDecision,
    PurchaseOrderStatus,
    check_auto_approval,
    validate_transition,
)
from opsledger_api.core.config import Settings
from opsledger_api.core.logging import get_logger
from opsledger_api.core.observability import ledger_transitions, tracer
from opsledger_api.db.ledger_store import SqlAlchemyLedgerStore
from opsledger_api.models import AuditLog, POLineItem, PurchaseOrder

logger = get_logger(__name__)


@dataclass(frozen=True)
class NewLineItem:
    budget_item_id: int
    description: str
    amount: Decimal


def _audit(db: Session, actor_id: str, action: str, order: PurchaseOrder, changes: dict) -> None:
    db.add(
        AuditLog(
            actor_id=actor_id,
            action=action,
            entity_type="purchase_order",
            entity_id=str(order.id),
            changes=changes,
        )
    )


def create_order(
    db: Session,
    *,
    po_number: str,
    vendor_name: str,
    requested_by: str,
    line_items: Iterable[NewLineItem],
    status: PurchaseOrderStatus = PurchaseOrderStatus.DRAFT,
    receipt_file_name: Optional[str] = None,
) -> PurchaseOrder:
    """Insert an order with its line items and encumber it if it starts past DRAFT.

    Orders created directly as APPROVED or COMPLETED (historical imports)
    go through the ledger with no previous status.
    """
    status = PurchaseOrderStatus(status)
    items = list(line_items)
    order = PurchaseOrder(
        po_number=po_number,
        vendor_name=vendor_name,
        requested_by=requested_by,
        status=status.value,
        receipt_file_name=receipt_file_name,
        total_amount=sum((Decimal(item.amount) for item in items), Decimal("0")),
    )
    order.line_items = [
        POLineItem(budget_item_id=item.budget_item_id, description=item.description, amount=item.amount)
        for item in items
    ]

    try:
        db.add(order)
        db.flush()
        BudgetLedger(SqlAlchemyLedgerStore(db)).apply_transition(order.id, None, status)
        _audit(db, requested_by, "PO_CREATED", order, {"after": {"status": status.value, "po_number": po_number}})
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info("po_created", purchase_order_id=order.id, po_number=po_number, status=status.value)
    return order


def get_order(db: Session, purchase_order_id: int) -> PurchaseOrder:
    order = db.get(PurchaseOrder, purchase_order_id)
    if order is None:
        raise PurchaseOrderNotFound(str(purchase_order_id))
    return order


def evaluate_auto_approval(db: Session, order: PurchaseOrder, settings: Settings) -> AutoApprovalDecision:
    store = SqlAlchemyLedgerStore(db)
    line_items = [
        LineItem(purchase_order_id=order.id, budget_item_id=item.budget_item_id, amount=Decimal(item.amount))
        for item in order.line_items
    ]
    balances = store.balances({item.budget_item_id for item in line_items})
    return check_auto_approval(
        Decimal(order.total_amount),
        line_items,
        balances,
        enabled=settings.po_auto_approval_enabled,
        threshold=settings.po_auto_approval_threshold,
    )


def change_status(
    db: Session,
    purchase_order_id: int,
    new_status: PurchaseOrderStatus,
    *,
    actor_id: str,
    settings: Settings,
    note: Optional[str] = None,
) -> PurchaseOrder:
    """Move an order to ``new_status`` and apply the ledger deltas in the same transaction.

    Submitting for approval may land the order directly in APPROVED when
    auto-approval is enabled and the order fits under the threshold and
    every budget line it touches.
    """
    order = get_order(db, purchase_order_id)
    old_status = PurchaseOrderStatus(order.status)
    new_status = PurchaseOrderStatus(new_status)

    validate_transition(old_status, new_status, note)
    if new_status == PurchaseOrderStatus.COMPLETED and not order.receipt_file_name:
        raise ReceiptRequired(str(purchase_order_id))

    now = datetime.utcnow()
    target = new_status
    action = f"PO_{new_status.value}"

    if new_status == PurchaseOrderStatus.PENDING_APPROVAL:
        action = "PO_SUBMITTED"
        decision = evaluate_auto_approval(db, order, settings)
        if decision.approved:
            target = PurchaseOrderStatus.APPROVED
            action = "PO_AUTO_APPROVED"
            order.approved_by = "auto-approval"
            order.approved_at = now
            order.auto_approval_note = None
        elif decision.reason != AUTO_APPROVAL_DISABLED:
            order.auto_approval_note = decision.reason
    elif new_status == PurchaseOrderStatus.APPROVED:
        order.approved_by = actor_id
        order.approved_at = now
    elif new_status == PurchaseOrderStatus.REJECTED:
        order.rejected_by = actor_id
        order.rejected_at = now
        order.rejection_note = note
    elif new_status == PurchaseOrderStatus.CANCELLED:
        order.voided_by = actor_id
        order.voided_at = now
        order.void_note = note
    elif new_status == PurchaseOrderStatus.COMPLETED:
        order.completed_at = now
    elif new_status == PurchaseOrderStatus.DRAFT:
        # Reopened after rejection; the order gets a fresh review.
        order.rejected_by = None
        order.rejected_at = None
        order.rejection_note = None
        order.auto_approval_note = None

    with tracer.start_as_current_span("purchase_order.change_status") as span:
        span.set_attribute("purchase_order.id", order.id)
        span.set_attribute("purchase_order.old_status", old_status.value)
        span.set_attribute("purchase_order.new_status", target.value)
        try:
            order.status = target.value
            db.flush()
            deltas = BudgetLedger(SqlAlchemyLedgerStore(db)).apply_transition(order.id, old_status, target)
            _audit(
                db,
                actor_id,
                action,
                order,
                {
                    "before": {"status": old_status.value},
                    "after": {"status": target.value, "note": note},
                    "auto_approval_note": order.auto_approval_note,
                },
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

    ledger_transitions.add(1, {"old_status": old_status.value, "new_status": target.value})
    db.refresh(order)
    logger.info(
        "po_status_changed",
        purchase_order_id=order.id,
        old_status=old_status.value,
        new_status=target.value,
        actor_id=actor_id,
        budget_items=len(deltas),
    )
    return order
