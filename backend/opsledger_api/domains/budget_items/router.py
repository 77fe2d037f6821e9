from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from opsledger.ledger import BudgetLedger
from opsledger_api.core.logging import get_logger
from opsledger_api.core.observability import ledger_drift_lines
from opsledger_api.db.ledger_store import SqlAlchemyLedgerStore
from opsledger_api.db.session import get_session
from opsledger_api.models import BudgetItem

router = APIRouter(prefix="/budget-items", tags=["budget-items"])
logger = get_logger(__name__)


class BudgetItemCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1)
    fiscal_year: int = Field(..., ge=2000, le=2100)
    budget_amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class BudgetItemOut(BaseModel):
    id: int
    code: str
    description: str
    fiscal_year: int
    budget_amount: float
    encumbered: float
    actual_spent: float
    remaining: float


class RecalculationOut(BaseModel):
    budget_items_updated: int
    approved_orders_processed: int
    completed_orders_processed: int


class DriftOut(BaseModel):
    budget_item_id: int
    stored_encumbered: float
    expected_encumbered: float
    stored_actual_spent: float
    expected_actual_spent: float


def _serialize(item: BudgetItem) -> BudgetItemOut:
    budget_amount = Decimal(item.budget_amount)
    encumbered = Decimal(item.encumbered)
    actual_spent = Decimal(item.actual_spent)
    return BudgetItemOut(
        id=item.id,
        code=item.code,
        description=item.description,
        fiscal_year=item.fiscal_year,
        budget_amount=float(budget_amount),
        encumbered=float(encumbered),
        actual_spent=float(actual_spent),
        remaining=float(budget_amount - encumbered - actual_spent),
    )


@router.get("", response_model=list[BudgetItemOut])
def list_budget_items(fiscal_year: Optional[int] = None, db: Session = Depends(get_session)) -> list[BudgetItemOut]:
    query = db.query(BudgetItem)
    if fiscal_year is not None:
        query = query.filter(BudgetItem.fiscal_year == fiscal_year)
    return [_serialize(item) for item in query.order_by(BudgetItem.code).all()]


@router.post("", response_model=BudgetItemOut, status_code=201)
def create_budget_item(payload: BudgetItemCreate, db: Session = Depends(get_session)) -> BudgetItemOut:
    if db.query(BudgetItem).filter(BudgetItem.code == payload.code).one_or_none():
        raise HTTPException(status_code=400, detail="Budget item code already exists")

    item = BudgetItem(
        code=payload.code,
        description=payload.description,
        fiscal_year=payload.fiscal_year,
        budget_amount=payload.budget_amount,
        encumbered=0,
        actual_spent=0,
    )
    db.add(item)
    db.commit()
    db.refresh(item)

    logger.info("budget_item_created", code=item.code, fiscal_year=item.fiscal_year)
    return _serialize(item)


@router.get("/drift", response_model=list[DriftOut])
def budget_drift(fiscal_year: Optional[int] = None, db: Session = Depends(get_session)) -> list[DriftOut]:
    drifts = BudgetLedger(SqlAlchemyLedgerStore(db)).check_drift(fiscal_year)
    if drifts:
        ledger_drift_lines.add(len(drifts))
    return [
        DriftOut(
            budget_item_id=drift.budget_item_id,
            stored_encumbered=float(drift.stored_encumbered),
            expected_encumbered=float(drift.expected_encumbered),
            stored_actual_spent=float(drift.stored_actual_spent),
            expected_actual_spent=float(drift.expected_actual_spent),
        )
        for drift in drifts
    ]


@router.post("/recalculate", response_model=RecalculationOut)
def recalculate_budgets(fiscal_year: Optional[int] = None, db: Session = Depends(get_session)) -> RecalculationOut:
    try:
        summary = BudgetLedger(SqlAlchemyLedgerStore(db)).recalculate_all(fiscal_year)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return RecalculationOut(
        budget_items_updated=summary.budget_items_updated,
        approved_orders_processed=summary.approved_orders_processed,
        completed_orders_processed=summary.completed_orders_processed,
    )
