from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from opsledger.exceptions import PurchaseOrderNotFound
from opsledger.ledger import LedgerStore
from opsledger.models import LedgerBalance, LineItem
from opsledger.purchase_orders import PurchaseOrderStatus
from opsledger_api.models.budget_item import BudgetItem
from opsledger_api.models.purchase_order import POLineItem, PurchaseOrder


def _money(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value or 0))


class SqlAlchemyLedgerStore(LedgerStore):
    """Ledger store bound to the caller's session; never commits."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def line_items_for(self, purchase_order_id: int) -> List[LineItem]:
        self.session.flush()
        if self.session.get(PurchaseOrder, purchase_order_id) is None:
            raise PurchaseOrderNotFound(str(purchase_order_id))
        rows = self.session.execute(
            select(POLineItem.budget_item_id, POLineItem.amount).where(
                POLineItem.purchase_order_id == purchase_order_id
            )
        ).all()
        return [
            LineItem(purchase_order_id=purchase_order_id, budget_item_id=row.budget_item_id, amount=_money(row.amount))
            for row in rows
        ]

    def increment(self, budget_item_id: int, encumbered_delta: Decimal, actual_spent_delta: Decimal) -> None:
        # Single UPDATE ... SET col = col + delta; no read-modify-write in Python.
        self.session.execute(
            update(BudgetItem)
            .where(BudgetItem.id == budget_item_id)
            .values(
                encumbered=BudgetItem.encumbered + encumbered_delta,
                actual_spent=BudgetItem.actual_spent + actual_spent_delta,
            )
            .execution_options(synchronize_session=False)
        )

    def budget_item_ids(self, fiscal_year: Optional[int] = None) -> Set[int]:
        query = select(BudgetItem.id)
        if fiscal_year is not None:
            query = query.where(BudgetItem.fiscal_year == fiscal_year)
        return set(self.session.execute(query).scalars())

    def reset(self, budget_item_ids: Iterable[int]) -> None:
        ids = list(budget_item_ids)
        if not ids:
            return
        self.session.execute(
            update(BudgetItem)
            .where(BudgetItem.id.in_(ids))
            .values(encumbered=0, actual_spent=0)
            .execution_options(synchronize_session=False)
        )

    def orders_with_status(self, status: PurchaseOrderStatus) -> Dict[int, List[LineItem]]:
        self.session.flush()
        value = PurchaseOrderStatus(status).value
        order_ids = self.session.execute(select(PurchaseOrder.id).where(PurchaseOrder.status == value)).scalars().all()
        orders: Dict[int, List[LineItem]] = {order_id: [] for order_id in order_ids}
        if not orders:
            return orders

        rows = self.session.execute(
            select(POLineItem.purchase_order_id, POLineItem.budget_item_id, POLineItem.amount).where(
                POLineItem.purchase_order_id.in_(list(orders))
            )
        ).all()
        grouped: Dict[int, List[LineItem]] = defaultdict(list)
        for row in rows:
            grouped[row.purchase_order_id].append(
                LineItem(purchase_order_id=row.purchase_order_id, budget_item_id=row.budget_item_id, amount=_money(row.amount))
            )
        orders.update(grouped)
        return orders

    def set_totals(self, budget_item_id: int, encumbered: Decimal, actual_spent: Decimal) -> None:
        self.session.execute(
            update(BudgetItem)
            .where(BudgetItem.id == budget_item_id)
            .values(encumbered=encumbered, actual_spent=actual_spent)
            .execution_options(synchronize_session=False)
        )

    def balances(self, budget_item_ids: Iterable[int]) -> Dict[int, LedgerBalance]:
        ids = list(budget_item_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(BudgetItem.id, BudgetItem.budget_amount, BudgetItem.encumbered, BudgetItem.actual_spent).where(
                BudgetItem.id.in_(ids)
            )
        ).all()
        return {
            row.id: LedgerBalance(
                budget_item_id=row.id,
                budget_amount=_money(row.budget_amount),
                encumbered=_money(row.encumbered),
                actual_spent=_money(row.actual_spent),
            )
            for row in rows
        }
