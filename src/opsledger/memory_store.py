from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set

from .exceptions import PurchaseOrderNotFound
from .ledger import LedgerStore
from .models import LedgerBalance, LineItem, RecordId
from .purchase_orders import PurchaseOrderStatus


@dataclass
class BudgetLine:
    id: RecordId
    budget_amount: Decimal
    fiscal_year: Optional[int] = None
    encumbered: Decimal = Decimal("0")
    actual_spent: Decimal = Decimal("0")


@dataclass
class StoredOrder:
    id: RecordId
    status: PurchaseOrderStatus
    line_items: List[LineItem] = field(default_factory=list)


class InMemoryLedgerStore(LedgerStore):
    """Dict-backed ledger store for tests and offline what-if runs."""

    def __init__(self) -> None:
        self.budget_lines: Dict[RecordId, BudgetLine] = {}
        self.orders: Dict[RecordId, StoredOrder] = {}

    def add_budget_line(
        self,
        budget_item_id: RecordId,
        budget_amount: Decimal,
        fiscal_year: Optional[int] = None,
    ) -> BudgetLine:
        line = BudgetLine(id=budget_item_id, budget_amount=Decimal(budget_amount), fiscal_year=fiscal_year)
        self.budget_lines[budget_item_id] = line
        return line

    def add_order(self, order_id: RecordId, status: PurchaseOrderStatus, amounts: Dict[RecordId, Decimal]) -> StoredOrder:
        line_items = [
            LineItem(purchase_order_id=order_id, budget_item_id=budget_item_id, amount=Decimal(amount))
            for budget_item_id, amount in amounts.items()
        ]
        order = StoredOrder(id=order_id, status=PurchaseOrderStatus(status), line_items=line_items)
        self.orders[order_id] = order
        return order

    def line_items_for(self, purchase_order_id: RecordId) -> List[LineItem]:
        order = self.orders.get(purchase_order_id)
        if order is None:
            raise PurchaseOrderNotFound(str(purchase_order_id))
        return list(order.line_items)

    def increment(self, budget_item_id: RecordId, encumbered_delta: Decimal, actual_spent_delta: Decimal) -> None:
        line = self.budget_lines[budget_item_id]
        line.encumbered += encumbered_delta
        line.actual_spent += actual_spent_delta

    def budget_item_ids(self, fiscal_year: Optional[int] = None) -> Set[RecordId]:
        return {
            line.id
            for line in self.budget_lines.values()
            if fiscal_year is None or line.fiscal_year == fiscal_year
        }

    def reset(self, budget_item_ids: Iterable[RecordId]) -> None:
        for budget_item_id in budget_item_ids:
            line = self.budget_lines[budget_item_id]
            line.encumbered = Decimal("0")
            line.actual_spent = Decimal("0")

    def orders_with_status(self, status: PurchaseOrderStatus) -> Dict[RecordId, List[LineItem]]:
        return {
            order.id: list(order.line_items)
            for order in self.orders.values()
            if order.status == PurchaseOrderStatus(status)
        }

    def set_totals(self, budget_item_id: RecordId, encumbered: Decimal, actual_spent: Decimal) -> None:
        line = self.budget_lines[budget_item_id]
        line.encumbered = encumbered
        line.actual_spent = actual_spent

    def balances(self, budget_item_ids: Iterable[RecordId]) -> Dict[RecordId, LedgerBalance]:
        result: Dict[RecordId, LedgerBalance] = {}
        for budget_item_id in budget_item_ids:
            line = self.budget_lines[budget_item_id]
            result[budget_item_id] = LedgerBalance(
                budget_item_id=line.id,
                budget_amount=line.budget_amount,
                encumbered=line.encumbered,
                actual_spent=line.actual_spent,
            )
        return result
