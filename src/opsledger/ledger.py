"""Budget encumbrance ledger.

Every budget line carries two running balances: ``encumbered`` (money reserved
by APPROVED purchase orders) and ``actual_spent`` (money realised by COMPLETED
orders). A status change on an order moves its line-item amounts between those
balances as signed deltas, applied with atomic increments through a
``LedgerStore`` so concurrent transitions on the same budget line never lose
an update. ``recalculate_all`` rebuilds both balances from the orders
themselves and is the repair path when incremental updates have drifted.

The ledger trusts its caller to have validated the transition already.
"""
from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple

import structlog

from .models import LedgerBalance, LedgerDelta, LedgerDrift, LineItem, RecalculationSummary, RecordId
from .purchase_orders import PurchaseOrderStatus

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


class LedgerStore:
    """Unit of work the ledger reads line items from and writes balances to.

    Implementations run inside the caller's transaction and must apply
    ``increment`` as a single atomic update of the stored values.
    """

    def line_items_for(self, purchase_order_id: RecordId) -> List[LineItem]:
        """Line items of one order; raises ``PurchaseOrderNotFound``."""
        raise NotImplementedError

    def increment(self, budget_item_id: RecordId, encumbered_delta: Decimal, actual_spent_delta: Decimal) -> None:
        raise NotImplementedError

    def budget_item_ids(self, fiscal_year: Optional[int] = None) -> Set[RecordId]:
        raise NotImplementedError

    def reset(self, budget_item_ids: Iterable[RecordId]) -> None:
        raise NotImplementedError

    def orders_with_status(self, status: PurchaseOrderStatus) -> Dict[RecordId, List[LineItem]]:
        raise NotImplementedError

    def set_totals(self, budget_item_id: RecordId, encumbered: Decimal, actual_spent: Decimal) -> None:
        raise NotImplementedError

    def balances(self, budget_item_ids: Iterable[RecordId]) -> Dict[RecordId, LedgerBalance]:
        raise NotImplementedError


def transition_deltas(
    amount: Decimal,
    old_status: Optional[PurchaseOrderStatus],
    new_status: PurchaseOrderStatus,
) -> Tuple[Decimal, Decimal]:
    """Signed (encumbered, actual_spent) change for moving ``amount`` between statuses."""

    encumbered = ZERO
    actual_spent = ZERO
    new_status = PurchaseOrderStatus(new_status)

    if old_status is None:
        if new_status == PurchaseOrderStatus.APPROVED:
            encumbered = amount
        elif new_status == PurchaseOrderStatus.COMPLETED:
            actual_spent = amount
        return encumbered, actual_spent

    old_status = PurchaseOrderStatus(old_status)
    if old_status == PurchaseOrderStatus.APPROVED:
        encumbered -= amount
    elif old_status == PurchaseOrderStatus.COMPLETED:
        actual_spent -= amount

    if new_status == PurchaseOrderStatus.APPROVED:
        encumbered += amount
    elif new_status == PurchaseOrderStatus.COMPLETED:
        # Leaving APPROVED above already released the reservation exactly once.
        actual_spent += amount

    return encumbered, actual_spent


def group_by_budget_item(line_items: Iterable[LineItem]) -> Dict[RecordId, Decimal]:
    totals: Dict[RecordId, Decimal] = defaultdict(lambda: ZERO)
    for line_item in line_items:
        totals[line_item.budget_item_id] += Decimal(line_item.amount)
    return dict(totals)


class BudgetLedger:
    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    def apply_transition(
        self,
        purchase_order_id: RecordId,
        old_status: Optional[PurchaseOrderStatus],
        new_status: PurchaseOrderStatus,
    ) -> List[LedgerDelta]:
        applied: List[LedgerDelta] = []
        amounts = group_by_budget_item(self.store.line_items_for(purchase_order_id))
        for budget_item_id, amount in amounts.items():
            encumbered, actual_spent = transition_deltas(amount, old_status, new_status)
            delta = LedgerDelta(budget_item_id=budget_item_id, encumbered=encumbered, actual_spent=actual_spent)
            if delta.is_zero:
                continue
            self.store.increment(budget_item_id, encumbered, actual_spent)
            applied.append(delta)

        logger.info(
            "ledger_transition_applied",
            purchase_order_id=purchase_order_id,
            old_status=getattr(old_status, "value", old_status),
            new_status=getattr(new_status, "value", new_status),
            budget_items=len(applied),
        )
        return applied

    def _expected_totals(self, scope: Set[RecordId]) -> Tuple[Dict[RecordId, Tuple[Decimal, Decimal]], int, int]:
        approved = self.store.orders_with_status(PurchaseOrderStatus.APPROVED)
        completed = self.store.orders_with_status(PurchaseOrderStatus.COMPLETED)

        totals: Dict[RecordId, List[Decimal]] = defaultdict(lambda: [ZERO, ZERO])
        for line_items in approved.values():
            for line_item in line_items:
                if line_item.budget_item_id in scope:
                    totals[line_item.budget_item_id][0] += Decimal(line_item.amount)
        for line_items in completed.values():
            for line_item in line_items:
                if line_item.budget_item_id in scope:
                    totals[line_item.budget_item_id][1] += Decimal(line_item.amount)

        expected = {key: (value[0], value[1]) for key, value in totals.items()}
        return expected, len(approved), len(completed)

    def recalculate_all(self, fiscal_year: Optional[int] = None) -> RecalculationSummary:
        """Rebuild encumbered/actual_spent from APPROVED and COMPLETED orders.

        Offline maintenance: it is not isolated from concurrent incremental
        updates.
        """
        scope = self.store.budget_item_ids(fiscal_year)
        self.store.reset(scope)
        expected, approved_count, completed_count = self._expected_totals(scope)
        for budget_item_id, (encumbered, actual_spent) in expected.items():
            self.store.set_totals(budget_item_id, encumbered, actual_spent)

        summary = RecalculationSummary(
            budget_items_updated=len(expected),
            approved_orders_processed=approved_count,
            completed_orders_processed=completed_count,
        )
        logger.info(
            "ledger_recalculated",
            fiscal_year=fiscal_year,
            budget_items_updated=summary.budget_items_updated,
            approved_orders_processed=summary.approved_orders_processed,
            completed_orders_processed=summary.completed_orders_processed,
        )
        return summary

    def check_drift(self, fiscal_year: Optional[int] = None) -> List[LedgerDrift]:
        """Report budget lines whose stored balances differ from the orders. Read-only."""

        scope = self.store.budget_item_ids(fiscal_year)
        expected, _, _ = self._expected_totals(scope)
        drifts: List[LedgerDrift] = []
        for budget_item_id, balance in sorted(self.store.balances(scope).items()):
            expected_encumbered, expected_actual = expected.get(budget_item_id, (ZERO, ZERO))
            if balance.encumbered == expected_encumbered and balance.actual_spent == expected_actual:
                continue
            drift = LedgerDrift(
                budget_item_id=budget_item_id,
                stored_encumbered=balance.encumbered,
                expected_encumbered=expected_encumbered,
                stored_actual_spent=balance.actual_spent,
                expected_actual_spent=expected_actual,
            )
            logger.warning(
                "ledger_drift_detected",
                budget_item_id=budget_item_id,
                stored_encumbered=str(balance.encumbered),
                expected_encumbered=str(expected_encumbered),
                stored_actual_spent=str(balance.actual_spent),
                expected_actual_spent=str(expected_actual),
            )
            drifts.append(drift)
        return drifts
