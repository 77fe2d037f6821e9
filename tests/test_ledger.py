from decimal import Decimal

import pytest

from opsledger.exceptions import PurchaseOrderNotFound
from opsledger.ledger import BudgetLedger, transition_deltas
from opsledger.memory_store import InMemoryLedgerStore
from opsledger.purchase_orders import PurchaseOrderStatus as S


def build_store():
    store = InMemoryLedgerStore()
    store.add_budget_line("supplies", Decimal("5000"), fiscal_year=2025)
    store.add_budget_line("travel", Decimal("2000"), fiscal_year=2025)
    store.add_budget_line("legacy", Decimal("1000"), fiscal_year=2024)
    return store


def move(store, ledger, order_id, new_status):
    order = store.orders[order_id]
    deltas = ledger.apply_transition(order_id, order.status, new_status)
    order.status = new_status
    return deltas


def totals(store, budget_item_id):
    line = store.budget_lines[budget_item_id]
    return line.encumbered, line.actual_spent


def test_transition_deltas():
    amount = Decimal("100")

    assert transition_deltas(amount, None, S.APPROVED) == (amount, 0)
    assert transition_deltas(amount, None, S.COMPLETED) == (0, amount)
    assert transition_deltas(amount, None, S.DRAFT) == (0, 0)
    assert transition_deltas(amount, S.PENDING_APPROVAL, S.APPROVED) == (amount, 0)
    assert transition_deltas(amount, S.APPROVED, S.COMPLETED) == (-amount, amount)
    assert transition_deltas(amount, S.APPROVED, S.CANCELLED) == (-amount, 0)
    assert transition_deltas(amount, S.COMPLETED, S.CANCELLED) == (0, -amount)
    assert transition_deltas(amount, S.REJECTED, S.DRAFT) == (0, 0)


def test_lifecycle_matches_recalculation():
    store = build_store()
    ledger = BudgetLedger(store)
    store.add_order(1, S.DRAFT, {"supplies": Decimal("300"), "travel": Decimal("120.50")})
    store.add_order(2, S.DRAFT, {"supplies": Decimal("75")})

    for order_id in (1, 2):
        move(store, ledger, order_id, S.PENDING_APPROVAL)
        move(store, ledger, order_id, S.APPROVED)

    assert totals(store, "supplies") == (Decimal("375"), Decimal("0"))

    move(store, ledger, 1, S.COMPLETED)
    incremental = {key: totals(store, key) for key in store.budget_lines}

    BudgetLedger(store).recalculate_all()
    recalculated = {key: totals(store, key) for key in store.budget_lines}

    assert recalculated["supplies"] == (Decimal("75"), Decimal("300"))
    assert recalculated["travel"] == (Decimal("0"), Decimal("120.50"))
    assert incremental == recalculated


def test_cancelling_releases_funds():
    store = build_store()
    ledger = BudgetLedger(store)
    store.add_order(1, S.APPROVED, {"travel": Decimal("400")})
    ledger.apply_transition(1, None, S.APPROVED)

    move(store, ledger, 1, S.CANCELLED)

    assert totals(store, "travel") == (Decimal("0"), Decimal("0"))


def test_completed_then_cancelled_zeroes_spend():
    store = build_store()
    ledger = BudgetLedger(store)
    store.add_order(1, S.COMPLETED, {"supplies": Decimal("80")})
    ledger.apply_transition(1, None, S.COMPLETED)

    assert totals(store, "supplies") == (Decimal("0"), Decimal("80"))

    move(store, ledger, 1, S.CANCELLED)

    assert totals(store, "supplies") == (Decimal("0"), Decimal("0"))


def test_zero_deltas_are_skipped():
    store = build_store()
    store.add_order(1, S.DRAFT, {"supplies": Decimal("50")})

    assert BudgetLedger(store).apply_transition(1, S.DRAFT, S.PENDING_APPROVAL) == []


def test_line_items_on_same_budget_line_are_grouped():
    store = build_store()
    store.add_order(1, S.PENDING_APPROVAL, {"supplies": Decimal("50")})
    store.orders[1].line_items.append(store.orders[1].line_items[0])

    deltas = BudgetLedger(store).apply_transition(1, S.PENDING_APPROVAL, S.APPROVED)

    assert len(deltas) == 1
    assert deltas[0].encumbered == Decimal("100")


def test_unknown_order_raises():
    with pytest.raises(PurchaseOrderNotFound):
        BudgetLedger(build_store()).apply_transition(42, None, S.APPROVED)


def test_recalculate_is_idempotent():
    store = build_store()
    store.add_order(1, S.APPROVED, {"supplies": Decimal("10"), "legacy": Decimal("5")})
    store.add_order(2, S.COMPLETED, {"travel": Decimal("20")})
    store.add_order(3, S.CANCELLED, {"travel": Decimal("999")})
    ledger = BudgetLedger(store)

    first = ledger.recalculate_all()
    after_first = {key: totals(store, key) for key in store.budget_lines}
    ledger.recalculate_all()
    after_second = {key: totals(store, key) for key in store.budget_lines}

    assert after_first == after_second
    assert first.approved_orders_processed == 1
    assert first.completed_orders_processed == 1
    assert first.budget_items_updated == 3


def test_recalculate_fiscal_year_scope():
    store = build_store()
    store.add_order(1, S.APPROVED, {"supplies": Decimal("10"), "legacy": Decimal("5")})
    store.budget_lines["legacy"].encumbered = Decimal("77")

    summary = BudgetLedger(store).recalculate_all(fiscal_year=2025)

    assert totals(store, "supplies") == (Decimal("10"), Decimal("0"))
    assert totals(store, "legacy") == (Decimal("77"), Decimal("0"))
    assert summary.budget_items_updated == 1


def test_drift_check_reports_without_repairing():
    store = build_store()
    store.add_order(1, S.APPROVED, {"supplies": Decimal("10")})
    ledger = BudgetLedger(store)
    ledger.recalculate_all()
    store.budget_lines["supplies"].encumbered = Decimal("15")

    drifts = ledger.check_drift()

    assert [d.budget_item_id for d in drifts] == ["supplies"]
    assert drifts[0].stored_encumbered == Decimal("15")
    assert drifts[0].expected_encumbered == Decimal("10")
    assert store.budget_lines["supplies"].encumbered == Decimal("15")

    ledger.recalculate_all()
    assert ledger.check_drift() == []
