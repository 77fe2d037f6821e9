from __future__ import annotations
import argparse
import sys

from opsledger.ledger import BudgetLedger
from opsledger_api.core.config import settings
from opsledger_api.core.logging import configure_logging
from opsledger_api.core.observability import ledger_drift_lines
from opsledger_api.db.ledger_store import SqlAlchemyLedgerStore
from opsledger_api.db.session import init_db, session_scope


def cmd_init_db(args: argparse.Namespace) -> int:
    init_db()
    print("Tables created")
    return 0


def cmd_seed(args: argparse.Namespace) -> int:
    from opsledger_api.seed.seed_data import seed

    init_db()
    with session_scope() as session:
        seed(session)
    print("Seed data loaded")
    return 0


def cmd_recalculate(args: argparse.Namespace) -> int:
    with session_scope() as session:
        summary = BudgetLedger(SqlAlchemyLedgerStore(session)).recalculate_all(args.fiscal_year)
    print(
        f"Updated {summary.budget_items_updated} budget items from "
        f"{summary.approved_orders_processed} approved and "
        f"{summary.completed_orders_processed} completed purchase orders"
    )
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    with session_scope() as session:
        drifts = BudgetLedger(SqlAlchemyLedgerStore(session)).check_drift(args.fiscal_year)
    if not drifts:
        print("Budget balances match purchase orders")
        return 0

    ledger_drift_lines.add(len(drifts))
    for drift in drifts:
        print(
            f"budget item {drift.budget_item_id}: "
            f"encumbered {drift.stored_encumbered} (expected {drift.expected_encumbered}), "
            f"actual spent {drift.stored_actual_spent} (expected {drift.expected_actual_spent})"
        )
    print(f"{len(drifts)} budget item(s) out of balance; run recalculate-budgets to repair")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Operations ledger administration")
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init-db", help="Create database tables")
    init.set_defaults(func=cmd_init_db)

    seed = sub.add_parser("seed", help="Load demo budget items, orders and config")
    seed.set_defaults(func=cmd_seed)

    recalculate = sub.add_parser("recalculate-budgets", help="Rebuild budget balances from purchase orders")
    recalculate.add_argument("--fiscal-year", type=int)
    recalculate.set_defaults(func=cmd_recalculate)

    check = sub.add_parser("check-budgets", help="Report budget lines out of step with their orders")
    check.add_argument("--fiscal-year", type=int)
    check.set_defaults(func=cmd_check)

    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging(settings.log_level, json_output=False)
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
