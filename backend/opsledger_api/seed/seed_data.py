from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from opsledger.purchase_orders import PurchaseOrderStatus
from opsledger_api.domains.purchase_orders.service import NewLineItem, create_order
from opsledger_api.models import BudgetItem, OvertimeConfig, PayPeriodConfig, TimeclockEntry


def seed(session: Session) -> None:
    supplies = BudgetItem(
        code="FY25-SUP", description="Office supplies", fiscal_year=2025, budget_amount=Decimal("5000.00")
    )
    equipment = BudgetItem(
        code="FY25-EQP", description="Field equipment", fiscal_year=2025, budget_amount=Decimal("20000.00")
    )
    session.add_all([supplies, equipment])
    session.add(
        OvertimeConfig(
            daily_threshold=480,
            weekly_threshold=2400,
            alert_before_daily=30,
            alert_before_weekly=120,
            notify_employee=True,
            notify_manager=True,
        )
    )
    session.add(PayPeriodConfig(type="biweekly", start_day_of_week=0, start_date=date(2025, 1, 5)))
    session.commit()

    create_order(
        session,
        po_number="PO-1001",
        vendor_name="Acme Paper",
        requested_by="seed",
        status=PurchaseOrderStatus.APPROVED,
        line_items=[NewLineItem(budget_item_id=supplies.id, description="Copy paper", amount=Decimal("450.00"))],
    )
    create_order(
        session,
        po_number="PO-1002",
        vendor_name="Northwind Tools",
        requested_by="seed",
        status=PurchaseOrderStatus.COMPLETED,
        receipt_file_name="po-1002-receipt.pdf",
        line_items=[
            NewLineItem(budget_item_id=equipment.id, description="Survey tripods", amount=Decimal("1200.00")),
            NewLineItem(budget_item_id=supplies.id, description="Field notebooks", amount=Decimal("80.00")),
        ],
    )

    start = datetime.combine(date.today() - timedelta(days=1), datetime.min.time()).replace(hour=8)
    session.add(
        TimeclockEntry(
            user_id=1,
            clock_in=start,
            clock_out=start + timedelta(hours=9),
            duration=9 * 3600,
            raw_duration=9 * 3600,
            status="approved",
        )
    )
    session.commit()
