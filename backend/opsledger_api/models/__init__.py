from .audit_log import AuditLog
from .budget_item import BudgetItem
from .pay_period_lock import PayPeriodLock
from .purchase_order import POLineItem, PurchaseOrder
from .timeclock_config import OvertimeConfig, PayPeriodConfig
from .timeclock_entry import TimeclockEntry

__all__ = [
    "AuditLog",
    "BudgetItem",
    "PayPeriodLock",
    "PurchaseOrder",
    "POLineItem",
    "OvertimeConfig",
    "PayPeriodConfig",
    "TimeclockEntry",
]
