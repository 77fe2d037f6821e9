from __future__ import annotations


class OpsLedgerError(Exception):
    """Base class for domain errors raised by opsledger."""

    code: str = "OPSLEDGER_ERROR"


class PurchaseOrderNotFound(OpsLedgerError):
    code = "PURCHASE_ORDER_NOT_FOUND"

    def __init__(self, purchase_order_id: str) -> None:
        self.purchase_order_id = purchase_order_id
        super().__init__(f"Purchase order {purchase_order_id} not found")


class InvalidStatusTransition(OpsLedgerError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, old_status, new_status) -> None:
        self.old_status = old_status
        self.new_status = new_status
        old_value = getattr(old_status, "value", old_status)
        new_value = getattr(new_status, "value", new_status)
        super().__init__(f"Invalid status transition from {old_value} to {new_value}")


class MissingTransitionNote(OpsLedgerError):
    code = "MISSING_TRANSITION_NOTE"

    def __init__(self, new_status) -> None:
        self.new_status = new_status
        value = getattr(new_status, "value", new_status)
        super().__init__(f"A note is required when moving a purchase order to {value}")


class ReceiptRequired(OpsLedgerError):
    code = "RECEIPT_REQUIRED"

    def __init__(self, purchase_order_id: str) -> None:
        self.purchase_order_id = purchase_order_id
        super().__init__("Cannot complete purchase order without receipt attachment")


class PayPeriodLocked(OpsLedgerError):
    code = "PAY_PERIOD_LOCKED"

    def __init__(self, start, end) -> None:
        self.start = start
        self.end = end
        super().__init__(f"Pay period {start} - {end} is locked")


class AlreadyClockedIn(OpsLedgerError):
    code = "ALREADY_CLOCKED_IN"

    def __init__(self, employee_id) -> None:
        self.employee_id = employee_id
        super().__init__(f"Employee {employee_id} is already clocked in")


class NotClockedIn(OpsLedgerError):
    code = "NOT_CLOCKED_IN"

    def __init__(self, employee_id) -> None:
        self.employee_id = employee_id
        super().__init__(f"Employee {employee_id} has no open clock-in")


class TimeclockEntryNotFound(OpsLedgerError):
    code = "TIMECLOCK_ENTRY_NOT_FOUND"

    def __init__(self, entry_id) -> None:
        self.entry_id = entry_id
        super().__init__(f"Timeclock entry {entry_id} not found")


class EntryNotReviewable(OpsLedgerError):
    code = "ENTRY_NOT_REVIEWABLE"

    def __init__(self, entry_id, reason: str) -> None:
        self.entry_id = entry_id
        self.reason = reason
        super().__init__(f"Timeclock entry {entry_id}: {reason}")
