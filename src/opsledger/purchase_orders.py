from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from .exceptions import InvalidStatusTransition, MissingTransitionNote
from .models import LedgerBalance, LineItem


class PurchaseOrderStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


VALID_TRANSITIONS: Dict[PurchaseOrderStatus, FrozenSet[PurchaseOrderStatus]] = {
    PurchaseOrderStatus.DRAFT: frozenset({PurchaseOrderStatus.PENDING_APPROVAL, PurchaseOrderStatus.CANCELLED}),
    PurchaseOrderStatus.PENDING_APPROVAL: frozenset(
        {PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.REJECTED, PurchaseOrderStatus.CANCELLED}
    ),
    PurchaseOrderStatus.REJECTED: frozenset({PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.CANCELLED}),
    PurchaseOrderStatus.APPROVED: frozenset({PurchaseOrderStatus.COMPLETED, PurchaseOrderStatus.CANCELLED}),
    PurchaseOrderStatus.COMPLETED: frozenset({PurchaseOrderStatus.CANCELLED}),
    PurchaseOrderStatus.CANCELLED: frozenset(),
}

NOTE_REQUIRED = frozenset({PurchaseOrderStatus.REJECTED, PurchaseOrderStatus.CANCELLED})


def can_transition(old: PurchaseOrderStatus, new: PurchaseOrderStatus) -> bool:
    return PurchaseOrderStatus(new) in VALID_TRANSITIONS[PurchaseOrderStatus(old)]


def validate_transition(
    old: PurchaseOrderStatus,
    new: PurchaseOrderStatus,
    note: Optional[str] = None,
) -> None:
    if not can_transition(old, new):
        raise InvalidStatusTransition(old, new)
    if PurchaseOrderStatus(new) in NOTE_REQUIRED and not (note and note.strip()):
        raise MissingTransitionNote(new)


@dataclass(frozen=True)
class AutoApprovalDecision:
    approved: bool
    reason: Optional[str] = None


AUTO_APPROVAL_DISABLED = "Auto-approval is disabled"


def check_auto_approval(
    total_amount: Decimal,
    line_items: Iterable[LineItem],
    balances: Mapping[str, LedgerBalance],
    enabled: bool,
    threshold: Decimal,
) -> AutoApprovalDecision:
    """Decide whether an order being submitted can skip manual approval.

    Every line item must fit in the remaining amount of its budget line as
    it stands before this order is encumbered.
    """
    if not enabled:
        return AutoApprovalDecision(approved=False, reason=AUTO_APPROVAL_DISABLED)

    if Decimal(total_amount) > Decimal(threshold):
        return AutoApprovalDecision(
            approved=False,
            reason=f"Over auto-approval threshold (${Decimal(threshold):.2f})",
        )

    for line_item in line_items:
        balance = balances.get(line_item.budget_item_id)
        if balance is None:
            continue
        if Decimal(line_item.amount) > balance.remaining:
            return AutoApprovalDecision(
                approved=False,
                reason=f"Would exceed budget: {line_item.budget_item_id} (remaining: ${balance.remaining:.2f})",
            )

    return AutoApprovalDecision(approved=True)
