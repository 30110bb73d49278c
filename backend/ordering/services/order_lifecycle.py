# Overview: Order status state machine; pure functions, no database access.

"""
Order Lifecycle

================================================================================
STATE MACHINE:
    pending    -> confirmed | cancelled
    confirmed  -> processing | cancelled
    processing -> shipped | cancelled
    shipped    -> delivered
    delivered  (terminal)
    cancelled  (terminal)
================================================================================

RULES:
1. The table is total over OrderStatus x OrderStatus: every pair not listed
   is rejected, including self-transitions.
2. No state may be skipped and no state may be re-entered.
3. Stock is committed from creation (pending) until the order is
   cancelled or delivered; cancellation from any committed state restores it.
"""

from __future__ import annotations

from ..errors import PreconditionFailedError
from ..models import OrderStatus
from ..validation import ValidationError


VALID_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in VALID_TRANSITIONS.items() if not targets)

STOCK_COMMITTED_STATUSES = frozenset({
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
})

# Happy path used when a delivery completes ahead of the order
FORWARD_SEQUENCE = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)


def parse_status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"Invalid status '{value}'. Must be one of: {allowed}")


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in VALID_TRANSITIONS[current]


def assert_transition(current: OrderStatus, target: OrderStatus) -> None:
    if not can_transition(current, target):
        raise PreconditionFailedError(
            f"Invalid status transition from {current.value} to {target.value}",
            details={"current_status": current.value, "requested_status": target.value},
        )


def is_cancellable(status: OrderStatus) -> bool:
    return OrderStatus.CANCELLED in VALID_TRANSITIONS[status]


def forward_path(current: OrderStatus, target: OrderStatus) -> list[OrderStatus]:
    """
    Statuses to pass through, in order, to move from current to target along
    the happy path. Empty when target is not ahead of current.
    """
    if current not in FORWARD_SEQUENCE or target not in FORWARD_SEQUENCE:
        return []
    start = FORWARD_SEQUENCE.index(current)
    end = FORWARD_SEQUENCE.index(target)
    if end <= start:
        return []
    return list(FORWARD_SEQUENCE[start + 1:end + 1])
