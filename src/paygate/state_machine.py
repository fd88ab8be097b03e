"""Order status transition rules.

- pending: may become paid, failed, cancelled or expired
- paid: may only be refunded
- failed: may go back to pending for a retry
- cancelled, expired, refunded: terminal
"""

from paygate.models.enums import OrderStatus

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {
            OrderStatus.PAID,
            OrderStatus.FAILED,
            OrderStatus.CANCELLED,
            OrderStatus.EXPIRED,
        }
    ),
    OrderStatus.PAID: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.FAILED: frozenset({OrderStatus.PENDING}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.EXPIRED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Check whether an order may move from current to target.

    A same-state request is not a transition and returns False; callers
    decide whether that means "already applied".
    """
    return target in ORDER_TRANSITIONS.get(current, frozenset())


def is_terminal(status: OrderStatus) -> bool:
    """True if no transition leaves this status."""
    return not ORDER_TRANSITIONS.get(status)
