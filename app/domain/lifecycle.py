# app/domain/lifecycle.py
"""
Order lifecycle.

The transition table is the only source of truth for how an order's status
may change. Everything here works on plain model objects and does no I/O,
so the services decide when to load, lock and commit.

    pending          -> paid, cancelled
    paid             -> confirmed, cancelled
    confirmed        -> preparing, cancelled
    preparing        -> ready
    ready            -> out_for_delivery
    out_for_delivery -> delivered, cancelled
    delivered, cancelled: terminal
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from app.domain.errors import InvalidState, InvalidTransition, PermissionDenied
from infrastructure.database.models import (
    Delivery,
    DeliveryStatus,
    Order,
    OrderStatus,
    PaymentStatus,
    User,
    utcnow,
)

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY}),
    OrderStatus.READY: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# The customer cancel endpoint is narrower than the admin table:
# out_for_delivery -> cancelled is admin-only.
CUSTOMER_CANCELLABLE: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.PENDING,
    OrderStatus.PAID,
    OrderStatus.CONFIRMED,
})

# Column stamped when the order enters a status
STATUS_TIMESTAMPS: Dict[OrderStatus, str] = {
    OrderStatus.CONFIRMED: "accepted_at",
    OrderStatus.PREPARING: "preparing_at",
    OrderStatus.READY: "ready_at",
    OrderStatus.OUT_FOR_DELIVERY: "picked_up_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

NOTIFICATION_MESSAGES: Dict[OrderStatus, str] = {
    OrderStatus.PAID: "Payment received for your order",
    OrderStatus.CONFIRMED: "Order confirmed and being prepared",
    OrderStatus.PREPARING: "Your order is being prepared",
    OrderStatus.READY: "Your order is ready for pickup",
    OrderStatus.OUT_FOR_DELIVERY: "Your order is on the way",
    OrderStatus.DELIVERED: "Your order has been delivered",
    OrderStatus.CANCELLED: "Your order has been cancelled",
}

ORDER_CANCELLED_REASON = "Order cancelled"


def allowed_next(current: OrderStatus) -> FrozenSet[OrderStatus]:
    return ALLOWED_TRANSITIONS.get(OrderStatus(current), frozenset())


def is_allowed(current: OrderStatus, requested: OrderStatus) -> bool:
    return OrderStatus(requested) in allowed_next(current)


def transition(order: Order, requested: OrderStatus, now: Optional[datetime] = None) -> OrderStatus:
    """
    Move ``order`` to ``requested`` and stamp the matching timestamp.

    Raises InvalidTransition (and leaves the order untouched) when the table
    does not allow the move. Returns the previous status.
    """
    requested = OrderStatus(requested)
    current = OrderStatus(order.status)

    if not is_allowed(current, requested):
        raise InvalidTransition(current, requested)

    now = now or utcnow()
    order.status = requested

    stamp = STATUS_TIMESTAMPS.get(requested)
    if stamp:
        setattr(order, stamp, now)

    if requested == OrderStatus.PAID:
        order.payment_status = PaymentStatus.PAID

    return current


def sync_delivery(delivery: Optional[Delivery], status: OrderStatus, now: Optional[datetime] = None):
    """Keep the linked delivery in lockstep with the order's new status."""
    if delivery is None:
        return

    now = now or utcnow()

    if status == OrderStatus.OUT_FOR_DELIVERY:
        delivery.status = DeliveryStatus.IN_TRANSIT
        delivery.picked_up_at = now
    elif status == OrderStatus.DELIVERED:
        delivery.status = DeliveryStatus.DELIVERED
        delivery.delivered_at = now
    elif status == OrderStatus.CANCELLED:
        delivery.status = DeliveryStatus.FAILED
        delivery.failed_reason = ORDER_CANCELLED_REASON


def ensure_customer_cancellable(order: Order):
    if OrderStatus(order.status) not in CUSTOMER_CANCELLABLE:
        raise InvalidState("Order cannot be cancelled at this stage")


# ==========================================
# AUTHORIZATION
# ==========================================

@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""

    def enforce(self):
        if not self.allowed:
            raise PermissionDenied(self.reason)


def can_transition(actor: User, order: Order, requested: OrderStatus) -> Decision:
    """
    Who may ask for a status change.

    Admins may drive any move in the table. The owning customer may only
    ask for ``cancelled``. Whether the move is valid for the current status
    is checked separately.
    """
    if actor.is_admin:
        return Decision(True)

    if OrderStatus(requested) == OrderStatus.CANCELLED:
        if order.customer_id == actor.id:
            return Decision(True)
        return Decision(False, "You do not have permission to cancel this order")

    return Decision(False, "Only admins can change order status")
