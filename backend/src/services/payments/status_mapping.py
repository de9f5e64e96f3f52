"""
Gateway status translation and webhook transition rules.
"""

from typing import Optional

from src.database.models.order import OrderStatus

GATEWAY_STATUS_MAP: dict[str, OrderStatus] = {
    "completed": OrderStatus.PAID,
    "failed": OrderStatus.CANCELLED,
    "expired": OrderStatus.CANCELLED,
    "refunded": OrderStatus.REFUNDED,
}

# Statuses a gateway callback may move an order into, keyed by current status.
# Anything not listed is a stale or out-of-order callback and is ignored.
GATEWAY_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.PAID, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
    ),
    OrderStatus.PAYMENT_INITIATED: frozenset(
        {
            OrderStatus.PENDING,
            OrderStatus.PAID,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
        }
    ),
    OrderStatus.PAID: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    # A later attempt on the same payment request can still succeed.
    OrderStatus.CANCELLED: frozenset({OrderStatus.PAID, OrderStatus.REFUNDED}),
    OrderStatus.REFUNDED: frozenset(),
}


def is_known_gateway_status(vendor_status: Optional[str]) -> bool:
    return (vendor_status or "").strip().lower() in GATEWAY_STATUS_MAP


def map_gateway_status(vendor_status: Optional[str]) -> OrderStatus:
    """
    Translate a gateway payment status into an order status.

    Unrecognized values map to ``pending``.
    """
    return GATEWAY_STATUS_MAP.get((vendor_status or "").strip().lower(), OrderStatus.PENDING)


def can_apply_gateway_status(current: OrderStatus, target: OrderStatus) -> bool:
    """Check whether a callback may move an order from ``current`` to ``target``."""
    return target in GATEWAY_TRANSITIONS.get(current, frozenset())
