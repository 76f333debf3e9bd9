"""
Orders — placement, status machine, cancellation and returns.

    from ordercore.orders import OrderService, ReturnAction

    orders = OrderService(store, settings)

    match await orders.place_order(user, cart, address_id, PaymentMethod.COD):
        case Ok(order):
            await orders.update_order_status(admin, order.id, OrderStatus.SHIPPED)
        case Error(e):
            ...
"""

from ordercore.orders._transitions import (
    TRANSITIONS,
    SYSTEM_TRANSITIONS,
    allowed_next,
    is_terminal,
    can_transition,
    require_transition,
)
from ordercore.orders._numbering import format_order_number, OrderNumbers
from ordercore.orders._service import ReturnAction, OrderService

__all__ = (
    "TRANSITIONS",
    "SYSTEM_TRANSITIONS",
    "allowed_next",
    "is_terminal",
    "can_transition",
    "require_transition",
    "format_order_number",
    "OrderNumbers",
    "ReturnAction",
    "OrderService",
)
