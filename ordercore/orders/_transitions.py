"""
Order status transition table.

    Processing ──► Shipped ──► Delivered ──► Return Requested ──► Returned
        │             │                            │
        └─► Cancelled ◄┘                           └──► Delivered (rejected)

Returned, Failed and Cancelled are terminal. Processing ──► Failed exists
only for the payment-verification path and is never offered to callers.
"""

from __future__ import annotations

from collections.abc import Mapping

from kungfu import Result, Ok, Error

from ordercore._errors import CoreError, Errors
from ordercore.models import OrderStatus

TRANSITIONS: Mapping[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURN_REQUESTED}),
    OrderStatus.RETURN_REQUESTED: frozenset({OrderStatus.RETURNED, OrderStatus.DELIVERED}),
    OrderStatus.RETURNED: frozenset(),
    OrderStatus.FAILED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

SYSTEM_TRANSITIONS: Mapping[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PROCESSING: frozenset({OrderStatus.FAILED}),
}

_ORDER = list(OrderStatus)


def allowed_next(current: OrderStatus) -> tuple[OrderStatus, ...]:
    return tuple(sorted(TRANSITIONS[current], key=_ORDER.index))


def is_terminal(status: OrderStatus) -> bool:
    return not TRANSITIONS[status]


def can_transition(current: OrderStatus, target: OrderStatus, *, system: bool = False) -> bool:
    if target in TRANSITIONS[current]:
        return True
    return system and target in SYSTEM_TRANSITIONS.get(current, frozenset())


def require_transition(
    current: OrderStatus,
    target: OrderStatus,
    *,
    system: bool = False,
    message: str | None = None,
) -> Result[None, CoreError]:
    if can_transition(current, target, system=system):
        return Ok(None)
    return Error(Errors.invalid_transition(
        current.value,
        target.value,
        (s.value for s in allowed_next(current)),
        message,
    ))


__all__ = (
    "TRANSITIONS",
    "SYSTEM_TRANSITIONS",
    "allowed_next",
    "is_terminal",
    "can_transition",
    "require_transition",
)
