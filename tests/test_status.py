from __future__ import annotations

import pytest

from ordercore import ErrorKind, rupees
from ordercore.models import ItemStatus, OrderStatus, PaymentMethod, PaymentStatus
from ordercore.orders import (
    SYSTEM_TRANSITIONS,
    TRANSITIONS,
    ReturnAction,
    allowed_next,
    can_transition,
    is_terminal,
    require_transition,
)
from ordercore.payments import GatewayConfirmation

from _support import CASE, cart_line, expect_error, expect_ok, stock_of, balance_of


# ═══════════════════════════════════════════════════════════════════════════════
# Transition table
# ═══════════════════════════════════════════════════════════════════════════════


def test_every_status_has_a_row():
    assert set(TRANSITIONS) == set(OrderStatus)


@pytest.mark.parametrize("status", [OrderStatus.RETURNED, OrderStatus.FAILED, OrderStatus.CANCELLED])
def test_terminal_statuses(status):
    assert is_terminal(status)
    assert allowed_next(status) == ()
    assert not any(can_transition(status, target) for target in OrderStatus)


def test_failed_is_reachable_only_by_the_system():
    assert not can_transition(OrderStatus.PROCESSING, OrderStatus.FAILED)
    assert can_transition(OrderStatus.PROCESSING, OrderStatus.FAILED, system=True)
    assert not can_transition(OrderStatus.SHIPPED, OrderStatus.FAILED, system=True)
    assert set(SYSTEM_TRANSITIONS) == {OrderStatus.PROCESSING}


def test_rejected_transition_lists_allowed_targets():
    error = expect_error(require_transition(OrderStatus.SHIPPED, OrderStatus.PROCESSING))

    assert error.kind is ErrorKind.INVALID_TRANSITION
    assert error.details["attempted"] == "Processing"
    assert error.details["allowed"] == ("Delivered", "Cancelled")


# ═══════════════════════════════════════════════════════════════════════════════
# update_order_status()
# ═══════════════════════════════════════════════════════════════════════════════


async def test_cod_order_lifecycle(place, orders, admin):
    order = expect_ok(await place(cart_line(CASE, "v-red", 1)))

    shipped = expect_ok(await orders.update_order_status(admin, order.id, OrderStatus.SHIPPED))
    assert shipped.lines[0].item_status is ItemStatus.SHIPPED
    assert shipped.version == order.version + 1

    delivered = expect_ok(await orders.update_order_status(admin, order.id, OrderStatus.DELIVERED))
    assert delivered.status is OrderStatus.DELIVERED
    assert delivered.payment.status is PaymentStatus.COMPLETED
    assert delivered.lines[0].item_status is ItemStatus.DELIVERED


async def test_status_changes_need_admin(place, orders, user):
    order = expect_ok(await place(cart_line(CASE, "v-red", 1)))

    error = expect_error(await orders.update_order_status(user, order.id, OrderStatus.SHIPPED))

    assert error.kind is ErrorKind.UNAUTHORIZED


async def test_illegal_jump_is_rejected(place, orders, admin):
    order = expect_ok(await place(cart_line(CASE, "v-red", 1)))

    error = expect_error(await orders.update_order_status(admin, order.id, OrderStatus.DELIVERED))

    assert error.kind is ErrorKind.INVALID_TRANSITION
    assert error.details["current"] == "Processing"
    assert error.details["allowed"] == ("Shipped", "Cancelled")


async def test_unpaid_gateway_order_cannot_be_delivered(place, orders, admin):
    order = expect_ok(await place(
        cart_line(CASE, "v-red", 1), method=PaymentMethod.RAZORPAY, gateway_order_id="order_9"
    ))
    expect_ok(await orders.update_order_status(admin, order.id, OrderStatus.SHIPPED))

    error = expect_error(await orders.update_order_status(admin, order.id, OrderStatus.DELIVERED))

    assert error.kind is ErrorKind.INVALID_TRANSITION


async def test_admin_cancel_of_shipped_paid_order(place, orders, admin, store):
    order = expect_ok(await place(
        cart_line(CASE, "v-red", 2), method=PaymentMethod.WALLET, fund=rupees(3000)
    ))
    expect_ok(await orders.update_order_status(admin, order.id, OrderStatus.SHIPPED))

    cancelled = expect_ok(await orders.update_order_status(admin, order.id, OrderStatus.CANCELLED))

    assert cancelled.status is OrderStatus.CANCELLED
    assert cancelled.payment.status is PaymentStatus.REFUNDED
    assert all(line.item_status is ItemStatus.CANCELLED for line in cancelled.lines)
    assert await stock_of(store, "p-case", "v-red") == 10
    assert await balance_of(store, "u1") == rupees(3000)


async def test_admin_cannot_drive_returns_directly(place, orders, admin):
    order = expect_ok(await place(cart_line(CASE, "v-red", 1)))
    expect_ok(await orders.update_order_status(admin, order.id, OrderStatus.SHIPPED))
    expect_ok(await orders.update_order_status(admin, order.id, OrderStatus.DELIVERED))

    error = expect_error(await orders.update_order_status(admin, order.id, OrderStatus.RETURN_REQUESTED))

    assert error.kind is ErrorKind.INVALID_TRANSITION


async def test_admin_cancel_of_unpaid_order(place, orders, admin, store):
    order = expect_ok(await place(cart_line(CASE, "v-red", 2)))

    cancelled = expect_ok(await orders.update_order_status(admin, order.id, OrderStatus.CANCELLED))

    assert cancelled.payment.status is PaymentStatus.ORDER_CANCELLED
    assert await balance_of(store, "u1") == 0
    assert await stock_of(store, "p-case", "v-red") == 10


# ═══════════════════════════════════════════════════════════════════════════════
# Closure: nothing outside the admin moves gets through
# ═══════════════════════════════════════════════════════════════════════════════

ADMIN_MOVES = {
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
    (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
}

_FORWARD = (
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.RETURN_REQUESTED,
    OrderStatus.RETURNED,
)


@pytest.fixture
def order_in(place, orders, admin, user):
    """Drive a fresh single-line order into the given status; returns its id."""

    async def _order_in(status: OrderStatus):
        if status is OrderStatus.FAILED:
            order = expect_ok(await place(
                cart_line(CASE, "v-red", 1), method=PaymentMethod.RAZORPAY, gateway_order_id="order_1"
            ))
            expect_error(await orders.verify_payment(
                order.id, GatewayConfirmation("order_1", "pay_1", "forged")
            ))
            return order.id

        order = expect_ok(await place(
            cart_line(CASE, "v-red", 1), method=PaymentMethod.WALLET, fund=rupees(2000)
        ))
        if status is OrderStatus.CANCELLED:
            expect_ok(await orders.cancel_order(user, order.id))
            return order.id

        depth = _FORWARD.index(status)
        if depth >= 1:
            expect_ok(await orders.update_order_status(admin, order.id, OrderStatus.SHIPPED))
        if depth >= 2:
            expect_ok(await orders.update_order_status(admin, order.id, OrderStatus.DELIVERED))
        if depth >= 3:
            expect_ok(await orders.return_order(user, order.id, "does not fit"))
        if depth >= 4:
            expect_ok(await orders.verify_return_request(admin, order.id, ReturnAction.APPROVE))
        return order.id

    return _order_in


@pytest.mark.parametrize(
    ("current", "target"),
    [(c, t) for c in OrderStatus for t in OrderStatus if (c, t) not in ADMIN_MOVES],
    ids=lambda status: status.name.lower(),
)
async def test_admin_cannot_leave_the_table(order_in, orders, admin, store, current, target):
    order_id = await order_in(current)
    before = expect_ok(await store.get_order(order_id))
    assert before.status is current

    error = expect_error(await orders.update_order_status(admin, order_id, target))

    assert error.kind is ErrorKind.INVALID_TRANSITION
    assert expect_ok(await store.get_order(order_id)) == before
