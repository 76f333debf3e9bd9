from __future__ import annotations

import pytest

from ordercore import ErrorKind, Settings, rupees
from ordercore.models import CartSnapshot, ItemStatus, OrderStatus, PaymentMethod, PaymentStatus
from ordercore.orders import OrderService
from ordercore.payments import GatewayConfirmation, HmacSignatureVerifier

from _support import CASE, PHONE, cart_line, expect_error, expect_ok, fixed_clock, stock_of


async def test_hmac_signature_roundtrip(signer):
    signature = signer.sign("order_1", "pay_1")

    assert await signer.verify(GatewayConfirmation("order_1", "pay_1", signature))
    assert not await signer.verify(GatewayConfirmation("order_1", "pay_2", signature))
    assert not await signer.verify(GatewayConfirmation("order_1", "pay_1", "0" * 64))
    assert not await signer.verify(GatewayConfirmation("order_1", "pay_1", "sïgnature"))


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        HmacSignatureVerifier("")


async def test_genuine_confirmation_completes_payment(orders, store, signer, user):
    cart = CartSnapshot("u1", (cart_line(CASE, "v-red", 1),))
    expect_ok(await store.save_cart(cart))
    order = expect_ok(await orders.place_order(
        user, cart, "addr-u1", PaymentMethod.RAZORPAY, gateway_order_id="order_1"
    ))
    assert not expect_ok(await store.get_cart("u1")).is_empty

    paid = expect_ok(await orders.verify_payment(
        order.id, GatewayConfirmation("order_1", "pay_1", signer.sign("order_1", "pay_1"))
    ))

    assert paid.payment.status is PaymentStatus.COMPLETED
    assert paid.payment.gateway_payment_id == "pay_1"
    assert paid.status is OrderStatus.PROCESSING
    assert expect_ok(await store.get_cart("u1")).is_empty


async def test_forged_confirmation_fails_order_and_releases_everything(place, orders, store):
    order = expect_ok(await place(
        cart_line(PHONE, "v-black", 2),
        method=PaymentMethod.RAZORPAY,
        coupon="SAVE20",
        gateway_order_id="order_1",
    ))
    assert await stock_of(store, "p-phone", "v-black") == 8

    error = expect_error(await orders.verify_payment(
        order.id, GatewayConfirmation("order_1", "pay_1", "forged")
    ))

    assert error.kind is ErrorKind.PAYMENT_FAILED
    failed = expect_ok(await store.get_order(order.id))
    assert failed.status is OrderStatus.FAILED
    assert failed.payment.status is PaymentStatus.FAILED
    assert all(line.item_status is ItemStatus.CANCELLED for line in failed.lines)
    assert failed.lines[0].cancel_reason == "Payment failed"
    assert await stock_of(store, "p-phone", "v-black") == 10
    assert expect_ok(await store.get_coupon("SAVE20")).usage_count == 0
    assert expect_ok(await store.count_coupon_orders("u1", "SAVE20")) == 0


async def test_confirmation_for_another_gateway_order_changes_nothing(place, orders, store, signer):
    order = expect_ok(await place(
        cart_line(CASE, "v-red", 1), method=PaymentMethod.RAZORPAY, gateway_order_id="order_1"
    ))

    error = expect_error(await orders.verify_payment(
        order.id, GatewayConfirmation("order_2", "pay_1", signer.sign("order_2", "pay_1"))
    ))

    assert error.kind is ErrorKind.VALIDATION
    assert expect_ok(await store.get_order(order.id)) == order
    assert await stock_of(store, "p-case", "v-red") == 9


async def test_confirmation_cannot_be_replayed_on_another_order(place, orders, store, signer):
    cheap = expect_ok(await place(
        cart_line(CASE, "v-red", 1), method=PaymentMethod.RAZORPAY, gateway_order_id="order_cheap"
    ))
    dear = expect_ok(await place(
        cart_line(PHONE, "v-black", 2), method=PaymentMethod.RAZORPAY, gateway_order_id="order_dear"
    ))
    confirmation = GatewayConfirmation("order_cheap", "pay_1", signer.sign("order_cheap", "pay_1"))
    expect_ok(await orders.verify_payment(cheap.id, confirmation))

    error = expect_error(await orders.verify_payment(dear.id, confirmation))

    assert error.kind is ErrorKind.VALIDATION
    unpaid = expect_ok(await store.get_order(dear.id))
    assert unpaid == dear
    assert unpaid.payment.status is PaymentStatus.PENDING


async def test_online_payment_needs_a_gateway_order(place, store):
    error = expect_error(await place(cart_line(CASE, "v-red", 1), method=PaymentMethod.RAZORPAY))

    assert error.kind is ErrorKind.VALIDATION
    assert await stock_of(store, "p-case", "v-red") == 10


class UnreachableGateway:
    async def verify(self, confirmation: GatewayConfirmation) -> bool:
        raise ConnectionError("gateway timed out")


async def test_verifier_outage_leaves_order_pending(place, store):
    orders = OrderService(store, Settings(), clock=fixed_clock, verifier=UnreachableGateway())
    order = expect_ok(await place(
        cart_line(CASE, "v-red", 1), method=PaymentMethod.RAZORPAY, gateway_order_id="order_1"
    ))

    error = expect_error(await orders.verify_payment(
        order.id, GatewayConfirmation("order_1", "pay_1", "whatever")
    ))

    assert error.kind is ErrorKind.PAYMENT_FAILED
    assert "gateway timed out" in error.message
    assert expect_ok(await store.get_order(order.id)) == order
    assert await stock_of(store, "p-case", "v-red") == 9


async def test_payment_is_settled_once(place, orders, signer):
    order = expect_ok(await place(
        cart_line(CASE, "v-red", 1), method=PaymentMethod.RAZORPAY, gateway_order_id="order_1"
    ))
    confirmation = GatewayConfirmation("order_1", "pay_1", signer.sign("order_1", "pay_1"))
    expect_ok(await orders.verify_payment(order.id, confirmation))

    error = expect_error(await orders.verify_payment(order.id, confirmation))

    assert error.kind is ErrorKind.INVALID_TRANSITION


async def test_cod_orders_are_not_gateway_verified(place, orders, signer):
    order = expect_ok(await place(cart_line(CASE, "v-red", 1)))

    error = expect_error(await orders.verify_payment(
        order.id, GatewayConfirmation("order_1", "pay_1", signer.sign("order_1", "pay_1"))
    ))

    assert error.kind is ErrorKind.VALIDATION


async def test_verification_requires_a_verifier(store):
    orders = OrderService(store, Settings(), clock=fixed_clock)

    error = expect_error(await orders.verify_payment("any", GatewayConfirmation("o", "p", "s")))

    assert error.kind is ErrorKind.VALIDATION


async def test_paid_gateway_order_can_be_delivered(place, orders, signer, admin):
    order = expect_ok(await place(
        cart_line(CASE, "v-red", 1), method=PaymentMethod.RAZORPAY, gateway_order_id="order_1"
    ))
    expect_ok(await orders.verify_payment(
        order.id, GatewayConfirmation("order_1", "pay_1", signer.sign("order_1", "pay_1"))
    ))
    expect_ok(await orders.update_order_status(admin, order.id, OrderStatus.SHIPPED))

    delivered = expect_ok(await orders.update_order_status(admin, order.id, OrderStatus.DELIVERED))

    assert delivered.payment.status is PaymentStatus.COMPLETED
    assert delivered.pricing.final_amount == rupees(1000 + 120 + 100)
