from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from ordercore import ErrorKind, rupees
from ordercore.coupons import validate_new_coupon
from ordercore.models import CartSnapshot, DiscountType, Offer, OfferType, PaymentMethod, UserContext

from _support import CASE, PHONE, SAVE20, cart_line, expect_error, expect_ok


def test_percentage_discount_is_capped():
    assert SAVE20.discount_for(rupees(6000)) == rupees(1000)
    assert SAVE20.discount_for(rupees(2000)) == rupees(400)


def test_fixed_discount_is_capped():
    flat = replace(SAVE20, discount_type=DiscountType.FIXED, discount_value=rupees(1500))
    assert flat.discount_for(rupees(6000)) == rupees(1000)


# ═══════════════════════════════════════════════════════════════════════════════
# check_coupon()
# ═══════════════════════════════════════════════════════════════════════════════


async def test_check_coupon_rules(coupons, store):
    quote = expect_ok(await coupons.check_coupon("u1", "save20", rupees(6000)))
    assert quote.discount == rupees(1000)

    error = expect_error(await coupons.check_coupon("u1", "SAVE20", rupees(1000)))
    assert error.kind is ErrorKind.INVALID_COUPON
    assert error.message == "Minimum purchase of ₹1500 required for this coupon"

    error = expect_error(await coupons.check_coupon("u1", "NOPE", rupees(6000)))
    assert error.message == "Invalid or expired coupon code"


async def test_expired_and_inactive_coupons_are_invalid(coupons, store):
    expect_ok(await store.insert_coupon(replace(SAVE20, code="OLD", valid_until="2024-05-22")))
    expect_ok(await store.insert_coupon(replace(SAVE20, code="OFF", active=False)))

    for code in ("OLD", "OFF"):
        error = expect_error(await coupons.check_coupon("u1", code, rupees(6000)))
        assert error.message == "Invalid or expired coupon code"


async def test_global_limit(coupons, store):
    expect_ok(await store.insert_coupon(replace(SAVE20, code="ONCE", usage_limit=1, usage_count=1)))

    error = expect_error(await coupons.check_coupon("u1", "ONCE", rupees(6000)))

    assert error.message == "This coupon has reached its usage limit"


async def test_per_user_limit_counts_placed_orders(coupons, place):
    expect_ok(await place(
        cart_line(PHONE, "v-black", 1),
        method=PaymentMethod.RAZORPAY,
        coupon="SAVE20",
        gateway_order_id="order_1",
    ))

    error = expect_error(await coupons.check_coupon("u1", "SAVE20", rupees(6000)))

    assert error.message == "You have already used this coupon"
    expect_ok(await coupons.check_coupon("u2", "SAVE20", rupees(6000)))


async def test_exhausted_coupon_blocks_checkout(place, store):
    expect_ok(await store.insert_coupon(replace(SAVE20, code="LAST", usage_limit=1)))
    expect_ok(await place(cart_line(PHONE, "v-black", 1), coupon="LAST"))

    error = expect_error(await place(cart_line(PHONE, "v-black", 1), coupon="LAST", user=UserContext("u2")))

    assert error.kind is ErrorKind.INVALID_COUPON
    assert expect_ok(await store.get_coupon("LAST")).usage_count == 1


# ═══════════════════════════════════════════════════════════════════════════════
# Cart coupon
# ═══════════════════════════════════════════════════════════════════════════════


async def test_apply_and_remove_coupon(coupons, store, user):
    error = expect_error(await coupons.apply_coupon(user, "SAVE20"))
    assert error.message == "Your cart is empty"
    assert expect_error(await coupons.apply_coupon(user, " ")).message == "Coupon code is required"

    expect_ok(await store.save_cart(CartSnapshot("u1", (cart_line(PHONE, "v-black", 3),))))
    cart = expect_ok(await coupons.apply_coupon(user, "SAVE20"))
    assert (cart.coupon_code, cart.coupon_discount) == ("SAVE20", rupees(1000))
    assert expect_ok(await store.get_coupon("SAVE20")).usage_count == 0

    cart = expect_ok(await coupons.remove_coupon(user))
    assert cart.coupon_code is None
    assert expect_error(await coupons.remove_coupon(user)).message == "No coupon applied to remove"


async def test_eligible_coupons_ignore_global_limit(coupons, store, user):
    expect_ok(await store.insert_coupon(replace(SAVE20, code="FULL", usage_limit=1, usage_count=1)))
    expect_ok(await store.insert_coupon(replace(SAVE20, code="BIG", min_purchase=rupees(50000))))
    cart = CartSnapshot("u1", (cart_line(PHONE, "v-black", 1),))

    eligible = expect_ok(await coupons.eligible_coupons(user, cart))

    assert [c.code for c in eligible] == ["FULL", "SAVE20"]


# ═══════════════════════════════════════════════════════════════════════════════
# Creation rules
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    "changes",
    [
        {"code": "BAD-CODE"},
        {"code": "X" * 16},
        {"discount_value": 0},
        {"discount_value": 91},
        {"min_purchase": 50},
        {"max_discount": rupees(1500)},
        {"valid_from": "23/05/2024"},
        {"valid_until": "2024-04-30"},
        {"usage_limit": 0},
        {"per_user_limit": 0},
    ],
)
def test_invalid_new_coupons(changes):
    error = expect_error(validate_new_coupon(replace(SAVE20, **changes)))
    assert error.kind is ErrorKind.VALIDATION


def test_new_coupon_is_normalized():
    coupon = expect_ok(validate_new_coupon(replace(SAVE20, code=" fest24 ", usage_count=7)))
    assert (coupon.code, coupon.usage_count) == ("FEST24", 0)


async def test_create_coupon(coupons, admin, user):
    assert expect_error(await coupons.create_coupon(user, SAVE20)).kind is ErrorKind.UNAUTHORIZED
    assert expect_error(await coupons.create_coupon(admin, SAVE20)).kind is ErrorKind.VALIDATION

    created = expect_ok(await coupons.create_coupon(admin, replace(SAVE20, code="new10")))
    assert created.code == "NEW10"


# ═══════════════════════════════════════════════════════════════════════════════
# Offers
# ═══════════════════════════════════════════════════════════════════════════════


def phone_offer(**kw) -> Offer:
    fields = dict(
        id="o1",
        name="Phone week",
        type=OfferType.PRODUCT,
        target_id=PHONE.id,
        discount_percent=10,
        start_date=date(2024, 5, 20),
        end_date=date(2024, 5, 27),
    )
    fields.update(kw)
    return Offer(**fields)


async def test_create_offer_rules(coupons, admin):
    assert expect_error(await coupons.create_offer(admin, phone_offer(target_id="p-ghost"))).kind is ErrorKind.NOT_FOUND
    assert expect_error(await coupons.create_offer(admin, phone_offer(discount_percent=120))).kind is ErrorKind.VALIDATION
    assert expect_error(await coupons.create_offer(admin, phone_offer(end_date=date(2024, 5, 20)))).kind is ErrorKind.VALIDATION

    expect_ok(await coupons.create_offer(admin, phone_offer()))
    error = expect_error(await coupons.create_offer(admin, phone_offer(id="o2")))
    assert error.kind is ErrorKind.VALIDATION

    expect_ok(await coupons.create_offer(
        admin, phone_offer(id="o3", type=OfferType.CATEGORY, target_id=CASE.category_id)
    ))


async def test_expire_offers(coupons, store, admin):
    expect_ok(await store.save_offer(phone_offer(end_date=date(2024, 5, 22))))
    expect_ok(await store.save_offer(phone_offer(id="o2", target_id=CASE.id)))

    assert expect_ok(await coupons.expire_offers()) == 1
    assert expect_ok(await coupons.expire_offers()) == 0
    offers = {o.id: o for o in expect_ok(await store.list_offers())}
    assert not offers["o1"].active
    assert offers["o2"].active
