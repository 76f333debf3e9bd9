"""Catalog fixtures data and Result assertions shared by the test modules."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest
from kungfu import Result, Ok, Error

from ordercore import CoreError, rupees
from ordercore.inventory import InventoryLedger
from ordercore.models import CartLine, Coupon, DiscountType, Product, Variant, new_id
from ordercore.store import Store

NOW = datetime(2024, 5, 23, 10, 30)
SECRET = "test-gateway-secret"


def fixed_clock() -> datetime:
    return NOW


PHONE = Product(
    id="p-phone",
    name="Phone",
    category_id="c-phones",
    variants=(
        Variant(id="v-black", color="#000000", color_name="Black", stock=10, price=rupees(2000)),
        Variant(id="v-white", color="#ffffff", color_name="White", stock=1, price=rupees(1000)),
    ),
)
CASE = Product(
    id="p-case",
    name="Case",
    category_id="c-accessories",
    variants=(
        Variant(id="v-red", color="#ff0000", color_name="Red", stock=10, price=rupees(1000)),
    ),
)

SAVE20 = Coupon(
    code="SAVE20",
    description="20% off, up to ₹1000",
    discount_type=DiscountType.PERCENTAGE,
    discount_value=20,
    min_purchase=rupees(1500),
    max_discount=rupees(1000),
    valid_from="2024-05-01",
    valid_until="2024-05-31",
)


def expect_ok[T](result: Result[T, Any]) -> T:
    match result:
        case Ok(value):
            return value
        case Error(e):
            pytest.fail(f"expected Ok, got Error({e})")


def expect_error(result: Result[Any, CoreError]) -> CoreError:
    match result:
        case Ok(value):
            pytest.fail(f"expected Error, got Ok({value!r})")
        case Error(e):
            return e


def cart_line(product: Product, variant_id: str, quantity: int) -> CartLine:
    variant = product.variant(variant_id)
    assert variant is not None
    return CartLine(
        id=new_id(),
        product_id=product.id,
        variant_id=variant_id,
        quantity=quantity,
        unit_price=variant.manual_price,
    )


async def stock_of(store: Store, product_id: str, variant_id: str) -> int:
    return expect_ok(await InventoryLedger(store).available(product_id, variant_id))


async def balance_of(store: Store, user_id: str) -> int:
    wallet = expect_ok(await store.ensure_wallet(user_id))
    assert wallet.is_consistent
    return wallet.balance
