from __future__ import annotations

import pytest

from ordercore import Settings
from ordercore.cart import CartService
from ordercore.coupons import CouponService
from ordercore.models import Address, CartLine, CartSnapshot, PaymentMethod, UserContext
from ordercore.orders import OrderService
from ordercore.payments import HmacSignatureVerifier
from ordercore.store import MemoryStore
from ordercore.wallet import WalletLedger

from _support import CASE, PHONE, SAVE20, SECRET, expect_ok, fixed_clock


@pytest.fixture
def settings() -> Settings:
    return Settings(gateway_secret=SECRET)


@pytest.fixture
async def store() -> MemoryStore:
    store = MemoryStore()
    for product in (PHONE, CASE):
        expect_ok(await store.save_product(product))
    expect_ok(await store.insert_coupon(SAVE20))
    for user_id in ("u1", "u2"):
        expect_ok(await store.save_address(Address(id=f"addr-{user_id}", user_id=user_id, city="Kochi")))
    return store


@pytest.fixture
def user() -> UserContext:
    return UserContext("u1")


@pytest.fixture
def other_user() -> UserContext:
    return UserContext("u2")


@pytest.fixture
def admin() -> UserContext:
    return UserContext("admin", is_admin=True)


@pytest.fixture
def orders(store: MemoryStore, settings: Settings) -> OrderService:
    return OrderService(store, settings, clock=fixed_clock)


@pytest.fixture
def wallet(store: MemoryStore) -> WalletLedger:
    return WalletLedger(store, fixed_clock)


@pytest.fixture
def coupons(store: MemoryStore, settings: Settings) -> CouponService:
    return CouponService(store, settings, fixed_clock)


@pytest.fixture
def carts(store: MemoryStore, settings: Settings) -> CartService:
    return CartService(store, settings, fixed_clock)


@pytest.fixture
def signer() -> HmacSignatureVerifier:
    return HmacSignatureVerifier(SECRET)


@pytest.fixture
def place(orders: OrderService, wallet: WalletLedger):
    """Place an order from the given lines, funding the wallet first if asked."""

    async def _place(
        *lines: CartLine,
        method: PaymentMethod = PaymentMethod.COD,
        user: UserContext = UserContext("u1"),
        coupon: str | None = None,
        fund: int = 0,
        gateway_order_id: str | None = None,
    ):
        if fund:
            expect_ok(await wallet.deposit(user.user_id, fund))
        cart = CartSnapshot(user.user_id, tuple(lines), coupon_code=coupon)
        return await orders.place_order(
            user, cart, f"addr-{user.user_id}", method, gateway_order_id=gateway_order_id
        )

    return _place
