"""
Store protocol — persistence with atomic conditional primitives.

Stock and wallet balances are only ever changed through the primitives
below; there is no "write this stock number" operation. Each primitive is
a single atomic step in the backing store.

All methods return Result for explicit error handling.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Protocol

from kungfu import Result, Ok, Error

from ordercore._errors import CoreError, Errors
from ordercore._types import AddressId, OrderId, ProductId, UserId, VariantId
from ordercore.models import (
    Address,
    CartSnapshot,
    Coupon,
    Offer,
    Order,
    Product,
    TxType,
    Wallet,
    WalletTransaction,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Store Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


def lift_store[T](result: Result[T, StoreError]) -> Result[T, CoreError]:
    """Map a storage failure into the operation error taxonomy."""
    match result:
        case Ok(value):
            return Ok(value)
        case Error(e):
            return Error(Errors.storage(e.message))


@dataclass(frozen=True, slots=True)
class StockUpdate:
    """
    Outcome of a conditional stock change.

    applied=False means the condition did not hold; stock is then the
    quantity currently available.
    """

    applied: bool
    stock: int


# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Store(Protocol):
    """
    Persistence used by every service.

    Lookups return Ok(None) when the record does not exist.
    """

    # ── Catalog ──────────────────────────────────────────────────────────────

    async def get_product(self, product_id: ProductId) -> Result[Product | None, StoreError]: ...

    async def save_product(self, product: Product) -> Result[None, StoreError]: ...

    async def decrement_stock(
        self, product_id: ProductId, variant_id: VariantId, quantity: int
    ) -> Result[StockUpdate | None, StoreError]:
        """Subtract quantity only if stock >= quantity. Ok(None) if no such variant."""
        ...

    async def increment_stock(
        self, product_id: ProductId, variant_id: VariantId, quantity: int
    ) -> Result[StockUpdate | None, StoreError]:
        """Add quantity unconditionally. Ok(None) if no such variant."""
        ...

    # ── Offers ───────────────────────────────────────────────────────────────

    async def list_offers(self) -> Result[list[Offer], StoreError]: ...

    async def save_offer(self, offer: Offer) -> Result[None, StoreError]: ...

    # ── Coupons ──────────────────────────────────────────────────────────────

    async def get_coupon(self, code: str) -> Result[Coupon | None, StoreError]: ...

    async def list_coupons(self) -> Result[list[Coupon], StoreError]: ...

    async def insert_coupon(self, coupon: Coupon) -> Result[bool, StoreError]:
        """Ok(False) if the code is taken."""
        ...

    async def consume_coupon(self, code: str) -> Result[bool, StoreError]:
        """usage_count += 1 only while below usage_limit. Ok(False) otherwise."""
        ...

    async def release_coupon(self, code: str) -> Result[None, StoreError]:
        """usage_count -= 1, never below zero."""
        ...

    # ── Orders ───────────────────────────────────────────────────────────────

    async def get_order(self, order_id: OrderId) -> Result[Order | None, StoreError]: ...

    async def insert_order(self, order: Order) -> Result[None, StoreError]: ...

    async def update_order(self, order: Order, expected_version: int) -> Result[bool, StoreError]:
        """Replace the order only if its stored version equals expected_version."""
        ...

    async def count_coupon_orders(self, user_id: UserId, code: str) -> Result[int, StoreError]:
        """Orders of this user carrying the coupon code, excluding Failed ones."""
        ...

    async def next_order_sequence(self, day: date) -> Result[int, StoreError]:
        """Atomic per-day counter starting at 1."""
        ...

    # ── Wallets ──────────────────────────────────────────────────────────────

    async def get_wallet(self, user_id: UserId) -> Result[Wallet | None, StoreError]: ...

    async def ensure_wallet(self, user_id: UserId) -> Result[Wallet, StoreError]: ...

    async def wallet_append(
        self, user_id: UserId, tx: WalletTransaction
    ) -> Result[Wallet | None, StoreError]:
        """
        Append tx and apply its balance effect in one step.

        Ok(None) when the effect would make the balance negative; nothing
        is written in that case. Creates the wallet if missing.
        """
        ...

    async def wallet_complete_pending(
        self, user_id: UserId, order_id: OrderId, tx_type: TxType
    ) -> Result[WalletTransaction | None, StoreError]:
        """Flip the oldest matching Pending tx to Completed and credit it."""
        ...

    async def wallet_discard_pending(
        self, user_id: UserId, order_id: OrderId, tx_type: TxType
    ) -> Result[WalletTransaction | None, StoreError]:
        """Remove the oldest matching Pending tx. No balance effect."""
        ...

    # ── Carts & addresses ────────────────────────────────────────────────────

    async def get_cart(self, user_id: UserId) -> Result[CartSnapshot, StoreError]:
        """Empty snapshot when the user has no cart."""
        ...

    async def save_cart(self, cart: CartSnapshot) -> Result[None, StoreError]: ...

    async def clear_cart(self, user_id: UserId) -> Result[None, StoreError]: ...

    async def get_address(self, address_id: AddressId) -> Result[Address | None, StoreError]: ...

    async def save_address(self, address: Address) -> Result[None, StoreError]: ...


__all__ = (
    "StoreError",
    "StockUpdate",
    "Store",
    "lift_store",
)
