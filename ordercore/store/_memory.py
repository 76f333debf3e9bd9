"""
In-memory store — one asyncio.Lock serializes every primitive.

Note: Suitable for tests and single-process use. Every method body runs
entirely under the lock, so each primitive is atomic with respect to
other coroutines.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import date

from kungfu import Result, Ok

from ordercore._types import AddressId, OrderId, ProductId, UserId, VariantId
from ordercore.models import (
    Address,
    CartSnapshot,
    Coupon,
    Offer,
    Order,
    OrderStatus,
    Product,
    TxStatus,
    TxType,
    Wallet,
    WalletTransaction,
)
from ordercore.store._protocol import StockUpdate, StoreError


class MemoryStore:
    """Dict-backed Store."""

    def __init__(self) -> None:
        self._products: dict[ProductId, Product] = {}
        self._offers: dict[str, Offer] = {}
        self._coupons: dict[str, Coupon] = {}
        self._orders: dict[OrderId, Order] = {}
        self._sequences: dict[date, int] = {}
        self._wallets: dict[UserId, Wallet] = {}
        self._carts: dict[UserId, CartSnapshot] = {}
        self._addresses: dict[AddressId, Address] = {}
        self._lock = asyncio.Lock()

    # ═══════════════════════════════════════════════════════════════════════════
    # Catalog
    # ═══════════════════════════════════════════════════════════════════════════

    async def get_product(self, product_id: ProductId) -> Result[Product | None, StoreError]:
        async with self._lock:
            return Ok(self._products.get(product_id))

    async def save_product(self, product: Product) -> Result[None, StoreError]:
        async with self._lock:
            self._products[product.id] = product
            return Ok(None)

    async def decrement_stock(
        self, product_id: ProductId, variant_id: VariantId, quantity: int
    ) -> Result[StockUpdate | None, StoreError]:
        async with self._lock:
            product = self._products.get(product_id)
            variant = product.variant(variant_id) if product else None
            if product is None or variant is None:
                return Ok(None)
            if variant.stock < quantity:
                return Ok(StockUpdate(applied=False, stock=variant.stock))
            updated = variant.with_stock(variant.stock - quantity)
            self._products[product_id] = product.with_variant(updated)
            return Ok(StockUpdate(applied=True, stock=updated.stock))

    async def increment_stock(
        self, product_id: ProductId, variant_id: VariantId, quantity: int
    ) -> Result[StockUpdate | None, StoreError]:
        async with self._lock:
            product = self._products.get(product_id)
            variant = product.variant(variant_id) if product else None
            if product is None or variant is None:
                return Ok(None)
            updated = variant.with_stock(variant.stock + quantity)
            self._products[product_id] = product.with_variant(updated)
            return Ok(StockUpdate(applied=True, stock=updated.stock))

    # ═══════════════════════════════════════════════════════════════════════════
    # Offers
    # ═══════════════════════════════════════════════════════════════════════════

    async def list_offers(self) -> Result[list[Offer], StoreError]:
        async with self._lock:
            return Ok(list(self._offers.values()))

    async def save_offer(self, offer: Offer) -> Result[None, StoreError]:
        async with self._lock:
            self._offers[offer.id] = offer
            return Ok(None)

    # ═══════════════════════════════════════════════════════════════════════════
    # Coupons
    # ═══════════════════════════════════════════════════════════════════════════

    async def get_coupon(self, code: str) -> Result[Coupon | None, StoreError]:
        async with self._lock:
            return Ok(self._coupons.get(code))

    async def list_coupons(self) -> Result[list[Coupon], StoreError]:
        async with self._lock:
            return Ok(list(self._coupons.values()))

    async def insert_coupon(self, coupon: Coupon) -> Result[bool, StoreError]:
        async with self._lock:
            if coupon.code in self._coupons:
                return Ok(False)
            self._coupons[coupon.code] = coupon
            return Ok(True)

    async def consume_coupon(self, code: str) -> Result[bool, StoreError]:
        async with self._lock:
            coupon = self._coupons.get(code)
            if coupon is None or coupon.exhausted:
                return Ok(False)
            self._coupons[code] = replace(coupon, usage_count=coupon.usage_count + 1)
            return Ok(True)

    async def release_coupon(self, code: str) -> Result[None, StoreError]:
        async with self._lock:
            coupon = self._coupons.get(code)
            if coupon is not None and coupon.usage_count > 0:
                self._coupons[code] = replace(coupon, usage_count=coupon.usage_count - 1)
            return Ok(None)

    # ═══════════════════════════════════════════════════════════════════════════
    # Orders
    # ═══════════════════════════════════════════════════════════════════════════

    async def get_order(self, order_id: OrderId) -> Result[Order | None, StoreError]:
        async with self._lock:
            return Ok(self._orders.get(order_id))

    async def insert_order(self, order: Order) -> Result[None, StoreError]:
        async with self._lock:
            self._orders[order.id] = order
            return Ok(None)

    async def update_order(self, order: Order, expected_version: int) -> Result[bool, StoreError]:
        async with self._lock:
            current = self._orders.get(order.id)
            if current is None or current.version != expected_version:
                return Ok(False)
            self._orders[order.id] = order
            return Ok(True)

    async def count_coupon_orders(self, user_id: UserId, code: str) -> Result[int, StoreError]:
        async with self._lock:
            return Ok(sum(
                1
                for o in self._orders.values()
                if o.user_id == user_id
                and o.coupon is not None
                and o.coupon.code == code
                and o.status is not OrderStatus.FAILED
            ))

    async def next_order_sequence(self, day: date) -> Result[int, StoreError]:
        async with self._lock:
            value = self._sequences.get(day, 0) + 1
            self._sequences[day] = value
            return Ok(value)

    # ═══════════════════════════════════════════════════════════════════════════
    # Wallets
    # ═══════════════════════════════════════════════════════════════════════════

    async def get_wallet(self, user_id: UserId) -> Result[Wallet | None, StoreError]:
        async with self._lock:
            return Ok(self._wallets.get(user_id))

    async def ensure_wallet(self, user_id: UserId) -> Result[Wallet, StoreError]:
        async with self._lock:
            return Ok(self._wallets.setdefault(user_id, Wallet(user_id)))

    async def wallet_append(
        self, user_id: UserId, tx: WalletTransaction
    ) -> Result[Wallet | None, StoreError]:
        async with self._lock:
            wallet = self._wallets.get(user_id, Wallet(user_id))
            balance = wallet.balance + tx.balance_effect
            if balance < 0:
                return Ok(None)
            wallet = replace(wallet, balance=balance, transactions=(*wallet.transactions, tx))
            self._wallets[user_id] = wallet
            return Ok(wallet)

    def _find_pending(self, wallet: Wallet, order_id: OrderId, tx_type: TxType) -> int | None:
        for i, t in enumerate(wallet.transactions):
            if t.order_id == order_id and t.type is tx_type and t.status is TxStatus.PENDING:
                return i
        return None

    async def wallet_complete_pending(
        self, user_id: UserId, order_id: OrderId, tx_type: TxType
    ) -> Result[WalletTransaction | None, StoreError]:
        async with self._lock:
            wallet = self._wallets.get(user_id)
            idx = None if wallet is None else self._find_pending(wallet, order_id, tx_type)
            if wallet is None or idx is None:
                return Ok(None)
            done = replace(wallet.transactions[idx], status=TxStatus.COMPLETED)
            txs = list(wallet.transactions)
            txs[idx] = done
            self._wallets[user_id] = replace(
                wallet, balance=wallet.balance + done.balance_effect, transactions=tuple(txs)
            )
            return Ok(done)

    async def wallet_discard_pending(
        self, user_id: UserId, order_id: OrderId, tx_type: TxType
    ) -> Result[WalletTransaction | None, StoreError]:
        async with self._lock:
            wallet = self._wallets.get(user_id)
            idx = None if wallet is None else self._find_pending(wallet, order_id, tx_type)
            if wallet is None or idx is None:
                return Ok(None)
            txs = list(wallet.transactions)
            removed = txs.pop(idx)
            self._wallets[user_id] = replace(wallet, transactions=tuple(txs))
            return Ok(removed)

    # ═══════════════════════════════════════════════════════════════════════════
    # Carts & addresses
    # ═══════════════════════════════════════════════════════════════════════════

    async def get_cart(self, user_id: UserId) -> Result[CartSnapshot, StoreError]:
        async with self._lock:
            return Ok(self._carts.get(user_id, CartSnapshot(user_id)))

    async def save_cart(self, cart: CartSnapshot) -> Result[None, StoreError]:
        async with self._lock:
            self._carts[cart.user_id] = cart
            return Ok(None)

    async def clear_cart(self, user_id: UserId) -> Result[None, StoreError]:
        async with self._lock:
            self._carts.pop(user_id, None)
            return Ok(None)

    async def get_address(self, address_id: AddressId) -> Result[Address | None, StoreError]:
        async with self._lock:
            return Ok(self._addresses.get(address_id))

    async def save_address(self, address: Address) -> Result[None, StoreError]:
        async with self._lock:
            self._addresses[address.id] = address
            return Ok(None)


__all__ = ("MemoryStore",)
