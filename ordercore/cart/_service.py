"""
Cart maintenance. The cart is a plain snapshot; checkout re-prices and
re-validates everything, so nothing here reserves stock.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

from kungfu import Result, Ok, Error

from ordercore._config import Settings
from ordercore._errors import CoreError, Errors
from ordercore._types import Clock, LineId, ProductId, VariantId
from ordercore.models import CartLine, CartSnapshot, UserContext, new_id
from ordercore.pricing import PriceBook, Totals, compute_totals
from ordercore.store import Store, lift_store

logger = logging.getLogger(__name__)


class CartService:
    """
    Example:
        carts = CartService(store, settings)

        match await carts.add_item(user, product_id, variant_id):
            case Ok(cart):
                print(len(cart.lines), cart.subtotal)
            case Error(e):
                print(e.message)
    """

    def __init__(self, store: Store, settings: Settings, clock: Clock = datetime.now) -> None:
        self._store = store
        self._settings = settings
        self._prices = PriceBook(store, clock)

    async def get_cart(self, user: UserContext) -> Result[CartSnapshot, CoreError]:
        return lift_store(await self._store.get_cart(user.user_id))

    async def add_item(
        self,
        user: UserContext,
        product_id: ProductId,
        variant_id: VariantId,
    ) -> Result[CartSnapshot, CoreError]:
        """Add one unit. An existing line for the same variant is incremented."""
        match lift_store(await self._store.get_product(product_id)):
            case Ok(product):
                pass
            case Error(e):
                return Error(e)
        variant = product.variant(variant_id) if product else None
        if product is None or variant is None:
            return Error(Errors.not_found("Product variant", f"{product_id}/{variant_id}"))
        if product.blocked or variant.discontinued:
            return Error(Errors.validation(f"{product.name} is not available"))
        if variant.stock == 0:
            return Error(Errors.insufficient_stock(f"{product.name} ({variant.color_name})", 0, 1))

        match await self.get_cart(user):
            case Ok(cart):
                pass
            case Error(e):
                return Error(e)
        match await self._prices.unit_price(product, variant):
            case Ok(unit_price):
                pass
            case Error(e):
                return Error(e)

        existing = cart.find(product_id, variant_id)
        quantity = existing.quantity + 1 if existing else 1
        limit = min(self._settings.max_line_quantity, variant.stock)
        if quantity > limit:
            if limit == self._settings.max_line_quantity:
                return Error(Errors.validation(f"At most {limit} units per item"))
            return Error(Errors.insufficient_stock(
                f"{product.name} ({variant.color_name})", variant.stock, quantity
            ))

        line = CartLine(
            id=existing.id if existing else new_id(),
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            unit_price=unit_price,
        )
        return await self._save(cart.with_line(line))

    async def change_quantity(
        self,
        user: UserContext,
        line_id: LineId,
        delta: int,
    ) -> Result[CartSnapshot, CoreError]:
        """Move a line's quantity by delta, staying within 1..min(5, stock)."""
        match await self.get_cart(user):
            case Ok(cart):
                pass
            case Error(e):
                return Error(e)
        line = cart.line(line_id)
        if line is None:
            return Error(Errors.not_found("Cart item", line_id))

        quantity = line.quantity + delta
        if quantity < 1:
            return Error(Errors.validation("Quantity must be at least 1"))

        match lift_store(await self._store.get_product(line.product_id)):
            case Ok(product):
                pass
            case Error(e):
                return Error(e)
        variant = product.variant(line.variant_id) if product else None
        if product is None or variant is None:
            return Error(Errors.not_found("Product variant", f"{line.product_id}/{line.variant_id}"))
        if quantity > self._settings.max_line_quantity:
            return Error(Errors.validation(f"At most {self._settings.max_line_quantity} units per item"))
        if quantity > variant.stock:
            return Error(Errors.insufficient_stock(
                f"{product.name} ({variant.color_name})", variant.stock, quantity
            ))

        return await self._save(cart.with_line(replace(line, quantity=quantity)))

    async def remove_item(self, user: UserContext, line_id: LineId) -> Result[CartSnapshot, CoreError]:
        match await self.get_cart(user):
            case Ok(cart):
                pass
            case Error(e):
                return Error(e)
        if cart.line(line_id) is None:
            return Error(Errors.not_found("Cart item", line_id))
        return await self._save(cart.without_line(line_id))

    async def totals(self, user: UserContext) -> Result[Totals, CoreError]:
        match await self.get_cart(user):
            case Ok(cart):
                return Ok(compute_totals(cart.subtotal, cart.coupon_discount, self._settings))
            case Error(e):
                return Error(e)

    # ───────────────────────────────────────────────────────────────────────────

    async def _save(self, cart: CartSnapshot) -> Result[CartSnapshot, CoreError]:
        match await self._refresh_coupon(cart):
            case Ok(cart):
                pass
            case Error(e):
                return Error(e)
        match lift_store(await self._store.save_cart(cart)):
            case Ok(_):
                return Ok(cart)
            case Error(e):
                return Error(e)

    async def _refresh_coupon(self, cart: CartSnapshot) -> Result[CartSnapshot, CoreError]:
        """Recompute the applied discount; drop the coupon below its minimum."""
        if cart.coupon_code is None:
            return Ok(cart)
        match lift_store(await self._store.get_coupon(cart.coupon_code)):
            case Ok(coupon):
                pass
            case Error(e):
                return Error(e)
        if coupon is None or cart.subtotal < coupon.min_purchase:
            logger.info("Coupon %s dropped from cart of user %s", cart.coupon_code, cart.user_id)
            return Ok(cart.without_coupon())
        return Ok(replace(cart, coupon_discount=coupon.discount_for(cart.subtotal)))


__all__ = ("CartService",)
