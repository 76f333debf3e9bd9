"""
Effective unit price — manual sale price vs. best catalog offer.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

from kungfu import Result, Ok, Error

from ordercore._errors import CoreError
from ordercore._types import Clock, Paise, RUPEE, round_half_up
from ordercore.models import Offer, OfferType, Product, Variant
from ordercore.store import Store, lift_store


def effective_unit_price(
    variant: Variant,
    product_discount: int = 0,
    category_discount: int = 0,
) -> Paise:
    """
    Lower of the manual price and the best offer price, never both.

    The offer price is rounded to the nearest whole rupee.
    """
    offer = max(product_discount, category_discount)
    if offer <= 0:
        return variant.manual_price
    offer_price = round_half_up(variant.price * (100 - offer), 100 * RUPEE) * RUPEE
    return min(variant.manual_price, offer_price)


def best_offer_discounts(offers: Iterable[Offer], product: Product, today: date) -> tuple[int, int]:
    """(product offer %, category offer %) among offers live today."""
    product_best = 0
    category_best = 0
    for offer in offers:
        if not offer.is_live(today):
            continue
        match offer.type:
            case OfferType.PRODUCT if offer.target_id == product.id:
                product_best = max(product_best, offer.discount_percent)
            case OfferType.CATEGORY if offer.target_id == product.category_id:
                category_best = max(category_best, offer.discount_percent)
    return product_best, category_best


class PriceBook:
    """Live catalog prices with offers applied."""

    def __init__(self, store: Store, clock: Clock = datetime.now) -> None:
        self._store = store
        self._clock = clock

    async def offer_discounts(self, product: Product) -> Result[tuple[int, int], CoreError]:
        match lift_store(await self._store.list_offers()):
            case Ok(offers):
                return Ok(best_offer_discounts(offers, product, self._clock().date()))
            case Error(e):
                return Error(e)

    async def unit_price(self, product: Product, variant: Variant) -> Result[Paise, CoreError]:
        match await self.offer_discounts(product):
            case Ok((product_pct, category_pct)):
                return Ok(effective_unit_price(variant, product_pct, category_pct))
            case Error(e):
                return Error(e)


__all__ = ("effective_unit_price", "best_offer_discounts", "PriceBook")
