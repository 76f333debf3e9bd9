"""
Pricing — unit prices, totals and per-line proration.

    from ordercore import pricing as P

    unit = P.effective_unit_price(variant, product_discount=10, category_discount=15)
    totals = P.compute_totals(cart.subtotal, cart.coupon_discount, settings)
    share = P.prorate(line.subtotal, order.pricing)   # share.refund
"""

from ordercore.pricing._price import (
    effective_unit_price,
    best_offer_discounts,
    PriceBook,
)
from ordercore.pricing._totals import (
    Totals,
    tax_for,
    compute_totals,
    pricing_at_placement,
    LineShare,
    prorate,
    reprice_without,
)

__all__ = (
    "effective_unit_price",
    "best_offer_discounts",
    "PriceBook",
    "Totals",
    "tax_for",
    "compute_totals",
    "pricing_at_placement",
    "LineShare",
    "prorate",
    "reprice_without",
)
