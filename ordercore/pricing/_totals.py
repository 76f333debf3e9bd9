"""
Totals and proration.

    final = subtotal + tax(tax_percent of subtotal) + shipping - discount

Proration splits the placement-time tax and coupon discount across lines
by their share of the placement-time subtotal. Shipping is never split.
"""

from __future__ import annotations

from dataclasses import dataclass

from ordercore._config import Settings
from ordercore._types import Paise, percent_of, round_half_up
from ordercore.models import Pricing


@dataclass(frozen=True, slots=True)
class Totals:
    subtotal: Paise
    tax: Paise
    shipping_fee: Paise
    discount: Paise

    @property
    def total(self) -> Paise:
        return self.subtotal + self.tax + self.shipping_fee - self.discount


def tax_for(subtotal: Paise, settings: Settings) -> Paise:
    return percent_of(subtotal, settings.tax_percent)


def compute_totals(subtotal: Paise, discount: Paise, settings: Settings) -> Totals:
    """Cart/checkout totals. An empty cart carries no shipping fee."""
    return Totals(
        subtotal=subtotal,
        tax=tax_for(subtotal, settings),
        shipping_fee=settings.shipping_fee if subtotal > 0 else 0,
        discount=min(discount, subtotal),
    )


def pricing_at_placement(totals: Totals) -> Pricing:
    return Pricing(
        subtotal=totals.subtotal,
        tax=totals.tax,
        shipping_fee=totals.shipping_fee,
        discount=totals.discount,
        placed_subtotal=totals.subtotal,
        placed_tax=totals.tax,
        placed_discount=totals.discount,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Proration
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LineShare:
    """A line's slice of the order's placement-time tax and discount."""

    subtotal: Paise
    tax: Paise
    discount: Paise

    @property
    def refund(self) -> Paise:
        return max(0, self.subtotal + self.tax - self.discount)


def prorate(line_subtotal: Paise, pricing: Pricing) -> LineShare:
    if pricing.placed_subtotal <= 0:
        return LineShare(line_subtotal, 0, 0)
    return LineShare(
        subtotal=line_subtotal,
        tax=round_half_up(pricing.placed_tax * line_subtotal, pricing.placed_subtotal),
        discount=round_half_up(pricing.placed_discount * line_subtotal, pricing.placed_subtotal),
    )


def reprice_without(pricing: Pricing, share: LineShare, settings: Settings, *, last_line: bool) -> Pricing:
    """
    Pricing after removing one line.

    Tax is recomputed from the new subtotal; the coupon discount shrinks by
    the line's share. When the last line goes only shipping remains.
    """
    subtotal = max(0, pricing.subtotal - share.subtotal)
    discount = 0 if last_line else max(0, pricing.discount - share.discount)
    return Pricing(
        subtotal=subtotal,
        tax=tax_for(subtotal, settings),
        shipping_fee=pricing.shipping_fee,
        discount=min(discount, subtotal),
        placed_subtotal=pricing.placed_subtotal,
        placed_tax=pricing.placed_tax,
        placed_discount=pricing.placed_discount,
        refunded=pricing.refunded,
    )


__all__ = (
    "Totals",
    "tax_for",
    "compute_totals",
    "pricing_at_placement",
    "LineShare",
    "prorate",
    "reprice_without",
)
