"""
Promotion records — coupons (cart-level codes) and offers (catalog-level).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from ordercore._types import Paise, percent_of


# ═══════════════════════════════════════════════════════════════════════════════
# Coupon
# ═══════════════════════════════════════════════════════════════════════════════


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True, slots=True)
class Coupon:
    """
    Cart-level discount code.

    valid_from / valid_until are YYYY-MM-DD strings, inclusive on both ends.
    usage_limit None means unlimited.
    """

    code: str
    description: str
    discount_type: DiscountType
    discount_value: int
    min_purchase: Paise
    max_discount: Paise
    valid_from: str
    valid_until: str
    usage_limit: int | None = None
    per_user_limit: int = 1
    active: bool = True
    usage_count: int = 0

    def in_window(self, today: date) -> bool:
        day = today.isoformat()
        return self.valid_from <= day <= self.valid_until

    def is_live(self, today: date) -> bool:
        return self.active and self.in_window(today)

    @property
    def exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit

    def discount_for(self, subtotal: Paise) -> Paise:
        match self.discount_type:
            case DiscountType.PERCENTAGE:
                raw = percent_of(subtotal, self.discount_value)
            case DiscountType.FIXED:
                raw = self.discount_value
        return min(raw, self.max_discount)


# ═══════════════════════════════════════════════════════════════════════════════
# Offer
# ═══════════════════════════════════════════════════════════════════════════════


class OfferType(Enum):
    PRODUCT = "product"
    CATEGORY = "category"


@dataclass(frozen=True, slots=True)
class Offer:
    id: str
    name: str
    type: OfferType
    target_id: str
    discount_percent: int
    start_date: date
    end_date: date
    active: bool = True

    def is_live(self, today: date) -> bool:
        return self.active and self.start_date <= today <= self.end_date

    def expired(self, today: date) -> bool:
        return self.end_date < today


__all__ = (
    "DiscountType",
    "Coupon",
    "OfferType",
    "Offer",
)
