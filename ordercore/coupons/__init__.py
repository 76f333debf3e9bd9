"""
Coupons — eligibility, application, and promotion rules.

    from ordercore.coupons import CouponService

    coupons = CouponService(store, settings)
    await coupons.eligible_coupons(user)
    await coupons.apply_coupon(user, "SAVE20")
"""

from ordercore.coupons._rules import CODE_PATTERN, validate_new_coupon, validate_new_offer
from ordercore.coupons._service import CouponQuote, CouponService

__all__ = (
    "CODE_PATTERN",
    "validate_new_coupon",
    "validate_new_offer",
    "CouponQuote",
    "CouponService",
)
