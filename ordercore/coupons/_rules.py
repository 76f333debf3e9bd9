"""
Coupon and offer creation rules. Pure functions, no I/O.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import date

from kungfu import Result, Ok, Error

from ordercore._errors import CoreError, Errors
from ordercore._types import RUPEE
from ordercore.models import Coupon, DiscountType, Offer

CODE_PATTERN = re.compile(r"^[A-Z0-9]{1,15}$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MAX_PERCENTAGE = 90


def _valid_day(value: str) -> bool:
    if not DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def validate_new_coupon(coupon: Coupon) -> Result[Coupon, CoreError]:
    """Check creation rules; returns the coupon with its code normalized."""
    code = coupon.code.strip().upper()
    if not CODE_PATTERN.match(code):
        return Error(Errors.validation("Coupon code must be 1-15 letters or digits"))
    if coupon.discount_value <= 0:
        return Error(Errors.validation("Discount value must be greater than zero"))
    if coupon.discount_type is DiscountType.PERCENTAGE and coupon.discount_value > MAX_PERCENTAGE:
        return Error(Errors.validation(f"Percentage discount cannot exceed {MAX_PERCENTAGE}%"))
    if coupon.min_purchase < RUPEE:
        return Error(Errors.validation("Minimum purchase amount must be at least ₹1"))
    if coupon.max_discount < RUPEE:
        return Error(Errors.validation("Maximum discount must be at least ₹1"))
    if coupon.max_discount >= coupon.min_purchase:
        return Error(Errors.validation("Maximum discount must be less than the minimum purchase amount"))
    if not (_valid_day(coupon.valid_from) and _valid_day(coupon.valid_until)):
        return Error(Errors.validation("Dates must be in YYYY-MM-DD format"))
    if coupon.valid_until < coupon.valid_from:
        return Error(Errors.validation("Valid until date must not be before valid from date"))
    if coupon.usage_limit is not None and coupon.usage_limit < 1:
        return Error(Errors.validation("Usage limit must be at least 1"))
    if coupon.per_user_limit < 1:
        return Error(Errors.validation("Per-user limit must be at least 1"))
    return Ok(replace(coupon, code=code, usage_count=0))


def validate_new_offer(offer: Offer) -> Result[Offer, CoreError]:
    if not offer.name.strip():
        return Error(Errors.validation("Offer name is required"))
    if not 0 <= offer.discount_percent <= 100:
        return Error(Errors.validation("Offer discount must be between 0 and 100"))
    if offer.start_date >= offer.end_date:
        return Error(Errors.validation("Offer end date must be after its start date"))
    return Ok(offer)


__all__ = ("CODE_PATTERN", "validate_new_coupon", "validate_new_offer")
