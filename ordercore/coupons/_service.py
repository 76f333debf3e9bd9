"""
Coupon eligibility, application and promotion administration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime

from kungfu import Result, Ok, Error

from ordercore._config import Settings
from ordercore._errors import CoreError, Errors
from ordercore._types import Clock, Paise, UserId, format_rupees
from ordercore.models import CartSnapshot, Coupon, Offer, OfferType, UserContext
from ordercore.coupons._rules import validate_new_coupon, validate_new_offer
from ordercore.store import Store, lift_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CouponQuote:
    """A coupon that passed every apply-time rule, with its discount."""

    coupon: Coupon
    discount: Paise


class CouponService:
    def __init__(self, store: Store, settings: Settings, clock: Clock = datetime.now) -> None:
        self._store = store
        self._settings = settings
        self._clock = clock

    # ═══════════════════════════════════════════════════════════════════════════
    # Eligibility
    # ═══════════════════════════════════════════════════════════════════════════

    async def user_coupon_usage(self, user_id: UserId, code: str) -> Result[int, CoreError]:
        return lift_store(await self._store.count_coupon_orders(user_id, code))

    async def eligible_coupons(
        self,
        user: UserContext,
        cart: CartSnapshot | None = None,
    ) -> Result[list[Coupon], CoreError]:
        """
        Coupons the user could apply to this cart right now.

        Note: the global usage limit is deliberately not consulted here; it
        is only enforced by check_coupon().
        """
        if cart is None:
            match lift_store(await self._store.get_cart(user.user_id)):
                case Ok(cart):
                    pass
                case Error(e):
                    return Error(e)

        match lift_store(await self._store.list_coupons()):
            case Ok(coupons):
                pass
            case Error(e):
                return Error(e)

        today = self._clock().date()
        subtotal = cart.subtotal
        eligible: list[Coupon] = []
        for coupon in coupons:
            if not coupon.is_live(today) or coupon.min_purchase > subtotal:
                continue
            match await self.user_coupon_usage(user.user_id, coupon.code):
                case Ok(used):
                    if used < coupon.per_user_limit:
                        eligible.append(coupon)
                case Error(e):
                    return Error(e)
        return Ok(sorted(eligible, key=lambda c: c.code))

    async def check_coupon(
        self,
        user_id: UserId,
        code: str,
        subtotal: Paise,
    ) -> Result[CouponQuote, CoreError]:
        """Every apply-time rule, in order. Used at apply and again at checkout."""
        code = code.strip().upper()
        match lift_store(await self._store.get_coupon(code)):
            case Ok(coupon):
                pass
            case Error(e):
                return Error(e)

        if coupon is None or not coupon.is_live(self._clock().date()):
            return Error(Errors.invalid_coupon("Invalid or expired coupon code"))
        if subtotal < coupon.min_purchase:
            return Error(Errors.invalid_coupon(
                f"Minimum purchase of {format_rupees(coupon.min_purchase)} required for this coupon"
            ))
        if coupon.exhausted:
            return Error(Errors.invalid_coupon("This coupon has reached its usage limit"))

        match await self.user_coupon_usage(user_id, code):
            case Ok(used):
                if used >= coupon.per_user_limit:
                    return Error(Errors.invalid_coupon("You have already used this coupon"))
            case Error(e):
                return Error(e)

        return Ok(CouponQuote(coupon, coupon.discount_for(subtotal)))

    # ═══════════════════════════════════════════════════════════════════════════
    # Cart operations
    # ═══════════════════════════════════════════════════════════════════════════

    async def apply_coupon(self, user: UserContext, code: str) -> Result[CartSnapshot, CoreError]:
        """Provisionally attach a coupon to the cart. Usage is counted at checkout."""
        if not code or not code.strip():
            return Error(Errors.validation("Coupon code is required"))

        match lift_store(await self._store.get_cart(user.user_id)):
            case Ok(cart):
                pass
            case Error(e):
                return Error(e)
        if cart.is_empty:
            return Error(Errors.validation("Your cart is empty"))

        match await self.check_coupon(user.user_id, code, cart.subtotal):
            case Ok(quote):
                pass
            case Error(e):
                return Error(e)

        updated = replace(cart, coupon_code=quote.coupon.code, coupon_discount=quote.discount)
        match lift_store(await self._store.save_cart(updated)):
            case Ok(_):
                logger.info(
                    "Coupon %s applied for user %s: %s off",
                    quote.coupon.code, user.user_id, format_rupees(quote.discount),
                )
                return Ok(updated)
            case Error(e):
                return Error(e)

    async def remove_coupon(self, user: UserContext) -> Result[CartSnapshot, CoreError]:
        match lift_store(await self._store.get_cart(user.user_id)):
            case Ok(cart):
                pass
            case Error(e):
                return Error(e)
        if cart.coupon_code is None:
            return Error(Errors.validation("No coupon applied to remove"))

        updated = cart.without_coupon()
        match lift_store(await self._store.save_cart(updated)):
            case Ok(_):
                return Ok(updated)
            case Error(e):
                return Error(e)

    # ═══════════════════════════════════════════════════════════════════════════
    # Administration
    # ═══════════════════════════════════════════════════════════════════════════

    async def create_coupon(self, admin: UserContext, coupon: Coupon) -> Result[Coupon, CoreError]:
        if not admin.is_admin:
            return Error(Errors.unauthorized())
        match validate_new_coupon(coupon):
            case Ok(coupon):
                pass
            case Error(e):
                return Error(e)
        match lift_store(await self._store.insert_coupon(coupon)):
            case Ok(True):
                logger.info("Coupon %s created", coupon.code)
                return Ok(coupon)
            case Ok(False):
                return Error(Errors.validation(f"Coupon code {coupon.code} already exists"))
            case Error(e):
                return Error(e)

    async def create_offer(self, admin: UserContext, offer: Offer) -> Result[Offer, CoreError]:
        """Validate and store an offer. One active offer per (type, target)."""
        if not admin.is_admin:
            return Error(Errors.unauthorized())
        match validate_new_offer(offer):
            case Ok(offer):
                pass
            case Error(e):
                return Error(e)

        if offer.type is OfferType.PRODUCT:
            match lift_store(await self._store.get_product(offer.target_id)):
                case Ok(None):
                    return Error(Errors.not_found("Product", offer.target_id))
                case Error(e):
                    return Error(e)
                case Ok(_):
                    pass

        match lift_store(await self._store.list_offers()):
            case Ok(existing):
                pass
            case Error(e):
                return Error(e)
        if offer.active and any(
            o.active and o.type is offer.type and o.target_id == offer.target_id and o.id != offer.id
            for o in existing
        ):
            return Error(Errors.validation(f"An active offer already exists for this {offer.type.value}"))

        match lift_store(await self._store.save_offer(offer)):
            case Ok(_):
                logger.info("Offer %s created for %s %s", offer.id, offer.type.value, offer.target_id)
                return Ok(offer)
            case Error(e):
                return Error(e)

    async def expire_offers(self) -> Result[int, CoreError]:
        """Deactivate offers whose end date has passed. Returns how many."""
        today = self._clock().date()
        match lift_store(await self._store.list_offers()):
            case Ok(offers):
                pass
            case Error(e):
                return Error(e)

        expired = 0
        for offer in offers:
            if offer.active and offer.expired(today):
                match lift_store(await self._store.save_offer(replace(offer, active=False))):
                    case Ok(_):
                        expired += 1
                    case Error(e):
                        return Error(e)
        if expired:
            logger.info("Deactivated %d expired offer(s)", expired)
        return Ok(expired)


__all__ = ("CouponQuote", "CouponService")
