"""
Inventory ledger — per-variant stock counters.

Stock only moves through Store.decrement_stock (conditional) and
Store.increment_stock. Callers guard against double release by checking
line status before calling release().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kungfu import Result, Ok, Error, LazyCoroResult

from ordercore._errors import CoreError, Errors
from ordercore._types import ProductId, VariantId
from ordercore import saga as S
from ordercore.store import Store, lift_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Reservation:
    """Stock taken out of the sellable pool. Value recorded by the saga."""

    product_id: ProductId
    variant_id: VariantId
    quantity: int
    remaining: int


class InventoryLedger:
    def __init__(self, store: Store) -> None:
        self._store = store

    async def reserve(
        self,
        product_id: ProductId,
        variant_id: VariantId,
        quantity: int,
    ) -> Result[Reservation, CoreError]:
        """Atomically take quantity units, or fail reporting what is available."""
        if quantity < 1:
            return Error(Errors.validation("Quantity must be at least 1"))

        match lift_store(await self._store.decrement_stock(product_id, variant_id, quantity)):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(Errors.not_found("Product variant", f"{product_id}/{variant_id}"))
            case Ok(update):
                pass

        if not update.applied:
            logger.info(
                "Reservation refused for %s/%s: wanted %d, have %d",
                product_id, variant_id, quantity, update.stock,
            )
            return Error(Errors.insufficient_stock(variant_id, update.stock, quantity))

        logger.debug("Reserved %d of %s/%s, %d left", quantity, product_id, variant_id, update.stock)
        return Ok(Reservation(product_id, variant_id, quantity, update.stock))

    async def release(
        self,
        product_id: ProductId,
        variant_id: VariantId,
        quantity: int,
    ) -> Result[int, CoreError]:
        """Return quantity units to the pool. Returns the new stock level."""
        if quantity < 1:
            return Error(Errors.validation("Quantity must be at least 1"))

        match lift_store(await self._store.increment_stock(product_id, variant_id, quantity)):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(Errors.not_found("Product variant", f"{product_id}/{variant_id}"))
            case Ok(update):
                logger.debug("Released %d of %s/%s, now %d", quantity, product_id, variant_id, update.stock)
                return Ok(update.stock)

    async def available(self, product_id: ProductId, variant_id: VariantId) -> Result[int, CoreError]:
        match lift_store(await self._store.get_product(product_id)):
            case Error(e):
                return Error(e)
            case Ok(product):
                pass
        variant = product.variant(variant_id) if product else None
        if variant is None:
            return Error(Errors.not_found("Product variant", f"{product_id}/{variant_id}"))
        return Ok(variant.stock)

    # ───────────────────────────────────────────────────────────────────────────
    # Saga integration
    # ───────────────────────────────────────────────────────────────────────────

    async def undo(self, reservation: Reservation) -> None:
        """Compensator: put a reservation back. Raises if that is impossible."""
        match await self.release(reservation.product_id, reservation.variant_id, reservation.quantity):
            case Ok(_):
                logger.warning(
                    "Rolled back reservation of %d x %s/%s",
                    reservation.quantity, reservation.product_id, reservation.variant_id,
                )
            case Error(e):
                raise S.CompensationFailed(f"release {reservation}: {e}")

    def reserve_step(
        self,
        product_id: ProductId,
        variant_id: VariantId,
        quantity: int,
    ) -> S.SagaStep[Reservation, CoreError]:
        return S.step(
            LazyCoroResult(lambda: self.reserve(product_id, variant_id, quantity)),
            compensate=self.undo,
        )


__all__ = ("Reservation", "InventoryLedger")
