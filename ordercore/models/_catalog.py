"""
Catalog records — products and their purchasable variants.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from enum import Enum

from ordercore._errors import ModelError
from ordercore._types import CategoryId, Paise, ProductId, VariantId


def new_id() -> str:
    return uuid.uuid4().hex


# ═══════════════════════════════════════════════════════════════════════════════
# Variant
# ═══════════════════════════════════════════════════════════════════════════════


class VariantStatus(Enum):
    AVAILABLE = "Available"
    OUT_OF_STOCK = "Out of Stock"
    DISCONTINUED = "Discontinued"


@dataclass(frozen=True, slots=True)
class Variant:
    """
    A purchasable SKU (one color of a product) with its own price and stock.

    id is assigned at creation and never changes; orders and carts refer to
    variants by id, never by position in the product's variant list.
    sale_price == 0 means "no manual sale price".
    """

    id: VariantId
    color: str
    color_name: str
    stock: int
    price: Paise
    sale_price: Paise = 0
    images: tuple[str, ...] = ()
    discontinued: bool = False

    def __post_init__(self) -> None:
        if self.stock < 0:
            raise ModelError(f"Variant {self.id}: stock must be >= 0, got {self.stock}")
        if self.price <= 0:
            raise ModelError(f"Variant {self.id}: price must be > 0")
        if not 0 <= self.sale_price <= self.price:
            raise ModelError(f"Variant {self.id}: sale price must be within 0..price")

    @property
    def status(self) -> VariantStatus:
        if self.discontinued:
            return VariantStatus.DISCONTINUED
        if self.stock == 0:
            return VariantStatus.OUT_OF_STOCK
        return VariantStatus.AVAILABLE

    @property
    def manual_price(self) -> Paise:
        return self.sale_price or self.price

    def with_stock(self, stock: int) -> Variant:
        return replace(self, stock=stock)


# ═══════════════════════════════════════════════════════════════════════════════
# Product
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Product:
    id: ProductId
    name: str
    category_id: CategoryId
    variants: tuple[Variant, ...] = ()
    blocked: bool = False

    def __post_init__(self) -> None:
        ids = [v.id for v in self.variants]
        if len(ids) != len(set(ids)):
            raise ModelError(f"Product {self.id}: duplicate variant ids")

    def variant(self, variant_id: VariantId) -> Variant | None:
        for v in self.variants:
            if v.id == variant_id:
                return v
        return None

    def position_of(self, variant_id: VariantId) -> int | None:
        """Display position only. Never persist it."""
        for i, v in enumerate(self.variants):
            if v.id == variant_id:
                return i
        return None

    def with_variant(self, variant: Variant) -> Product:
        """Replace the variant with the same id, or append a new one."""
        if self.variant(variant.id) is None:
            return replace(self, variants=(*self.variants, variant))
        return replace(
            self,
            variants=tuple(variant if v.id == variant.id else v for v in self.variants),
        )


__all__ = (
    "new_id",
    "VariantStatus",
    "Variant",
    "Product",
)
