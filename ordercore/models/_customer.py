"""
Caller identity, addresses and the cart snapshot handed to checkout.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from ordercore._errors import ModelError
from ordercore._types import AddressId, LineId, Paise, ProductId, UserId, VariantId


@dataclass(frozen=True, slots=True)
class UserContext:
    """Who is calling. Passed explicitly into every operation."""

    user_id: UserId
    is_admin: bool = False


@dataclass(frozen=True, slots=True)
class Address:
    id: AddressId
    user_id: UserId
    name: str = ""
    city: str = ""
    pincode: str = ""


@dataclass(frozen=True, slots=True)
class CartLine:
    id: LineId
    product_id: ProductId
    variant_id: VariantId
    quantity: int
    unit_price: Paise

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ModelError(f"Cart line {self.id}: quantity must be >= 1")

    @property
    def subtotal(self) -> Paise:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class CartSnapshot:
    user_id: UserId
    lines: tuple[CartLine, ...] = ()
    coupon_code: str | None = None
    coupon_discount: Paise = 0

    @property
    def subtotal(self) -> Paise:
        return sum(line.subtotal for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def line(self, line_id: LineId) -> CartLine | None:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None

    def find(self, product_id: ProductId, variant_id: VariantId) -> CartLine | None:
        for line in self.lines:
            if line.product_id == product_id and line.variant_id == variant_id:
                return line
        return None

    def with_line(self, updated: CartLine) -> CartSnapshot:
        if self.line(updated.id) is None:
            return replace(self, lines=(*self.lines, updated))
        return replace(
            self,
            lines=tuple(updated if line.id == updated.id else line for line in self.lines),
        )

    def without_line(self, line_id: LineId) -> CartSnapshot:
        return replace(self, lines=tuple(line for line in self.lines if line.id != line_id))

    def without_coupon(self) -> CartSnapshot:
        return replace(self, coupon_code=None, coupon_discount=0)


__all__ = (
    "UserContext",
    "Address",
    "CartLine",
    "CartSnapshot",
)
