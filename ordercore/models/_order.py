"""
Order aggregate — lines, payment, pricing and status.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Literal, assert_never

from ordercore._errors import ModelError
from ordercore._types import AddressId, LineId, OrderId, Paise, ProductId, UserId, VariantId


# ═══════════════════════════════════════════════════════════════════════════════
# Statuses
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(Enum):
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    RETURN_REQUESTED = "Return Requested"
    RETURNED = "Returned"
    FAILED = "Failed"


class ItemStatus(Enum):
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class ReturnStatus(Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class PaymentStatus(Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    ORDER_CANCELLED = "Order Cancelled"
    REFUNDED = "Refunded"


class PaymentMethod(Enum):
    """Checkout choice. Orders carry the richer Payment variant below."""

    COD = "COD"
    RAZORPAY = "RAZORPAY"
    WALLET = "WALLET"


# ═══════════════════════════════════════════════════════════════════════════════
# Payment — closed tagged variant
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CodPayment:
    status: PaymentStatus = PaymentStatus.PENDING
    method: Literal["COD"] = "COD"


@dataclass(frozen=True, slots=True)
class RazorpayPayment:
    status: PaymentStatus = PaymentStatus.PENDING
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    method: Literal["RAZORPAY"] = "RAZORPAY"


@dataclass(frozen=True, slots=True)
class WalletPayment:
    status: PaymentStatus = PaymentStatus.COMPLETED
    method: Literal["WALLET"] = "WALLET"


type Payment = CodPayment | RazorpayPayment | WalletPayment


def payment_method_of(payment: Payment) -> PaymentMethod:
    match payment:
        case CodPayment():
            return PaymentMethod.COD
        case RazorpayPayment():
            return PaymentMethod.RAZORPAY
        case WalletPayment():
            return PaymentMethod.WALLET
        case _:
            assert_never(payment)


def with_payment_status(payment: Payment, status: PaymentStatus) -> Payment:
    return replace(payment, status=status)


# ═══════════════════════════════════════════════════════════════════════════════
# Lines
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ReturnRecord:
    status: ReturnStatus
    reason: str
    requested_at: datetime


@dataclass(frozen=True, slots=True)
class OrderLine:
    """
    One ordered variant. unit_price is captured at placement and never
    re-read from the catalog.
    """

    id: LineId
    product_id: ProductId
    variant_id: VariantId
    quantity: int
    unit_price: Paise
    item_status: ItemStatus = ItemStatus.PROCESSING
    return_record: ReturnRecord | None = None
    cancel_reason: str | None = None

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ModelError(f"Line {self.id}: quantity must be >= 1")
        if self.unit_price < 0:
            raise ModelError(f"Line {self.id}: unit price must be >= 0")

    @property
    def subtotal(self) -> Paise:
        return self.unit_price * self.quantity

    @property
    def is_cancelled(self) -> bool:
        return self.item_status is ItemStatus.CANCELLED

    @property
    def return_status(self) -> ReturnStatus | None:
        return None if self.return_record is None else self.return_record.status

    @property
    def holds_stock(self) -> bool:
        """True while the customer keeps the goods (stock is out of the pool)."""
        if self.is_cancelled:
            return False
        return self.return_status not in (ReturnStatus.PENDING, ReturnStatus.APPROVED)

    @property
    def is_returnable(self) -> bool:
        return not self.is_cancelled and self.return_status in (None, ReturnStatus.REJECTED)


# ═══════════════════════════════════════════════════════════════════════════════
# Pricing
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Pricing:
    """
    Current amounts plus the amounts captured at placement.

    placed_* values never change; proration always divides by them.
    refunded is the running total already returned to the customer.
    """

    subtotal: Paise
    tax: Paise
    shipping_fee: Paise
    discount: Paise
    placed_subtotal: Paise
    placed_tax: Paise
    placed_discount: Paise
    refunded: Paise = 0

    @property
    def final_amount(self) -> Paise:
        return self.subtotal + self.tax + self.shipping_fee - self.discount

    @property
    def placed_total(self) -> Paise:
        return self.placed_subtotal + self.placed_tax + self.shipping_fee - self.placed_discount

    @property
    def refundable(self) -> Paise:
        """What is still held from the customer's payment."""
        return max(0, self.placed_total - self.refunded)


@dataclass(frozen=True, slots=True)
class AppliedCoupon:
    code: str
    discount: Paise


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Order:
    """
    Root aggregate. Never deleted; terminal states are final statuses.

    version increases by one on every persisted change and is used for
    compare-and-swap updates.
    """

    id: OrderId
    user_id: UserId
    order_number: str
    lines: tuple[OrderLine, ...]
    address_id: AddressId
    payment: Payment
    pricing: Pricing
    expected_delivery: date
    created_at: datetime
    updated_at: datetime
    status: OrderStatus = OrderStatus.PROCESSING
    coupon: AppliedCoupon | None = None
    cancel_reason: str | None = None
    version: int = 0

    @property
    def method(self) -> PaymentMethod:
        return payment_method_of(self.payment)

    @property
    def active_lines(self) -> tuple[OrderLine, ...]:
        return tuple(line for line in self.lines if not line.is_cancelled)

    def line(self, line_id: LineId) -> OrderLine | None:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None

    def with_lines(self, *updated: OrderLine) -> Order:
        by_id = {line.id: line for line in updated}
        return replace(self, lines=tuple(by_id.get(line.id, line) for line in self.lines))


__all__ = (
    "OrderStatus",
    "ItemStatus",
    "ReturnStatus",
    "PaymentStatus",
    "PaymentMethod",
    "CodPayment",
    "RazorpayPayment",
    "WalletPayment",
    "Payment",
    "payment_method_of",
    "with_payment_status",
    "ReturnRecord",
    "OrderLine",
    "Pricing",
    "AppliedCoupon",
    "Order",
)
