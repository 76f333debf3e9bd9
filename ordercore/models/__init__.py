"""
Domain records. All frozen; state changes produce new records.

    from ordercore import models as M

    line = M.OrderLine(id="l1", product_id="p1", variant_id="v1", quantity=2, unit_price=rupees(999))
"""

from ordercore.models._catalog import (
    new_id,
    VariantStatus,
    Variant,
    Product,
)
from ordercore.models._order import (
    OrderStatus,
    ItemStatus,
    ReturnStatus,
    PaymentStatus,
    PaymentMethod,
    CodPayment,
    RazorpayPayment,
    WalletPayment,
    Payment,
    payment_method_of,
    with_payment_status,
    ReturnRecord,
    OrderLine,
    Pricing,
    AppliedCoupon,
    Order,
)
from ordercore.models._wallet import (
    TxType,
    TxStatus,
    WalletTransaction,
    Wallet,
    WalletSummary,
)
from ordercore.models._promotion import (
    DiscountType,
    Coupon,
    OfferType,
    Offer,
)
from ordercore.models._customer import (
    UserContext,
    Address,
    CartLine,
    CartSnapshot,
)

__all__ = (
    # Catalog
    "new_id",
    "VariantStatus",
    "Variant",
    "Product",
    # Order
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
    # Wallet
    "TxType",
    "TxStatus",
    "WalletTransaction",
    "Wallet",
    "WalletSummary",
    # Promotions
    "DiscountType",
    "Coupon",
    "OfferType",
    "Offer",
    # Customer
    "UserContext",
    "Address",
    "CartLine",
    "CartSnapshot",
)
