"""
ordercore — order, payment and inventory consistency for a storefront.

    from ordercore import Settings, setup_logging
    from ordercore import store as St
    from ordercore.models import PaymentMethod, UserContext
    from ordercore.orders import OrderService

    settings = Settings.from_env()
    setup_logging(settings)

    orders = OrderService(St.MemoryStore(), settings)
    match await orders.place_order(UserContext("u1"), cart, address_id, PaymentMethod.WALLET):
        case Ok(order): ...
        case Error(e): ...
"""

from ordercore import saga
from ordercore import models
from ordercore import store
from ordercore import pricing
from ordercore import inventory
from ordercore import wallet
from ordercore import coupons
from ordercore import payments
from ordercore import orders
from ordercore import cart
from ordercore._config import Settings
from ordercore._errors import CoreError, ErrorKind, Errors, ModelError
from ordercore._logging import setup_logging
from ordercore._types import Paise, rupees, format_rupees

__version__ = "0.1.0"

__all__ = (
    "saga",
    "models",
    "store",
    "pricing",
    "inventory",
    "wallet",
    "coupons",
    "payments",
    "orders",
    "cart",
    "Settings",
    "CoreError",
    "ErrorKind",
    "Errors",
    "ModelError",
    "setup_logging",
    "Paise",
    "rupees",
    "format_rupees",
)
