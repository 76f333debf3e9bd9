"""
Inventory — stock reservation and release.

    from ordercore.inventory import InventoryLedger

    ledger = InventoryLedger(store)
    match await ledger.reserve(product_id, variant_id, 2):
        case Ok(reservation): ...
        case Error(e): ...  # INSUFFICIENT_STOCK, details["available"]
"""

from ordercore.inventory._ledger import Reservation, InventoryLedger

__all__ = ("Reservation", "InventoryLedger")
