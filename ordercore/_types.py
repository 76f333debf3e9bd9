"""
Core types for ordercore.

Re-exports from kungfu + domain aliases.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Identity Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type UserId = str
type ProductId = str
type VariantId = str
type CategoryId = str
type OrderId = str
type LineId = str
type AddressId = str

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Paise = int
"""Money in the smallest currency unit. ₹1 == 100 paise."""

RUPEE: Paise = 100


def rupees(amount: int) -> Paise:
    """Whole rupees to paise."""
    return amount * RUPEE


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounding halves away from zero (non-negative inputs)."""
    return (2 * numerator + denominator) // (2 * denominator)


def percent_of(amount: Paise, percent: int) -> Paise:
    return round_half_up(amount * percent, 100)


def format_rupees(amount: Paise) -> str:
    """₹5000 / ₹12.50"""
    whole, frac = divmod(amount, RUPEE)
    return f"₹{whole}" if frac == 0 else f"₹{whole}.{frac:02d}"


# ═══════════════════════════════════════════════════════════════════════════════
# Clock
# ═══════════════════════════════════════════════════════════════════════════════

type Clock = Callable[[], datetime]
"""Injected time source. Services never call datetime.now() directly."""

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Identity
    "UserId",
    "ProductId",
    "VariantId",
    "CategoryId",
    "OrderId",
    "LineId",
    "AddressId",
    # Money
    "Paise",
    "RUPEE",
    "rupees",
    "round_half_up",
    "percent_of",
    "format_rupees",
    # Time
    "Clock",
)
