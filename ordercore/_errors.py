"""
Error taxonomy — every expected failure is a value, never an exception.

    match await orders.cancel_order(user, order_id, "changed my mind"):
        case Ok(order):
            ...
        case Error(CoreError(kind=ErrorKind.INVALID_TRANSITION) as e):
            print(e.message, e.details["allowed"])
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum


# ═══════════════════════════════════════════════════════════════════════════════
# Error Kind
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorKind(Enum):
    """Machine-readable failure category."""

    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_TRANSITION = "invalid_transition"
    INSUFFICIENT_STOCK = "insufficient_stock"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INVALID_COUPON = "invalid_coupon"
    VALIDATION = "validation"
    PAYMENT_FAILED = "payment_failed"
    STORAGE = "storage"


# ═══════════════════════════════════════════════════════════════════════════════
# Core Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CoreError:
    """
    Operation failure.

    message is stable and user-presentable; details carries structured
    context (attempted vs. allowed transitions, available stock, ...).
    """

    kind: ErrorKind
    message: str
    details: Mapping[str, object] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class ModelError(ValueError):
    """Raised when a domain record is constructed with broken invariants."""


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


class Errors:
    @staticmethod
    def not_found(what: str, ident: object) -> CoreError:
        return CoreError(ErrorKind.NOT_FOUND, f"{what} not found", {"id": ident})

    @staticmethod
    def unauthorized(msg: str = "Not allowed to access this resource") -> CoreError:
        return CoreError(ErrorKind.UNAUTHORIZED, msg)

    @staticmethod
    def invalid_transition(
        current: str,
        attempted: str,
        allowed: Iterable[str],
        msg: str | None = None,
    ) -> CoreError:
        allowed_t = tuple(allowed)
        if msg is None:
            nxt = ", ".join(allowed_t) if allowed_t else "none (terminal state)"
            msg = f"Cannot move from {current} to {attempted}; allowed: {nxt}"
        return CoreError(
            ErrorKind.INVALID_TRANSITION,
            msg,
            {"current": current, "attempted": attempted, "allowed": allowed_t},
        )

    @staticmethod
    def concurrent_update(order_id: str) -> CoreError:
        return CoreError(
            ErrorKind.INVALID_TRANSITION,
            "Order was modified concurrently, reload and retry",
            {"id": order_id},
        )

    @staticmethod
    def insufficient_stock(name: str, available: int, requested: int) -> CoreError:
        return CoreError(
            ErrorKind.INSUFFICIENT_STOCK,
            f"Only {available} left in stock for {name}",
            {"available": available, "requested": requested},
        )

    @staticmethod
    def insufficient_balance(balance: int, required: int) -> CoreError:
        return CoreError(
            ErrorKind.INSUFFICIENT_BALANCE,
            "Insufficient wallet balance",
            {"balance": balance, "required": required},
        )

    @staticmethod
    def invalid_coupon(msg: str) -> CoreError:
        return CoreError(ErrorKind.INVALID_COUPON, msg)

    @staticmethod
    def validation(msg: str) -> CoreError:
        return CoreError(ErrorKind.VALIDATION, msg)

    @staticmethod
    def payment_failed(msg: str) -> CoreError:
        return CoreError(ErrorKind.PAYMENT_FAILED, msg)

    @staticmethod
    def storage(msg: str) -> CoreError:
        return CoreError(ErrorKind.STORAGE, msg)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "ErrorKind",
    "CoreError",
    "ModelError",
    "Errors",
)
