"""
Saga step creation.
"""

from __future__ import annotations

from collections.abc import Callable, Awaitable
from kungfu import LazyCoroResult, Result
from combinators import lift as L

from ordercore.saga._types import SagaStep, Sequence, CompensatorWithValue

# ═══════════════════════════════════════════════════════════════════════════════
# step() — Primary Constructor
# ═══════════════════════════════════════════════════════════════════════════════


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: CompensatorWithValue[T] | None = None,
) -> SagaStep[T, E]:
    """
    Create a compensated saga step.

    Example:
        from ordercore import saga as S

        reserve = S.step(
            action=LazyCoroResult(lambda: inventory.reserve(product_id, variant_id, 2)),
            compensate=inventory.undo,
        )
    """
    return SagaStep(action=action, compensate=compensate)


def from_result[T, E](
    action: Callable[[], Awaitable[Result[T, E]]],
    compensate: CompensatorWithValue[T] | None = None,
) -> SagaStep[T, E]:
    """Create step from an async callable that already returns a Result."""
    return SagaStep(action=LazyCoroResult(action), compensate=compensate)


# ═══════════════════════════════════════════════════════════════════════════════
# from_async() — Create step from raising async callable
# ═══════════════════════════════════════════════════════════════════════════════


def from_async[T, E](
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: CompensatorWithValue[T] | None = None,
) -> SagaStep[T, E]:
    """
    Create step from async callable with error handling.

    Example:
        S.from_async(
            lambda: gateway.capture(payment_id),
            on_error=lambda e: Errors.payment_failed(str(e)),
            compensate=gateway.void,
        )
    """
    return SagaStep(
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# sequence() — N steps in order
# ═══════════════════════════════════════════════════════════════════════════════


def sequence[T, E](*steps: SagaStep[T, E]) -> Sequence[T, E]:
    """
    Run steps one after another; value is the tuple of their values.

    Example:
        reservations = S.sequence(*(reserve(line) for line in cart.lines))
    """
    return Sequence(steps=steps)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("step", "from_result", "from_async", "sequence")
