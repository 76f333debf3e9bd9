"""
Saga types — core data structures.
"""

from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Callable, Awaitable
from kungfu import LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Compensator — Undo Action
# ═══════════════════════════════════════════════════════════════════════════════

type CompensatorWithValue[T] = Callable[[T], Awaitable[None]]
"""Compensation function that receives the action result and undoes it."""


class CompensationFailed(Exception):
    """Raised by a compensator that could not undo its step."""


# ═══════════════════════════════════════════════════════════════════════════════
# SagaStep — Single Step with Compensation
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    """
    A single saga step: action + compensator.

    When action succeeds, compensator is recorded.
    If a later step fails, compensators run in reverse.
    """

    action: LazyCoroResult[T, E]
    compensate: CompensatorWithValue[T] | None

    def then[U, E2](
        self,
        f: Callable[[T], SagaExpr[U, E2]],
    ) -> Then[T, U, E, E2]:
        """Chain another saga step after this one."""
        return Then(self, f)


# ═══════════════════════════════════════════════════════════════════════════════
# Saga AST — Composition Operators
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Then[T, U, E, E2]:
    """Sequential composition (monadic bind). inner may itself be a chain."""

    inner: SagaExpr[T, E]
    f: Callable[[T], SagaExpr[U, E2]]

    def then[V, E3](
        self,
        f: Callable[[U], SagaExpr[V, E3]],
    ) -> Then[U, V, E | E2, E3]:
        return Then(self, f)  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True)
class Sequence[T, E]:
    """Run steps in order, collecting values. Size known only at runtime."""

    steps: tuple[SagaStep[T, E], ...]

    def then[U, E2](
        self,
        f: Callable[[tuple[T, ...]], SagaExpr[U, E2]],
    ) -> Then[tuple[T, ...], U, E, E2]:
        return Then(self, f)  # type: ignore[arg-type]


# ═══════════════════════════════════════════════════════════════════════════════
# Result Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    """Successful saga result with metadata."""

    value: T
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    """Saga error with rollback status."""

    error: E
    step_failed: int
    compensators_run: int
    compensators_failed: int
    rollback_complete: bool


# ═══════════════════════════════════════════════════════════════════════════════
# Saga Type (union for run())
# ═══════════════════════════════════════════════════════════════════════════════

type SagaExpr[T, E] = SagaStep[T, E] | Then[object, T, object, E] | Sequence[object, E]

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "CompensatorWithValue",
    "CompensationFailed",
    "SagaStep",
    "Then",
    "Sequence",
    "SagaExpr",
    "SagaResult",
    "SagaError",
)
