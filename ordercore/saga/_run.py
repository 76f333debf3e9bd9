"""
Saga execution with automatic rollback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from kungfu import Result, Ok, Error

from ordercore.saga._types import (
    SagaStep,
    SagaResult,
    SagaError,
    SagaExpr,
    Sequence,
    Then,
    CompensatorWithValue,
)

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Journal — recorded compensators
# ═══════════════════════════════════════════════════════════════════════════════

type RecordedCompensator[T] = tuple[T, CompensatorWithValue[T]]


@dataclass(slots=True)
class Journal:
    compensators: list[RecordedCompensator[Any]] = field(default_factory=list)
    steps: int = 0


# ═══════════════════════════════════════════════════════════════════════════════
# run_step() — Execute single step
# ═══════════════════════════════════════════════════════════════════════════════


async def run_step[T, E](
    step: SagaStep[T, E],
    journal: Journal,
) -> Result[T, E]:
    """Execute single step, recording compensator on success."""
    journal.steps += 1
    result = await step.action
    match result:
        case Ok(value):
            if step.compensate is not None:
                journal.compensators.append((value, step.compensate))
            return Ok(value)
        case Error(e):
            return Error(e)


# ═══════════════════════════════════════════════════════════════════════════════
# run_compensators() — Rollback
# ═══════════════════════════════════════════════════════════════════════════════


async def run_compensators(
    compensators: list[RecordedCompensator[Any]],
) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    comp_run = 0
    comp_failed = 0

    for value, comp in reversed(compensators):
        try:
            await comp(value)
            comp_run += 1
        except Exception:
            logger.exception("Compensator failed for %r", value)
            comp_failed += 1

    return comp_run, comp_failed


# ═══════════════════════════════════════════════════════════════════════════════
# Interpreter
# ═══════════════════════════════════════════════════════════════════════════════


async def _execute(expr: SagaExpr[Any, Any], journal: Journal) -> Result[Any, Any]:
    match expr:
        case SagaStep():
            return await run_step(expr, journal)

        case Then(inner=inner, f=f):
            match await _execute(inner, journal):
                case Ok(value):
                    return await _execute(f(value), journal)
                case Error(e):
                    return Error(e)

        case Sequence(steps=steps):
            values: list[Any] = []
            for s in steps:
                match await run_step(s, journal):
                    case Ok(value):
                        values.append(value)
                    case Error(e):
                        return Error(e)
            return Ok(tuple(values))

    raise TypeError(f"Not a saga expression: {expr!r}")


# ═══════════════════════════════════════════════════════════════════════════════
# run() — Execute Saga
# ═══════════════════════════════════════════════════════════════════════════════


async def run[T, E](
    saga: SagaExpr[T, E],
) -> Result[SagaResult[T], SagaError[E]]:
    """
    Execute saga with automatic rollback on failure.

    On success: returns SagaResult with value and metadata.
    On failure: runs compensators in reverse, returns SagaError.

    Example:
        from ordercore import saga as S

        checkout = (
            S.sequence(*reserve_steps)
            .then(lambda _: S.step(debit_wallet, refund_wallet))
            .then(lambda tx: S.from_result(persist_order))
        )

        match await S.run(checkout):
            case Ok(r):
                print(f"Placed: {r.value}")
            case Error(e):
                print(f"Failed at step {e.step_failed}, rolled back: {e.rollback_complete}")
    """
    journal = Journal()

    match await _execute(saga, journal):
        case Ok(value):
            return Ok(SagaResult(
                value=value,
                steps_executed=journal.steps,
                compensators_recorded=len(journal.compensators),
            ))

        case Error(error):
            if journal.compensators:
                logger.warning(
                    "Saga failed at step %d (%s), rolling back %d step(s)",
                    journal.steps, error, len(journal.compensators),
                )
            comp_run, comp_failed = await run_compensators(journal.compensators)
            if comp_failed:
                logger.error("Rollback incomplete: %d compensator(s) failed", comp_failed)

            return Error(SagaError(
                error=error,
                step_failed=journal.steps,
                compensators_run=comp_run,
                compensators_failed=comp_failed,
                rollback_complete=comp_failed == 0,
            ))


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("run", "run_step", "run_compensators", "Journal")
