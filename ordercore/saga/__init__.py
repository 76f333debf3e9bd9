"""
Saga — multi-step operations with compensation.

    from ordercore import saga as S

    saga = S.step(action, compensate).then(lambda v: S.step(action2, compensate2))
    result = await S.run(saga)
"""

from __future__ import annotations

from ordercore.saga._types import (
    CompensatorWithValue,
    CompensationFailed,
    SagaStep,
    SagaResult,
    SagaError,
    SagaExpr,
    Then,
    Sequence,
)
from ordercore.saga._step import step, from_result, from_async, sequence
from ordercore.saga._run import run

__all__ = (
    "CompensatorWithValue",
    "CompensationFailed",
    "SagaStep",
    "SagaResult",
    "SagaError",
    "SagaExpr",
    "Then",
    "Sequence",
    "step",
    "from_result",
    "from_async",
    "sequence",
    "run",
)
