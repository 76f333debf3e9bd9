"""
JSON codec for domain records (pydantic TypeAdapter over the dataclasses).
"""

from __future__ import annotations

from functools import cache
from typing import Any

from pydantic import TypeAdapter


@cache
def _adapter(tp: Any) -> TypeAdapter[Any]:
    return TypeAdapter(tp)


def dump(value: object) -> str:
    return _adapter(type(value)).dump_json(value).decode()


def load[T](tp: type[T], raw: str) -> T:
    return _adapter(tp).validate_json(raw)


__all__ = ("dump", "load")
