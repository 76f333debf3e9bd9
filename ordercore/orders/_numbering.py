"""
Order numbers: prefix + YYYYMMDD + 4-digit daily sequence (ORD202405230007).
"""

from __future__ import annotations

from datetime import date

from kungfu import Result, Ok, Error

from ordercore._config import Settings
from ordercore._errors import CoreError
from ordercore.store import Store, lift_store


def format_order_number(prefix: str, day: date, sequence: int) -> str:
    return f"{prefix}{day:%Y%m%d}{sequence:04d}"


class OrderNumbers:
    def __init__(self, store: Store, settings: Settings) -> None:
        self._store = store
        self._prefix = settings.order_prefix

    async def next(self, day: date) -> Result[str, CoreError]:
        """Sequence restarts at 0001 every calendar day."""
        match lift_store(await self._store.next_order_sequence(day)):
            case Ok(seq):
                return Ok(format_order_number(self._prefix, day, seq))
            case Error(e):
                return Error(e)


__all__ = ("format_order_number", "OrderNumbers")
