"""
Store — persistence behind atomic conditional primitives.

    from ordercore import store as St

    mem = St.MemoryStore()

    session_factory, engine = await St.create_database("sqlite+aiosqlite:///shop.db")
    sql = St.SQLAlchemyStore(session_factory)
"""

from ordercore.store._protocol import (
    Store,
    StoreError,
    StockUpdate,
    lift_store,
)
from ordercore.store._memory import MemoryStore
from ordercore.store._sqlalchemy import (
    Base,
    create_database,
    SQLAlchemyStore,
)

__all__ = (
    "Store",
    "StoreError",
    "StockUpdate",
    "lift_store",
    "MemoryStore",
    "Base",
    "create_database",
    "SQLAlchemyStore",
)
