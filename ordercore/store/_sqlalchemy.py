"""
SQLAlchemy integration — relational Store over an async engine.

Usage:
    session_factory, engine = await create_database("sqlite+aiosqlite:///shop.db")
    store = SQLAlchemyStore(session_factory)

Hot counters (variant stock, wallet balance, coupon usage, order version,
daily order sequence) are real columns, changed with conditional
UPDATE ... WHERE statements. Everything else is stored as a JSON document
next to the columns it is queried by.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import Any, cast

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from kungfu import Result, Ok, Error

from ordercore._types import AddressId, OrderId, ProductId, UserId, VariantId
from ordercore.models import (
    Address,
    CartSnapshot,
    Coupon,
    Offer,
    Order,
    OrderStatus,
    Product,
    TxStatus,
    TxType,
    Variant,
    Wallet,
    WalletTransaction,
)
from ordercore.store._codec import dump, load
from ordercore.store._protocol import StockUpdate, StoreError


# ═══════════════════════════════════════════════════════════════════════════════
# Tables
# ═══════════════════════════════════════════════════════════════════════════════


class Base(DeclarativeBase):
    pass


class ProductTable(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class VariantTable(Base):
    __tablename__ = "variants"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    color: Mapped[str] = mapped_column(String(32), nullable=False)
    color_name: Mapped[str] = mapped_column(String(64), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    sale_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    discontinued: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class OfferTable(Base):
    __tablename__ = "offers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    document: Mapped[str] = mapped_column(Text, nullable=False)


class CouponTable(Base):
    __tablename__ = "coupons"

    code: Mapped[str] = mapped_column(String(15), primary_key=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    document: Mapped[str] = mapped_column(Text, nullable=False)


class OrderTable(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    order_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    coupon_code: Mapped[str | None] = mapped_column(String(15), nullable=True, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    document: Mapped[str] = mapped_column(Text, nullable=False)


class OrderSequenceTable(Base):
    __tablename__ = "order_sequences"

    day: Mapped[str] = mapped_column(String(10), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False)


class WalletTable(Base):
    __tablename__ = "wallets"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class WalletTxTable(Base):
    __tablename__ = "wallet_transactions"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("wallets.user_id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class CartTable(Base):
    __tablename__ = "carts"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    document: Mapped[str] = mapped_column(Text, nullable=False)


class AddressTable(Base):
    __tablename__ = "addresses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    document: Mapped[str] = mapped_column(Text, nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Database Setup
# ═══════════════════════════════════════════════════════════════════════════════


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create tables and return (session_factory, engine)."""
    engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


# ═══════════════════════════════════════════════════════════════════════════════
# Row ⇄ record
# ═══════════════════════════════════════════════════════════════════════════════


def _variant_of(row: VariantTable) -> Variant:
    return Variant(
        id=row.id,
        color=row.color,
        color_name=row.color_name,
        stock=row.stock,
        price=row.price,
        sale_price=row.sale_price,
        images=tuple(row.images),
        discontinued=row.discontinued,
    )


def _tx_of(row: WalletTxTable) -> WalletTransaction:
    return WalletTransaction(
        id=row.id,
        type=TxType(row.type),
        amount=row.amount,
        status=TxStatus(row.status),
        description=row.description,
        created_at=row.created_at,
        order_id=row.order_id,
    )


def _coupon_of(row: CouponTable) -> Coupon:
    return replace(load(Coupon, row.document), usage_count=row.usage_count, usage_limit=row.usage_limit)


def _rowcount(result: object) -> int:
    return cast(CursorResult[Any], result).rowcount


async def _write(session: AsyncSession, stmt: Any) -> Any:
    """Run a bulk UPDATE/DELETE without touching the identity map."""
    return await session.execute(stmt, execution_options={"synchronize_session": False})


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy Store
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyStore:
    """
    Store over SQLAlchemy async sessions (SQLite dialect for upserts).

    One session and one commit per primitive.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ── Catalog ──────────────────────────────────────────────────────────────

    async def get_product(self, product_id: ProductId) -> Result[Product | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(ProductTable, product_id)
                if row is None:
                    return Ok(None)
                variants = (await session.execute(
                    select(VariantTable)
                    .where(VariantTable.product_id == product_id)
                    .order_by(VariantTable.position)
                )).scalars().all()
                return Ok(Product(
                    id=row.id,
                    name=row.name,
                    category_id=row.category_id,
                    variants=tuple(_variant_of(v) for v in variants),
                    blocked=row.blocked,
                ))
        except Exception as e:
            return Error(StoreError(f"Failed to get product: {e}", e))

    async def save_product(self, product: Product) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                await session.merge(ProductTable(
                    id=product.id,
                    name=product.name,
                    category_id=product.category_id,
                    blocked=product.blocked,
                ))
                keep = [v.id for v in product.variants]
                await _write(
                    session,
                    delete(VariantTable).where(
                        VariantTable.product_id == product.id,
                        VariantTable.id.not_in(keep),
                    )
                )
                for position, v in enumerate(product.variants):
                    await session.merge(VariantTable(
                        id=v.id,
                        product_id=product.id,
                        position=position,
                        color=v.color,
                        color_name=v.color_name,
                        stock=v.stock,
                        price=v.price,
                        sale_price=v.sale_price,
                        images=list(v.images),
                        discontinued=v.discontinued,
                    ))
                await session.commit()
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to save product: {e}", e))

    async def _change_stock(
        self,
        product_id: ProductId,
        variant_id: VariantId,
        delta: int,
    ) -> Result[StockUpdate | None, StoreError]:
        stmt = (
            update(VariantTable)
            .where(VariantTable.product_id == product_id, VariantTable.id == variant_id)
            .values(stock=VariantTable.stock + delta)
            .returning(VariantTable.stock)
        )
        if delta < 0:
            stmt = stmt.where(VariantTable.stock >= -delta)
        try:
            async with self._session_factory() as session:
                updated = (await _write(session, stmt)).scalar_one_or_none()
                await session.commit()
                if updated is not None:
                    return Ok(StockUpdate(applied=True, stock=updated))
                current = (await session.execute(
                    select(VariantTable.stock).where(
                        VariantTable.product_id == product_id, VariantTable.id == variant_id
                    )
                )).scalar_one_or_none()
                if current is None:
                    return Ok(None)
                return Ok(StockUpdate(applied=False, stock=current))
        except Exception as e:
            return Error(StoreError(f"Failed to change stock: {e}", e))

    async def decrement_stock(
        self, product_id: ProductId, variant_id: VariantId, quantity: int
    ) -> Result[StockUpdate | None, StoreError]:
        return await self._change_stock(product_id, variant_id, -quantity)

    async def increment_stock(
        self, product_id: ProductId, variant_id: VariantId, quantity: int
    ) -> Result[StockUpdate | None, StoreError]:
        return await self._change_stock(product_id, variant_id, quantity)

    # ── Offers ───────────────────────────────────────────────────────────────

    async def list_offers(self) -> Result[list[Offer], StoreError]:
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(select(OfferTable))).scalars().all()
                return Ok([load(Offer, r.document) for r in rows])
        except Exception as e:
            return Error(StoreError(f"Failed to list offers: {e}", e))

    async def save_offer(self, offer: Offer) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                await session.merge(OfferTable(id=offer.id, document=dump(offer)))
                await session.commit()
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to save offer: {e}", e))

    # ── Coupons ──────────────────────────────────────────────────────────────

    async def get_coupon(self, code: str) -> Result[Coupon | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(CouponTable, code)
                return Ok(None if row is None else _coupon_of(row))
        except Exception as e:
            return Error(StoreError(f"Failed to get coupon: {e}", e))

    async def list_coupons(self) -> Result[list[Coupon], StoreError]:
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(select(CouponTable))).scalars().all()
                return Ok([_coupon_of(r) for r in rows])
        except Exception as e:
            return Error(StoreError(f"Failed to list coupons: {e}", e))

    async def insert_coupon(self, coupon: Coupon) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = sqlite_insert(CouponTable).values(
                    code=coupon.code,
                    usage_count=coupon.usage_count,
                    usage_limit=coupon.usage_limit,
                    document=dump(coupon),
                ).on_conflict_do_nothing(index_elements=["code"])
                cursor = await session.execute(stmt)
                await session.commit()
                return Ok(_rowcount(cursor) > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to insert coupon: {e}", e))

    async def consume_coupon(self, code: str) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                cursor = await _write(
                    session,
                    update(CouponTable)
                    .where(
                        CouponTable.code == code,
                        (CouponTable.usage_limit.is_(None))
                        | (CouponTable.usage_count < CouponTable.usage_limit),
                    )
                    .values(usage_count=CouponTable.usage_count + 1)
                )
                await session.commit()
                return Ok(_rowcount(cursor) > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to consume coupon: {e}", e))

    async def release_coupon(self, code: str) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                await _write(
                    session,
                    update(CouponTable)
                    .where(CouponTable.code == code, CouponTable.usage_count > 0)
                    .values(usage_count=CouponTable.usage_count - 1)
                )
                await session.commit()
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to release coupon: {e}", e))

    # ── Orders ───────────────────────────────────────────────────────────────

    async def get_order(self, order_id: OrderId) -> Result[Order | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(OrderTable, order_id)
                return Ok(None if row is None else load(Order, row.document))
        except Exception as e:
            return Error(StoreError(f"Failed to get order: {e}", e))

    async def insert_order(self, order: Order) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                session.add(OrderTable(
                    id=order.id,
                    user_id=order.user_id,
                    order_number=order.order_number,
                    status=order.status.value,
                    coupon_code=order.coupon.code if order.coupon else None,
                    version=order.version,
                    document=dump(order),
                ))
                await session.commit()
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to insert order: {e}", e))

    async def update_order(self, order: Order, expected_version: int) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                cursor = await _write(
                    session,
                    update(OrderTable)
                    .where(OrderTable.id == order.id, OrderTable.version == expected_version)
                    .values(
                        status=order.status.value,
                        coupon_code=order.coupon.code if order.coupon else None,
                        version=order.version,
                        document=dump(order),
                    )
                )
                await session.commit()
                return Ok(_rowcount(cursor) > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to update order: {e}", e))

    async def count_coupon_orders(self, user_id: UserId, code: str) -> Result[int, StoreError]:
        try:
            async with self._session_factory() as session:
                count = (await session.execute(
                    select(func.count())
                    .select_from(OrderTable)
                    .where(
                        OrderTable.user_id == user_id,
                        OrderTable.coupon_code == code,
                        OrderTable.status != OrderStatus.FAILED.value,
                    )
                )).scalar_one()
                return Ok(int(count))
        except Exception as e:
            return Error(StoreError(f"Failed to count coupon orders: {e}", e))

    async def next_order_sequence(self, day: date) -> Result[int, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = sqlite_insert(OrderSequenceTable).values(day=day.isoformat(), value=1)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["day"],
                    set_={"value": OrderSequenceTable.value + 1},
                ).returning(OrderSequenceTable.value)
                value = (await session.execute(stmt)).scalar_one()
                await session.commit()
                return Ok(int(value))
        except Exception as e:
            return Error(StoreError(f"Failed to allocate order sequence: {e}", e))

    # ── Wallets ──────────────────────────────────────────────────────────────

    async def _load_wallet(self, session: AsyncSession, user_id: UserId) -> Wallet | None:
        row = await session.get(WalletTable, user_id, populate_existing=True)
        if row is None:
            return None
        txs = (await session.execute(
            select(WalletTxTable).where(WalletTxTable.user_id == user_id).order_by(WalletTxTable.seq)
        )).scalars().all()
        return Wallet(user_id=user_id, balance=row.balance, transactions=tuple(_tx_of(t) for t in txs))

    async def _ensure_wallet_row(self, session: AsyncSession, user_id: UserId) -> None:
        await session.execute(
            sqlite_insert(WalletTable)
            .values(user_id=user_id, balance=0)
            .on_conflict_do_nothing(index_elements=["user_id"])
        )

    async def get_wallet(self, user_id: UserId) -> Result[Wallet | None, StoreError]:
        try:
            async with self._session_factory() as session:
                return Ok(await self._load_wallet(session, user_id))
        except Exception as e:
            return Error(StoreError(f"Failed to get wallet: {e}", e))

    async def ensure_wallet(self, user_id: UserId) -> Result[Wallet, StoreError]:
        try:
            async with self._session_factory() as session:
                await self._ensure_wallet_row(session, user_id)
                await session.commit()
                return Ok(await self._load_wallet(session, user_id) or Wallet(user_id))
        except Exception as e:
            return Error(StoreError(f"Failed to create wallet: {e}", e))

    async def wallet_append(
        self, user_id: UserId, tx: WalletTransaction
    ) -> Result[Wallet | None, StoreError]:
        try:
            async with self._session_factory() as session:
                await self._ensure_wallet_row(session, user_id)
                effect = tx.balance_effect
                stmt = (
                    update(WalletTable)
                    .where(WalletTable.user_id == user_id)
                    .values(balance=WalletTable.balance + effect)
                )
                if effect < 0:
                    stmt = stmt.where(WalletTable.balance >= -effect)
                cursor = await _write(session, stmt)
                if _rowcount(cursor) == 0:
                    await session.rollback()
                    return Ok(None)
                session.add(WalletTxTable(
                    id=tx.id,
                    user_id=user_id,
                    type=tx.type.value,
                    amount=tx.amount,
                    status=tx.status.value,
                    description=tx.description,
                    order_id=tx.order_id,
                    created_at=tx.created_at,
                ))
                await session.commit()
                return Ok(await self._load_wallet(session, user_id))
        except Exception as e:
            return Error(StoreError(f"Failed to append wallet transaction: {e}", e))

    async def _oldest_pending(
        self, session: AsyncSession, user_id: UserId, order_id: OrderId, tx_type: TxType
    ) -> WalletTxTable | None:
        return (await session.execute(
            select(WalletTxTable)
            .where(
                WalletTxTable.user_id == user_id,
                WalletTxTable.order_id == order_id,
                WalletTxTable.type == tx_type.value,
                WalletTxTable.status == TxStatus.PENDING.value,
            )
            .order_by(WalletTxTable.seq)
            .limit(1)
        )).scalar_one_or_none()

    async def wallet_complete_pending(
        self, user_id: UserId, order_id: OrderId, tx_type: TxType
    ) -> Result[WalletTransaction | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await self._oldest_pending(session, user_id, order_id, tx_type)
                if row is None:
                    return Ok(None)
                pending = _tx_of(row)
                cursor = await _write(
                    session,
                    update(WalletTxTable)
                    .where(WalletTxTable.seq == row.seq, WalletTxTable.status == TxStatus.PENDING.value)
                    .values(status=TxStatus.COMPLETED.value)
                )
                if _rowcount(cursor) == 0:
                    await session.rollback()
                    return Ok(None)
                done = WalletTransaction(
                    id=pending.id,
                    type=pending.type,
                    amount=pending.amount,
                    status=TxStatus.COMPLETED,
                    description=pending.description,
                    created_at=pending.created_at,
                    order_id=pending.order_id,
                )
                await _write(
                    session,
                    update(WalletTable)
                    .where(WalletTable.user_id == user_id)
                    .values(balance=WalletTable.balance + done.balance_effect)
                )
                await session.commit()
                return Ok(done)
        except Exception as e:
            return Error(StoreError(f"Failed to complete pending transaction: {e}", e))

    async def wallet_discard_pending(
        self, user_id: UserId, order_id: OrderId, tx_type: TxType
    ) -> Result[WalletTransaction | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await self._oldest_pending(session, user_id, order_id, tx_type)
                if row is None:
                    return Ok(None)
                removed = _tx_of(row)
                cursor = await _write(
                    session,
                    delete(WalletTxTable).where(
                        WalletTxTable.seq == row.seq,
                        WalletTxTable.status == TxStatus.PENDING.value,
                    )
                )
                await session.commit()
                return Ok(removed if _rowcount(cursor) > 0 else None)
        except Exception as e:
            return Error(StoreError(f"Failed to discard pending transaction: {e}", e))

    # ── Carts & addresses ────────────────────────────────────────────────────

    async def get_cart(self, user_id: UserId) -> Result[CartSnapshot, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(CartTable, user_id)
                return Ok(CartSnapshot(user_id) if row is None else load(CartSnapshot, row.document))
        except Exception as e:
            return Error(StoreError(f"Failed to get cart: {e}", e))

    async def save_cart(self, cart: CartSnapshot) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                await session.merge(CartTable(user_id=cart.user_id, document=dump(cart)))
                await session.commit()
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to save cart: {e}", e))

    async def clear_cart(self, user_id: UserId) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                await _write(session, delete(CartTable).where(CartTable.user_id == user_id))
                await session.commit()
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to clear cart: {e}", e))

    async def get_address(self, address_id: AddressId) -> Result[Address | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(AddressTable, address_id)
                return Ok(None if row is None else load(Address, row.document))
        except Exception as e:
            return Error(StoreError(f"Failed to get address: {e}", e))

    async def save_address(self, address: Address) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                await session.merge(AddressTable(
                    id=address.id, user_id=address.user_id, document=dump(address)
                ))
                await session.commit()
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to save address: {e}", e))


__all__ = (
    "Base",
    "create_database",
    "SQLAlchemyStore",
)
