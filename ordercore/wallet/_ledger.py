"""
Wallet ledger — the single source of truth for money owed to or from a user.

Every balance change is one Store.wallet_append / wallet_complete_pending
call: the transaction row and the balance move together or not at all.
"""

from __future__ import annotations

import logging
from datetime import datetime

from kungfu import Result, Ok, Error, LazyCoroResult

from ordercore._errors import CoreError, Errors
from ordercore._logging import money_log
from ordercore._types import Clock, OrderId, Paise, UserId, format_rupees
from ordercore import saga as S
from ordercore.models import TxStatus, TxType, Wallet, WalletSummary, WalletTransaction, new_id
from ordercore.store import Store, lift_store

logger = logging.getLogger(__name__)


class WalletLedger:
    def __init__(self, store: Store, clock: Clock = datetime.now) -> None:
        self._store = store
        self._clock = clock

    async def wallet_of(self, user_id: UserId) -> Result[Wallet, CoreError]:
        """Fetch the user's wallet, creating an empty one on first use."""
        return lift_store(await self._store.ensure_wallet(user_id))

    # ═══════════════════════════════════════════════════════════════════════════
    # Core primitives
    # ═══════════════════════════════════════════════════════════════════════════

    async def credit(
        self,
        user_id: UserId,
        amount: Paise,
        tx_type: TxType,
        order_id: OrderId | None,
        status: TxStatus,
        description: str,
    ) -> Result[WalletTransaction, CoreError]:
        """
        Append a Deposit or Refund.

        Completed credits change the balance immediately; Pending ones wait
        for complete_pending().
        """
        if amount <= 0:
            return Error(Errors.validation("Amount must be greater than zero"))
        if tx_type is TxType.PURCHASE:
            return Error(Errors.validation("Purchases are recorded with debit()"))

        tx = self._tx(tx_type, amount, status, description, order_id)
        match lift_store(await self._store.wallet_append(user_id, tx)):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(Errors.storage("Credit was refused by the store"))
            case Ok(wallet):
                money_log.info(
                    "wallet credit user=%s type=%s status=%s amount=%s order=%s balance=%s",
                    user_id, tx_type.value, status.value, format_rupees(amount),
                    order_id, format_rupees(wallet.balance),
                )
                return Ok(tx)

    async def debit(
        self,
        user_id: UserId,
        amount: Paise,
        order_id: OrderId | None,
        description: str,
    ) -> Result[WalletTransaction, CoreError]:
        """Subtract amount as a Completed Purchase, only if the balance covers it."""
        if amount <= 0:
            return Error(Errors.validation("Amount must be greater than zero"))

        tx = self._tx(TxType.PURCHASE, amount, TxStatus.COMPLETED, description, order_id)
        match lift_store(await self._store.wallet_append(user_id, tx)):
            case Error(e):
                return Error(e)
            case Ok(None):
                match lift_store(await self._store.get_wallet(user_id)):
                    case Ok(current):
                        balance = current.balance if current else 0
                    case Error(_):
                        balance = 0
                return Error(Errors.insufficient_balance(balance, amount))
            case Ok(wallet):
                money_log.info(
                    "wallet debit user=%s amount=%s order=%s balance=%s",
                    user_id, format_rupees(amount), order_id, format_rupees(wallet.balance),
                )
                return Ok(tx)

    async def complete_pending(
        self,
        user_id: UserId,
        order_id: OrderId,
        tx_type: TxType = TxType.REFUND,
    ) -> Result[WalletTransaction, CoreError]:
        match lift_store(await self._store.wallet_complete_pending(user_id, order_id, tx_type)):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(Errors.not_found(f"Pending {tx_type.value.lower()}", order_id))
            case Ok(tx):
                money_log.info(
                    "wallet pending completed user=%s type=%s amount=%s order=%s",
                    user_id, tx_type.value, format_rupees(tx.amount), order_id,
                )
                return Ok(tx)

    async def discard_pending(
        self,
        user_id: UserId,
        order_id: OrderId,
        tx_type: TxType = TxType.REFUND,
    ) -> Result[WalletTransaction, CoreError]:
        match lift_store(await self._store.wallet_discard_pending(user_id, order_id, tx_type)):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(Errors.not_found(f"Pending {tx_type.value.lower()}", order_id))
            case Ok(tx):
                money_log.info(
                    "wallet pending discarded user=%s type=%s amount=%s order=%s",
                    user_id, tx_type.value, format_rupees(tx.amount), order_id,
                )
                return Ok(tx)

    # ═══════════════════════════════════════════════════════════════════════════
    # Customer operations
    # ═══════════════════════════════════════════════════════════════════════════

    async def deposit(self, user_id: UserId, amount: Paise) -> Result[WalletTransaction, CoreError]:
        return await self.credit(
            user_id, amount, TxType.DEPOSIT, None, TxStatus.COMPLETED, "Added money to wallet"
        )

    async def summary(self, user_id: UserId) -> Result[WalletSummary, CoreError]:
        match await self.wallet_of(user_id):
            case Error(e):
                return Error(e)
            case Ok(wallet):
                pass

        def completed_total(tx_type: TxType) -> Paise:
            return sum(
                t.amount
                for t in wallet.transactions
                if t.type is tx_type and t.status is TxStatus.COMPLETED
            )

        return Ok(WalletSummary(
            balance=wallet.balance,
            total_added=completed_total(TxType.DEPOSIT),
            total_spent=completed_total(TxType.PURCHASE),
            transaction_count=len(wallet.transactions),
        ))

    # ═══════════════════════════════════════════════════════════════════════════
    # Saga integration
    # ═══════════════════════════════════════════════════════════════════════════

    async def undo_purchase(self, user_id: UserId, purchase: WalletTransaction) -> None:
        """Compensator: credit a debited purchase back as a Completed refund."""
        match await self.credit(
            user_id,
            purchase.amount,
            TxType.REFUND,
            purchase.order_id,
            TxStatus.COMPLETED,
            f"Reversal: {purchase.description}",
        ):
            case Ok(_):
                logger.warning("Reversed wallet purchase %s", purchase.id)
            case Error(e):
                raise S.CompensationFailed(f"reverse purchase {purchase.id}: {e}")

    def debit_step(
        self,
        user_id: UserId,
        amount: Paise,
        order_id: OrderId,
        description: str,
    ) -> S.SagaStep[WalletTransaction, CoreError]:
        return S.step(
            LazyCoroResult(lambda: self.debit(user_id, amount, order_id, description)),
            compensate=lambda tx: self.undo_purchase(user_id, tx),
        )

    # ───────────────────────────────────────────────────────────────────────────

    def _tx(
        self,
        tx_type: TxType,
        amount: Paise,
        status: TxStatus,
        description: str,
        order_id: OrderId | None,
    ) -> WalletTransaction:
        return WalletTransaction(
            id=new_id(),
            type=tx_type,
            amount=amount,
            status=status,
            description=description,
            created_at=self._clock(),
            order_id=order_id,
        )


__all__ = ("WalletLedger",)
