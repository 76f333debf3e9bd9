"""
Wallet records — append-only transaction log plus running balance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ordercore._errors import ModelError
from ordercore._types import OrderId, Paise, UserId


class TxType(Enum):
    DEPOSIT = "Deposit"
    PURCHASE = "Purchase"
    REFUND = "Refund"


class TxStatus(Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"


@dataclass(frozen=True, slots=True)
class WalletTransaction:
    id: str
    type: TxType
    amount: Paise
    status: TxStatus
    description: str
    created_at: datetime
    order_id: OrderId | None = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ModelError(f"Transaction {self.id}: amount must be > 0")

    @property
    def balance_effect(self) -> Paise:
        """Signed contribution to the balance (0 while pending)."""
        if self.status is not TxStatus.COMPLETED:
            return 0
        return -self.amount if self.type is TxType.PURCHASE else self.amount


@dataclass(frozen=True, slots=True)
class Wallet:
    """
    One per user, created lazily.

    Invariant: balance == sum of balance_effect over transactions.
    """

    user_id: UserId
    balance: Paise = 0
    transactions: tuple[WalletTransaction, ...] = ()

    def ledger_balance(self) -> Paise:
        return sum(t.balance_effect for t in self.transactions)

    @property
    def is_consistent(self) -> bool:
        return self.balance >= 0 and self.balance == self.ledger_balance()


@dataclass(frozen=True, slots=True)
class WalletSummary:
    balance: Paise
    total_added: Paise
    total_spent: Paise
    transaction_count: int


__all__ = (
    "TxType",
    "TxStatus",
    "WalletTransaction",
    "Wallet",
    "WalletSummary",
)
