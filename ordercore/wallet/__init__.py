"""
Wallet — append-only store-credit ledger.

    from ordercore.wallet import WalletLedger

    wallet = WalletLedger(store)
    await wallet.deposit(user_id, rupees(500))
    await wallet.debit(user_id, rupees(200), order_id, "Payment for order #ORD202405230007")
"""

from ordercore.wallet._ledger import WalletLedger

__all__ = ("WalletLedger",)
