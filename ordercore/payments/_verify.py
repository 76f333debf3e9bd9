"""
Gateway confirmation checks.

The order service only asks "is this confirmation genuine?"; how that is
decided is up to the verifier plugged in. Verifiers are async so one can
ask the gateway itself; an exception from verify() means "could not tell",
not "forged".
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class GatewayConfirmation:
    """What the gateway callback hands back after checkout."""

    gateway_order_id: str
    gateway_payment_id: str
    signature: str


class SignatureVerifier(Protocol):
    async def verify(self, confirmation: GatewayConfirmation) -> bool: ...


class HmacSignatureVerifier:
    """
    Razorpay-style check: hex HMAC-SHA256 of "<order_id>|<payment_id>"
    keyed with the merchant secret.
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("Gateway secret must not be empty")
        self._secret = secret.encode()

    def sign(self, gateway_order_id: str, gateway_payment_id: str) -> str:
        body = f"{gateway_order_id}|{gateway_payment_id}".encode()
        return hmac.new(self._secret, body, hashlib.sha256).hexdigest()

    async def verify(self, confirmation: GatewayConfirmation) -> bool:
        # compare_digest refuses non-ASCII str
        if not confirmation.signature.isascii():
            return False
        expected = self.sign(confirmation.gateway_order_id, confirmation.gateway_payment_id)
        return hmac.compare_digest(expected, confirmation.signature)


__all__ = ("GatewayConfirmation", "SignatureVerifier", "HmacSignatureVerifier")
