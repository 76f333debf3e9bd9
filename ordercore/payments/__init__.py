"""
Payments — gateway confirmation verification.

    from ordercore.payments import HmacSignatureVerifier, GatewayConfirmation

    verifier = HmacSignatureVerifier(settings_secret)
    await verifier.verify(GatewayConfirmation(order_id, payment_id, signature))
"""

from ordercore.payments._verify import GatewayConfirmation, SignatureVerifier, HmacSignatureVerifier

__all__ = ("GatewayConfirmation", "SignatureVerifier", "HmacSignatureVerifier")
