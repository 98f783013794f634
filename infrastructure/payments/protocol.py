"""SignatureVerifier protocol — the webhook route depends on this, not on Stripe."""

from typing import Optional, Protocol

from schemas.models.event import PaymentEvent


class SignatureVerifier(Protocol):
    def verify(self, payload: bytes, signature_header: Optional[str]) -> PaymentEvent: ...
