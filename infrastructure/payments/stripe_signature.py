"""Stripe implementation of SignatureVerifier.

Checks the Stripe-Signature header (v1 scheme: HMAC-SHA256 over
"{timestamp}.{raw body}" with the endpoint's signing secret, timestamp inside
the tolerance window) with the official stripe library, then parses the raw
body into a PaymentEvent.

The body must be the exact bytes received; re-serialised JSON will not verify.
"""

from typing import Optional

import stripe
from pydantic import ValidationError as PydanticValidationError

from errors import WebhookVerificationError
from schemas.models.event import PaymentEvent
from shared.logging import get_logger

log = get_logger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


class StripeSignatureVerifier:
    def __init__(
        self, signing_secret: str, tolerance: int = DEFAULT_TOLERANCE_SECONDS
    ) -> None:
        self._secret = signing_secret
        self._tolerance = tolerance

    def verify(self, payload: bytes, signature_header: Optional[str]) -> PaymentEvent:
        if not signature_header:
            log.warning("webhook_signature_missing")
            raise WebhookVerificationError("Missing Stripe-Signature header")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError:
            log.warning("webhook_payload_not_utf8", size=len(payload))
            raise WebhookVerificationError("Invalid payload")

        try:
            stripe.WebhookSignature.verify_header(
                body, signature_header, self._secret, self._tolerance
            )
        except stripe.SignatureVerificationError as e:
            log.warning("webhook_signature_invalid", error=str(e))
            raise WebhookVerificationError(str(e))

        try:
            return PaymentEvent.model_validate_json(body)
        except PydanticValidationError as e:
            log.warning("webhook_payload_invalid", error_count=e.error_count())
            raise WebhookVerificationError("Invalid payload")
