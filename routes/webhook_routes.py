"""
Inbound payment webhook.

POST <webhook path> (default /stripe-webhook)
- raw body + Stripe-Signature header are verified before anything else
- bad signature or unparseable body → 400 "Webhook Error: <message>"
- verified → 200 {"received": true}; provisioning is handed to a background
  task that Starlette starts only after the response has been sent, so the
  acknowledgement never waits on the membership API
- a test-mode event (livemode false) reaching a production relay is
  processed as usual but logged as a warning
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from config import AppSettings
from dependencies import get_provisioning_service, get_settings, get_signature_verifier
from errors import ConfigurationError
from infrastructure.payments.protocol import SignatureVerifier
from schemas.dto.responses.common import WebhookAck
from services.provisioning_service import ProvisioningService, run_provisioning
from shared.logging import get_logger

log = get_logger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"


async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    settings: AppSettings = Depends(get_settings),
    verifier: SignatureVerifier = Depends(get_signature_verifier),
    service: ProvisioningService = Depends(get_provisioning_service),
) -> WebhookAck:
    # Raw bytes: the signature covers the body exactly as sent
    payload = await request.body()
    event = verifier.verify(payload, request.headers.get(SIGNATURE_HEADER))

    log.info(
        "webhook_event_received",
        event_type=event.type,
        event_id=event.id,
        action=event.action.value,
        livemode=event.livemode,
        env=settings.env,
    )
    if settings.is_production and not event.livemode:
        log.warning(
            "webhook_test_mode_event_in_production",
            event_type=event.type,
            event_id=event.id,
        )
    background_tasks.add_task(run_provisioning, service, event)
    return WebhookAck()


def create_webhook_router(path: str) -> APIRouter:
    """Router exposing the webhook endpoint at the configured path."""
    if not path.startswith("/"):
        raise ConfigurationError(f"WEBHOOK_PATH must start with '/', got {path!r}")

    router = APIRouter(tags=["webhooks"])
    router.add_api_route(
        path,
        receive_webhook,
        methods=["POST"],
        response_model=WebhookAck,
    )
    return router
