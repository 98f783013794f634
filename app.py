"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI

from config import AppSettings
from errors import register_error_handlers
from infrastructure.http_client import HttpClient
from infrastructure.membership.protocol import MembershipProvider
from infrastructure.membership.whop import WhopMembershipProvider, whop_headers
from infrastructure.payments.stripe_signature import StripeSignatureVerifier
from routes.health_routes import router as health_router
from routes.webhook_routes import create_webhook_router
from services.provisioning_service import ProvisioningService
from shared.log_context import RequestLoggingMiddleware
from shared.logging import configure_logging, get_logger

log = get_logger(__name__)


def create_app(
    settings: Optional[AppSettings] = None,
    membership_provider: Optional[MembershipProvider] = None,
) -> FastAPI:
    """Create and return a fully configured FastAPI application.

    membership_provider replaces the Whop client built at startup; when it is
    given, no outbound HTTP client is created.
    """
    if settings is None:
        settings = AppSettings()

    configure_logging(settings.logging, production=settings.is_production)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            environment=settings.env,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        http_client: Optional[HttpClient] = None
        membership = membership_provider
        if membership is None:
            http_client = HttpClient(
                timeout=settings.whop.whop_timeout_seconds,
                base_url=settings.whop.whop_api_base_url,
                headers=whop_headers(settings.whop.whop_api_key),
            )
            membership = WhopMembershipProvider(http_client)

        app.state.provisioning_service = ProvisioningService(
            membership, product_id=settings.whop.whop_product_id
        )
        log.info(
            "relay_started",
            webhook_path=settings.webhook_path,
            product_id=settings.whop.whop_product_id,
            membership_api=settings.whop.whop_api_base_url,
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        if http_client is not None:
            await http_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.docs_url else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.signature_verifier = StripeSignatureVerifier(
        settings.stripe.stripe_webhook_secret,
        tolerance=settings.stripe.stripe_signature_tolerance,
    )

    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(create_webhook_router(settings.webhook_path))

    return app
