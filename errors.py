"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses, except for
webhook verification failures, which keep the plain-text
"Webhook Error: <message>" body payment providers display in their
delivery logs.

Non-AppError exceptions bubble up as 500s (with Sentry reporting when enabled).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ConfigurationError(AppError):
    error_code = "configuration_error"


class WebhookVerificationError(AppError):
    """Inbound webhook failed signature verification or could not be parsed."""

    status_code = 400
    error_code = "webhook_verification_failed"


class MembershipAPIError(AppError):
    """The membership API answered with a bad status, bad body, or not at all."""

    status_code = 502
    error_code = "membership_api_error"

    def __init__(
        self,
        message: str,
        *,
        upstream_status: Optional[int] = None,
        response_text: Optional[str] = None,
    ) -> None:
        details = None
        if upstream_status is not None or response_text is not None:
            details = {"upstream_status": upstream_status, "response_text": response_text}
        super().__init__(message, details=details)
        self.upstream_status = upstream_status
        self.response_text = response_text


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(WebhookVerificationError)
    async def webhook_error_handler(
        request: Request, exc: WebhookVerificationError
    ) -> PlainTextResponse:
        return PlainTextResponse(
            f"Webhook Error: {exc.message}", status_code=exc.status_code
        )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> PlainTextResponse:
        # Unknown paths and wrong methods both answer 404
        if exc.status_code in (404, 405):
            log.warning("route_not_found", method=request.method, path=request.url.path)
            return PlainTextResponse("Not Found", status_code=404)
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        log.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
