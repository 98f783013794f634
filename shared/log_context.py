"""
ASGI middleware for request logging and context management.

Provides:
- request ID generation for correlation (X-Request-ID response header)
- request context bound via structlog.contextvars, so everything logged while
  handling a request, background provisioning included, carries request_id
- one access-log line per request with status and timing

Plain ASGI: messages pass straight through to the server, and background
tasks still run only after the response body has been sent.
"""

from __future__ import annotations

import time
import uuid

import structlog
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from shared.logging import get_logger

log = get_logger("relay.request")


def generate_request_id() -> str:
    """Generate a unique request ID for correlation."""
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestLoggingMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = generate_request_id()
        method = scope.get("method", "")
        path = scope.get("path", "")
        started = time.perf_counter()
        status_code = 500

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id, method=method, path=path
        )
        log.debug("request_started")

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers
            await send(message)
            if message["type"] == "http.response.body" and not message.get(
                "more_body", False
            ):
                _log_request_end(status_code, started)

        await self.app(scope, receive, send_wrapper)


def _log_request_end(status_code: int, started: float) -> None:
    """Log the end of a request with timing and status."""
    duration_ms = int((time.perf_counter() - started) * 1000)
    if status_code >= 500:
        log_fn = log.error
    elif status_code >= 400:
        log_fn = log.warning
    else:
        log_fn = log.info
    log_fn("request_completed", status_code=status_code, duration_ms=duration_ms)
