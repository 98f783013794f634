"""
Centralized logging for the relay.

Sets up structured logging with:
- JSON formatting for production, pretty console for development
- redaction of credentials (API keys, bearer tokens, signing secrets)
- email masking in production, since customer emails end up in webhook logs

configure_logging() is called once by the app factory. Modules get their
logger with get_logger(__name__) at import time; structlog resolves the
configuration lazily on first use.
"""

from __future__ import annotations

import hashlib
import logging
import re
import sys
from typing import TYPE_CHECKING, Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor

if TYPE_CHECKING:
    from config import LoggingSettings

# Keys redacted wherever they appear in an event dict
REDACTED_FIELDS = {
    "authorization",
    "api_key",
    "whop_api_key",
    "stripe_key",
    "secret",
    "stripe_webhook_secret",
    "token",
    "cookie",
}

_NEVER_REDACTED = {"level", "event", "timestamp", "logger"}

_mask_emails = False

_EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")


def get_logger(name: str) -> BoundLogger:
    """
    Get a configured logger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("access_pass_created", external_reference="sub_123")
    """
    return structlog.get_logger(name)


def mask_email(email: Optional[str]) -> Optional[str]:
    """
    Mask a customer email for logs.

    In production returns a short SHA-256 digest so the same customer can
    still be correlated across log lines. In development returns the email
    unchanged for easier debugging.
    """
    if email is None:
        return None
    if _mask_emails:
        return "email_" + hashlib.sha256(email.lower().encode()).hexdigest()[:16]
    return email


def mask_emails_in(text: str) -> str:
    """Mask every email-shaped substring of free text, e.g. an upstream response body."""
    if not _mask_emails:
        return text
    return _EMAIL_PATTERN.sub(lambda match: mask_email(match.group(0)), text)


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact credential-bearing fields from logs."""
    for key in list(event_dict.keys()):
        if key in _NEVER_REDACTED:
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(
            sensitive in lowered for sensitive in ("secret", "token", "api_key")
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def _configure_stdlib_logging(log_level: str) -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("stripe").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _configure_structlog(log_format: str) -> None:
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            pad_event=15,
            sort_keys=False,
        )

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(settings: "LoggingSettings", *, production: bool = False) -> None:
    """
    Initialize logging for the application.

    Should be called early in application startup, before the first request.
    """
    global _mask_emails
    _mask_emails = production

    _configure_stdlib_logging(settings.log_level)
    _configure_structlog(settings.log_format)

    get_logger(__name__).info(
        "logging_initialized",
        log_level=settings.log_level,
        log_format=settings.log_format,
        mask_emails=production,
    )
