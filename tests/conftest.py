"""
Shared test configuration.

Every test runs from an empty temporary directory with the relay's env vars
cleared, so pydantic-settings never reads a real .env file or the developer's
shell. Tests control config exclusively through monkeypatch.setenv().
"""

import hashlib
import hmac
import json
import time
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from schemas.models.membership import MembershipUser

WEBHOOK_SECRET = "whsec_test_secret"
PRODUCT_ID = "prod_test"

REQUIRED_ENV = {
    "STRIPE_WEBHOOK_SECRET": WEBHOOK_SECRET,
    "WHOP_API_KEY": "whop_test_key",
    "WHOP_PRODUCT_ID": PRODUCT_ID,
}

_RELAY_ENV_VARS = (
    "STRIPE_WEBHOOK_SECRET",
    "STRIPE_SIGNATURE_TOLERANCE",
    "STRIPE_KEY",
    "WHOP_API_KEY",
    "WHOP_PRODUCT_ID",
    "WHOP_API_BASE_URL",
    "WHOP_TIMEOUT_SECONDS",
    "ENV",
    "APP_NAME",
    "HOST",
    "PORT",
    "WEBHOOK_PATH",
    "DOCS_URL",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "SENTRY_DSN",
    "SENTRY_SEND_PII",
    "SENTRY_TRACES_SAMPLE_RATE",
    "STRIPE",
    "WHOP",
    "LOGGING",
    "SENTRY",
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Clear relay env vars and move away from any project .env file."""
    monkeypatch.chdir(tmp_path)
    for var in _RELAY_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture
def required_env(monkeypatch):
    """Set the three required variables so AppSettings can be instantiated."""
    for name, value in REQUIRED_ENV.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


@pytest.fixture
def settings(required_env):
    from config import AppSettings

    return AppSettings()


def stripe_signature(
    payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None
) -> str:
    """Stripe-Signature header value for payload (v1 scheme)."""
    ts = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(
        secret.encode("utf-8"), f"{ts}.".encode("utf-8") + payload, hashlib.sha256
    ).hexdigest()
    return f"t={ts},v1={digest}"


@pytest.fixture
def sign():
    return stripe_signature


def build_event(event_type: str, event_id: str = "evt_1", **subject: Any) -> dict:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "livemode": False,
        "data": {"object": subject},
    }


@pytest.fixture
def make_event():
    return build_event


@pytest.fixture
def event_body():
    """Serialise an event dict the way Stripe sends it."""

    def _body(event: dict) -> bytes:
        return json.dumps(event).encode("utf-8")

    return _body


@pytest.fixture
def fake_membership():
    """MembershipProvider double that succeeds on every call."""
    membership = MagicMock()
    membership.get_or_create_user = AsyncMock(
        return_value=MembershipUser(id="user_1", email="a@x.com")
    )
    membership.create_access_pass = AsyncMock(return_value={"id": "pass_1"})
    membership.revoke_access_pass = AsyncMock(return_value={})
    return membership
