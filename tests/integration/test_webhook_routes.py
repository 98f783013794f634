"""Integration tests for POST <webhook path>, GET / and unknown routes."""

from unittest.mock import AsyncMock

import pytest
import structlog
from fastapi.testclient import TestClient
from structlog.testing import capture_logs

import routes.webhook_routes as webhook_routes
from app import create_app
from config import AppSettings
from dependencies import get_provisioning_service, get_settings
from errors import ConfigurationError, MembershipAPIError
from routes.webhook_routes import create_webhook_router
from schemas.models.membership import MembershipUser
from services.provisioning_service import ProvisioningService

WEBHOOK_PATH = "/stripe-webhook"


@pytest.fixture
def client(settings, fake_membership):
    app = create_app(settings, membership_provider=fake_membership)
    with TestClient(app) as c:
        yield c


def _post(client, body, signature, path=WEBHOOK_PATH):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["Stripe-Signature"] = signature
    return client.post(path, content=body, headers=headers)


# ── Liveness and routing ──────────────────────────────────────────────────────


class TestRouting:
    def test_liveness(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.text == "OK"

    def test_unknown_path_is_404(self, client):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.text == "Not Found"

    def test_wrong_method_on_webhook_is_404(self, client):
        resp = client.get(WEBHOOK_PATH)
        assert resp.status_code == 404
        assert resp.text == "Not Found"

    def test_request_id_header(self, client):
        resp = client.get("/")
        assert resp.headers["X-Request-ID"].startswith("req_")

    def test_docs_disabled_by_default(self, client):
        assert client.get("/docs").status_code == 404
        assert client.get("/openapi.json").status_code == 404


# ── Signature rejection ───────────────────────────────────────────────────────


class TestRejectedSignatures:
    def test_invalid_signature_is_400(self, client, fake_membership, sign, make_event, event_body):
        body = event_body(make_event("invoice.paid", customer_email="a@x.com"))
        resp = _post(client, body, sign(body, "whsec_wrong"))

        assert resp.status_code == 400
        assert resp.text.startswith("Webhook Error: ")
        assert resp.headers["content-type"].startswith("text/plain")
        fake_membership.get_or_create_user.assert_not_awaited()
        fake_membership.create_access_pass.assert_not_awaited()
        fake_membership.revoke_access_pass.assert_not_awaited()

    def test_missing_signature_is_400(self, client, fake_membership, make_event, event_body):
        body = event_body(make_event("customer.subscription.deleted", id="sub_1"))
        resp = _post(client, body, None)

        assert resp.status_code == 400
        assert resp.text == "Webhook Error: Missing Stripe-Signature header"
        fake_membership.revoke_access_pass.assert_not_awaited()

    def test_signed_garbage_is_400(self, client, fake_membership, sign):
        body = b"{not json"
        resp = _post(client, body, sign(body))
        assert resp.status_code == 400
        assert resp.text == "Webhook Error: Invalid payload"


# ── Accepted events ───────────────────────────────────────────────────────────


class TestAcceptedEvents:
    def test_invoice_paid_grants_access(self, client, fake_membership, sign, make_event, event_body):
        body = event_body(
            make_event("invoice.paid", customer_email="a@x.com", subscription="sub_1")
        )
        resp = _post(client, body, sign(body))

        assert resp.status_code == 200
        assert resp.json() == {"received": True}
        # TestClient returns after background tasks have finished
        fake_membership.get_or_create_user.assert_awaited_once_with("a@x.com")
        fake_membership.create_access_pass.assert_awaited_once_with(
            user_id="user_1", product_id="prod_test", external_reference="sub_1"
        )

    def test_subscription_deleted_revokes(self, client, fake_membership, sign, make_event, event_body):
        body = event_body(make_event("customer.subscription.deleted", id="sub_1"))
        resp = _post(client, body, sign(body))

        assert resp.status_code == 200
        fake_membership.revoke_access_pass.assert_awaited_once_with("sub_1")
        fake_membership.get_or_create_user.assert_not_awaited()

    def test_payment_failed_revokes_by_invoice_id(self, client, fake_membership, sign, make_event, event_body):
        body = event_body(make_event("invoice.payment_failed", id="in_1"))
        _post(client, body, sign(body))
        fake_membership.revoke_access_pass.assert_awaited_once_with("in_1")

    def test_grant_without_email_makes_no_calls(self, client, fake_membership, sign, make_event, event_body):
        body = event_body(make_event("checkout.session.completed", id="cs_1"))
        resp = _post(client, body, sign(body))

        assert resp.status_code == 200
        assert resp.json() == {"received": True}
        fake_membership.get_or_create_user.assert_not_awaited()
        fake_membership.create_access_pass.assert_not_awaited()

    def test_unhandled_type_is_acknowledged(self, client, fake_membership, sign, make_event, event_body):
        body = event_body(make_event("customer.created", id="cus_1", email="a@x.com"))
        resp = _post(client, body, sign(body))

        assert resp.status_code == 200
        fake_membership.get_or_create_user.assert_not_awaited()
        fake_membership.revoke_access_pass.assert_not_awaited()

    def test_membership_failure_still_acknowledged(self, client, fake_membership, sign, make_event, event_body):
        fake_membership.get_or_create_user.side_effect = MembershipAPIError("Whop 500")
        body = event_body(
            make_event("invoice.paid", customer_email="a@x.com", subscription="sub_1")
        )
        resp = _post(client, body, sign(body))

        assert resp.status_code == 200
        assert resp.json() == {"received": True}
        fake_membership.create_access_pass.assert_not_awaited()

    def test_redelivery_uses_same_reference(self, client, fake_membership, sign, make_event, event_body):
        body = event_body(
            make_event("invoice.paid", customer_email="a@x.com", subscription="sub_1")
        )
        _post(client, body, sign(body))
        _post(client, body, sign(body))

        refs = [
            c.kwargs["external_reference"]
            for c in fake_membership.create_access_pass.call_args_list
        ]
        assert refs == ["sub_1", "sub_1"]


# ── Configuration-driven wiring ───────────────────────────────────────────────


def test_custom_webhook_path(required_env, fake_membership, sign, make_event, event_body):
    required_env.setenv("WEBHOOK_PATH", "/hooks/stripe")
    app = create_app(AppSettings(), membership_provider=fake_membership)
    body = event_body(make_event("invoice.payment_failed", id="in_1"))

    with TestClient(app) as client:
        assert _post(client, body, sign(body), path="/hooks/stripe").status_code == 200
        assert _post(client, body, sign(body)).status_code == 404

    fake_membership.revoke_access_pass.assert_awaited_once_with("in_1")


def test_lifespan_builds_whop_provider(settings):
    app = create_app(settings)
    with TestClient(app):
        assert isinstance(app.state.provisioning_service, ProvisioningService)


def test_webhook_path_without_leading_slash_is_rejected():
    with pytest.raises(ConfigurationError, match="must start with '/'"):
        create_webhook_router("stripe-webhook")


# ── Settings read by the handler ──────────────────────────────────────────────


class TestHandlerSettings:
    @pytest.mark.parametrize(
        "env, livemode, warned",
        [
            ("production", False, True),
            ("production", True, False),
            ("development", False, False),
        ],
        ids=["test_event_in_production", "live_event_in_production", "test_event_in_development"],
    )
    def test_test_mode_event_in_production_is_flagged(
        self, required_env, fake_membership, sign, make_event, event_body, env, livemode, warned
    ):
        app = create_app(AppSettings(), membership_provider=fake_membership)
        app.dependency_overrides[get_settings] = lambda: AppSettings(env=env)
        event = make_event("invoice.payment_failed", id="in_1")
        event["livemode"] = livemode
        body = event_body(event)

        with TestClient(app) as client:
            with capture_logs() as logs:
                required_env.setattr(
                    webhook_routes, "log", structlog.get_logger(webhook_routes.__name__)
                )
                resp = _post(client, body, sign(body))

        assert resp.status_code == 200
        fake_membership.revoke_access_pass.assert_awaited_once_with("in_1")
        [received] = [e for e in logs if e["event"] == "webhook_event_received"]
        assert received["env"] == env
        assert received["livemode"] is livemode
        flagged = [e for e in logs if e["event"] == "webhook_test_mode_event_in_production"]
        assert bool(flagged) is warned


# ── Ack-before-work ordering ──────────────────────────────────────────────────


async def test_ack_is_sent_before_membership_call(settings, fake_membership, sign, make_event, event_body):
    """Drive the ASGI app directly and record the order of sends and calls."""
    order: list[str] = []

    async def get_or_create_user(email):
        order.append("membership_call")
        return MembershipUser(id="user_1", email=email)

    fake_membership.get_or_create_user = AsyncMock(side_effect=get_or_create_user)
    app = create_app(settings, membership_provider=fake_membership)
    app.dependency_overrides[get_provisioning_service] = lambda: ProvisioningService(
        fake_membership, product_id="prod_test"
    )

    body = event_body(
        make_event("invoice.paid", customer_email="a@x.com", subscription="sub_1")
    )
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": WEBHOOK_PATH,
        "raw_path": WEBHOOK_PATH.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": [
            (b"host", b"testserver"),
            (b"content-type", b"application/json"),
            (b"stripe-signature", sign(body).encode()),
        ],
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }
    body_sent = False

    async def receive():
        nonlocal body_sent
        if not body_sent:
            body_sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return {"type": "http.disconnect"}

    messages: list[dict] = []

    async def send(message):
        messages.append(message)
        if message["type"] == "http.response.start":
            order.append(f"response_start:{message['status']}")
        elif message["type"] == "http.response.body" and not message.get("more_body"):
            order.append("response_complete")

    await app(scope, receive, send)

    assert order == ["response_start:200", "response_complete", "membership_call"]
    assert b'"received":true' in b"".join(
        m.get("body", b"") for m in messages if m["type"] == "http.response.body"
    )
    fake_membership.create_access_pass.assert_awaited_once()
