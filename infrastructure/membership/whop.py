"""Whop implementation of MembershipProvider.

Three POST calls against the Whop v1 API, all JSON, all authenticated with the
bearer token the HttpClient was built with:
- users/get_or_create     {email}                                  → {id, ...}
- access_passes           {user_id, product_id, external_reference}
- access_passes/revoke    {external_reference}

Grant and revoke calls carry an Idempotency-Key derived from the external
reference, so a redelivered Stripe event maps onto the same Whop operation. Non-2xx
statuses, transport errors and unparseable bodies all surface as
MembershipAPIError; nothing is retried here.
"""

import random
import time
from typing import Any, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from errors import MembershipAPIError
from infrastructure.http_client import HttpClient
from schemas.models.membership import AccessGrant, AccessRevoke, MembershipUser
from shared.logging import get_logger, mask_email, mask_emails_in

log = get_logger(__name__)

_USERS_GET_OR_CREATE = "/users/get_or_create"
_ACCESS_PASSES = "/access_passes"
_ACCESS_PASSES_REVOKE = "/access_passes/revoke"

_LOG_BODY_CHARS = 500


def build_idempotency_key(external_reference: Optional[str]) -> str:
    """Idempotency key for a grant/revoke call.

    Deterministic for a given external reference. Without one, falls back to
    "<epoch ms>-<random>", which is unique per call and therefore gives no
    deduplication across redeliveries.
    """
    if external_reference:
        return external_reference
    log.warning("idempotency_key_fallback", reason="no_external_reference")
    return f"{int(time.time() * 1000)}-{random.random()}"


def whop_headers(api_key: str) -> dict[str, str]:
    """Default headers for an HttpClient talking to Whop."""
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


class WhopMembershipProvider:
    def __init__(self, http_client: HttpClient) -> None:
        self._http = http_client

    async def get_or_create_user(self, email: str) -> MembershipUser:
        data = await self._post(_USERS_GET_OR_CREATE, {"email": email})
        try:
            user = MembershipUser.model_validate(data)
        except PydanticValidationError:
            log.error(
                "whop_user_missing_id",
                email=mask_email(email),
                keys=sorted(data.keys()),
            )
            raise MembershipAPIError("Whop user response has no id")
        log.info("whop_user_resolved", user_id=user.id, email=mask_email(email))
        return user

    async def create_access_pass(
        self, user_id: str, product_id: str, external_reference: Optional[str]
    ) -> dict[str, Any]:
        grant = AccessGrant(
            user_id=user_id,
            product_id=product_id,
            external_reference=external_reference,
        )
        return await self._post(
            _ACCESS_PASSES,
            grant.model_dump(),
            idempotency_key=build_idempotency_key(external_reference),
        )

    async def revoke_access_pass(
        self, external_reference: Optional[str]
    ) -> dict[str, Any]:
        revoke = AccessRevoke(external_reference=external_reference)
        return await self._post(
            _ACCESS_PASSES_REVOKE,
            revoke.model_dump(),
            idempotency_key=build_idempotency_key(external_reference),
        )

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        idempotency_key: Optional[str] = None,
    ) -> dict[str, Any]:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else {}
        log.info("whop_request", path=path, payload=_loggable(payload))
        try:
            response = await self._http.post(path, json=payload, headers=headers)
        except httpx.HTTPError as e:
            log.error(
                "whop_request_failed",
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise MembershipAPIError(f"Whop request to {path} failed: {e}") from e

        text = response.text
        loggable_text = mask_emails_in(text)[:_LOG_BODY_CHARS]
        log.info(
            "whop_response",
            path=path,
            status_code=response.status_code,
            response_text=loggable_text,
        )
        if not response.is_success:
            raise MembershipAPIError(
                f"Whop {response.status_code} on {path}",
                upstream_status=response.status_code,
                response_text=loggable_text,
            )

        if not text:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise MembershipAPIError(
                f"Whop returned a non-JSON body on {path}",
                upstream_status=response.status_code,
                response_text=loggable_text,
            ) from e
        if not isinstance(data, dict):
            raise MembershipAPIError(
                f"Whop returned a non-object body on {path}",
                upstream_status=response.status_code,
                response_text=loggable_text,
            )
        return data


def _loggable(payload: dict[str, Any]) -> dict[str, Any]:
    if "email" in payload:
        return {**payload, "email": mask_email(payload["email"])}
    return payload
