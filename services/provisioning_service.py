"""
Provisioning workflow: one verified payment event in, at most two sequential
membership API calls out.

- grant events  → get-or-create the Whop user by email, then create an access
                  pass for the configured product
- revoke events → revoke the access pass by external reference
- anything else → ignored

process() never raises for membership API failures; it returns a
ProvisioningResult describing what happened, and run_provisioning() (the
background task) logs it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from errors import MembershipAPIError
from infrastructure.membership.protocol import MembershipProvider
from schemas.models.event import EventAction, PaymentEvent
from shared.logging import get_logger, mask_email

log = get_logger(__name__)


class ProvisioningOutcome(str, Enum):
    GRANTED = "granted"
    REVOKED = "revoked"
    SKIPPED = "skipped"  # grant event without a usable email
    IGNORED = "ignored"  # event type the relay does not act on
    FAILED = "failed"  # membership API call failed


@dataclass(frozen=True)
class ProvisioningResult:
    event_type: str
    outcome: ProvisioningOutcome
    event_id: Optional[str] = None
    external_reference: Optional[str] = None
    user_id: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is not ProvisioningOutcome.FAILED


class ProvisioningService:
    def __init__(self, membership: MembershipProvider, product_id: str) -> None:
        self._membership = membership
        self._product_id = product_id

    async def process(self, event: PaymentEvent) -> ProvisioningResult:
        action = event.action
        if action is EventAction.GRANT:
            return await self._grant(event)
        if action is EventAction.REVOKE:
            return await self._revoke(event)
        return ProvisioningResult(
            event_type=event.type,
            event_id=event.id,
            outcome=ProvisioningOutcome.IGNORED,
            reason="unhandled_event_type",
        )

    async def _grant(self, event: PaymentEvent) -> ProvisioningResult:
        subject = event.subject
        external_reference = subject.external_reference

        email = subject.resolve_email()
        if not email:
            return ProvisioningResult(
                event_type=event.type,
                event_id=event.id,
                outcome=ProvisioningOutcome.SKIPPED,
                external_reference=external_reference,
                reason="no_email_in_payload",
            )

        user_id: Optional[str] = None
        try:
            user = await self._membership.get_or_create_user(email)
            user_id = user.id
            await self._membership.create_access_pass(
                user_id=user_id,
                product_id=self._product_id,
                external_reference=external_reference,
            )
        except MembershipAPIError as e:
            return ProvisioningResult(
                event_type=event.type,
                event_id=event.id,
                outcome=ProvisioningOutcome.FAILED,
                external_reference=external_reference,
                user_id=user_id,
                reason=e.message,
            )

        log.info(
            "access_pass_created",
            email=mask_email(email),
            user_id=user_id,
            product_id=self._product_id,
            external_reference=external_reference,
        )
        return ProvisioningResult(
            event_type=event.type,
            event_id=event.id,
            outcome=ProvisioningOutcome.GRANTED,
            external_reference=external_reference,
            user_id=user_id,
        )

    async def _revoke(self, event: PaymentEvent) -> ProvisioningResult:
        external_reference = event.subject.external_reference
        try:
            await self._membership.revoke_access_pass(external_reference)
        except MembershipAPIError as e:
            return ProvisioningResult(
                event_type=event.type,
                event_id=event.id,
                outcome=ProvisioningOutcome.FAILED,
                external_reference=external_reference,
                reason=e.message,
            )
        return ProvisioningResult(
            event_type=event.type,
            event_id=event.id,
            outcome=ProvisioningOutcome.REVOKED,
            external_reference=external_reference,
        )


def log_provisioning_result(result: ProvisioningResult) -> None:
    """Log a finished workflow at a level matching its outcome."""
    if result.outcome is ProvisioningOutcome.FAILED:
        log_fn = log.error
    elif result.outcome is ProvisioningOutcome.SKIPPED:
        log_fn = log.warning
    else:
        log_fn = log.info
    log_fn(
        "provisioning_completed",
        event_type=result.event_type,
        event_id=result.event_id,
        outcome=result.outcome.value,
        external_reference=result.external_reference,
        user_id=result.user_id,
        reason=result.reason,
    )


async def run_provisioning(
    service: ProvisioningService, event: PaymentEvent
) -> ProvisioningResult:
    """Background task body: process the event and log the result."""
    log.info("provisioning_started", event_type=event.type, event_id=event.id)
    result = await service.process(event)
    log_provisioning_result(result)
    return result
