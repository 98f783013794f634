"""
Inbound payment event model.

A typed, read-only view over the Stripe event JSON. Only the fields the relay
reads are declared; everything else in the payload is kept but ignored.

Event types are split into two families:
- GRANT_EVENT_TYPES  — a payment went through, the customer gets access
- REVOKE_EVENT_TYPES — a subscription ended or a renewal failed, access goes
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

GRANT_EVENT_TYPES = frozenset(
    {
        "checkout.session.completed",
        "invoice.paid",
        "payment_intent.succeeded",
    }
)

REVOKE_EVENT_TYPES = frozenset(
    {
        "customer.subscription.deleted",
        "invoice.payment_failed",
    }
)


class EventAction(str, Enum):
    GRANT = "grant"
    REVOKE = "revoke"
    IGNORE = "ignore"


class CustomerDetails(BaseModel):
    """Checkout session customer_details sub-object."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    email: Optional[str] = None


class EventSubject(BaseModel):
    """
    The event's data.object: a checkout session, invoice, payment intent or
    subscription depending on the event type.

    subscription is a plain id on unexpanded payloads and a full object when
    the sender expanded it; both shapes are accepted.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_details: Optional[CustomerDetails] = None
    receipt_email: Optional[str] = None
    subscription: Optional[Union[str, dict[str, Any]]] = None

    def resolve_email(self) -> Optional[str]:
        """First non-empty of customer_email, customer_details.email, receipt_email."""
        details_email = self.customer_details.email if self.customer_details else None
        return self.customer_email or details_email or self.receipt_email or None

    @property
    def subscription_id(self) -> Optional[str]:
        if isinstance(self.subscription, dict):
            return self.subscription.get("id") or None
        return self.subscription or None

    @property
    def external_reference(self) -> Optional[str]:
        """Subscription id when present, otherwise the subject's own id."""
        return self.subscription_id or self.id or None


class EventData(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    subject: EventSubject = Field(default_factory=EventSubject, alias="object")


class PaymentEvent(BaseModel):
    """Verified Stripe event. Parsed once per request and never persisted."""

    model_config = ConfigDict(extra="allow", frozen=True)

    id: Optional[str] = None
    type: str = ""
    livemode: bool = False
    data: EventData = Field(default_factory=EventData)

    @property
    def subject(self) -> EventSubject:
        return self.data.subject

    @property
    def action(self) -> EventAction:
        if self.type in GRANT_EVENT_TYPES:
            return EventAction.GRANT
        if self.type in REVOKE_EVENT_TYPES:
            return EventAction.REVOKE
        return EventAction.IGNORE
