"""Response DTOs for the relay's HTTP surface."""

from __future__ import annotations

from pydantic import BaseModel


class WebhookAck(BaseModel):
    """Acknowledgement sent as soon as an event's signature checks out."""

    received: bool = True
