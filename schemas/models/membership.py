"""
Membership API shapes.

MembershipUser — a Whop user as returned by users/get_or_create
AccessGrant    — body of an access_passes create call
AccessRevoke   — body of an access_passes/revoke call

None of these are stored locally; the membership API owns their lifecycle.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class MembershipUser(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    id: str
    email: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: object) -> object:
        # Some API versions return numeric ids
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("user id is blank")
        return v


class AccessGrant(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    product_id: str
    external_reference: Optional[str] = None


class AccessRevoke(BaseModel):
    model_config = ConfigDict(frozen=True)

    external_reference: Optional[str] = None
