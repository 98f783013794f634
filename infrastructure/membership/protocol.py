"""MembershipProvider protocol — services depend on this, not the concrete implementation."""

from typing import Any, Optional, Protocol

from schemas.models.membership import MembershipUser


class MembershipProvider(Protocol):
    async def get_or_create_user(self, email: str) -> MembershipUser: ...

    async def create_access_pass(
        self, user_id: str, product_id: str, external_reference: Optional[str]
    ) -> dict[str, Any]: ...

    async def revoke_access_pass(
        self, external_reference: Optional[str]
    ) -> dict[str, Any]: ...
