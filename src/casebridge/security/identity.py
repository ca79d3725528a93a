"""
Identity & role resolution.

Turns an authenticated principal id into an explicit AuthContext once per
request. Core operations receive the context as an argument and never look
up "who is calling" on their own.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from casebridge.db.orm import Principal, PrincipalRole, PrincipalStatus
from casebridge.db.repositories import PrincipalRepository
from casebridge.errors import AccountInactive, NotInternal, NotProvisioned, Unauthorized
from casebridge.security.access import Permission, permissions_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Resolved identity of the caller: who, in which firm, with which role."""

    principal_id: UUID
    role: PrincipalRole
    status: PrincipalStatus
    firm_id: Optional[UUID] = None
    email: str = ""
    display_name: str = ""
    permissions: frozenset[Permission] = field(default=frozenset(), compare=False)

    @classmethod
    def for_principal(cls, principal: Principal) -> "AuthContext":
        return cls(
            principal_id=principal.id,
            role=principal.role,
            status=principal.status,
            firm_id=principal.firm_id,
            email=principal.email,
            display_name=principal.full_name,
            permissions=permissions_for(principal.role, principal.status),
        )

    @property
    def is_internal(self) -> bool:
        return self.role.is_internal

    def has(self, permission: Permission) -> bool:
        return permission in self.permissions


class IdentityResolver:
    """Read-only lookup from principal id to AuthContext."""

    def __init__(self, session: AsyncSession):
        self.principals = PrincipalRepository(session)

    async def resolve(
        self,
        principal_id: Optional[UUID],
        *,
        require_internal: bool = False,
    ) -> AuthContext:
        """
        Resolve a principal into an AuthContext.

        Raises:
            Unauthorized: no authenticated principal
            NotProvisioned: authenticated but no profile record exists
            NotInternal: a client asking for internal access
            AccountInactive: profile status is not active; carries
                terminate_session for locked, suspended and deactivated accounts
        """
        if principal_id is None:
            raise Unauthorized()

        principal = await self.principals.get(principal_id)
        if principal is None:
            logger.warning(f"Authenticated principal {principal_id} has no profile")
            raise NotProvisioned()

        if require_internal and not principal.role.is_internal:
            logger.warning(f"Client {principal_id} attempted internal access")
            raise NotInternal()

        if principal.status != PrincipalStatus.ACTIVE:
            logger.warning(f"Principal {principal_id} rejected: status {principal.status.value}")
            raise AccountInactive(principal.status.value)

        return AuthContext.for_principal(principal)
