"""Firm registration and firm profile management."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError

from casebridge.audit.recorder import AuditAction, AuditRecorder
from casebridge.db.orm import Firm, FirmStatus, Principal, PrincipalRole, PrincipalStatus
from casebridge.db.repositories import FirmRepository, PrincipalRepository
from casebridge.db.session import UnitOfWork
from casebridge.errors import Conflict, NotFound
from casebridge.security.access import Permission, require, require_firm_scope
from casebridge.security.auth import hash_password
from casebridge.security.identity import AuthContext

logger = logging.getLogger(__name__)

FIRM_PROFILE_FIELDS = ("name", "email", "phone", "address")


@dataclass
class FirmRegistration:
    """A new firm together with its first administrator."""

    firm_name: str
    firm_email: str
    admin_email: str
    admin_password: str
    admin_first_name: str
    admin_last_name: str
    firm_phone: Optional[str] = None
    firm_address: Optional[str] = None
    admin_phone: Optional[str] = None


class FirmService:
    def __init__(self, uow: UnitOfWork):
        session = uow.session
        self.audit = AuditRecorder(session)
        self.firms = FirmRepository(session)
        self.principals = PrincipalRepository(session)

    async def register_firm(self, data: FirmRegistration) -> tuple[Firm, Principal]:
        """Create a firm and its admin manager in one transaction."""
        admin_email = data.admin_email.strip().lower()
        if await self.principals.get_by_email(admin_email) is not None:
            raise Conflict("An account with this email already exists")

        firm = await self.firms.create(
            name=data.firm_name,
            email=data.firm_email.strip().lower(),
            phone=data.firm_phone,
            address=data.firm_address,
            status=FirmStatus.ACTIVE,
        )
        try:
            admin = await self.principals.create(
                firm_id=firm.id,
                email=admin_email,
                password_hash=hash_password(data.admin_password),
                first_name=data.admin_first_name,
                last_name=data.admin_last_name,
                phone=data.admin_phone,
                role=PrincipalRole.ADMIN_MANAGER,
                status=PrincipalStatus.ACTIVE,
            )
        except IntegrityError as e:
            raise Conflict("An account with this email already exists") from e

        await self.audit.record(
            firm.id, admin.id, AuditAction.FIRM_REGISTERED,
            target_id=firm.id,
            details={"firm_name": firm.name},
        )
        logger.info(f"Firm {firm.id} registered with admin {admin.id}")
        return firm, admin

    async def get_firm(self, ctx: AuthContext) -> Firm:
        require_firm_scope(ctx, ctx.firm_id)
        firm = await self.firms.get(ctx.firm_id)
        if firm is None:
            raise NotFound("Firm not found")
        return firm

    async def update_firm(self, ctx: AuthContext, **fields: Optional[str]) -> Firm:
        """Update the caller's firm profile. None values are left unchanged."""
        require(ctx, Permission.FIRM_MANAGE)
        firm = await self.get_firm(ctx)

        changed = sorted(
            name for name in FIRM_PROFILE_FIELDS
            if fields.get(name) is not None and getattr(firm, name) != fields[name]
        )
        if not changed:
            return firm
        for name in changed:
            setattr(firm, name, fields[name])

        await self.audit.record(
            firm.id, ctx.principal_id, AuditAction.FIRM_PROFILE_UPDATED,
            target_id=firm.id,
            details={"updated_fields": changed},
        )
        return firm
