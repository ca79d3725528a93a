"""
Invitation engine.

Invitations are single-use onboarding tokens. States are pending, accepted
and revoked; "expired" is derived from expires_at and never stored. A
resend swaps in a new token, so only the latest one can be redeemed.
Redemption provisions the principal and accepts the invitation in one
transaction, so a failed redemption leaves the token pending and
redeemable again.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from casebridge.audit.recorder import AuditAction, AuditRecorder
from casebridge.config import settings
from casebridge.db.orm import (
    Invitation,
    InvitationStatus,
    Principal,
    PrincipalRole,
    PrincipalStatus,
    utcnow,
)
from casebridge.db.repositories import FirmRepository, InvitationRepository, PrincipalRepository
from casebridge.db.session import UnitOfWork
from casebridge.errors import Conflict, Forbidden, InvitationInvalid, NotFound
from casebridge.notifications.dispatcher import EventType
from casebridge.security.access import Permission, require
from casebridge.security.auth import hash_password
from casebridge.security.encryption import token_digest
from casebridge.security.identity import AuthContext

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass
class RedemptionData:
    """Profile supplied by the invitee on the accept page."""

    password: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    email: Optional[str] = None


@dataclass
class InvitationDetails:
    email: str
    role: PrincipalRole
    firm_name: str
    expires_at: datetime


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class InvitationEngine:
    """Creates, describes, redeems, revokes and resends invitations."""

    def __init__(self, uow: UnitOfWork, clock: Clock = utcnow):
        session = uow.session
        self.clock = clock
        self.notifications = uow.notifications
        self.audit = AuditRecorder(session)
        self.invitations = InvitationRepository(session)
        self.principals = PrincipalRepository(session)
        self.firms = FirmRepository(session)

    async def create(
        self, ctx: AuthContext, email: str, role: PrincipalRole
    ) -> tuple[Invitation, str]:
        """
        Invite someone to the caller's firm.

        Administrators may invite any role; case managers may invite clients.

        Returns:
            (invitation, token). The token is only ever returned here.

        Raises:
            Forbidden: caller may not invite this role
            Conflict: email already registered, or a pending invitation exists
        """
        role = PrincipalRole(role)
        require(ctx, Permission.INVITE_CLIENT if role == PrincipalRole.CLIENT else Permission.INVITE_STAFF)
        if ctx.firm_id is None:
            raise Forbidden("Invitations are issued on behalf of a firm")

        email = _normalize_email(email)
        now = self.clock()
        if await self.principals.get_by_email(email) is not None:
            raise Conflict("An account with this email already exists")
        if await self.invitations.find_pending(ctx.firm_id, email, now) is not None:
            raise Conflict("A pending invitation for this email already exists")

        token = secrets.token_urlsafe(32)
        invitation = await self.invitations.create(
            firm_id=ctx.firm_id,
            email=email,
            role=role,
            token_hash=token_digest(token),
            status=InvitationStatus.PENDING,
            invited_by=ctx.principal_id,
            created_at=now,
            expires_at=now + timedelta(days=settings.invitation_expiry_days),
        )
        await self.audit.record(
            ctx.firm_id, ctx.principal_id, AuditAction.USER_INVITED,
            details={
                "invitation_id": invitation.id,
                "email": email,
                "role": role,
                "expires_at": invitation.expires_at.isoformat(),
            },
        )
        logger.info(f"Invitation {invitation.id} ({role.value}) created by {ctx.principal_id}")
        return invitation, token

    async def _load_pending(self, token: str, now: datetime) -> Invitation:
        invitation = await self.invitations.get_by_token_hash(token_digest(token))
        if invitation is None:
            raise InvitationInvalid()
        state = invitation.effective_status(now)
        if state != InvitationStatus.PENDING:
            logger.warning(f"Invitation {invitation.id} is {state.value}")
            raise InvitationInvalid(f"Invitation is {state.value}")
        return invitation

    async def describe(self, token: str) -> InvitationDetails:
        """Details shown on the accept page."""
        invitation = await self._load_pending(token, self.clock())
        firm = await self.firms.get(invitation.firm_id)
        return InvitationDetails(
            email=invitation.email,
            role=invitation.role,
            firm_name=firm.name if firm else "",
            expires_at=invitation.expires_at,
        )

    async def redeem(self, token: str, data: RedemptionData) -> Principal:
        """
        Redeem a token and provision an active principal.

        Raises:
            InvitationInvalid: unknown, used or expired token, or email mismatch
            Conflict: the email was registered since the invitation was sent
        """
        now = self.clock()
        invitation = await self._load_pending(token, now)

        if data.email and _normalize_email(data.email) != invitation.email:
            raise InvitationInvalid("This invitation was issued to a different email")
        if await self.principals.get_by_email(invitation.email) is not None:
            raise Conflict("An account with this email already exists")

        try:
            principal = await self.principals.create(
                firm_id=invitation.firm_id,
                email=invitation.email,
                password_hash=hash_password(data.password),
                first_name=data.first_name,
                last_name=data.last_name,
                phone=data.phone,
                role=invitation.role,
                status=PrincipalStatus.ACTIVE,
            )
        except IntegrityError as e:
            raise InvitationInvalid("Invitation has already been used") from e

        if not await self.invitations.mark_accepted(invitation, now, principal.id):
            raise InvitationInvalid("Invitation has already been used")

        await self.audit.record(
            invitation.firm_id, principal.id, AuditAction.INVITATION_ACCEPTED,
            target_id=invitation.invited_by,
            details={
                "invitation_id": invitation.id,
                "email": invitation.email,
                "role": invitation.role,
            },
        )
        self.notifications.emit(
            invitation.invited_by,
            EventType.INVITATION_ACCEPTED,
            {
                "title": "Invitation accepted",
                "message": f"{principal.full_name} ({principal.email}) joined as {invitation.role.value}",
                "link": f"/workspace/team/{principal.id}",
            },
            firm_id=invitation.firm_id,
        )
        logger.info(f"Invitation {invitation.id} redeemed by new principal {principal.id}")
        return principal

    async def list_pending(self, ctx: AuthContext, include_expired: bool = False) -> list[Invitation]:
        """
        Pending invitations of the caller's firm.

        Expired ones are left out unless asked for, so they can be offered
        for resending.
        """
        if not (ctx.has(Permission.INVITE_STAFF) or ctx.has(Permission.INVITE_CLIENT)):
            raise Forbidden("Permission denied: invitation:view")
        return await self.invitations.list_pending(ctx.firm_id, self.clock(), include_expired)

    async def _managed_invitation(self, ctx: AuthContext, invitation_id: UUID) -> Invitation:
        """Load an invitation of the caller's firm that the caller could have issued."""
        invitation = await self.invitations.get(invitation_id)
        if invitation is None or ctx.firm_id is None or invitation.firm_id != ctx.firm_id:
            raise NotFound("Invitation not found")
        require(
            ctx,
            Permission.INVITE_CLIENT if invitation.role == PrincipalRole.CLIENT else Permission.INVITE_STAFF,
        )
        if invitation.status != InvitationStatus.PENDING:
            raise Conflict(f"Invitation is already {invitation.status.value}")
        return invitation

    async def revoke(self, ctx: AuthContext, invitation_id: UUID) -> Invitation:
        """
        Withdraw a pending (or expired) invitation so its token can never be redeemed.

        Raises:
            NotFound: unknown invitation or another firm's
            Forbidden: caller may not manage invitations for this role
            Conflict: already accepted or revoked
        """
        invitation = await self._managed_invitation(ctx, invitation_id)
        now = self.clock()
        if not await self.invitations.mark_revoked(invitation, now, ctx.principal_id):
            raise Conflict("Invitation changed while it was being revoked")

        await self.audit.record(
            ctx.firm_id, ctx.principal_id, AuditAction.INVITATION_REVOKED,
            details={
                "invitation_id": invitation.id,
                "email": invitation.email,
                "role": invitation.role,
            },
        )
        logger.info(f"Invitation {invitation.id} revoked by {ctx.principal_id}")
        return invitation

    async def resend(self, ctx: AuthContext, invitation_id: UUID) -> tuple[Invitation, str]:
        """
        Issue a fresh token and expiry for a pending (or expired) invitation.

        The previous token stops working immediately.

        Returns:
            (invitation, token). The new token is only ever returned here.
        """
        invitation = await self._managed_invitation(ctx, invitation_id)
        if await self.principals.get_by_email(invitation.email) is not None:
            raise Conflict("An account with this email already exists")

        token = secrets.token_urlsafe(32)
        expires_at = self.clock() + timedelta(days=settings.invitation_expiry_days)
        if not await self.invitations.reissue(invitation, token_digest(token), expires_at):
            raise Conflict("Invitation changed while it was being resent")

        await self.audit.record(
            ctx.firm_id, ctx.principal_id, AuditAction.INVITATION_RESENT,
            details={
                "invitation_id": invitation.id,
                "email": invitation.email,
                "expires_at": expires_at.isoformat(),
                "resend_count": invitation.resend_count,
            },
        )
        logger.info(f"Invitation {invitation.id} resent by {ctx.principal_id}")
        return invitation, token
