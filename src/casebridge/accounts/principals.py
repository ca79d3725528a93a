"""
Principal accounts: client self-registration, login with lockout,
profile edits and administrative status changes.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from casebridge.audit.recorder import AuditAction, AuditRecorder
from casebridge.config import settings
from casebridge.db.orm import Principal, PrincipalRole, PrincipalStatus
from casebridge.db.repositories import PrincipalRepository
from casebridge.db.session import UnitOfWork
from casebridge.errors import (
    AccountInactive,
    CaseBridgeError,
    Conflict,
    Forbidden,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from casebridge.notifications.dispatcher import EventType
from casebridge.security.access import MANAGER_ROLES, Permission, require, require_firm_scope
from casebridge.security.auth import hash_password, verify_password
from casebridge.security.identity import AuthContext

logger = logging.getLogger(__name__)

# Administrative status moves. DEACTIVATED is terminal.
ALLOWED_STATUS_CHANGES: dict[PrincipalStatus, frozenset[PrincipalStatus]] = {
    PrincipalStatus.ACTIVE: frozenset({PrincipalStatus.SUSPENDED, PrincipalStatus.DEACTIVATED}),
    PrincipalStatus.SUSPENDED: frozenset({PrincipalStatus.ACTIVE, PrincipalStatus.DEACTIVATED}),
    PrincipalStatus.LOCKED: frozenset({PrincipalStatus.ACTIVE, PrincipalStatus.DEACTIVATED}),
    PrincipalStatus.PENDING_ONBOARDING: frozenset({PrincipalStatus.ACTIVE, PrincipalStatus.DEACTIVATED}),
    PrincipalStatus.DEACTIVATED: frozenset(),
}

# Dummy hash so unknown emails cost the same as wrong passwords
_TIMING_HASH: Optional[str] = None


def _timing_hash() -> str:
    global _TIMING_HASH
    if _TIMING_HASH is None:
        _TIMING_HASH = hash_password("casebridge-timing-equalizer")
    return _TIMING_HASH


@dataclass
class ClientRegistration:
    email: str
    password: str
    first_name: str
    last_name: str
    phone: Optional[str] = None


@dataclass
class LoginOutcome:
    """
    Result of a login attempt.

    Failed attempts still change state (the failure counter, a lock), so the
    caller commits the unit of work first and raises ``error`` afterwards.
    """

    principal: Optional[Principal] = None
    error: Optional[CaseBridgeError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.principal is not None


class AccountService:
    def __init__(self, uow: UnitOfWork):
        session = uow.session
        self.notifications = uow.notifications
        self.audit = AuditRecorder(session)
        self.principals = PrincipalRepository(session)

    async def register_client(self, data: ClientRegistration) -> Principal:
        email = data.email.strip().lower()
        if await self.principals.get_by_email(email) is not None:
            raise Conflict("An account with this email already exists")
        try:
            client = await self.principals.create(
                email=email,
                password_hash=hash_password(data.password),
                first_name=data.first_name,
                last_name=data.last_name,
                phone=data.phone,
                role=PrincipalRole.CLIENT,
                status=PrincipalStatus.ACTIVE,
            )
        except IntegrityError as e:
            raise Conflict("An account with this email already exists") from e

        await self.audit.record(None, client.id, AuditAction.CLIENT_REGISTERED, target_id=client.id)
        logger.info(f"Client {client.id} registered")
        return client

    async def authenticate(self, email: str, password: str) -> LoginOutcome:
        """
        Check credentials and apply the lockout policy.

        After max_failed_logins consecutive failures the account is locked
        for lockout_minutes. A correct password after the lock has expired
        reactivates the account.
        """
        principal = await self.principals.get_by_email(email.strip())
        if principal is None:
            verify_password(password, _timing_hash())
            return LoginOutcome(error=Unauthorized("Invalid email or password"))

        if principal.status == PrincipalStatus.LOCKED and principal.is_locked:
            logger.warning(f"Login refused for locked principal {principal.id}")
            return LoginOutcome(principal, AccountInactive("locked"))
        if principal.status not in (PrincipalStatus.ACTIVE, PrincipalStatus.LOCKED):
            logger.warning(f"Login refused for {principal.status.value} principal {principal.id}")
            return LoginOutcome(principal, AccountInactive(principal.status.value))

        previous = principal.status
        if not verify_password(password, principal.password_hash):
            locked_now = principal.record_failed_login(
                settings.max_failed_logins, settings.lockout_minutes
            )
            if previous == PrincipalStatus.LOCKED:
                # Only an expired lock gets here; it is lifted before the failure is counted
                await self._audit_login_status(principal, previous, PrincipalStatus.ACTIVE, "lock_expired")
                previous = PrincipalStatus.ACTIVE
            if locked_now:
                await self._audit_login_status(principal, previous, principal.status, "login_lockout")
                logger.warning(
                    f"Principal {principal.id} locked after {principal.failed_login_attempts} failures"
                )
                return LoginOutcome(principal, AccountInactive("locked"))
            return LoginOutcome(principal, Unauthorized("Invalid email or password"))

        principal.record_successful_login()
        if principal.status != previous:
            await self._audit_login_status(principal, previous, principal.status, "lock_expired")
        logger.info(f"Principal {principal.id} logged in")
        return LoginOutcome(principal)

    async def _audit_login_status(
        self,
        principal: Principal,
        previous: PrincipalStatus,
        current: PrincipalStatus,
        reason: str,
    ) -> None:
        """Status moves made by the lockout policy are attributed to the principal."""
        await self.audit.record(
            principal.firm_id, principal.id, AuditAction.USER_STATUS_CHANGED,
            target_id=principal.id,
            details={"from": previous, "to": current, "reason": reason},
        )

    async def update_profile(
        self,
        ctx: AuthContext,
        *,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Principal:
        require(ctx, Permission.PROFILE_EDIT)
        principal = await self.principals.get(ctx.principal_id)
        if principal is None:
            raise NotFound("Profile not found")

        changes = {
            name: value
            for name, value in (("first_name", first_name), ("last_name", last_name), ("phone", phone))
            if value is not None and getattr(principal, name) != value
        }
        if not changes:
            return principal

        for name, value in changes.items():
            setattr(principal, name, value)
        await self.audit.record(
            ctx.firm_id, ctx.principal_id, AuditAction.PROFILE_UPDATED,
            target_id=ctx.principal_id,
            details={"updated_fields": sorted(changes)},
        )
        return principal

    async def change_status(
        self,
        ctx: AuthContext,
        principal_id: UUID,
        new_status: PrincipalStatus,
        reason: Optional[str] = None,
    ) -> Principal:
        """
        Suspend, reactivate or deactivate a member of the caller's firm.

        Raises:
            Forbidden: caller is not an administrator, or targets themselves
            NotFound: principal absent or in another firm
            ValidationFailed: the move is not allowed from the current status
        """
        require(ctx, Permission.USER_MANAGE)
        new_status = PrincipalStatus(new_status)
        if principal_id == ctx.principal_id:
            raise Forbidden("You cannot change your own account status")

        target = await self.principals.get(principal_id)
        if target is None or target.firm_id is None or target.firm_id != ctx.firm_id:
            raise NotFound("Team member not found")

        previous = target.status
        if new_status not in ALLOWED_STATUS_CHANGES[previous]:
            raise ValidationFailed(
                f"Cannot change status from {previous.value} to {new_status.value}"
            )

        target.status = new_status
        if new_status == PrincipalStatus.ACTIVE:
            target.failed_login_attempts = 0
            target.locked_until = None

        await self.audit.record(
            ctx.firm_id, ctx.principal_id, AuditAction.USER_STATUS_CHANGED,
            target_id=target.id,
            details={"from": previous, "to": new_status, "reason": reason},
        )
        self.notifications.emit(
            target.id,
            EventType.ACCOUNT_STATUS_CHANGED,
            {
                "title": "Account status changed",
                "message": f"Your account is now {new_status.value}",
            },
            firm_id=ctx.firm_id,
        )
        logger.info(
            f"Principal {target.id} {previous.value} -> {new_status.value} by {ctx.principal_id}"
        )
        return target

    async def list_staff(self, ctx: AuthContext) -> list[Principal]:
        """Firm members visible to managers."""
        require(ctx, Permission.STAFF_VIEW)
        require_firm_scope(ctx, ctx.firm_id)
        return await self.principals.list_for_firm(ctx.firm_id)

    async def list_clients(self, ctx: AuthContext) -> list[Principal]:
        """Clients invited into the caller's firm."""
        if ctx.role not in MANAGER_ROLES:
            raise Forbidden("Only managers can list clients")
        return await self.principals.list_for_firm(ctx.firm_id, roles=[PrincipalRole.CLIENT])
