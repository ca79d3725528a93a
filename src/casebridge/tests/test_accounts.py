"""
Tests for accounts: registration, login lockout, status management and
firm profiles.
"""

from datetime import timedelta

import pytest

from casebridge.accounts.firms import FirmRegistration, FirmService
from casebridge.accounts.principals import AccountService, ClientRegistration
from casebridge.audit.recorder import AuditAction
from casebridge.config import settings
from casebridge.db.orm import Principal, PrincipalRole, PrincipalStatus, utcnow
from casebridge.db.session import UnitOfWork
from casebridge.errors import (
    AccountInactive,
    Conflict,
    Forbidden,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from casebridge.notifications.dispatcher import EventType
from casebridge.security.identity import IdentityResolver


async def login(session_factory, email, password):
    async with UnitOfWork(session_factory) as uow:
        return await AccountService(uow).authenticate(email, password)


async def change_status(session_factory, ctx, principal_id, status, reason=None):
    async with UnitOfWork(session_factory) as uow:
        return await AccountService(uow).change_status(ctx, principal_id, status, reason)


class TestRegistration:
    """Tests for self-service sign-up."""

    @pytest.mark.asyncio
    async def test_register_client(self, session_factory, audit_entries):
        """Should create an active client outside any firm."""
        async with UnitOfWork(session_factory) as uow:
            client = await AccountService(uow).register_client(ClientRegistration(
                email=" Bola@Example.com ",
                password="a-long-enough-password",
                first_name="Bola",
                last_name="Ade",
            ))

        assert client.email == "bola@example.com"
        assert client.role == PrincipalRole.CLIENT
        assert client.firm_id is None
        assert client.password_hash != "a-long-enough-password"

        entries = await audit_entries(action=AuditAction.CLIENT_REGISTERED)
        assert [e.actor_id for e in entries] == [client.id]
        assert entries[0].firm_id is None

    @pytest.mark.asyncio
    async def test_duplicate_email_is_rejected(self, session_factory, seed):
        """Should reject a sign-up with an email already in use."""
        async with UnitOfWork(session_factory) as uow:
            with pytest.raises(Conflict):
                await AccountService(uow).register_client(ClientRegistration(
                    email=seed.client.email.upper(),
                    password="a-long-enough-password",
                    first_name="Copy",
                    last_name="Cat",
                ))

    @pytest.mark.asyncio
    async def test_register_firm_creates_admin(self, session_factory, audit_entries):
        """Should create the firm and its first administrator together."""
        async with UnitOfWork(session_factory) as uow:
            firm, admin = await FirmService(uow).register_firm(FirmRegistration(
                firm_name="Nwosu Partners",
                firm_email="Info@Nwosu.example.com",
                admin_email="founder@nwosu.example.com",
                admin_password="a-long-enough-password",
                admin_first_name="Ify",
                admin_last_name="Nwosu",
            ))

        assert firm.email == "info@nwosu.example.com"
        assert admin.firm_id == firm.id
        assert admin.role == PrincipalRole.ADMIN_MANAGER
        assert admin.status == PrincipalStatus.ACTIVE

        entries = await audit_entries(action=AuditAction.FIRM_REGISTERED)
        assert len(entries) == 1
        assert entries[0].firm_id == firm.id


class TestLogin:
    """Tests for credential checks and lockout."""

    @pytest.mark.asyncio
    async def test_successful_login(self, session_factory, seed, password):
        """Should accept the right password and stamp last_login."""
        outcome = await login(session_factory, seed.client.email, password)

        assert outcome.succeeded
        assert outcome.principal.id == seed.client.id
        assert outcome.principal.last_login is not None

    @pytest.mark.asyncio
    async def test_unknown_email(self, session_factory, seed):
        """Should give the same answer for unknown emails and wrong passwords."""
        unknown = await login(session_factory, "nobody@example.com", "whatever-password")
        wrong = await login(session_factory, seed.client.email, "whatever-password")

        assert isinstance(unknown.error, Unauthorized)
        assert isinstance(wrong.error, Unauthorized)
        assert unknown.error.message == wrong.error.message

    @pytest.mark.asyncio
    async def test_lockout_after_repeated_failures(self, session_factory, seed, password, reload):
        """Should lock the account after max_failed_logins failures, then refuse even the right password."""
        for _ in range(settings.max_failed_logins - 1):
            outcome = await login(session_factory, seed.client.email, "wrong-password")
            assert isinstance(outcome.error, Unauthorized)

        outcome = await login(session_factory, seed.client.email, "wrong-password")
        assert isinstance(outcome.error, AccountInactive)
        assert outcome.error.terminate_session

        stored = await reload(Principal, seed.client.id)
        assert stored.status == PrincipalStatus.LOCKED
        assert stored.locked_until > utcnow()

        outcome = await login(session_factory, seed.client.email, password)
        assert isinstance(outcome.error, AccountInactive)

    @pytest.mark.asyncio
    async def test_lockout_is_audited(self, session_factory, seed, audit_entries):
        """Should audit the move to locked against the principal's firm chain."""
        for _ in range(settings.max_failed_logins):
            await login(session_factory, seed.associate.email, "wrong-password")

        entries = await audit_entries(action=AuditAction.USER_STATUS_CHANGED)
        assert len(entries) == 1
        assert entries[0].firm_id == seed.firm.id
        assert entries[0].actor_id == seed.associate.id
        assert entries[0].target_id == seed.associate.id
        assert entries[0].details == {"from": "active", "to": "locked", "reason": "login_lockout"}

    @pytest.mark.asyncio
    async def test_refused_login_while_locked_is_not_audited(self, session_factory, seed, password, audit_entries):
        """Should write nothing for attempts against a lock that is still running."""
        for _ in range(settings.max_failed_logins):
            await login(session_factory, seed.associate.email, "wrong-password")
        await login(session_factory, seed.associate.email, password)

        assert len(await audit_entries(action=AuditAction.USER_STATUS_CHANGED)) == 1

    @pytest.mark.asyncio
    async def test_expired_lock_is_lifted_by_correct_password(
        self, session_factory, seed, password, reload, audit_entries
    ):
        """Should reactivate an account whose lock has run out."""
        async with session_factory() as session:
            principal = await session.get(Principal, seed.client.id)
            principal.status = PrincipalStatus.LOCKED
            principal.failed_login_attempts = settings.max_failed_logins
            principal.locked_until = utcnow() - timedelta(minutes=1)
            await session.commit()

        outcome = await login(session_factory, seed.client.email, password)

        assert outcome.succeeded
        stored = await reload(Principal, seed.client.id)
        assert stored.status == PrincipalStatus.ACTIVE
        assert stored.failed_login_attempts == 0

        entries = await audit_entries(action=AuditAction.USER_STATUS_CHANGED)
        assert [e.details for e in entries] == [
            {"from": "locked", "to": "active", "reason": "lock_expired"}
        ]
        assert entries[0].firm_id is None

    @pytest.mark.asyncio
    async def test_expired_lock_restarts_failure_count(self, session_factory, seed, reload, audit_entries):
        """Should count a failure after an expired lock as the first of a new series."""
        async with session_factory() as session:
            principal = await session.get(Principal, seed.client.id)
            principal.status = PrincipalStatus.LOCKED
            principal.failed_login_attempts = settings.max_failed_logins
            principal.locked_until = utcnow() - timedelta(minutes=1)
            await session.commit()

        outcome = await login(session_factory, seed.client.email, "wrong-password")

        assert isinstance(outcome.error, Unauthorized)
        stored = await reload(Principal, seed.client.id)
        assert stored.status == PrincipalStatus.ACTIVE
        assert stored.failed_login_attempts == 1

        entries = await audit_entries(action=AuditAction.USER_STATUS_CHANGED)
        assert [e.details["reason"] for e in entries] == ["lock_expired"]

    @pytest.mark.asyncio
    async def test_suspended_account_cannot_log_in(self, session_factory, seed, password):
        """Should refuse a suspended account even with the right password."""
        await change_status(session_factory, seed.ctx(seed.admin), seed.associate.id, PrincipalStatus.SUSPENDED)

        outcome = await login(session_factory, seed.associate.email, password)

        assert isinstance(outcome.error, AccountInactive)
        assert outcome.error.status == "suspended"


class TestStatusChanges:
    """Tests for administrative status management."""

    @pytest.mark.asyncio
    async def test_suspension_terminates_session(
        self, session_factory, seed, audit_entries, notifications_for
    ):
        """Should suspend the member, audit it and make identity resolution fail."""
        target = await change_status(
            session_factory, seed.ctx(seed.admin), seed.associate.id, PrincipalStatus.SUSPENDED, "Misconduct review"
        )
        assert target.status == PrincipalStatus.SUSPENDED

        entries = await audit_entries(action=AuditAction.USER_STATUS_CHANGED)
        assert entries[0].details == {"from": "active", "to": "suspended", "reason": "Misconduct review"}
        assert entries[0].target_id == seed.associate.id
        assert len(await notifications_for(seed.associate, EventType.ACCOUNT_STATUS_CHANGED)) == 1

        async with session_factory() as session:
            with pytest.raises(AccountInactive) as exc_info:
                await IdentityResolver(session).resolve(seed.associate.id)
        assert exc_info.value.terminate_session

    @pytest.mark.asyncio
    async def test_reactivation_clears_lock(self, session_factory, seed, reload):
        """Should reset the failure counter when an administrator unlocks a member."""
        async with session_factory() as session:
            principal = await session.get(Principal, seed.associate.id)
            principal.status = PrincipalStatus.LOCKED
            principal.failed_login_attempts = 5
            principal.locked_until = utcnow() + timedelta(minutes=20)
            await session.commit()

        await change_status(session_factory, seed.ctx(seed.admin), seed.associate.id, PrincipalStatus.ACTIVE)

        stored = await reload(Principal, seed.associate.id)
        assert stored.status == PrincipalStatus.ACTIVE
        assert stored.failed_login_attempts == 0
        assert stored.locked_until is None

    @pytest.mark.asyncio
    async def test_deactivation_is_final(self, session_factory, seed):
        """Should not allow a deactivated member back."""
        ctx = seed.ctx(seed.admin)
        await change_status(session_factory, ctx, seed.associate.id, PrincipalStatus.DEACTIVATED)

        with pytest.raises(ValidationFailed):
            await change_status(session_factory, ctx, seed.associate.id, PrincipalStatus.ACTIVE)

    @pytest.mark.asyncio
    async def test_guards(self, session_factory, seed):
        """Should reject self-changes, other firms and non-administrators."""
        with pytest.raises(Forbidden):
            await change_status(session_factory, seed.ctx(seed.admin), seed.admin.id, PrincipalStatus.SUSPENDED)
        with pytest.raises(NotFound):
            await change_status(
                session_factory, seed.ctx(seed.admin), seed.other_associate.id, PrincipalStatus.SUSPENDED
            )
        with pytest.raises(Forbidden):
            await change_status(session_factory, seed.ctx(seed.manager), seed.associate.id, PrincipalStatus.SUSPENDED)

    @pytest.mark.asyncio
    async def test_list_staff_and_profile(self, session_factory, seed, audit_entries):
        """Should list firm members and audit profile edits."""
        async with UnitOfWork(session_factory) as uow:
            staff = await AccountService(uow).list_staff(seed.ctx(seed.manager))
        assert {p.id for p in staff} == {seed.admin.id, seed.manager.id, seed.associate.id, seed.associate2.id}

        async with UnitOfWork(session_factory) as uow:
            updated = await AccountService(uow).update_profile(
                seed.ctx(seed.associate), first_name="Ngozika", phone="+2348000000000"
            )
        assert updated.first_name == "Ngozika"
        entries = await audit_entries(action=AuditAction.PROFILE_UPDATED)
        assert entries[0].details == {"updated_fields": ["first_name", "phone"]}

        async with UnitOfWork(session_factory) as uow:
            with pytest.raises(Forbidden):
                await AccountService(uow).list_staff(seed.ctx(seed.associate))


class TestFirmProfile:
    """Tests for the firm profile."""

    @pytest.mark.asyncio
    async def test_admin_updates_firm(self, session_factory, seed, audit_entries):
        """Should record which fields of the firm profile changed."""
        async with UnitOfWork(session_factory) as uow:
            firm = await FirmService(uow).update_firm(
                seed.ctx(seed.admin), name="Adebayo & Partners", phone="+234 1 000 0000", email=None
            )

        assert firm.name == "Adebayo & Partners"
        entries = await audit_entries(action=AuditAction.FIRM_PROFILE_UPDATED)
        assert entries[0].details == {"updated_fields": ["name", "phone"]}

    @pytest.mark.asyncio
    async def test_case_manager_cannot_update_firm(self, session_factory, seed):
        """Should reserve firm profile edits for administrators."""
        async with UnitOfWork(session_factory) as uow:
            with pytest.raises(Forbidden):
                await FirmService(uow).update_firm(seed.ctx(seed.manager), name="Renamed")

    @pytest.mark.asyncio
    async def test_client_has_no_firm(self, session_factory, seed):
        """Should refuse to show a firm to a principal outside any firm."""
        async with UnitOfWork(session_factory) as uow:
            with pytest.raises(Forbidden):
                await FirmService(uow).get_firm(seed.ctx(seed.client))
