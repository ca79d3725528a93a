"""
Pytest configuration and shared fixtures for CaseBridge tests.

Service tests run against a temporary SQLite database per test.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select

from casebridge.audit.recorder import AuditAction
from casebridge.db.orm import (
    Assignment,
    AuditLog,
    Base,
    Firm,
    FirmStatus,
    Matter,
    MatterCategory,
    MatterStatus,
    Notification,
    Principal,
    PrincipalRole,
    PrincipalStatus,
    ServiceTier,
    utcnow,
)
from casebridge.db.session import create_engine, create_session_factory
from casebridge.notifications.dispatcher import EventType
from casebridge.security.auth import hash_password
from casebridge.security.identity import AuthContext

PASSWORD = "correct-horse-battery"

_password_hash: Optional[str] = None


def password_hash() -> str:
    """Argon2id is slow by design; hash the shared test password once."""
    global _password_hash
    if _password_hash is None:
        _password_hash = hash_password(PASSWORD)
    return _password_hash


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'casebridge.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@dataclass
class Seed:
    """Two firms with staff, and one client."""

    firm: Firm
    other_firm: Firm
    admin: Principal
    manager: Principal
    associate: Principal
    associate2: Principal
    client: Principal
    other_manager: Principal
    other_associate: Principal

    def ctx(self, principal: Principal) -> AuthContext:
        return AuthContext.for_principal(principal)


def make_principal(
    session,
    role: PrincipalRole,
    email: str,
    firm: Optional[Firm] = None,
    status: PrincipalStatus = PrincipalStatus.ACTIVE,
    first_name: str = "Test",
    last_name: str = "Person",
) -> Principal:
    principal = Principal(
        firm_id=firm.id if firm else None,
        email=email,
        password_hash=password_hash(),
        first_name=first_name,
        last_name=last_name,
        role=role,
        status=status,
    )
    session.add(principal)
    return principal


@pytest_asyncio.fixture
async def seed(session_factory) -> Seed:
    async with session_factory() as session:
        firm = Firm(name="Adebayo & Co", email="office@adebayo.example.com", status=FirmStatus.ACTIVE)
        other_firm = Firm(name="Okafor Chambers", email="office@okafor.example.com", status=FirmStatus.ACTIVE)
        session.add_all([firm, other_firm])
        await session.flush()

        data = Seed(
            firm=firm,
            other_firm=other_firm,
            admin=make_principal(session, PrincipalRole.ADMIN_MANAGER, "admin@adebayo.example.com", firm,
                                 first_name="Ada", last_name="Admin"),
            manager=make_principal(session, PrincipalRole.CASE_MANAGER, "manager@adebayo.example.com", firm,
                                   first_name="Musa", last_name="Manager"),
            associate=make_principal(session, PrincipalRole.ASSOCIATE_LAWYER, "assoc@adebayo.example.com", firm,
                                     first_name="Ngozi", last_name="Associate"),
            associate2=make_principal(session, PrincipalRole.ASSOCIATE_LAWYER, "assoc2@adebayo.example.com", firm,
                                      first_name="Tunde", last_name="Second"),
            client=make_principal(session, PrincipalRole.CLIENT, "client@example.com",
                                  first_name="Chidi", last_name="Client"),
            other_manager=make_principal(session, PrincipalRole.CASE_MANAGER, "manager@okafor.example.com",
                                         other_firm, first_name="Other", last_name="Manager"),
            other_associate=make_principal(session, PrincipalRole.ASSOCIATE_LAWYER, "assoc@okafor.example.com",
                                           other_firm, first_name="Other", last_name="Associate"),
        )
        await session.commit()
    return data


async def make_matter(
    session_factory,
    seed: Seed,
    status: MatterStatus,
    *,
    firm: Optional[Firm] = "default",
    assigned_to: Optional[Principal] = None,
    number: Optional[str] = None,
) -> Matter:
    """Insert a matter directly in the given state (test arrangement only)."""
    if firm == "default":
        firm = seed.firm
    async with session_factory() as session:
        matter = Matter(
            matter_number=number or f"CB-TEST-{uuid4().hex[:8].upper()}",
            client_id=seed.client.id,
            created_by=seed.client.id,
            firm_id=firm.id if firm else None,
            title="Tenancy dispute",
            description="Landlord withheld the deposit",
            category=MatterCategory.REAL_ESTATE_PROPERTY,
            service_tier=ServiceTier.STANDARD,
            status=status,
            version=1,
        )
        session.add(matter)
        await session.flush()
        if assigned_to is not None:
            session.add(Assignment(
                matter_id=matter.id,
                associate_id=assigned_to.id,
                assigned_by=seed.manager.id,
                assigned_at=utcnow(),
            ))
        await session.commit()
    return matter


@pytest.fixture
def matter_factory(session_factory, seed):
    async def factory(status: MatterStatus, **kwargs) -> Matter:
        return await make_matter(session_factory, seed, status, **kwargs)
    return factory


@pytest.fixture
def audit_entries(session_factory):
    """Read back audit entries, oldest first."""
    async def read(*, matter_id=None, action: Optional[AuditAction] = None) -> list[AuditLog]:
        query = select(AuditLog).order_by(AuditLog.sequence_id)
        if matter_id is not None:
            query = query.where(AuditLog.matter_id == matter_id)
        if action is not None:
            query = query.where(AuditLog.action == action.value)
        async with session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
    return read


@pytest.fixture
def notifications_for(session_factory):
    """Read back the notifications delivered to one principal."""
    async def read(principal: Principal, event_type: Optional[EventType] = None) -> list[Notification]:
        query = select(Notification).where(Notification.recipient_id == principal.id)
        if event_type is not None:
            query = query.where(Notification.event_type == event_type.value)
        async with session_factory() as session:
            result = await session.execute(query.order_by(Notification.created_at))
            return list(result.scalars().all())
    return read


@pytest.fixture
def reload(session_factory):
    """Fetch a fresh copy of a row by primary key."""
    async def read(model, pk):
        async with session_factory() as session:
            return await session.get(model, pk)
    return read


@pytest.fixture
def password() -> str:
    return PASSWORD
