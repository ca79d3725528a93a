"""
Database repositories for data access layer.

Provides async data access for every aggregate. Repositories never commit;
the surrounding unit of work owns the transaction.
"""

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from casebridge.db.orm import (
    Assignment,
    AuditLog,
    CaseStatement,
    Firm,
    Invitation,
    InvitationStatus,
    Invoice,
    Matter,
    MatterDocument,
    MatterStatus,
    MatterTask,
    MatterUpdate,
    Notification,
    NotificationChannel,
    Payment,
    Principal,
    PrincipalRole,
    PrincipalStatus,
    TaskStatus,
    utcnow,
)

logger = logging.getLogger(__name__)


class FirmRepository:
    """Repository for Firm operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, firm_id: UUID) -> Optional[Firm]:
        return await self.session.get(Firm, firm_id)

    async def create(self, **fields: Any) -> Firm:
        firm = Firm(**fields)
        self.session.add(firm)
        await self.session.flush()
        return firm


class PrincipalRepository:
    """Repository for Principal operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, principal_id: UUID) -> Optional[Principal]:
        """Get principal by ID."""
        return await self.session.get(Principal, principal_id)

    async def get_by_email(self, email: str) -> Optional[Principal]:
        """Get principal by email (case-insensitive)."""
        result = await self.session.execute(
            select(Principal).where(func.lower(Principal.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def list_for_firm(
        self,
        firm_id: UUID,
        roles: Optional[list[PrincipalRole]] = None,
        status: Optional[PrincipalStatus] = None,
    ) -> list[Principal]:
        """List firm principals, optionally filtered by role and status."""
        query = select(Principal).where(Principal.firm_id == firm_id)
        if roles:
            query = query.where(Principal.role.in_(roles))
        if status:
            query = query.where(Principal.status == status)
        result = await self.session.execute(
            query.order_by(Principal.last_name, Principal.first_name)
        )
        return list(result.scalars().all())

    async def create(self, **fields: Any) -> Principal:
        principal = Principal(**fields)
        self.session.add(principal)
        await self.session.flush()
        return principal


class MatterRepository:
    """Repository for Matter operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, matter_id: UUID) -> Optional[Matter]:
        return await self.session.get(Matter, matter_id)

    async def number_exists(self, matter_number: str) -> bool:
        result = await self.session.execute(
            select(Matter.id).where(Matter.matter_number == matter_number)
        )
        return result.scalar_one_or_none() is not None

    async def create(self, **fields: Any) -> Matter:
        matter = Matter(**fields)
        self.session.add(matter)
        await self.session.flush()
        return matter

    async def list_for_client(
        self, client_id: UUID, status: Optional[MatterStatus] = None
    ) -> list[Matter]:
        query = select(Matter).where(Matter.client_id == client_id)
        if status:
            query = query.where(Matter.status == status)
        result = await self.session.execute(query.order_by(Matter.created_at.desc()))
        return list(result.scalars().all())

    async def list_for_firm(
        self,
        firm_id: UUID,
        status: Optional[MatterStatus] = None,
        include_intake: bool = False,
    ) -> list[Matter]:
        """
        List matters in a firm's scope.

        Args:
            firm_id: Firm scope
            status: Optional status filter
            include_intake: Also include unclaimed client filings awaiting review
        """
        scope = Matter.firm_id == firm_id
        if include_intake:
            scope = or_(
                scope,
                (Matter.firm_id.is_(None)) & (Matter.status == MatterStatus.PENDING_REVIEW),
            )
        query = select(Matter).where(scope)
        if status:
            query = query.where(Matter.status == status)
        result = await self.session.execute(query.order_by(Matter.created_at.desc()))
        return list(result.scalars().all())

    async def list_assigned_to(
        self, associate_id: UUID, status: Optional[MatterStatus] = None
    ) -> list[Matter]:
        """List matters with an active assignment naming the associate."""
        query = (
            select(Matter)
            .join(Assignment, Assignment.matter_id == Matter.id)
            .where(
                Assignment.associate_id == associate_id,
                Assignment.superseded_at.is_(None),
            )
        )
        if status:
            query = query.where(Matter.status == status)
        result = await self.session.execute(query.order_by(Matter.created_at.desc()))
        return list(result.scalars().all())

    async def compare_and_set_status(
        self,
        matter: Matter,
        expected_status: MatterStatus,
        new_status: MatterStatus,
        **values: Any,
    ) -> bool:
        """
        Atomically move a matter from expected_status to new_status.

        The write only applies if both status and version still match what
        the caller read; otherwise another request got there first.

        Returns:
            True if this call won, False if the row had already changed
        """
        result = await self.session.execute(
            update(Matter)
            .where(
                Matter.id == matter.id,
                Matter.status == expected_status,
                Matter.version == matter.version,
            )
            .values(
                status=new_status,
                version=Matter.version + 1,
                updated_at=utcnow(),
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self.session.refresh(matter)
        return True


class AssignmentRepository:
    """Repository for Assignment operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active(self, matter_id: UUID) -> Optional[Assignment]:
        """Get the matter's active (non-superseded) assignment."""
        result = await self.session.execute(
            select(Assignment).where(
                Assignment.matter_id == matter_id,
                Assignment.superseded_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def is_assigned(self, matter_id: UUID, associate_id: UUID) -> bool:
        active = await self.get_active(matter_id)
        return active is not None and active.associate_id == associate_id

    async def history(self, matter_id: UUID) -> list[Assignment]:
        result = await self.session.execute(
            select(Assignment)
            .where(Assignment.matter_id == matter_id)
            .order_by(Assignment.assigned_at)
        )
        return list(result.scalars().all())

    async def create(self, matter_id: UUID, associate_id: UUID, assigned_by: UUID) -> Assignment:
        assignment = Assignment(
            matter_id=matter_id,
            associate_id=associate_id,
            assigned_by=assigned_by,
            assigned_at=utcnow(),
        )
        self.session.add(assignment)
        await self.session.flush()
        return assignment

    async def supersede(self, assignment: Assignment, by: UUID, reason: Optional[str]) -> None:
        """Mark an assignment as no longer active."""
        assignment.superseded_at = utcnow()
        assignment.superseded_by = by
        assignment.supersede_reason = reason
        await self.session.flush()


def chain_lock_key(firm_id: Optional[UUID]) -> int:
    """Signed 64-bit advisory lock key for one audit chain (0 for the firmless chain)."""
    if firm_id is None:
        return 0
    return int.from_bytes(firm_id.bytes[:8], "big", signed=True)


def chain_lock_statement(firm_id: Optional[UUID]) -> Select:
    return select(func.pg_advisory_xact_lock(chain_lock_key(firm_id)))


class AuditLogRepository:
    """Repository for AuditLog reads. Writes go through AuditRecorder."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock_chain(self, firm_id: Optional[UUID]) -> None:
        """
        Serialize writers to one chain until the transaction ends.

        Must be taken before reading the head. A row lock on the newest entry
        is not enough: an empty chain has no row to lock, and under READ
        COMMITTED a writer released from that lock would still be handed the
        old head. SQLite serializes writers on its own.
        """
        if self.session.get_bind().dialect.name != "postgresql":
            return
        await self.session.execute(chain_lock_statement(firm_id))

    async def last_hash(self, firm_id: Optional[UUID]) -> Optional[str]:
        """Get the newest entry hash in a firm's chain. Call lock_chain first."""
        scope = AuditLog.firm_id == firm_id if firm_id else AuditLog.firm_id.is_(None)
        result = await self.session.execute(
            select(AuditLog.entry_hash)
            .where(scope)
            .order_by(AuditLog.sequence_id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_firm(
        self,
        firm_id: UUID,
        action: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditLog]:
        """Get a firm's audit log, newest first."""
        query = select(AuditLog).where(AuditLog.firm_id == firm_id)
        if action:
            query = query.where(AuditLog.action == action)
        result = await self.session.execute(
            query.order_by(AuditLog.sequence_id.desc()).limit(limit).offset(offset)
        )
        return list(result.scalars().all())

    async def list_for_matter(self, matter_id: UUID) -> list[AuditLog]:
        """Get a matter's audit trail, oldest first."""
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.matter_id == matter_id)
            .order_by(AuditLog.sequence_id)
        )
        return list(result.scalars().all())

    async def chain(self, firm_id: Optional[UUID]) -> list[AuditLog]:
        """Get a full chain in sequence order for verification."""
        scope = AuditLog.firm_id == firm_id if firm_id else AuditLog.firm_id.is_(None)
        result = await self.session.execute(
            select(AuditLog).where(scope).order_by(AuditLog.sequence_id)
        )
        return list(result.scalars().all())


class NotificationRepository:
    """Repository for Notification reads and read-state updates."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, notification_id: UUID) -> Optional[Notification]:
        return await self.session.get(Notification, notification_id)

    async def list_for_recipient(
        self,
        recipient_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[Notification]:
        query = select(Notification).where(
            Notification.recipient_id == recipient_id,
            Notification.channel == NotificationChannel.IN_APP,
        )
        if unread_only:
            query = query.where(Notification.read_at.is_(None))
        result = await self.session.execute(
            query.order_by(Notification.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def count_unread(self, recipient_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == recipient_id,
                Notification.channel == NotificationChannel.IN_APP,
                Notification.read_at.is_(None),
            )
        )
        return result.scalar_one()

    async def mark_all_read(self, recipient_id: UUID, now: datetime) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.recipient_id == recipient_id,
                Notification.channel == NotificationChannel.IN_APP,
                Notification.read_at.is_(None),
            )
            .values(read_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class InvitationRepository:
    """Repository for Invitation operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_token_hash(self, token_hash: str) -> Optional[Invitation]:
        result = await self.session.execute(
            select(Invitation).where(Invitation.token_hash == token_hash)
        )
        return result.scalar_one_or_none()

    async def find_pending(self, firm_id: UUID, email: str, now: datetime) -> Optional[Invitation]:
        """Find an unexpired pending invitation for an email in a firm."""
        result = await self.session.execute(
            select(Invitation).where(
                Invitation.firm_id == firm_id,
                func.lower(Invitation.email) == email.lower(),
                Invitation.status == InvitationStatus.PENDING,
                Invitation.expires_at >= now,
            )
        )
        return result.scalars().first()

    async def list_pending(
        self, firm_id: UUID, now: datetime, include_expired: bool = False
    ) -> list[Invitation]:
        query = select(Invitation).where(
            Invitation.firm_id == firm_id,
            Invitation.status == InvitationStatus.PENDING,
        )
        if not include_expired:
            query = query.where(Invitation.expires_at >= now)
        result = await self.session.execute(query.order_by(Invitation.created_at.desc()))
        return list(result.scalars().all())

    async def create(self, **fields: Any) -> Invitation:
        invitation = Invitation(**fields)
        self.session.add(invitation)
        await self.session.flush()
        return invitation

    async def mark_accepted(self, invitation: Invitation, now: datetime, principal_id: UUID) -> bool:
        """
        Atomically move an invitation from pending to accepted.

        Returns:
            True if this call won, False if it was already redeemed or expired
        """
        result = await self.session.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation.id,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.expires_at >= now,
            )
            .values(status=InvitationStatus.ACCEPTED, accepted_at=now, principal_id=principal_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self.session.refresh(invitation)
        return True

    async def get(self, invitation_id: UUID) -> Optional[Invitation]:
        return await self.session.get(Invitation, invitation_id)

    async def mark_revoked(self, invitation: Invitation, now: datetime, revoked_by: UUID) -> bool:
        """Atomically move a pending invitation (expired or not) to revoked."""
        result = await self.session.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation.id,
                Invitation.status == InvitationStatus.PENDING,
            )
            .values(status=InvitationStatus.REVOKED, revoked_at=now, revoked_by=revoked_by)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self.session.refresh(invitation)
        return True

    async def reissue(self, invitation: Invitation, token_hash: str, expires_at: datetime) -> bool:
        """
        Swap in a new token digest and expiry while the invitation is pending.

        The old digest is overwritten, so the previous token stops resolving.
        """
        result = await self.session.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation.id,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.token_hash == invitation.token_hash,
            )
            .values(
                token_hash=token_hash,
                expires_at=expires_at,
                resend_count=Invitation.resend_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self.session.refresh(invitation)
        return True


class MatterRecordRepository:
    """Repository for documents, updates, statements and tasks on a matter."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_document(self, document_id: UUID) -> Optional[MatterDocument]:
        return await self.session.get(MatterDocument, document_id)

    async def add(self, record: Any) -> Any:
        self.session.add(record)
        await self.session.flush()
        return record

    async def documents(self, matter_id: UUID) -> list[MatterDocument]:
        result = await self.session.execute(
            select(MatterDocument)
            .where(MatterDocument.matter_id == matter_id)
            .order_by(MatterDocument.created_at)
        )
        return list(result.scalars().all())

    async def updates(self, matter_id: UUID) -> list[MatterUpdate]:
        result = await self.session.execute(
            select(MatterUpdate)
            .where(MatterUpdate.matter_id == matter_id)
            .order_by(MatterUpdate.created_at)
        )
        return list(result.scalars().all())

    async def latest_statement(self, matter_id: UUID) -> Optional[CaseStatement]:
        result = await self.session.execute(
            select(CaseStatement)
            .where(CaseStatement.matter_id == matter_id)
            .order_by(CaseStatement.version.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_task(self, task_id: UUID) -> Optional[MatterTask]:
        return await self.session.get(MatterTask, task_id)

    async def tasks(self, matter_id: UUID) -> list[MatterTask]:
        result = await self.session.execute(
            select(MatterTask)
            .where(MatterTask.matter_id == matter_id)
            .order_by(MatterTask.created_at.desc())
        )
        return list(result.scalars().all())

    async def tasks_assigned_to(self, principal_id: UUID, open_only: bool = True) -> list[MatterTask]:
        """Tasks naming a principal, soonest due first."""
        query = select(MatterTask).where(MatterTask.assigned_to == principal_id)
        if open_only:
            query = query.where(MatterTask.status != TaskStatus.COMPLETED)
        result = await self.session.execute(
            query.order_by(MatterTask.due_date.is_(None), MatterTask.due_date, MatterTask.created_at)
        )
        return list(result.scalars().all())


class BillingRepository:
    """Repository for intake invoices and payments."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_payment_by_reference(self, reference: str) -> Optional[Payment]:
        result = await self.session.execute(
            select(Payment).where(Payment.reference == reference)
        )
        return result.scalar_one_or_none()

    async def invoices_for_matter(self, matter_id: UUID) -> list[Invoice]:
        result = await self.session.execute(
            select(Invoice).where(Invoice.matter_id == matter_id).order_by(Invoice.issued_at)
        )
        return list(result.scalars().all())

    async def add(self, record: Any) -> Any:
        self.session.add(record)
        await self.session.flush()
        return record
