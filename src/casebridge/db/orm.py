"""
SQLAlchemy database models for CaseBridge.

Implements the matter management data model with support for:
- Firms (tenants) and the principals that belong to them
- Matters with an optimistic version counter for compare-and-swap writes
- Single active assignment per matter, backed by a partial unique index
- Immutable audit logging with per-firm hash chain integrity
- Notifications, onboarding invitations, documents, updates, statements and tasks
- Post-payment intake records (invoice, payment)

Security:
- Principal phone numbers encrypted at rest using AES-256-GCM
- Invitation tokens are stored only as keyed digests
- Audit logs use an HMAC hash chain for tamper detection
"""

import enum
import hmac
import json
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from casebridge.db.types import EncryptedString, JSONType

GENESIS_HASH = "GENESIS"


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the timezone-less DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum(enum_cls: type[enum.Enum]) -> SQLEnum:
    """Store enum values (not member names) as plain strings."""
    return SQLEnum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
        validate_strings=True,
    )


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class PrincipalRole(str, enum.Enum):
    """Roles for RBAC. Everyone but CLIENT is internal firm staff."""
    ADMIN_MANAGER = "admin_manager"
    CASE_MANAGER = "case_manager"
    ASSOCIATE_LAWYER = "associate_lawyer"
    CLIENT = "client"

    @property
    def is_internal(self) -> bool:
        return self is not PrincipalRole.CLIENT


class PrincipalStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DEACTIVATED = "deactivated"
    LOCKED = "locked"
    PENDING_ONBOARDING = "pending_onboarding"


class FirmStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class MatterStatus(str, enum.Enum):
    """Lifecycle states. CLOSED and REJECTED are terminal."""
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    IN_REVIEW = "in_review"
    AWAITING_DOCUMENTS = "awaiting_documents"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CLOSED = "closed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (MatterStatus.CLOSED, MatterStatus.REJECTED)


class MatterCategory(str, enum.Enum):
    """Practice areas offered at intake."""
    CORPORATE_COMMERCIAL = "corporate_commercial"
    CRIMINAL_DEFENSE = "criminal_defense"
    CIVIL_LITIGATION = "civil_litigation"
    FAMILY_LAW = "family_law"
    REAL_ESTATE_PROPERTY = "real_estate_property"
    EMPLOYMENT_LABOR = "employment_labor"
    INTELLECTUAL_PROPERTY = "intellectual_property"
    HUMAN_RIGHTS = "human_rights"
    TAXATION = "taxation"
    OTHER = "other"


class ServiceTier(str, enum.Enum):
    STANDARD = "standard"
    PRIORITY = "priority"
    EXPERT = "expert"


class InvitationStatus(str, enum.Enum):
    """Stored states. EXPIRED is never stored; it is derived from expires_at."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"
    EXPIRED = "expired"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    UNDER_REVIEW = "under_review"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationChannel(str, enum.Enum):
    IN_APP = "in_app"
    EMAIL = "email"


class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class Firm(Base):
    """A law firm: the tenant boundary."""

    __tablename__ = "firms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[FirmStatus] = mapped_column(_enum(FirmStatus), default=FirmStatus.ACTIVE)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    principals: Mapped[list["Principal"]] = relationship("Principal", back_populates="firm")


class Principal(Base):
    """
    An authenticated person: firm staff or a client.

    Security features:
    - Argon2id password hashing
    - Account lockout after consecutive failed logins
    - Phone number encrypted at rest
    """

    __tablename__ = "principals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    firm_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("firms.id"))

    # Credentials
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(EncryptedString(32))
    role: Mapped[PrincipalRole] = mapped_column(_enum(PrincipalRole), nullable=False)
    status: Mapped[PrincipalStatus] = mapped_column(
        _enum(PrincipalStatus), default=PrincipalStatus.ACTIVE, nullable=False
    )

    # Security - Lockout
    failed_login_attempts: Mapped[int] = mapped_column(Integer, default=0)
    locked_until: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_failed_login: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    firm: Mapped[Optional["Firm"]] = relationship("Firm", back_populates="principals")

    __table_args__ = (
        Index("idx_principals_firm_role", "firm_id", "role"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_locked(self) -> bool:
        """Check if account is currently locked."""
        if self.status != PrincipalStatus.LOCKED:
            return False
        if self.locked_until is None:
            return True
        return utcnow() < self.locked_until

    def record_failed_login(self, max_attempts: int, lockout_minutes: int) -> bool:
        """Record a failed login attempt. Returns True if this attempt locked the account."""
        if self.status == PrincipalStatus.LOCKED and not self.is_locked:
            # Lock has run out: start a fresh count
            self.status = PrincipalStatus.ACTIVE
            self.failed_login_attempts = 0
            self.locked_until = None

        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        self.last_failed_login = utcnow()

        if self.failed_login_attempts >= max_attempts and self.status == PrincipalStatus.ACTIVE:
            self.status = PrincipalStatus.LOCKED
            self.locked_until = utcnow() + timedelta(minutes=lockout_minutes)
            return True
        return False

    def record_successful_login(self) -> None:
        """Record a successful login and lift an expired lock."""
        self.failed_login_attempts = 0
        if self.status == PrincipalStatus.LOCKED:
            self.status = PrincipalStatus.ACTIVE
        self.locked_until = None
        self.last_login = utcnow()


class Matter(Base):
    """
    A legal case tracked from intake to closure.

    Status is only ever written through a compare-and-swap on (status, version),
    never through a plain attribute assignment.
    """

    __tablename__ = "matters"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    matter_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id"), nullable=False)
    firm_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("firms.id"))
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id"), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[MatterCategory] = mapped_column(_enum(MatterCategory), nullable=False)
    service_tier: Mapped[ServiceTier] = mapped_column(_enum(ServiceTier), nullable=False)
    status: Mapped[MatterStatus] = mapped_column(_enum(MatterStatus), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    assignments: Mapped[list["Assignment"]] = relationship(
        "Assignment", back_populates="matter", order_by="Assignment.assigned_at"
    )

    __table_args__ = (
        Index("idx_matters_firm_status", "firm_id", "status"),
        Index("idx_matters_client", "client_id"),
    )


class Assignment(Base):
    """
    Binds a matter to the associate lawyer performing the work.

    At most one active (non-superseded) assignment exists per matter.
    Rows are never deleted; reassignment marks the old row superseded.
    """

    __tablename__ = "case_assignments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("matters.id"), nullable=False)
    associate_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id"), nullable=False)
    assigned_by: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id"), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    superseded_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    superseded_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("principals.id"))
    supersede_reason: Mapped[Optional[str]] = mapped_column(Text)

    matter: Mapped["Matter"] = relationship("Matter", back_populates="assignments")

    __table_args__ = (
        Index("idx_case_assignments_associate", "associate_id"),
        Index(
            "uq_case_assignments_active",
            "matter_id",
            unique=True,
            postgresql_where=text("superseded_at IS NULL"),
            sqlite_where=text("superseded_at IS NULL"),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.superseded_at is None


class AuditLog(Base):
    """
    Immutable audit log of every state-changing action.

    Each entry records WHO acted, WHAT they did, on WHICH matter or principal,
    and WHEN. Entries form a hash chain per firm scope: each entry includes
    the HMAC of the previous one, so any modification or deletion breaks
    chain verification.
    """

    __tablename__ = "audit_log"

    sequence_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, default=uuid.uuid4)

    # Hash chain integrity
    previous_hash: Mapped[str] = mapped_column(String(64), nullable=False, default=GENESIS_HASH)
    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Scope and actor
    firm_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("firms.id"))
    actor_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    # What
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    target_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    matter_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("matters.id"))
    details: Mapped[dict] = mapped_column(JSONType, default=dict)

    # When
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_audit_firm_sequence", "firm_id", "sequence_id"),
        Index("idx_audit_matter", "matter_id"),
        Index("idx_audit_actor", "actor_id"),
    )

    @staticmethod
    def compute_entry_hash(
        previous_hash: str,
        firm_id: Optional[uuid.UUID],
        actor_id: uuid.UUID,
        action: str,
        target_id: Optional[uuid.UUID],
        matter_id: Optional[uuid.UUID],
        details: dict[str, Any],
        timestamp: datetime,
        audit_key: bytes,
    ) -> str:
        """
        Compute HMAC hash for an audit entry.

        The hash covers the previous entry's hash (chain link) and every
        attributable field of this entry.

        Returns:
            Hex-encoded HMAC-SHA256
        """
        data = json.dumps({
            "previous_hash": previous_hash,
            "firm_id": str(firm_id) if firm_id else None,
            "actor_id": str(actor_id),
            "action": action,
            "target_id": str(target_id) if target_id else None,
            "matter_id": str(matter_id) if matter_id else None,
            "details": details,
            "timestamp": timestamp.isoformat(),
        }, sort_keys=True)

        return hmac.new(audit_key, data.encode("utf-8"), "sha256").hexdigest()

    @classmethod
    def verify_chain(cls, entries: list["AuditLog"], audit_key: bytes) -> tuple[bool, Optional[int]]:
        """
        Verify the integrity of one firm's chain of audit entries.

        Args:
            entries: AuditLog entries of a single firm scope, in sequence order
            audit_key: Secret key for HMAC verification

        Returns:
            (True, None) if valid, otherwise (False, sequence_id of first bad entry)
        """
        if not entries:
            return True, None

        if entries[0].previous_hash != GENESIS_HASH:
            return False, entries[0].sequence_id

        for i, entry in enumerate(entries):
            expected_hash = cls.compute_entry_hash(
                previous_hash=entry.previous_hash,
                firm_id=entry.firm_id,
                actor_id=entry.actor_id,
                action=entry.action,
                target_id=entry.target_id,
                matter_id=entry.matter_id,
                details=entry.details,
                timestamp=entry.timestamp,
                audit_key=audit_key,
            )

            if not hmac.compare_digest(expected_hash, entry.entry_hash):
                return False, entry.sequence_id

            if i > 0 and entry.previous_hash != entries[i - 1].entry_hash:
                return False, entry.sequence_id

        return True, None


class Notification(Base):
    """An addressed, typed message to one principal. Unread until marked."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id"), nullable=False)
    firm_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("firms.id"))
    matter_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("matters.id"))

    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    channel: Mapped[NotificationChannel] = mapped_column(
        _enum(NotificationChannel), default=NotificationChannel.IN_APP
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[Optional[str]] = mapped_column(String(500))

    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_notifications_recipient", "recipient_id", "read_at"),
    )

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


class Invitation(Base):
    """
    Single-use onboarding token that provisions a principal on redemption.

    Only the keyed digest of the token is stored.
    """

    __tablename__ = "invitations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    firm_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("firms.id"), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[PrincipalRole] = mapped_column(_enum(PrincipalRole), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[InvitationStatus] = mapped_column(
        _enum(InvitationStatus), default=InvitationStatus.PENDING, nullable=False
    )

    invited_by: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    principal_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("principals.id"))
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    revoked_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("principals.id"))
    resend_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index("idx_invitations_firm_status", "firm_id", "status"),
        Index("idx_invitations_email", "email"),
    )

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def effective_status(self, now: datetime) -> InvitationStatus:
        if self.status == InvitationStatus.PENDING and self.is_expired(now):
            return InvitationStatus.EXPIRED
        return self.status


class MatterDocument(Base):
    """Reference to a document held by external storage."""

    __tablename__ = "matter_documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("matters.id"), nullable=False)
    uploaded_by: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id"), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False)
    content_type: Mapped[Optional[str]] = mapped_column(String(100))
    client_visible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_matter_documents_matter", "matter_id"),
    )


class MatterUpdate(Base):
    """A progress note posted by firm staff."""

    __tablename__ = "matter_updates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("matters.id"), nullable=False)
    author_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    client_visible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_matter_updates_matter", "matter_id"),
    )


class CaseStatement(Base):
    """Internal statement of the case. New versions are appended, never overwritten."""

    __tablename__ = "case_statements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("matters.id"), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("matter_id", "version", name="uq_case_statements_version"),
    )


class MatterTask(Base):
    """
    A unit of work on a matter.

    completed_at is set when the task reaches COMPLETED and cleared if it
    is reopened. Clients only see tasks flagged client_visible.
    """

    __tablename__ = "matter_tasks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("matters.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[TaskStatus] = mapped_column(
        _enum(TaskStatus), default=TaskStatus.PENDING, nullable=False
    )
    priority: Mapped[TaskPriority] = mapped_column(
        _enum(TaskPriority), default=TaskPriority.MEDIUM, nullable=False
    )
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    client_visible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("principals.id"))
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id"), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_matter_tasks_matter", "matter_id"),
        Index("idx_matter_tasks_assignee_status", "assigned_to", "status"),
    )


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("matters.id"), nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id"), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(_enum(InvoiceStatus), default=InvoiceStatus.PENDING)
    issued_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime)


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("invoices.id"), nullable=False)
    matter_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("matters.id"), nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id"), nullable=False)
    reference: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(_enum(PaymentStatus), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
