"""
Matter lifecycle engine.

The state machine is a data table of (source, target, role) edges checked
server-side before any write. Every accepted transition is applied with a
compare-and-swap on the matter's status and version, audited in the same
transaction, and (where the client cares) followed by a notification.

Entry states:
- client filings start at pending_review (after a successful payment)
- filings by firm staff on behalf of a client start at in_review
"""

import logging
import secrets
import string
from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from casebridge.audit.recorder import AuditAction, AuditRecorder
from casebridge.config import settings
from casebridge.db.orm import (
    Assignment,
    AuditLog,
    CaseStatement,
    Invoice,
    InvoiceStatus,
    Matter,
    MatterCategory,
    MatterDocument,
    MatterStatus,
    MatterTask,
    MatterUpdate,
    Payment,
    PaymentStatus,
    PrincipalRole,
    PrincipalStatus,
    ServiceTier,
    utcnow,
)
from casebridge.db.repositories import (
    AssignmentRepository,
    AuditLogRepository,
    BillingRepository,
    FirmRepository,
    MatterRecordRepository,
    MatterRepository,
    PrincipalRepository,
)
from casebridge.db.session import UnitOfWork
from casebridge.errors import (
    Conflict,
    IllegalTransition,
    NotFound,
    ValidationFailed,
)
from casebridge.matters.visibility import filter_visible
from casebridge.notifications.dispatcher import EventType
from casebridge.security.access import MatterAccess, Permission, require
from casebridge.security.identity import AuthContext

logger = logging.getLogger(__name__)


STATUS_LABELS = {
    MatterStatus.DRAFT: "Draft",
    MatterStatus.PENDING_REVIEW: "Pending Review",
    MatterStatus.IN_REVIEW: "In Review",
    MatterStatus.AWAITING_DOCUMENTS: "Awaiting Documents",
    MatterStatus.ASSIGNED: "Assigned",
    MatterStatus.IN_PROGRESS: "In Progress",
    MatterStatus.ON_HOLD: "On Hold",
    MatterStatus.COMPLETED: "Completed",
    MatterStatus.CLOSED: "Closed",
    MatterStatus.REJECTED: "Rejected",
}


@dataclass(frozen=True)
class TransitionEdge:
    """A permitted (source, target, role) triple."""

    source: MatterStatus
    target: MatterStatus
    role: PrincipalRole
    label: str
    notify_client: bool = True
    requires_assignment: bool = False


TRANSITIONS: tuple[TransitionEdge, ...] = (
    TransitionEdge(MatterStatus.PENDING_REVIEW, MatterStatus.IN_REVIEW,
                   PrincipalRole.CASE_MANAGER, "accept for review", notify_client=False),
    TransitionEdge(MatterStatus.PENDING_REVIEW, MatterStatus.REJECTED,
                   PrincipalRole.CASE_MANAGER, "reject case"),
    TransitionEdge(MatterStatus.IN_REVIEW, MatterStatus.AWAITING_DOCUMENTS,
                   PrincipalRole.CASE_MANAGER, "request documents"),
    TransitionEdge(MatterStatus.IN_REVIEW, MatterStatus.ASSIGNED,
                   PrincipalRole.CASE_MANAGER, "mark as assigned", requires_assignment=True),
    TransitionEdge(MatterStatus.ASSIGNED, MatterStatus.IN_PROGRESS,
                   PrincipalRole.CASE_MANAGER, "start work"),
    TransitionEdge(MatterStatus.IN_PROGRESS, MatterStatus.ON_HOLD,
                   PrincipalRole.CASE_MANAGER, "pause"),
    TransitionEdge(MatterStatus.IN_PROGRESS, MatterStatus.COMPLETED,
                   PrincipalRole.CASE_MANAGER, "mark completed"),
    TransitionEdge(MatterStatus.ON_HOLD, MatterStatus.IN_PROGRESS,
                   PrincipalRole.CASE_MANAGER, "resume"),
    TransitionEdge(MatterStatus.COMPLETED, MatterStatus.CLOSED,
                   PrincipalRole.CASE_MANAGER, "close case"),
)

_EDGES = {(edge.source, edge.target): edge for edge in TRANSITIONS}


def find_edge(source: MatterStatus, target: MatterStatus) -> Optional[TransitionEdge]:
    return _EDGES.get((source, target))


def edges_from(source: MatterStatus) -> list[TransitionEdge]:
    return [edge for edge in TRANSITIONS if edge.source == source]


@dataclass
class PaymentConfirmation:
    """Opaque "payment succeeded" fact from the payment collaborator."""

    reference: str
    amount: float
    succeeded: bool = True
    currency: Optional[str] = None


@dataclass
class MatterDetail:
    """Everything the matter page needs, already filtered for the requester."""

    matter: Matter
    assignment: Optional[Assignment] = None
    audit_trail: list[AuditLog] = field(default_factory=list)
    documents: list[MatterDocument] = field(default_factory=list)
    updates: list[MatterUpdate] = field(default_factory=list)
    tasks: list[MatterTask] = field(default_factory=list)
    statement: Optional[CaseStatement] = None
    invoices: list[Invoice] = field(default_factory=list)
    transitions: list[TransitionEdge] = field(default_factory=list)


class LifecycleEngine:
    """Files matters and moves them through the lifecycle."""

    def __init__(self, uow: UnitOfWork):
        session = uow.session
        self.notifications = uow.notifications
        self.access = MatterAccess(session)
        self.audit = AuditRecorder(session)
        self.matters = MatterRepository(session)
        self.assignments = AssignmentRepository(session)
        self.principals = PrincipalRepository(session)
        self.firms = FirmRepository(session)
        self.records = MatterRecordRepository(session)
        self.billing = BillingRepository(session)
        self.audit_log = AuditLogRepository(session)

    async def _new_matter_number(self) -> str:
        alphabet = string.ascii_uppercase + string.digits
        for _ in range(5):
            code = "".join(secrets.choice(alphabet) for _ in range(4))
            number = f"{settings.matter_number_prefix}-{code}-{secrets.randbelow(9000) + 1000}"
            if not await self.matters.number_exists(number):
                return number
        raise Conflict("Could not allocate a unique matter number")

    def _notify_client(self, matter: Matter, title: str, message: str) -> None:
        self.notifications.emit(
            matter.client_id,
            EventType.MATTER_STATUS_CHANGED,
            {"title": title, "message": message, "link": f"/portal/matters/{matter.id}"},
            firm_id=matter.firm_id,
            matter_id=matter.id,
        )

    async def file_matter(
        self,
        ctx: AuthContext,
        *,
        title: str,
        description: str,
        category: MatterCategory,
        service_tier: ServiceTier,
        payment: PaymentConfirmation,
        firm_id: Optional[UUID] = None,
    ) -> Matter:
        """
        File a matter as a client after a successful payment.

        Creates the matter in pending_review together with a paid invoice
        and a successful payment record. If firm_id is given the matter is
        filed directly with that firm, otherwise it joins the intake pool.

        Raises:
            Forbidden: caller is not a client
            ValidationFailed: payment did not succeed
            Conflict: payment reference already recorded
            NotFound: named firm does not exist
        """
        require(ctx, Permission.MATTER_FILE)
        if not payment.succeeded:
            raise ValidationFailed("Payment has not succeeded")
        if await self.billing.get_payment_by_reference(payment.reference):
            raise Conflict("Payment reference has already been used")
        if firm_id is not None and await self.firms.get(firm_id) is None:
            raise NotFound("Firm not found")

        tier = ServiceTier(service_tier)
        currency = payment.currency or settings.default_currency
        now = utcnow()

        matter = await self.matters.create(
            matter_number=await self._new_matter_number(),
            client_id=ctx.principal_id,
            created_by=ctx.principal_id,
            firm_id=firm_id,
            title=title,
            description=description,
            category=MatterCategory(category),
            service_tier=tier,
            status=MatterStatus.PENDING_REVIEW,
            version=1,
        )
        invoice = await self.billing.add(Invoice(
            matter_id=matter.id,
            client_id=ctx.principal_id,
            description=f"{tier.value.title()} tier intake fee for {matter.matter_number}",
            amount=settings.tier_price(tier.value),
            currency=currency,
            status=InvoiceStatus.PAID,
            issued_at=now,
            paid_at=now,
        ))
        await self.billing.add(Payment(
            invoice_id=invoice.id,
            matter_id=matter.id,
            client_id=ctx.principal_id,
            reference=payment.reference,
            amount=payment.amount,
            currency=currency,
            status=PaymentStatus.SUCCESS,
        ))

        await self.audit.record(
            firm_id, ctx.principal_id, AuditAction.MATTER_FILED,
            matter_id=matter.id,
            details={
                "matter_number": matter.matter_number,
                "category": matter.category,
                "service_tier": tier,
            },
        )
        await self.audit.record(
            firm_id, ctx.principal_id, AuditAction.PAYMENT_RECORDED,
            matter_id=matter.id,
            details={
                "reference": payment.reference,
                "amount": payment.amount,
                "currency": currency,
                "invoice_id": invoice.id,
            },
        )

        if firm_id is not None:
            managers = await self.principals.list_for_firm(
                firm_id, roles=[PrincipalRole.CASE_MANAGER], status=PrincipalStatus.ACTIVE
            )
            for manager in managers:
                self.notifications.emit(
                    manager.id,
                    EventType.MATTER_FILED,
                    {
                        "title": "New matter filed",
                        "message": f"{ctx.display_name} filed {matter.matter_number}: {title}",
                        "link": f"/workspace/matters/{matter.id}",
                    },
                    firm_id=firm_id,
                    matter_id=matter.id,
                )

        logger.info(f"Matter {matter.matter_number} filed by client {ctx.principal_id}")
        return matter

    async def file_on_behalf(
        self,
        ctx: AuthContext,
        *,
        client_id: UUID,
        title: str,
        description: str,
        category: MatterCategory,
        service_tier: ServiceTier,
    ) -> Matter:
        """
        File a matter for a client from the firm workspace.

        The matter skips intake review and starts at in_review in the
        caller's firm.
        """
        require(ctx, Permission.MATTER_FILE_ON_BEHALF)
        client = await self.principals.get(client_id)
        if client is None or client.role != PrincipalRole.CLIENT:
            raise NotFound("Client not found")
        if client.status == PrincipalStatus.DEACTIVATED:
            raise ValidationFailed("Client account is deactivated")

        matter = await self.matters.create(
            matter_number=await self._new_matter_number(),
            client_id=client.id,
            created_by=ctx.principal_id,
            firm_id=ctx.firm_id,
            title=title,
            description=description,
            category=MatterCategory(category),
            service_tier=ServiceTier(service_tier),
            status=MatterStatus.IN_REVIEW,
            version=1,
        )
        await self.audit.record(
            ctx.firm_id, ctx.principal_id, AuditAction.MATTER_CREATED_INTERNALLY,
            target_id=client.id,
            matter_id=matter.id,
            details={"matter_number": matter.matter_number, "status": matter.status},
        )
        self._notify_client(
            matter,
            "New matter opened",
            f"Your firm opened {matter.matter_number}: {title}",
        )
        logger.info(
            f"Matter {matter.matter_number} created by {ctx.principal_id} for client {client.id}"
        )
        return matter

    async def transition(
        self,
        ctx: AuthContext,
        matter_id: UUID,
        target: MatterStatus,
        note: Optional[str] = None,
    ) -> Matter:
        """
        Request a status transition.

        Raises:
            NotFound: matter absent or outside the caller's reach
            IllegalTransition: pair not in the table, or caller lacks the edge's role
            Conflict: another request changed the matter first
        """
        matter = await self.access.require_matter(ctx, matter_id)
        target = MatterStatus(target)
        edge = find_edge(matter.status, target)

        if edge is None:
            logger.warning(
                f"Rejected {matter.status.value} -> {target.value} on {matter.matter_number}"
            )
            raise IllegalTransition(
                f"Cannot move a matter from {STATUS_LABELS[matter.status]} "
                f"to {STATUS_LABELS[target]}"
            )
        if ctx.role != edge.role or not ctx.has(Permission.MATTER_TRANSITION):
            logger.warning(
                f"Principal {ctx.principal_id} ({ctx.role.value}) may not {edge.label} "
                f"on {matter.matter_number}"
            )
            raise IllegalTransition(f"Your role may not {edge.label}")
        if edge.requires_assignment and await self.assignments.get_active(matter.id) is None:
            raise IllegalTransition("Assign an associate before marking the matter as assigned")

        return await self.apply(ctx, matter, edge, note=note)

    async def apply(
        self,
        ctx: AuthContext,
        matter: Matter,
        edge: TransitionEdge,
        *,
        note: Optional[str] = None,
    ) -> Matter:
        """
        Write an already-authorized transition: CAS, audit, notify.

        Callers are responsible for authorization. The assignment manager
        uses this to drive in_review -> assigned under its own rights.
        """
        if matter.status != edge.source:
            raise IllegalTransition(
                f"Matter is {STATUS_LABELS[matter.status]}, not {STATUS_LABELS[edge.source]}"
            )

        values = {}
        if matter.firm_id is None:
            # Accepting an intake filing claims it for the caller's firm
            values["firm_id"] = ctx.firm_id
        if edge.target.is_terminal:
            values["closed_at"] = utcnow()

        won = await self.matters.compare_and_set_status(matter, edge.source, edge.target, **values)
        if not won:
            logger.warning(
                f"Lost race on {matter.matter_number}: {edge.source.value} -> {edge.target.value}"
            )
            raise Conflict()

        await self.audit.record(
            matter.firm_id, ctx.principal_id, AuditAction.CASE_STATUS_CHANGED,
            matter_id=matter.id,
            details={
                "from": edge.source,
                "to": edge.target,
                "note": note,
                "matter_number": matter.matter_number,
            },
        )

        if edge.notify_client:
            self._notify_client(
                matter,
                "Matter status updated",
                f"{matter.matter_number} is now {STATUS_LABELS[edge.target]}",
            )

        logger.info(
            f"Matter {matter.matter_number} {edge.source.value} -> {edge.target.value} "
            f"by {ctx.principal_id}"
        )
        return matter

    async def available_transitions(self, ctx: AuthContext, matter: Matter) -> list[TransitionEdge]:
        """Edges the caller may fire right now (input for the UI to render)."""
        if not ctx.has(Permission.MATTER_TRANSITION):
            return []
        edges = [edge for edge in edges_from(matter.status) if edge.role == ctx.role]
        if any(edge.requires_assignment for edge in edges):
            if await self.assignments.get_active(matter.id) is None:
                edges = [edge for edge in edges if not edge.requires_assignment]
        return edges

    async def get_matter(self, ctx: AuthContext, matter_id: UUID) -> MatterDetail:
        matter = await self.access.require_matter(ctx, matter_id)
        detail = MatterDetail(
            matter=matter,
            assignment=await self.assignments.get_active(matter.id),
            documents=filter_visible(await self.records.documents(matter.id), ctx.role),
            updates=filter_visible(await self.records.updates(matter.id), ctx.role),
            tasks=filter_visible(await self.records.tasks(matter.id), ctx.role),
            invoices=await self.billing.invoices_for_matter(matter.id),
            transitions=await self.available_transitions(ctx, matter),
        )
        if ctx.is_internal:
            detail.audit_trail = await self.audit_log.list_for_matter(matter.id)
            detail.statement = await self.records.latest_statement(matter.id)
        return detail

    async def list_matters(
        self, ctx: AuthContext, status: Optional[MatterStatus] = None
    ) -> list[Matter]:
        return await self.access.list_visible(ctx, status)
