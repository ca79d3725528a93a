"""
Assignment manager.

Assigning an associate and moving the matter to "assigned" are one
operation: either both facts are committed together with their audit
entries, or neither is.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from casebridge.audit.recorder import AuditAction
from casebridge.db.orm import (
    Assignment,
    Matter,
    MatterStatus,
    Principal,
    PrincipalRole,
    PrincipalStatus,
)
from casebridge.db.session import UnitOfWork
from casebridge.errors import (
    AlreadyAssigned,
    Conflict,
    Forbidden,
    InvalidSourceState,
    NoEligibleStaff,
)
from casebridge.matters.lifecycle import STATUS_LABELS, LifecycleEngine, find_edge
from casebridge.notifications.dispatcher import EventType
from casebridge.security.access import Permission, require, require_firm_scope
from casebridge.security.identity import AuthContext

logger = logging.getLogger(__name__)

REASSIGNABLE_STATES = (
    MatterStatus.ASSIGNED,
    MatterStatus.IN_PROGRESS,
    MatterStatus.ON_HOLD,
)


class AssignmentManager:
    """Binds matters to associate lawyers."""

    def __init__(self, uow: UnitOfWork):
        self.lifecycle = LifecycleEngine(uow)
        self.notifications = uow.notifications
        self.access = self.lifecycle.access
        self.audit = self.lifecycle.audit
        self.assignments = self.lifecycle.assignments
        self.principals = self.lifecycle.principals
        self.matters = self.lifecycle.matters

    async def _eligible_associate(self, associate_id: UUID, firm_id: Optional[UUID]) -> Principal:
        associate = await self.principals.get(associate_id)
        if (
            associate is None
            or associate.role != PrincipalRole.ASSOCIATE_LAWYER
            or associate.status != PrincipalStatus.ACTIVE
            or associate.firm_id != firm_id
        ):
            logger.warning(f"Principal {associate_id} is not an eligible associate in firm {firm_id}")
            raise NoEligibleStaff()
        return associate

    async def _load_for_staffing(self, ctx: AuthContext, matter_id: UUID, permission: Permission) -> Matter:
        if not ctx.has(permission):
            logger.warning(f"Principal {ctx.principal_id} ({ctx.role.value}) may not staff matters")
            raise Forbidden("Only case managers and administrators can assign matters")
        matter = await self.access.require_matter(ctx, matter_id)
        require_firm_scope(ctx, matter.firm_id)
        return matter

    def _notify_associate(self, associate: Principal, matter: Matter, event: EventType, message: str) -> None:
        self.notifications.emit(
            associate.id,
            event,
            {
                "title": "Matter assignment",
                "message": message,
                "link": f"/workspace/matters/{matter.id}",
            },
            firm_id=matter.firm_id,
            matter_id=matter.id,
        )

    async def assign(self, ctx: AuthContext, matter_id: UUID, associate_id: UUID) -> Assignment:
        """
        Assign an associate to a matter in review and mark it assigned.

        Checks run in order and the first failure wins:
        Forbidden, NotFound, NoEligibleStaff, AlreadyAssigned, InvalidSourceState.
        A failure leaves no assignment and no audit entry behind.
        """
        matter = await self._load_for_staffing(ctx, matter_id, Permission.MATTER_ASSIGN)
        associate = await self._eligible_associate(associate_id, matter.firm_id)

        if await self.assignments.get_active(matter.id) is not None:
            raise AlreadyAssigned()
        if matter.status != MatterStatus.IN_REVIEW:
            raise InvalidSourceState(
                f"Only matters In Review can be assigned; this one is {STATUS_LABELS[matter.status]}"
            )

        try:
            assignment = await self.assignments.create(matter.id, associate.id, ctx.principal_id)
        except IntegrityError as e:
            raise AlreadyAssigned() from e

        await self.audit.record(
            matter.firm_id, ctx.principal_id, AuditAction.CASE_ASSIGNED,
            target_id=associate.id,
            matter_id=matter.id,
            details={
                "assignment_id": assignment.id,
                "associate_name": associate.full_name,
                "matter_number": matter.matter_number,
            },
        )
        await self.lifecycle.apply(
            ctx,
            matter,
            find_edge(MatterStatus.IN_REVIEW, MatterStatus.ASSIGNED),
            note=f"Assigned to {associate.full_name}",
        )
        self._notify_associate(
            associate, matter, EventType.CASE_ASSIGNED,
            f"You have been assigned {matter.matter_number}: {matter.title}",
        )

        logger.info(f"Matter {matter.matter_number} assigned to {associate.id} by {ctx.principal_id}")
        return assignment

    async def reassign(
        self,
        ctx: AuthContext,
        matter_id: UUID,
        associate_id: UUID,
        reason: Optional[str] = None,
    ) -> Assignment:
        """
        Replace the active assignment with a new associate.

        Status is unchanged. The previous assignment is kept, marked superseded.
        """
        matter = await self._load_for_staffing(ctx, matter_id, Permission.MATTER_REASSIGN)
        associate = await self._eligible_associate(associate_id, matter.firm_id)

        if matter.status not in REASSIGNABLE_STATES:
            raise InvalidSourceState(
                f"A matter that is {STATUS_LABELS[matter.status]} cannot be reassigned"
            )
        current = await self.assignments.get_active(matter.id)
        if current is None:
            raise InvalidSourceState("Matter has no active assignment to replace")
        if current.associate_id == associate.id:
            raise AlreadyAssigned("Matter is already assigned to this associate")

        # Version bump serializes concurrent reassignments of the same matter
        if not await self.matters.compare_and_set_status(matter, matter.status, matter.status):
            raise Conflict()

        previous = await self.principals.get(current.associate_id)
        await self.assignments.supersede(current, by=ctx.principal_id, reason=reason)
        try:
            assignment = await self.assignments.create(matter.id, associate.id, ctx.principal_id)
        except IntegrityError as e:
            raise Conflict() from e

        await self.audit.record(
            matter.firm_id, ctx.principal_id, AuditAction.CASE_REASSIGNED,
            target_id=associate.id,
            matter_id=matter.id,
            details={
                "from_associate": current.associate_id,
                "to_associate": associate.id,
                "reason": reason,
                "matter_number": matter.matter_number,
            },
        )
        self._notify_associate(
            associate, matter, EventType.CASE_REASSIGNED,
            f"{matter.matter_number} has been reassigned to you",
        )
        if previous is not None:
            self._notify_associate(
                previous, matter, EventType.CASE_REASSIGNED,
                f"{matter.matter_number} has been reassigned to {associate.full_name}",
            )

        logger.info(
            f"Matter {matter.matter_number} reassigned {current.associate_id} -> {associate.id}"
        )
        return assignment

    async def eligible_associates(self, ctx: AuthContext) -> list[Principal]:
        """Active associates the caller could assign."""
        require(ctx, Permission.MATTER_ASSIGN)
        return await self.principals.list_for_firm(
            ctx.firm_id,
            roles=[PrincipalRole.ASSOCIATE_LAWYER],
            status=PrincipalStatus.ACTIVE,
        )
