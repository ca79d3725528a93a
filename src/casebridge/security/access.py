"""
Role permissions and matter-level access control for CaseBridge.

Role permissions are a pure function of (role, status). Matter access adds
need-to-know on top: associates only reach matters assigned to them,
clients only reach matters they filed, and anything out of reach is
reported as not found so its existence does not leak.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from casebridge.db.orm import Matter, MatterStatus, PrincipalRole, PrincipalStatus
from casebridge.db.repositories import AssignmentRepository, MatterRepository
from casebridge.errors import Forbidden, NotFound

if TYPE_CHECKING:
    from casebridge.security.identity import AuthContext

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    """Resource/action rights granted by role."""
    MATTER_VIEW = "matter:view"
    MATTER_FILE = "matter:file"
    MATTER_FILE_ON_BEHALF = "matter:file_on_behalf"
    MATTER_TRANSITION = "matter:change_status"
    MATTER_ASSIGN = "matter:assign"
    MATTER_REASSIGN = "matter:reassign"
    DOCUMENT_UPLOAD = "document:upload"
    DOCUMENT_MANAGE = "document:manage"
    UPDATE_POST = "update:post"
    STATEMENT_EDIT = "statement:edit"
    TASK_UPDATE = "task:update"
    TASK_MANAGE = "task:manage"
    INVITE_CLIENT = "invitation:client"
    INVITE_STAFF = "invitation:staff"
    STAFF_VIEW = "user:view"
    USER_MANAGE = "user:manage"
    AUDIT_VIEW = "audit_log:view"
    FIRM_MANAGE = "firm:manage"
    NOTIFICATION_READ = "notification:read"
    PROFILE_EDIT = "profile:edit"


_ASSOCIATE = frozenset({
    Permission.MATTER_VIEW,
    Permission.DOCUMENT_UPLOAD,
    Permission.UPDATE_POST,
    Permission.STATEMENT_EDIT,
    Permission.TASK_UPDATE,
    Permission.NOTIFICATION_READ,
    Permission.PROFILE_EDIT,
})

_CASE_MANAGER = _ASSOCIATE | {
    Permission.MATTER_FILE_ON_BEHALF,
    Permission.MATTER_TRANSITION,
    Permission.MATTER_ASSIGN,
    Permission.MATTER_REASSIGN,
    Permission.DOCUMENT_MANAGE,
    Permission.TASK_MANAGE,
    Permission.INVITE_CLIENT,
    Permission.STAFF_VIEW,
}

# Administrators manage the firm and its people but do not drive matter status.
_ADMIN_MANAGER = (_CASE_MANAGER - {Permission.MATTER_TRANSITION}) | {
    Permission.INVITE_STAFF,
    Permission.USER_MANAGE,
    Permission.AUDIT_VIEW,
    Permission.FIRM_MANAGE,
}

_CLIENT = frozenset({
    Permission.MATTER_VIEW,
    Permission.MATTER_FILE,
    Permission.DOCUMENT_UPLOAD,
    Permission.NOTIFICATION_READ,
    Permission.PROFILE_EDIT,
})

ROLE_PERMISSIONS: dict[PrincipalRole, frozenset[Permission]] = {
    PrincipalRole.ASSOCIATE_LAWYER: frozenset(_ASSOCIATE),
    PrincipalRole.CASE_MANAGER: frozenset(_CASE_MANAGER),
    PrincipalRole.ADMIN_MANAGER: frozenset(_ADMIN_MANAGER),
    PrincipalRole.CLIENT: _CLIENT,
}

MANAGER_ROLES = (PrincipalRole.CASE_MANAGER, PrincipalRole.ADMIN_MANAGER)


def permissions_for(role: PrincipalRole, status: PrincipalStatus) -> frozenset[Permission]:
    """Effective permissions. A non-active principal holds none."""
    if status != PrincipalStatus.ACTIVE:
        return frozenset()
    return ROLE_PERMISSIONS.get(role, frozenset())


def require(ctx: "AuthContext", permission: Permission) -> None:
    """
    Check the caller holds a permission.

    Raises:
        Forbidden: If the permission is missing
    """
    if not ctx.has(permission):
        logger.warning(
            f"Principal {ctx.principal_id} ({ctx.role.value}) denied {permission.value}"
        )
        raise Forbidden(f"Permission denied: {permission.value}")


def require_firm_scope(ctx: "AuthContext", firm_id: Optional[UUID]) -> None:
    """Check the caller belongs to the given firm."""
    if ctx.firm_id is None or ctx.firm_id != firm_id:
        logger.warning(f"Principal {ctx.principal_id} denied: outside firm scope {firm_id}")
        raise Forbidden("Outside your firm scope")


class MatterAccess:
    """
    Matter-level access control (need-to-know enforcement).

    - client: only matters they filed
    - associate_lawyer: only matters with an active assignment naming them
    - case_manager, admin_manager: any matter in their firm, plus the
      unclaimed intake pool (client filings awaiting review by any firm)
    """

    def __init__(self, session: AsyncSession):
        self.matters = MatterRepository(session)
        self.assignments = AssignmentRepository(session)

    async def can_view(self, ctx: "AuthContext", matter: Matter) -> bool:
        if not ctx.has(Permission.MATTER_VIEW):
            return False

        if ctx.role == PrincipalRole.CLIENT:
            return matter.client_id == ctx.principal_id

        if ctx.role == PrincipalRole.ASSOCIATE_LAWYER:
            return await self.assignments.is_assigned(matter.id, ctx.principal_id)

        if matter.firm_id is None:
            return matter.status == MatterStatus.PENDING_REVIEW
        return matter.firm_id == ctx.firm_id

    async def require_matter(self, ctx: "AuthContext", matter_id: UUID) -> Matter:
        """
        Load a matter the caller may see.

        Raises:
            NotFound: If the matter does not exist or is outside the caller's reach
        """
        matter = await self.matters.get(matter_id)
        if matter is None or not await self.can_view(ctx, matter):
            logger.warning(f"Principal {ctx.principal_id} denied matter {matter_id}")
            raise NotFound("Matter not found")
        return matter

    async def list_visible(
        self, ctx: "AuthContext", status: Optional[MatterStatus] = None
    ) -> list[Matter]:
        """List every matter the caller may see."""
        if not ctx.has(Permission.MATTER_VIEW):
            return []
        if ctx.role == PrincipalRole.CLIENT:
            return await self.matters.list_for_client(ctx.principal_id, status)
        if ctx.role == PrincipalRole.ASSOCIATE_LAWYER:
            return await self.matters.list_assigned_to(ctx.principal_id, status)
        return await self.matters.list_for_firm(ctx.firm_id, status, include_intake=True)
