"""
Audit log API routes.

Read-only access to the firm's audit chain for administrators.
Audit entries are immutable: there are no update or delete routes.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from casebridge.api.deps import InternalCtx, UoW
from casebridge.audit.recorder import AuditAction, AuditRecorder
from casebridge.schemas import AuditEntryResponse
from casebridge.security.access import Permission, require, require_firm_scope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audit", tags=["audit"])


class ChainVerificationResponse(BaseModel):
    valid: bool
    first_invalid_sequence: Optional[int] = None


@router.get("", response_model=list[AuditEntryResponse])
async def list_audit_log(
    uow: UoW,
    ctx: InternalCtx,
    action: Optional[AuditAction] = Query(None, description="Filter by action tag"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """The caller's firm audit log, newest first."""
    require(ctx, Permission.AUDIT_VIEW)
    require_firm_scope(ctx, ctx.firm_id)
    recorder = AuditRecorder(uow.session)
    return await recorder.repo.list_for_firm(
        ctx.firm_id,
        action=action.value if action else None,
        limit=limit,
        offset=offset,
    )


@router.get("/verify", response_model=ChainVerificationResponse)
async def verify_audit_chain(uow: UoW, ctx: InternalCtx):
    """Recompute the firm's hash chain and report the first broken link."""
    require(ctx, Permission.AUDIT_VIEW)
    require_firm_scope(ctx, ctx.firm_id)
    valid, first_bad = await AuditRecorder(uow.session).verify(ctx.firm_id)
    return ChainVerificationResponse(valid=valid, first_invalid_sequence=first_bad)
