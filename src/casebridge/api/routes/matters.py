"""
Matter API routes.

Filing, listing, detail, status transitions, staffing and the records
attached to a matter (documents, updates, case statement, tasks).
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query

from casebridge.api.deps import Ctx, InternalCtx, UoW
from casebridge.db.orm import MatterStatus
from casebridge.matters.assignment import AssignmentManager
from casebridge.matters.lifecycle import LifecycleEngine, MatterDetail, PaymentConfirmation
from casebridge.matters.records import MatterRecords
from casebridge.schemas import (
    AssignmentResponse,
    AssignRequest,
    AuditEntryResponse,
    DocumentCreate,
    DocumentResponse,
    DocumentVisibilityUpdate,
    InvoiceResponse,
    MatterDetailResponse,
    MatterFileRequest,
    MatterListResponse,
    MatterOnBehalfRequest,
    MatterResponse,
    PrincipalResponse,
    ReassignRequest,
    StatementResponse,
    StatementUpdate,
    TaskCreate,
    TaskResponse,
    TaskStatusUpdate,
    TaskVisibilityUpdate,
    TransitionOption,
    TransitionRequest,
    UpdateCreate,
    UpdateResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["matters"])


def _detail_response(detail: MatterDetail) -> MatterDetailResponse:
    return MatterDetailResponse(
        matter=MatterResponse.model_validate(detail.matter),
        assignment=AssignmentResponse.model_validate(detail.assignment) if detail.assignment else None,
        transitions=[TransitionOption(target=e.target, label=e.label) for e in detail.transitions],
        documents=[DocumentResponse.model_validate(d) for d in detail.documents],
        updates=[UpdateResponse.model_validate(u) for u in detail.updates],
        tasks=[TaskResponse.model_validate(t) for t in detail.tasks],
        statement=StatementResponse.model_validate(detail.statement) if detail.statement else None,
        invoices=[InvoiceResponse.model_validate(i) for i in detail.invoices],
        audit_trail=[AuditEntryResponse.model_validate(a) for a in detail.audit_trail],
    )


@router.get("/matters", response_model=MatterListResponse)
async def list_matters(
    uow: UoW,
    ctx: Ctx,
    status: Optional[MatterStatus] = Query(None, description="Filter by status"),
):
    """Matters visible to the caller, most recent first."""
    matters = await LifecycleEngine(uow).list_matters(ctx, status)
    return MatterListResponse(
        items=[MatterResponse.model_validate(m) for m in matters],
        total=len(matters),
    )


@router.post("/matters", response_model=MatterResponse, status_code=201)
async def file_matter(data: MatterFileRequest, uow: UoW, ctx: Ctx):
    """File a matter as a client after payment has succeeded."""
    return await LifecycleEngine(uow).file_matter(
        ctx,
        title=data.title,
        description=data.description,
        category=data.category,
        service_tier=data.service_tier,
        payment=PaymentConfirmation(
            reference=data.payment.reference,
            amount=data.payment.amount,
            succeeded=data.payment.succeeded,
            currency=data.payment.currency,
        ),
        firm_id=data.firm_id,
    )


@router.post("/matters/on-behalf", response_model=MatterResponse, status_code=201)
async def file_on_behalf(data: MatterOnBehalfRequest, uow: UoW, ctx: InternalCtx):
    """Open a matter for a client from the firm workspace."""
    return await LifecycleEngine(uow).file_on_behalf(
        ctx,
        client_id=data.client_id,
        title=data.title,
        description=data.description,
        category=data.category,
        service_tier=data.service_tier,
    )


@router.get("/matters/associates", response_model=list[PrincipalResponse])
async def eligible_associates(uow: UoW, ctx: InternalCtx):
    """Active associates of the caller's firm that can take a matter."""
    return await AssignmentManager(uow).eligible_associates(ctx)


@router.get("/matters/{matter_id}", response_model=MatterDetailResponse)
async def get_matter(matter_id: UUID, uow: UoW, ctx: Ctx):
    detail = await LifecycleEngine(uow).get_matter(ctx, matter_id)
    return _detail_response(detail)


@router.post("/matters/{matter_id}/transitions", response_model=MatterResponse)
async def transition_matter(matter_id: UUID, data: TransitionRequest, uow: UoW, ctx: InternalCtx):
    """Move a matter along one edge of the lifecycle."""
    return await LifecycleEngine(uow).transition(ctx, matter_id, data.target, data.note)


@router.post("/matters/{matter_id}/assignment", response_model=AssignmentResponse, status_code=201)
async def assign_matter(matter_id: UUID, data: AssignRequest, uow: UoW, ctx: InternalCtx):
    """Assign an associate to a matter in review."""
    return await AssignmentManager(uow).assign(ctx, matter_id, data.associate_id)


@router.put("/matters/{matter_id}/assignment", response_model=AssignmentResponse)
async def reassign_matter(matter_id: UUID, data: ReassignRequest, uow: UoW, ctx: InternalCtx):
    """Replace the active assignment with another associate."""
    return await AssignmentManager(uow).reassign(ctx, matter_id, data.associate_id, data.reason)


@router.post("/matters/{matter_id}/documents", response_model=DocumentResponse, status_code=201)
async def add_document(matter_id: UUID, data: DocumentCreate, uow: UoW, ctx: Ctx):
    """Attach an uploaded document (already in storage) to a matter."""
    return await MatterRecords(uow).add_document(
        ctx,
        matter_id,
        file_name=data.file_name,
        storage_key=data.storage_key,
        client_visible=data.client_visible,
        content_type=data.content_type,
    )


@router.patch("/documents/{document_id}", response_model=DocumentResponse)
async def set_document_visibility(
    document_id: UUID, data: DocumentVisibilityUpdate, uow: UoW, ctx: InternalCtx
):
    return await MatterRecords(uow).set_document_visibility(ctx, document_id, data.client_visible)


@router.post("/matters/{matter_id}/updates", response_model=UpdateResponse, status_code=201)
async def post_update(matter_id: UUID, data: UpdateCreate, uow: UoW, ctx: InternalCtx):
    return await MatterRecords(uow).post_update(ctx, matter_id, data.content, data.client_visible)


@router.put("/matters/{matter_id}/statement", response_model=StatementResponse)
async def save_statement(matter_id: UUID, data: StatementUpdate, uow: UoW, ctx: InternalCtx):
    """Save a new version of the internal case statement."""
    return await MatterRecords(uow).save_statement(ctx, matter_id, data.content)


@router.get("/matters/{matter_id}/tasks", response_model=list[TaskResponse])
async def list_tasks(matter_id: UUID, uow: UoW, ctx: Ctx):
    return await MatterRecords(uow).list_tasks(ctx, matter_id)


@router.post("/matters/{matter_id}/tasks", response_model=TaskResponse, status_code=201)
async def add_task(matter_id: UUID, data: TaskCreate, uow: UoW, ctx: InternalCtx):
    return await MatterRecords(uow).add_task(
        ctx,
        matter_id,
        title=data.title,
        description=data.description,
        priority=data.priority,
        due_date=data.due_date,
        client_visible=data.client_visible,
        assigned_to=data.assigned_to,
    )


@router.get("/tasks/mine", response_model=list[TaskResponse])
async def my_tasks(
    uow: UoW,
    ctx: InternalCtx,
    include_completed: bool = Query(False),
):
    """Tasks assigned to the caller across their matters."""
    return await MatterRecords(uow).list_my_tasks(ctx, include_completed)


@router.patch("/tasks/{task_id}/status", response_model=TaskResponse)
async def set_task_status(task_id: UUID, data: TaskStatusUpdate, uow: UoW, ctx: InternalCtx):
    return await MatterRecords(uow).set_task_status(ctx, task_id, data.status)


@router.patch("/tasks/{task_id}/visibility", response_model=TaskResponse)
async def set_task_visibility(task_id: UUID, data: TaskVisibilityUpdate, uow: UoW, ctx: InternalCtx):
    return await MatterRecords(uow).set_task_visibility(ctx, task_id, data.client_visible)
