"""
Notification inbox API routes.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel

from casebridge.api.deps import Ctx, UoW
from casebridge.notifications.inbox import NotificationInbox

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationResponse(BaseModel):
    id: UUID
    event_type: str
    title: str
    message: str
    link: Optional[str]
    matter_id: Optional[UUID]
    read_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class InboxResponse(BaseModel):
    items: list[NotificationResponse]
    unread_count: int


class MarkAllReadResponse(BaseModel):
    marked: int


@router.get("", response_model=InboxResponse)
async def list_notifications(
    uow: UoW,
    ctx: Ctx,
    unread_only: bool = Query(False, description="Only unread notifications"),
    limit: int = Query(50, ge=1, le=200),
):
    items, unread = await NotificationInbox(uow.session).list_for(ctx, unread_only, limit)
    return InboxResponse(
        items=[NotificationResponse.model_validate(n) for n in items],
        unread_count=unread,
    )


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(uow: UoW, ctx: Ctx):
    return MarkAllReadResponse(marked=await NotificationInbox(uow.session).mark_all_read(ctx))


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(notification_id: UUID, uow: UoW, ctx: Ctx):
    return await NotificationInbox(uow.session).mark_read(ctx, notification_id)
