"""
Invitation API routes.

Creating, listing, revoking and resending invitations requires a firm context; describing and
redeeming a token is public (the token is the credential).
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel, EmailStr, Field

from casebridge.api.deps import InternalCtx, UoW
from casebridge.db.orm import InvitationStatus, PrincipalRole
from casebridge.invitations.engine import InvitationEngine, RedemptionData
from casebridge.schemas import PrincipalResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["invitations"])


class InvitationCreate(BaseModel):
    email: EmailStr
    role: PrincipalRole


class InvitationResponse(BaseModel):
    id: UUID
    firm_id: UUID
    email: str
    role: PrincipalRole
    status: InvitationStatus
    invited_by: UUID
    created_at: datetime
    expires_at: datetime
    revoked_at: Optional[datetime] = None
    resend_count: int = 0

    class Config:
        from_attributes = True


class InvitationCreatedResponse(InvitationResponse):
    """Returned once, at creation: the only time the token is visible."""

    token: str


class InvitationDetailsResponse(BaseModel):
    email: str
    role: PrincipalRole
    firm_name: str
    expires_at: datetime


class RedeemRequest(BaseModel):
    password: str = Field(..., min_length=8, max_length=200)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)
    email: Optional[EmailStr] = None


@router.post("", response_model=InvitationCreatedResponse, status_code=201)
async def create_invitation(data: InvitationCreate, uow: UoW, ctx: InternalCtx):
    invitation, token = await InvitationEngine(uow).create(ctx, data.email, data.role)
    return InvitationCreatedResponse(
        **InvitationResponse.model_validate(invitation).model_dump(),
        token=token,
    )


@router.get("", response_model=list[InvitationResponse])
async def list_invitations(
    uow: UoW,
    ctx: InternalCtx,
    include_expired: bool = Query(False, description="Also list expired invitations that can be resent"),
):
    """Pending invitations of the caller's firm."""
    return await InvitationEngine(uow).list_pending(ctx, include_expired)


@router.post("/{invitation_id}/revoke", response_model=InvitationResponse)
async def revoke_invitation(invitation_id: UUID, uow: UoW, ctx: InternalCtx):
    return await InvitationEngine(uow).revoke(ctx, invitation_id)


@router.post("/{invitation_id}/resend", response_model=InvitationCreatedResponse)
async def resend_invitation(invitation_id: UUID, uow: UoW, ctx: InternalCtx):
    """Issue a new token and expiry. The previous token stops working."""
    invitation, token = await InvitationEngine(uow).resend(ctx, invitation_id)
    return InvitationCreatedResponse(
        **InvitationResponse.model_validate(invitation).model_dump(),
        token=token,
    )


@router.get("/{token}", response_model=InvitationDetailsResponse)
async def describe_invitation(token: str, uow: UoW):
    details = await InvitationEngine(uow).describe(token)
    return InvitationDetailsResponse(
        email=details.email,
        role=details.role,
        firm_name=details.firm_name,
        expires_at=details.expires_at,
    )


@router.post("/{token}/redeem", response_model=PrincipalResponse, status_code=201)
async def redeem_invitation(token: str, data: RedeemRequest, uow: UoW):
    """Accept an invitation and create the account it was issued for."""
    return await InvitationEngine(uow).redeem(
        token,
        RedemptionData(
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            email=data.email,
        ),
    )
