"""
Account API routes: client registration, profile and staff administration.
"""

import logging
from uuid import UUID

from fastapi import APIRouter

from casebridge.accounts.principals import AccountService, ClientRegistration
from casebridge.api.deps import Ctx, InternalCtx, UoW
from casebridge.schemas import (
    ClientRegistrationRequest,
    PrincipalResponse,
    ProfileUpdateRequest,
    StatusChangeRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.post("/clients", response_model=PrincipalResponse, status_code=201)
async def register_client(data: ClientRegistrationRequest, uow: UoW):
    """Self-registration from the client portal."""
    return await AccountService(uow).register_client(
        ClientRegistration(
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
        )
    )


@router.get("/me", response_model=PrincipalResponse)
async def get_profile(uow: UoW, ctx: Ctx):
    return await AccountService(uow).principals.get(ctx.principal_id)


@router.patch("/me", response_model=PrincipalResponse)
async def update_profile(data: ProfileUpdateRequest, uow: UoW, ctx: Ctx):
    return await AccountService(uow).update_profile(
        ctx,
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
    )


@router.get("/staff", response_model=list[PrincipalResponse])
async def list_staff(uow: UoW, ctx: InternalCtx):
    """Members of the caller's firm."""
    return await AccountService(uow).list_staff(ctx)


@router.get("/clients", response_model=list[PrincipalResponse])
async def list_clients(uow: UoW, ctx: InternalCtx):
    """Clients onboarded into the caller's firm."""
    return await AccountService(uow).list_clients(ctx)


@router.post("/{principal_id}/status", response_model=PrincipalResponse)
async def change_status(principal_id: UUID, data: StatusChangeRequest, uow: UoW, ctx: InternalCtx):
    """Suspend, reactivate or deactivate a team member."""
    return await AccountService(uow).change_status(ctx, principal_id, data.status, data.reason)
