"""
Firm API routes: registration and the firm profile.
"""

import logging

from fastapi import APIRouter

from casebridge.accounts.firms import FirmRegistration, FirmService
from casebridge.api.deps import InternalCtx, UoW
from casebridge.schemas import (
    FirmRegistrationRequest,
    FirmRegistrationResponse,
    FirmResponse,
    FirmUpdateRequest,
    PrincipalResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/firms", tags=["firms"])


@router.post("", response_model=FirmRegistrationResponse, status_code=201)
async def register_firm(data: FirmRegistrationRequest, uow: UoW):
    """Register a firm together with its first administrator."""
    firm, admin = await FirmService(uow).register_firm(FirmRegistration(**data.model_dump()))
    return FirmRegistrationResponse(
        firm=FirmResponse.model_validate(firm),
        admin=PrincipalResponse.model_validate(admin),
    )


@router.get("/me", response_model=FirmResponse)
async def get_firm(uow: UoW, ctx: InternalCtx):
    return await FirmService(uow).get_firm(ctx)


@router.patch("/me", response_model=FirmResponse)
async def update_firm(data: FirmUpdateRequest, uow: UoW, ctx: InternalCtx):
    return await FirmService(uow).update_firm(ctx, **data.model_dump(exclude_none=True))
