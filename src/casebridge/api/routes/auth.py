"""
Authentication API routes for CaseBridge.

Provides endpoints for:
- Login (email/password, lockout aware)
- Token refresh
"""

import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from casebridge.accounts.principals import AccountService
from casebridge.config import settings
from casebridge.db.session import UnitOfWork
from casebridge.errors import Unauthorized
from casebridge.schemas import PrincipalResponse
from casebridge.security.auth import (
    AuthenticationError,
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
)
from casebridge.security.identity import IdentityResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


class LoginRequest(BaseModel):
    """Login request body."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=200)


class LoginResponse(BaseModel):
    """Login response with tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    principal: PrincipalResponse


class RefreshRequest(BaseModel):
    refresh_token: str


class RefreshResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


def get_client_ip(request: Request) -> str:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post("/login", response_model=LoginResponse)
async def login(request: Request, body: LoginRequest):
    """
    Authenticate and issue tokens.

    Failed attempts are committed before the error is returned so that the
    lockout counter survives the failed request.
    """
    async with UnitOfWork(request.app.state.db_session) as uow:
        outcome = await AccountService(uow).authenticate(body.email, body.password)

    if not outcome.succeeded:
        logger.warning(f"Login failed for {body.email} from {get_client_ip(request)}")
        raise outcome.error

    principal = outcome.principal
    return LoginResponse(
        access_token=create_access_token(principal.id),
        refresh_token=create_refresh_token(principal.id),
        expires_in=settings.access_token_expire_minutes * 60,
        principal=PrincipalResponse.model_validate(principal),
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(request: Request, body: RefreshRequest):
    """
    Exchange a refresh token for a new access token.

    The principal is re-resolved, so suspended or deactivated accounts
    cannot refresh.
    """
    try:
        payload = verify_refresh_token(body.refresh_token)
    except AuthenticationError as e:
        raise Unauthorized("Invalid or expired refresh token") from e

    async with UnitOfWork(request.app.state.db_session) as uow:
        ctx = await IdentityResolver(uow.session).resolve(payload.principal_id)

    return RefreshResponse(
        access_token=create_access_token(ctx.principal_id),
        expires_in=settings.access_token_expire_minutes * 60,
    )
