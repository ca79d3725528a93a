"""
FastAPI dependencies for the API.

Provides:
- One UnitOfWork per request (commit on success, rollback on error)
- JWT bearer authentication resolved into an AuthContext
- Internal-only (firm staff) context
"""

import logging
from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from casebridge.db.session import UnitOfWork
from casebridge.errors import Unauthorized
from casebridge.security.auth import AuthenticationError, verify_access_token
from casebridge.security.identity import AuthContext, IdentityResolver

logger = logging.getLogger(__name__)


# HTTP Bearer token extractor
security = HTTPBearer(auto_error=False)


async def get_uow(request: Request) -> AsyncGenerator[UnitOfWork, None]:
    """
    Unit of work bound to the session factory stored during app startup.

    Exceptions raised by the endpoint propagate through here, so the
    transaction rolls back and queued notifications are dropped.
    """
    async with UnitOfWork(request.app.state.db_session) as uow:
        yield uow


# Type alias for dependency injection
UoW = Annotated[UnitOfWork, Depends(get_uow)]


async def _resolve(
    credentials: Optional[HTTPAuthorizationCredentials],
    uow: UnitOfWork,
    require_internal: bool,
) -> AuthContext:
    if credentials is None:
        raise Unauthorized()
    try:
        payload = verify_access_token(credentials.credentials)
    except AuthenticationError as e:
        raise Unauthorized("Invalid or expired token") from e

    return await IdentityResolver(uow.session).resolve(
        payload.principal_id, require_internal=require_internal
    )


async def get_auth_context(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    uow: UoW,
) -> AuthContext:
    """
    Resolve the bearer token into an AuthContext.

    Raises:
        Unauthorized: no token, or the token is invalid or expired
        NotProvisioned / AccountInactive: see IdentityResolver.resolve
    """
    return await _resolve(credentials, uow, require_internal=False)


async def get_internal_context(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    uow: UoW,
) -> AuthContext:
    """Same as get_auth_context, but clients are rejected with NotInternal."""
    return await _resolve(credentials, uow, require_internal=True)


# Type aliases for dependency injection
Ctx = Annotated[AuthContext, Depends(get_auth_context)]
InternalCtx = Annotated[AuthContext, Depends(get_internal_context)]
