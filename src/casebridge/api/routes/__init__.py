"""
API route modules.
"""

from casebridge.api.routes.accounts import router as accounts_router
from casebridge.api.routes.audit import router as audit_router
from casebridge.api.routes.auth import router as auth_router
from casebridge.api.routes.firms import router as firms_router
from casebridge.api.routes.invitations import router as invitations_router
from casebridge.api.routes.matters import router as matters_router
from casebridge.api.routes.notifications import router as notifications_router

__all__ = [
    "accounts_router",
    "audit_router",
    "auth_router",
    "firms_router",
    "invitations_router",
    "matters_router",
    "notifications_router",
]
