"""
Pydantic request and response schemas for the CaseBridge API.
"""

from casebridge.schemas.matter import (
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
    PaymentInfo,
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
from casebridge.schemas.principal import (
    ClientRegistrationRequest,
    FirmRegistrationRequest,
    FirmRegistrationResponse,
    FirmResponse,
    FirmUpdateRequest,
    PrincipalResponse,
    ProfileUpdateRequest,
    StatusChangeRequest,
)

__all__ = [
    # Matters
    "AssignmentResponse",
    "AssignRequest",
    "AuditEntryResponse",
    "DocumentCreate",
    "DocumentResponse",
    "DocumentVisibilityUpdate",
    "InvoiceResponse",
    "MatterDetailResponse",
    "MatterFileRequest",
    "MatterListResponse",
    "MatterOnBehalfRequest",
    "MatterResponse",
    "PaymentInfo",
    "ReassignRequest",
    "StatementResponse",
    "StatementUpdate",
    "TaskCreate",
    "TaskResponse",
    "TaskStatusUpdate",
    "TaskVisibilityUpdate",
    "TransitionOption",
    "TransitionRequest",
    "UpdateCreate",
    "UpdateResponse",
    # Accounts
    "ClientRegistrationRequest",
    "FirmRegistrationRequest",
    "FirmRegistrationResponse",
    "FirmResponse",
    "FirmUpdateRequest",
    "PrincipalResponse",
    "ProfileUpdateRequest",
    "StatusChangeRequest",
]
