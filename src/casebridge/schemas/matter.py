"""
Matter schemas: filings, transitions, assignments, matter records and tasks.
"""

from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from casebridge.db.orm import (
    InvoiceStatus,
    MatterCategory,
    MatterStatus,
    ServiceTier,
    TaskPriority,
    TaskStatus,
)


class MatterResponse(BaseModel):
    id: UUID
    matter_number: str
    client_id: UUID
    firm_id: Optional[UUID]
    title: str
    description: str
    category: MatterCategory
    service_tier: ServiceTier
    status: MatterStatus
    version: int
    created_at: datetime
    updated_at: datetime
    closed_at: Optional[datetime]

    class Config:
        from_attributes = True


class MatterListResponse(BaseModel):
    items: list[MatterResponse]
    total: int


class PaymentInfo(BaseModel):
    """Confirmation forwarded from the payment collaborator."""

    reference: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., gt=0)
    succeeded: bool = True
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class MatterFileRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=10000)
    category: MatterCategory
    service_tier: ServiceTier
    payment: PaymentInfo
    firm_id: Optional[UUID] = None


class MatterOnBehalfRequest(BaseModel):
    client_id: UUID
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=10000)
    category: MatterCategory
    service_tier: ServiceTier


class TransitionRequest(BaseModel):
    target: MatterStatus
    note: Optional[str] = Field(None, max_length=2000)


class TransitionOption(BaseModel):
    """An edge the caller may fire, for rendering action buttons."""

    target: MatterStatus
    label: str


class AssignRequest(BaseModel):
    associate_id: UUID


class ReassignRequest(BaseModel):
    associate_id: UUID
    reason: Optional[str] = Field(None, max_length=2000)


class AssignmentResponse(BaseModel):
    id: UUID
    matter_id: UUID
    associate_id: UUID
    assigned_by: UUID
    assigned_at: datetime
    superseded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DocumentCreate(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    storage_key: str = Field(..., min_length=1, max_length=1024)
    content_type: Optional[str] = Field(None, max_length=100)
    client_visible: bool = False


class DocumentVisibilityUpdate(BaseModel):
    client_visible: bool


class DocumentResponse(BaseModel):
    id: UUID
    matter_id: UUID
    uploaded_by: UUID
    file_name: str
    storage_key: str
    content_type: Optional[str]
    client_visible: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UpdateCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)
    client_visible: bool = False


class UpdateResponse(BaseModel):
    id: UUID
    matter_id: UUID
    author_id: UUID
    content: str
    client_visible: bool
    created_at: datetime

    class Config:
        from_attributes = True


class StatementUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class StatementResponse(BaseModel):
    id: UUID
    matter_id: UUID
    version: int
    content: str
    author_id: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None
    client_visible: bool = False
    assigned_to: Optional[UUID] = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class TaskVisibilityUpdate(BaseModel):
    client_visible: bool


class TaskResponse(BaseModel):
    id: UUID
    matter_id: UUID
    title: str
    description: Optional[str]
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[date]
    client_visible: bool
    assigned_to: Optional[UUID]
    created_by: UUID
    completed_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: UUID
    description: str
    amount: float
    currency: str
    status: InvoiceStatus
    issued_at: datetime
    paid_at: Optional[datetime]

    class Config:
        from_attributes = True


class AuditEntryResponse(BaseModel):
    sequence_id: int
    id: UUID
    firm_id: Optional[UUID]
    actor_id: UUID
    action: str
    target_id: Optional[UUID]
    matter_id: Optional[UUID]
    details: dict[str, Any]
    timestamp: datetime

    class Config:
        from_attributes = True


class MatterDetailResponse(BaseModel):
    """Matter page payload. Internal-only sections are empty for clients."""

    matter: MatterResponse
    assignment: Optional[AssignmentResponse] = None
    transitions: list[TransitionOption] = Field(default_factory=list)
    documents: list[DocumentResponse] = Field(default_factory=list)
    updates: list[UpdateResponse] = Field(default_factory=list)
    tasks: list[TaskResponse] = Field(default_factory=list)
    statement: Optional[StatementResponse] = None
    invoices: list[InvoiceResponse] = Field(default_factory=list)
    audit_trail: list[AuditEntryResponse] = Field(default_factory=list)
