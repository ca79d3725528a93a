"""
Account schemas: principals, firms and the forms that create them.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from casebridge.db.orm import FirmStatus, PrincipalRole, PrincipalStatus


class PrincipalResponse(BaseModel):
    """A principal as returned to callers. Never includes credentials."""

    id: UUID
    firm_id: Optional[UUID]
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: PrincipalRole
    status: PrincipalStatus
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class FirmResponse(BaseModel):
    id: UUID
    name: str
    email: str
    phone: Optional[str]
    address: Optional[str]
    status: FirmStatus
    created_at: datetime

    class Config:
        from_attributes = True


class ClientRegistrationRequest(BaseModel):
    """Client self-registration from the portal."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=200)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)


class FirmRegistrationRequest(BaseModel):
    """A new firm and its first administrator."""

    firm_name: str = Field(..., min_length=1, max_length=255)
    firm_email: EmailStr
    firm_phone: Optional[str] = Field(None, max_length=50)
    firm_address: Optional[str] = None
    admin_email: EmailStr
    admin_password: str = Field(..., min_length=8, max_length=200)
    admin_first_name: str = Field(..., min_length=1, max_length=100)
    admin_last_name: str = Field(..., min_length=1, max_length=100)
    admin_phone: Optional[str] = Field(None, max_length=32)


class FirmRegistrationResponse(BaseModel):
    firm: FirmResponse
    admin: PrincipalResponse


class FirmUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)


class StatusChangeRequest(BaseModel):
    status: PrincipalStatus
    reason: Optional[str] = Field(None, max_length=500)
