"""
Database module for CaseBridge.
"""

from casebridge.db.orm import (
    Assignment,
    AuditLog,
    Base,
    CaseStatement,
    Firm,
    Invitation,
    Invoice,
    Matter,
    MatterDocument,
    MatterStatus,
    MatterUpdate,
    Notification,
    Payment,
    Principal,
    PrincipalRole,
    PrincipalStatus,
)

__all__ = [
    "Base",
    "Firm",
    "Principal",
    "PrincipalRole",
    "PrincipalStatus",
    "Matter",
    "MatterStatus",
    "Assignment",
    "AuditLog",
    "Notification",
    "Invitation",
    "MatterDocument",
    "MatterUpdate",
    "CaseStatement",
    "Invoice",
    "Payment",
]
