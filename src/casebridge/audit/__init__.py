"""
Hash-chained audit trail.
"""

from casebridge.audit.recorder import AuditAction, AuditRecorder

__all__ = ["AuditAction", "AuditRecorder"]
