"""
Audit recorder.

Appends attributable, hash-chained audit entries inside the caller's
transaction. There is no update or delete path: if the
surrounding operation rolls back, its audit entries roll back with it.
"""

import logging
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from casebridge.db.orm import GENESIS_HASH, AuditLog, utcnow
from casebridge.db.repositories import AuditLogRepository
from casebridge.security.encryption import audit_chain_key

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    """Action tags written to the audit log."""
    MATTER_FILED = "matter_filed"
    MATTER_CREATED_INTERNALLY = "matter_created_internally"
    CASE_STATUS_CHANGED = "case_status_changed"
    CASE_ASSIGNED = "case_assigned"
    CASE_REASSIGNED = "case_reassigned"
    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_VISIBILITY_CHANGED = "document_visibility_changed"
    MATTER_UPDATE_POSTED = "matter_update_posted"
    CASE_STATEMENT_UPDATED = "case_statement_updated"
    TASK_CREATED = "task_created"
    TASK_STATUS_CHANGED = "task_status_changed"
    TASK_VISIBILITY_CHANGED = "task_visibility_changed"
    PAYMENT_RECORDED = "payment_recorded"
    USER_INVITED = "user_invited"
    INVITATION_ACCEPTED = "invitation_accepted"
    INVITATION_REVOKED = "invitation_revoked"
    INVITATION_RESENT = "invitation_resent"
    USER_STATUS_CHANGED = "user_status_changed"
    PROFILE_UPDATED = "profile_updated"
    CLIENT_REGISTERED = "client_registered"
    FIRM_REGISTERED = "firm_registered"
    FIRM_PROFILE_UPDATED = "firm_profile_updated"


def _jsonable(value: Any) -> Any:
    """Reduce details to JSON primitives so the stored form hashes identically."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


class AuditRecorder:
    """Writes audit entries into the caller's session."""

    def __init__(self, session: AsyncSession, audit_key: Optional[bytes] = None):
        self.session = session
        self.repo = AuditLogRepository(session)
        self._audit_key = audit_key or audit_chain_key()

    async def record(
        self,
        firm_id: Optional[UUID],
        actor_id: UUID,
        action: AuditAction,
        *,
        target_id: Optional[UUID] = None,
        matter_id: Optional[UUID] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> UUID:
        """
        Append an entry to the firm's audit chain.

        Args:
            firm_id: Firm scope (None for actions before a client joins a firm)
            actor_id: Principal performing the action
            action: Action tag
            target_id: Principal acted upon, if any
            matter_id: Matter acted upon, if any
            details: JSON-serializable context (prior/next status, fields, notes)

        Returns:
            The audit record id
        """
        action_tag = AuditAction(action).value
        payload = _jsonable(details or {})
        await self.repo.lock_chain(firm_id)
        previous_hash = await self.repo.last_hash(firm_id) or GENESIS_HASH
        timestamp = utcnow()

        entry = AuditLog(
            id=uuid4(),
            previous_hash=previous_hash,
            firm_id=firm_id,
            actor_id=actor_id,
            action=action_tag,
            target_id=target_id,
            matter_id=matter_id,
            details=payload,
            timestamp=timestamp,
            entry_hash=AuditLog.compute_entry_hash(
                previous_hash=previous_hash,
                firm_id=firm_id,
                actor_id=actor_id,
                action=action_tag,
                target_id=target_id,
                matter_id=matter_id,
                details=payload,
                timestamp=timestamp,
                audit_key=self._audit_key,
            ),
        )
        self.session.add(entry)
        await self.session.flush()

        logger.info(
            f"Audit {action_tag}: actor={actor_id} firm={firm_id} "
            f"matter={matter_id} target={target_id}"
        )
        return entry.id

    async def verify(self, firm_id: Optional[UUID]) -> tuple[bool, Optional[int]]:
        """Verify a firm's whole audit chain."""
        entries = await self.repo.chain(firm_id)
        valid, first_bad = AuditLog.verify_chain(entries, self._audit_key)
        if not valid:
            logger.error(f"Audit chain broken for firm {firm_id} at sequence {first_bad}")
        return valid, first_bad
