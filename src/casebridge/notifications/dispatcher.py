"""
Notification dispatch.

Domain operations call emit() inside their unit of work. Notifications are
held in an outbox and only written after the triggering transaction has
committed; a rollback discards them. Delivery is best effort: a failure
is logged and never reaches the caller of the domain operation.
"""

import logging
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from casebridge.db.orm import Notification, NotificationChannel, utcnow

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Domain events that produce notifications."""
    MATTER_FILED = "matter_filed"
    MATTER_STATUS_CHANGED = "matter_status_changed"
    CASE_ASSIGNED = "case_assigned"
    CASE_REASSIGNED = "case_reassigned"
    DOCUMENT_UPLOADED = "document_uploaded"
    MATTER_UPDATE_POSTED = "matter_update_posted"
    TASK_ASSIGNED = "task_assigned"
    TASK_UPDATED = "task_updated"
    INVITATION_ACCEPTED = "invitation_accepted"
    ACCOUNT_STATUS_CHANGED = "account_status_changed"


class NotificationDispatcher:
    """Transactional outbox for notifications."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._outbox: list[Notification] = []

    @property
    def pending(self) -> list[Notification]:
        return list(self._outbox)

    def emit(
        self,
        recipient_id: UUID,
        event_type: EventType,
        payload: dict[str, Any],
        *,
        firm_id: Optional[UUID] = None,
        matter_id: Optional[UUID] = None,
        channel: NotificationChannel = NotificationChannel.IN_APP,
    ) -> Optional[UUID]:
        """
        Queue a notification for delivery after commit.

        Never raises. A malformed payload is logged and dropped.

        Args:
            recipient_id: Principal the notification is addressed to
            event_type: Domain event that triggered it
            payload: Must hold "title" and "message", may hold "link"

        Returns:
            The notification id, or None if it was dropped
        """
        try:
            notification = Notification(
                id=uuid4(),
                recipient_id=recipient_id,
                firm_id=firm_id,
                matter_id=matter_id,
                event_type=EventType(event_type).value,
                channel=channel,
                title=str(payload["title"]),
                message=str(payload["message"]),
                link=payload.get("link"),
                created_at=utcnow(),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Dropped notification {event_type} for {recipient_id}: {e!r}")
            return None

        self._outbox.append(notification)
        return notification.id

    def discard(self) -> None:
        """Drop queued notifications (triggering transaction rolled back)."""
        if self._outbox:
            logger.debug(f"Discarding {len(self._outbox)} queued notification(s)")
        self._outbox.clear()

    async def deliver(self) -> int:
        """
        Persist queued notifications in their own transaction.

        Returns:
            Number of notifications written (0 on failure)
        """
        if not self._outbox:
            return 0

        batch, self._outbox = self._outbox, []
        try:
            async with self._session_factory() as session:
                session.add_all(batch)
                await session.commit()
        except SQLAlchemyError:
            logger.exception(f"Notification delivery failed for {len(batch)} notification(s)")
            return 0

        logger.debug(f"Delivered {len(batch)} notification(s)")
        return len(batch)
