"""In-app notification inbox for the signed-in principal."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from casebridge.db.orm import Notification, utcnow
from casebridge.db.repositories import NotificationRepository
from casebridge.errors import NotFound
from casebridge.security.access import Permission, require
from casebridge.security.identity import AuthContext

logger = logging.getLogger(__name__)


class NotificationInbox:
    def __init__(self, session: AsyncSession):
        self.notifications = NotificationRepository(session)

    async def list_for(
        self, ctx: AuthContext, unread_only: bool = False, limit: int = 50
    ) -> tuple[list[Notification], int]:
        """Most recent notifications first, plus the unread count."""
        require(ctx, Permission.NOTIFICATION_READ)
        items = await self.notifications.list_for_recipient(ctx.principal_id, unread_only, limit)
        unread = await self.notifications.count_unread(ctx.principal_id)
        return items, unread

    async def mark_read(self, ctx: AuthContext, notification_id: UUID) -> Notification:
        """
        Mark one notification read. Marking an already-read notification
        keeps its original read_at.
        """
        require(ctx, Permission.NOTIFICATION_READ)
        notification = await self.notifications.get(notification_id)
        if notification is None or notification.recipient_id != ctx.principal_id:
            raise NotFound("Notification not found")
        if notification.read_at is None:
            notification.read_at = utcnow()
        return notification

    async def mark_all_read(self, ctx: AuthContext) -> int:
        require(ctx, Permission.NOTIFICATION_READ)
        count = await self.notifications.mark_all_read(ctx.principal_id, utcnow())
        logger.debug(f"Marked {count} notifications read for {ctx.principal_id}")
        return count
