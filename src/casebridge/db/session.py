"""
Engine, session factory and unit of work.

A UnitOfWork spans one domain operation: state changes and their audit
records share its transaction, and queued notifications are delivered
only after that transaction commits.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from casebridge.config import settings
from casebridge.notifications.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create the async engine for the configured database."""
    url = database_url or settings.database_url
    kwargs = {"echo": settings.debug}
    if not url.startswith("sqlite"):
        kwargs["pool_pre_ping"] = True
    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class UnitOfWork:
    """
    Async context manager around one transaction.

    Usage:
        async with UnitOfWork(session_factory) as uow:
            engine = LifecycleEngine(uow)
            await engine.transition(ctx, matter_id, MatterStatus.IN_PROGRESS)

    On normal exit the session commits and then notifications are delivered.
    On an exception the session rolls back, queued notifications are
    discarded and the exception propagates.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self.session: Optional[AsyncSession] = None
        self.notifications = NotificationDispatcher(session_factory)

    async def __aenter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is not None:
                await self.session.rollback()
                self.notifications.discard()
                return False

            try:
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                self.notifications.discard()
                raise
        finally:
            await self.session.close()

        await self.notifications.deliver()
        return False
