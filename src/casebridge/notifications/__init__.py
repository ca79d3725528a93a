"""
Notification outbox and in-app inbox.
"""

from casebridge.notifications.dispatcher import EventType, NotificationDispatcher

__all__ = ["EventType", "NotificationDispatcher"]
