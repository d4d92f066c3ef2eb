"""Notification dispatch and recipient inbox."""

from .dispatcher import NotificationDispatcher, render
from .inbox import NotificationInbox

__all__ = ["NotificationDispatcher", "NotificationInbox", "render"]
