"""Recipient-side notification reads and read-flag updates."""

from db import get_db_client
from models.actor import Actor
from models.notification import Notification
from utils.exceptions import NotificationNotFoundError


class NotificationInbox:
    """Notifications owned by the acting identity."""

    def __init__(self, db=None):
        self.db = db or get_db_client()

    async def list_notifications(
        self, actor: Actor, unread_only: bool = False
    ) -> list[Notification]:
        return await self.db.get_notifications(actor.id, unread_only=unread_only)

    async def unread_count(self, actor: Actor) -> int:
        unread = await self.db.get_notifications(actor.id, unread_only=True)
        return len(unread)

    async def mark_read(self, actor: Actor, notification_id: str) -> Notification:
        """
        Flip ``is_read`` on one of the actor's notifications.

        Raises:
            NotificationNotFoundError: If the actor has no such notification
        """
        notification = await self.db.mark_notification_read(notification_id, actor.id)
        if notification is None:
            raise NotificationNotFoundError(
                f"Notification {notification_id} not found for {actor.id}"
            )
        return notification

    async def mark_all_read(self, actor: Actor) -> int:
        return await self.db.mark_all_notifications_read(actor.id)
