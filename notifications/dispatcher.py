"""
Notification dispatcher.

Maps a state transition to exactly one notification row addressed to the
counter-party. Delivery is best-effort: a failed insert is logged and never
undoes or blocks the transition that triggered it.
"""

from typing import Optional

from pydantic import BaseModel

from db import get_db_client
from models.notification import (
    PAYLOAD_TYPES,
    Notification,
    NotificationCreate,
    NotificationType,
)
from utils.datetime_utils import Clock, utc_now
from utils.exceptions import BookingEngineError
from utils.logging_config import setup_logging

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="notifications.log", log_dir="logs"
)

# type -> (title, message template)
NOTIFICATION_TEMPLATES: dict[NotificationType, tuple[str, str]] = {
    NotificationType.BOOKING_REQUEST: (
        "New Booking Request",
        "You have a new booking request for {activity}.",
    ),
    NotificationType.BOOKING_ACCEPTED: (
        "Booking Confirmed",
        "Your booking for {activity} was accepted.",
    ),
    NotificationType.BOOKING_REJECTED: (
        "Booking Declined",
        "Your booking request for {activity} was declined.",
    ),
    NotificationType.BOOKING_CANCELLED: (
        "Booking Cancelled",
        "The booking for {activity} was cancelled.",
    ),
    NotificationType.BOOKING_COMPLETED: (
        "Booking Completed",
        "The booking for {activity} has been marked as completed.",
    ),
    NotificationType.PAYMENT_REQUESTED: (
        "Payment Requested",
        "A payment of Rs. {amount} has been requested for your booking.",
    ),
    NotificationType.PAYMENT_MARKED_PAID: (
        "Payment Marked as Paid",
        "User has marked their payment of Rs. {amount} as paid. "
        "Please verify and confirm.",
    ),
    NotificationType.PAYMENT_CONFIRMED: (
        "Payment Confirmed",
        "Your payment of Rs. {amount} has been confirmed.",
    ),
    NotificationType.PAYMENT_DISPUTED: (
        "Payment Disputed",
        "The payment of Rs. {amount} has been disputed. An admin will review it.",
    ),
    NotificationType.NEW_MESSAGE: (
        "New Message",
        "You have a new message.",
    ),
}


def format_amount(amount: float) -> str:
    """Render an amount without a trailing ``.0`` for whole numbers."""
    if float(amount).is_integer():
        return f"{amount:,.0f}"
    return f"{amount:,.2f}"


def render(notification_type: NotificationType, context: dict) -> tuple[str, str]:
    """Return the title and message text for a notification."""
    title, template = NOTIFICATION_TEMPLATES[notification_type]
    values = dict(context)
    if "amount" in values:
        values["amount"] = format_amount(values["amount"])
    return title, template.format(**values)


class NotificationDispatcher:
    """Stateless fan-out of transitions to the counter-party's inbox."""

    def __init__(self, db=None, clock: Clock = utc_now):
        self.db = db or get_db_client()
        self.clock = clock

    async def dispatch(
        self,
        notification_type: NotificationType,
        actor_id: Optional[str],
        recipient_id: str,
        payload: BaseModel,
        **context,
    ) -> Optional[Notification]:
        """
        Create the notification for one transition.

        Args:
            notification_type: Type from the closed enumeration
            actor_id: Identity that caused the transition
            recipient_id: Counter-party to notify
            payload: Payload model matching ``notification_type``
            **context: Extra template values (e.g. activity)

        Returns:
            The stored notification, or None if it was skipped or failed

        Raises:
            TypeError: If the payload does not match the notification type
        """
        expected = PAYLOAD_TYPES[notification_type]
        if not isinstance(payload, expected):
            raise TypeError(
                f"{notification_type.value} expects {expected.__name__}, "
                f"got {type(payload).__name__}"
            )

        if recipient_id == actor_id:
            logger.warning(
                f"Skipping {notification_type.value}: recipient {recipient_id} is the actor"
            )
            return None

        data = payload.model_dump(mode="json", exclude_none=True)
        title, message = render(notification_type, {**data, **context})

        try:
            notification = await self.db.create_notification(
                NotificationCreate(
                    user_id=recipient_id,
                    type=notification_type,
                    title=title,
                    message=message,
                    data=data,
                    created_at=self.clock(),
                )
            )
        except BookingEngineError as e:
            logger.error(
                f"Failed to deliver {notification_type.value} to {recipient_id}: {e}",
                exc_info=True,
            )
            return None

        logger.info(f"Dispatched {notification_type.value} to {recipient_id}")
        return notification
