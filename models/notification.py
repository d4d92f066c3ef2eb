"""Notification models: a closed set of types, each with its own payload shape."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """Notification types produced by the engine."""

    BOOKING_REQUEST = "booking_request"
    BOOKING_ACCEPTED = "booking_accepted"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_COMPLETED = "booking_completed"
    PAYMENT_REQUESTED = "payment_requested"
    PAYMENT_MARKED_PAID = "payment_marked_paid"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_DISPUTED = "payment_disputed"
    NEW_MESSAGE = "new_message"


class BookingPayload(BaseModel):
    booking_id: str


class PaymentPayload(BaseModel):
    booking_id: str
    payment_request_id: str
    amount: float


class MessagePayload(BaseModel):
    booking_id: str
    chat_id: str
    message_id: Optional[str] = None


NotificationPayload = Union[BookingPayload, PaymentPayload, MessagePayload]

PAYLOAD_TYPES: dict[NotificationType, type[BaseModel]] = {
    NotificationType.BOOKING_REQUEST: BookingPayload,
    NotificationType.BOOKING_ACCEPTED: BookingPayload,
    NotificationType.BOOKING_REJECTED: BookingPayload,
    NotificationType.BOOKING_CANCELLED: BookingPayload,
    NotificationType.BOOKING_COMPLETED: BookingPayload,
    NotificationType.PAYMENT_REQUESTED: PaymentPayload,
    NotificationType.PAYMENT_MARKED_PAID: PaymentPayload,
    NotificationType.PAYMENT_CONFIRMED: PaymentPayload,
    NotificationType.PAYMENT_DISPUTED: PaymentPayload,
    NotificationType.NEW_MESSAGE: MessagePayload,
}


class Notification(BaseModel):
    """Notification addressed to ``user_id``."""

    id: Optional[str] = None
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    is_read: Optional[bool] = False
    created_at: Optional[datetime] = None

    def payload(self) -> NotificationPayload:
        """Parse ``data`` into the payload model of this notification's type."""
        return PAYLOAD_TYPES[self.type].model_validate(self.data)


class NotificationCreate(BaseModel):
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any]
    created_at: datetime
    is_read: bool = False
