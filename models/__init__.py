"""Pydantic models for data validation and serialization."""

from .actor import Actor
from .booking import (
    Booking,
    BookingCreate,
    BookingSchedule,
    BookingStatus,
    PaymentStatus,
)
from .chat import ChatSession, ChatSessionCreate, ChatStatus, Message, MessageCreate
from .notification import Notification, NotificationCreate, NotificationType
from .payment import PaymentRequest, PaymentRequestCreate, PaymentRequestStatus
from .profile import CompanionProfile, DiscoveryFilters, Profile
from .safety import AdminLog, Block, Complaint, ComplaintStatus, ComplaintType

__all__ = [
    "Actor",
    "AdminLog",
    "Block",
    "Booking",
    "BookingCreate",
    "BookingSchedule",
    "BookingStatus",
    "ChatSession",
    "ChatSessionCreate",
    "ChatStatus",
    "CompanionProfile",
    "Complaint",
    "ComplaintStatus",
    "ComplaintType",
    "DiscoveryFilters",
    "Message",
    "MessageCreate",
    "Notification",
    "NotificationCreate",
    "NotificationType",
    "PaymentRequest",
    "PaymentRequestCreate",
    "PaymentRequestStatus",
    "PaymentStatus",
    "Profile",
]
