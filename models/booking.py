"""Booking models and the booking lifecycle graph."""

from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from utils.datetime_utils import combine_local
from utils.validation import parse_start_time


class BookingStatus(str, Enum):
    """Booking lifecycle status."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment status mirrored onto the booking from its latest payment request."""

    PENDING = "pending"
    REQUESTED = "requested"
    PAID = "paid"
    CONFIRMED = "confirmed"
    DISPUTED = "disputed"


TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.REJECTED, BookingStatus.CANCELLED}
)

# Statuses that put both parties in the busy-set
ENGAGED_STATUSES = frozenset({BookingStatus.ACCEPTED, BookingStatus.ACTIVE})

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.ACCEPTED, BookingStatus.REJECTED, BookingStatus.CANCELLED}
    ),
    BookingStatus.ACCEPTED: frozenset(
        {BookingStatus.ACTIVE, BookingStatus.COMPLETED, BookingStatus.CANCELLED}
    ),
    BookingStatus.ACTIVE: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED}
    ),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.REJECTED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """Check whether ``current -> target`` is an edge of the lifecycle graph."""
    return target in BOOKING_TRANSITIONS[BookingStatus(current)]


class Booking(BaseModel):
    """Booking model. ``user_id`` is the client identity."""

    id: Optional[str] = None
    user_id: str = Field(..., description="Client identity")
    companion_id: str = Field(..., description="Companion identity")
    booking_date: date
    start_time: time
    duration_hours: int = Field(..., ge=1)
    activity: str
    location: Optional[str] = None
    hourly_rate: float = Field(..., ge=0)
    total_amount: float = Field(..., ge=0)
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    user_notes: Optional[str] = None
    companion_notes: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_time(cls, v):
        """Accept the 12-hour form used by the booking screen."""
        if isinstance(v, str):
            return parse_start_time(v)
        return v

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_engaged(self) -> bool:
        return self.status in ENGAGED_STATUSES

    def parties(self) -> tuple[str, str]:
        return self.user_id, self.companion_id

    def is_party(self, identity: str) -> bool:
        return identity in self.parties()

    def counterparty(self, identity: str) -> str:
        """Return the other party of the booking."""
        if identity == self.user_id:
            return self.companion_id
        if identity == self.companion_id:
            return self.user_id
        raise ValueError(f"{identity} is not a party of booking {self.id}")

    def scheduled_start(self, tz: tzinfo) -> datetime:
        """Scheduled start as a UTC instant, reading the schedule in ``tz``."""
        return combine_local(self.booking_date, self.start_time, tz)

    def scheduled_end(self, tz: tzinfo) -> datetime:
        return self.scheduled_start(tz) + timedelta(hours=self.duration_hours)

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "uuid-here",
                "companion_id": "uuid-here",
                "booking_date": "2026-01-15",
                "start_time": "10:00:00",
                "duration_hours": 2,
                "activity": "Coffee",
                "hourly_rate": 800,
                "total_amount": 1600,
                "status": "pending",
                "payment_status": "pending",
            }
        }


class BookingCreate(BaseModel):
    """Booking creation model. ``total_amount`` is frozen here."""

    user_id: str
    companion_id: str
    booking_date: date
    start_time: time
    duration_hours: int
    activity: str
    hourly_rate: float
    total_amount: float
    location: Optional[str] = None
    user_notes: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING


class BookingSchedule(BaseModel):
    """Requested schedule for a new booking."""

    booking_date: date
    start_time: time
    duration_hours: int

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_time(cls, v):
        if isinstance(v, str):
            return parse_start_time(v)
        return v
