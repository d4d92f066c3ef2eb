"""Payment request models for attestation-based payments."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .booking import PaymentStatus


class PaymentRequestStatus(str, Enum):
    """Status of a single payment request."""

    REQUESTED = "requested"
    PAID = "paid"
    CONFIRMED = "confirmed"
    DISPUTED = "disputed"


PAYMENT_TRANSITIONS: dict[PaymentRequestStatus, frozenset[PaymentRequestStatus]] = {
    PaymentRequestStatus.REQUESTED: frozenset(
        {PaymentRequestStatus.PAID, PaymentRequestStatus.DISPUTED}
    ),
    PaymentRequestStatus.PAID: frozenset(
        {PaymentRequestStatus.CONFIRMED, PaymentRequestStatus.DISPUTED}
    ),
    PaymentRequestStatus.CONFIRMED: frozenset(),
    PaymentRequestStatus.DISPUTED: frozenset(),
}


def can_transition_payment(
    current: PaymentRequestStatus, target: PaymentRequestStatus
) -> bool:
    return target in PAYMENT_TRANSITIONS[PaymentRequestStatus(current)]


class PaymentRequest(BaseModel):
    """Payment request model. Rows are never deleted."""

    id: Optional[str] = None
    booking_id: str
    companion_id: str
    user_id: str
    amount: float = Field(..., gt=0)
    payment_qr_url: Optional[str] = Field(None, description="Payment instructions image URL")
    payment_method: Optional[str] = None
    status: PaymentRequestStatus = PaymentRequestStatus.REQUESTED
    requested_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None

    @property
    def mirrored_status(self) -> PaymentStatus:
        """The booking-level payment status this request projects to."""
        return PaymentStatus(self.status.value)

    class Config:
        json_schema_extra = {
            "example": {
                "booking_id": "uuid-here",
                "companion_id": "uuid-here",
                "user_id": "uuid-here",
                "amount": 1600,
                "payment_qr_url": "https://cdn.example.com/payment-qr/qr.png",
                "payment_method": "esewa",
                "status": "requested",
            }
        }


class PaymentRequestCreate(BaseModel):
    """Payment request creation model."""

    booking_id: str
    companion_id: str
    user_id: str
    amount: float
    requested_at: datetime
    payment_qr_url: Optional[str] = None
    payment_method: Optional[str] = None
    status: PaymentRequestStatus = PaymentRequestStatus.REQUESTED
