"""
Administrative resolution of disputes and complaints.

These operations are the third party of the booking domain: they may move a
booking along an edge no party could take at that moment (wrong role, too
early), but only along edges of the lifecycle graph, and they still write
conditionally on the observed state. Every successful action leaves an
admin_logs row.
"""

from enum import Enum
from typing import Any, Optional

from config import settings
from db import get_db_client
from models.actor import Actor
from models.booking import Booking, BookingStatus, can_transition
from models.payment import PaymentRequestStatus
from models.safety import AdminLog, Complaint, ComplaintStatus
from payments import PaymentWorkflow
from utils.constants import MAX_NOTES_LENGTH
from utils.datetime_utils import Clock, utc_now
from utils.exceptions import (
    BookingEngineError,
    BookingNotFoundError,
    ConflictError,
    InvalidTransition,
    NotFoundError,
    PaymentRequestNotFoundError,
    PermissionDeniedError,
)
from utils.logging_config import setup_logging
from utils.validation import clean_text, optional_text

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="admin.log", log_dir="logs"
)


class DisputeOutcome(str, Enum):
    CONFIRMED = "confirmed"  # Payment stands; request forced to confirmed
    CANCELLED = "cancelled"  # Booking is cancelled


def is_admin_actor(actor: Actor) -> bool:
    return actor.is_admin or settings.is_admin(actor.id)


class AdminService:
    """Admin-only overrides, audited to admin_logs."""

    def __init__(
        self,
        db=None,
        payments: Optional[PaymentWorkflow] = None,
        clock: Clock = utc_now,
    ):
        self.db = db or get_db_client()
        self.payments = payments or PaymentWorkflow(self.db, clock=clock)
        self.clock = clock

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if not is_admin_actor(actor):
            raise PermissionDeniedError(f"{actor.id} is not an administrator")

    async def _audit(
        self,
        actor: Actor,
        action: str,
        target_type: str,
        target_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        try:
            await self.db.create_admin_log(
                AdminLog(
                    admin_id=actor.id,
                    action=action,
                    target_type=target_type,
                    target_id=target_id,
                    details=details,
                    created_at=self.clock(),
                )
            )
        except BookingEngineError as e:
            logger.error(
                f"Audit log for {action} on {target_type} {target_id} failed: {e}",
                exc_info=True,
            )

    async def _load_booking(self, booking_id: str) -> Booking:
        booking = await self.db.get_booking_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    async def _cancel(self, actor: Actor, booking: Booking, reason: str) -> Booking:
        if booking.is_terminal:
            raise InvalidTransition(
                f"Booking {booking.id} is already {booking.status.value}",
                current_status=booking.status.value,
            )
        updated = await self.db.update_booking_status(
            booking.id,
            booking.status,
            BookingStatus.CANCELLED,
            {"cancelled_by": actor.id, "cancellation_reason": reason},
        )
        if updated is None:
            raise ConflictError(f"Booking {booking.id} changed concurrently")
        return updated

    async def resolve_dispute(
        self,
        actor: Actor,
        request_id: str,
        outcome: DisputeOutcome,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Settle a disputed payment request.

        ``confirmed`` forces the request to confirmed and re-derives the
        booking's payment status; ``cancelled`` cancels the booking and leaves
        the request disputed.

        Returns:
            The booking after resolution
        """
        self._require_admin(actor)
        outcome = DisputeOutcome(outcome)

        request = await self.db.get_payment_request_by_id(request_id)
        if request is None:
            raise PaymentRequestNotFoundError(f"Payment request {request_id} not found")
        if request.status is not PaymentRequestStatus.DISPUTED:
            raise InvalidTransition(
                f"Payment request {request_id} is not disputed",
                current_status=request.status.value,
            )

        if outcome is DisputeOutcome.CONFIRMED:
            updated = await self.db.update_payment_request_status(
                request.id,
                PaymentRequestStatus.DISPUTED,
                PaymentRequestStatus.CONFIRMED,
                {"confirmed_at": self.clock().isoformat()},
            )
            if updated is None:
                raise ConflictError(f"Payment request {request_id} changed concurrently")
            try:
                booking = await self.payments.reconcile_payment_status(request.booking_id)
            except BookingEngineError as e:
                logger.warning(
                    f"Payment status mirror for booking {request.booking_id} "
                    f"left stale: {e}",
                    exc_info=True,
                )
                booking = await self._load_booking(request.booking_id)
        else:
            booking = await self._cancel(
                actor,
                await self._load_booking(request.booking_id),
                clean_text(notes) or "Payment dispute resolved by admin",
            )

        logger.info(
            f"Admin {actor.id} resolved dispute {request_id} as {outcome.value}"
        )
        await self._audit(
            actor,
            "resolve_dispute",
            "payment_request",
            request_id,
            {"outcome": outcome.value, "booking_id": request.booking_id, "notes": notes},
        )
        return booking

    async def force_booking_status(
        self,
        actor: Actor,
        booking_id: str,
        status: BookingStatus,
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking along a lifecycle edge, skipping party and timing checks.

        Raises:
            InvalidTransition: If ``status`` is not reachable from the current status
            ConflictError: If the booking changed since it was read
        """
        self._require_admin(actor)
        status = BookingStatus(status)
        booking = await self._load_booking(booking_id)

        if not can_transition(booking.status, status):
            raise InvalidTransition(
                f"Cannot force booking {booking_id} from {booking.status.value} "
                f"to {status.value}",
                current_status=booking.status.value,
            )

        extra = None
        if status is BookingStatus.CANCELLED:
            extra = {
                "cancelled_by": actor.id,
                "cancellation_reason": optional_text(reason, "Reason", MAX_NOTES_LENGTH),
            }
        updated = await self.db.update_booking_status(
            booking.id, booking.status, status, extra
        )
        if updated is None:
            raise ConflictError(f"Booking {booking_id} changed concurrently")

        logger.info(
            f"Admin {actor.id} forced booking {booking_id}: "
            f"{booking.status.value} -> {status.value}"
        )
        await self._audit(
            actor,
            "force_booking_status",
            "booking",
            booking_id,
            {"from": booking.status.value, "to": status.value, "reason": reason},
        )
        return updated

    async def update_complaint_status(
        self,
        actor: Actor,
        complaint_id: str,
        status: ComplaintStatus,
        notes: Optional[str] = None,
    ) -> Complaint:
        self._require_admin(actor)
        status = ComplaintStatus(status)

        update_data: dict[str, Any] = {"status": status.value, "assigned_to": actor.id}
        if notes:
            update_data["resolution_notes"] = clean_text(notes)
        if status in (ComplaintStatus.RESOLVED, ComplaintStatus.DISMISSED):
            update_data["resolved_at"] = self.clock().isoformat()

        complaint = await self.db.update_complaint(complaint_id, update_data)
        if complaint is None:
            raise NotFoundError(f"Complaint {complaint_id} not found")

        await self._audit(
            actor,
            "update_complaint_status",
            "complaint",
            complaint_id,
            {"status": status.value},
        )
        return complaint
