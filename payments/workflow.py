"""
Attestation-based payment workflow for bookings.

No money moves through the engine: the companion requests a payment with
instructions (a QR image URL and a method label), the client attests that
they paid and the companion confirms receipt. Either side may dispute.

The booking's ``payment_status`` is a projection of the latest payment
request. It is never written directly; every transition calls
reconcile_payment_status() after its own write, and the lifecycle sweep
calls it again to repair any drift left by a failed mirror write.
"""

from typing import Any, Optional

from db import get_db_client
from models.actor import Actor
from models.booking import ENGAGED_STATUSES, Booking, PaymentStatus
from models.notification import NotificationType, PaymentPayload
from models.payment import (
    PaymentRequest,
    PaymentRequestCreate,
    PaymentRequestStatus,
    can_transition_payment,
)
from notifications import NotificationDispatcher
from utils.datetime_utils import Clock, utc_now
from utils.exceptions import (
    BookingEngineError,
    BookingNotFoundError,
    ConflictError,
    InvalidTransition,
    PaymentRequestNotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from utils.logging_config import setup_logging

logger = setup_logging(
    name=__name__,
    log_level="INFO",
    log_file="payments.log",
    log_dir="logs"
)


def derive_payment_status(latest: Optional[PaymentRequest]) -> PaymentStatus:
    """Payment status a booking should carry given its latest request."""
    if latest is None:
        return PaymentStatus.PENDING
    return latest.mirrored_status


class PaymentWorkflow:
    """Payment requests and their request / paid / confirmed / disputed cycle."""

    def __init__(
        self,
        db=None,
        notifier: Optional[NotificationDispatcher] = None,
        clock: Clock = utc_now,
    ):
        self.db = db or get_db_client()
        self.notifier = notifier or NotificationDispatcher(self.db, clock)
        self.clock = clock

    async def _load_booking(self, booking_id: str) -> Booking:
        booking = await self.db.get_booking_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    async def _load_request(self, request_id: str) -> PaymentRequest:
        request = await self.db.get_payment_request_by_id(request_id)
        if request is None:
            raise PaymentRequestNotFoundError(f"Payment request {request_id} not found")
        return request

    async def latest_request(self, booking_id: str) -> Optional[PaymentRequest]:
        return await self.db.get_latest_payment_request(booking_id)

    async def history(self, actor: Actor, booking_id: str) -> list[PaymentRequest]:
        """Every payment request of a booking, oldest first."""
        booking = await self._load_booking(booking_id)
        if not booking.is_party(actor.id) and not actor.is_admin:
            raise PermissionDeniedError(
                f"{actor.id} is not a party of booking {booking_id}"
            )
        return await self.db.get_payment_requests_for_booking(booking_id)

    # ========== Mirror ==========

    async def reconcile_payment_status(self, booking_id: str) -> Booking:
        """
        Re-derive ``booking.payment_status`` from the latest payment request.

        Idempotent: a booking whose mirror already matches is returned as is.

        Raises:
            ConflictError: If the mirror changed between the read and the write
        """
        booking = await self._load_booking(booking_id)
        derived = derive_payment_status(await self.latest_request(booking_id))

        if booking.payment_status == derived:
            return booking

        updated = await self.db.update_booking_payment_status(
            booking.id, booking.payment_status, derived
        )
        if updated is None:
            raise ConflictError(
                f"Payment status of booking {booking.id} changed concurrently"
            )

        logger.info(
            f"Booking {booking.id} payment_status: "
            f"{booking.payment_status.value} -> {derived.value}"
        )
        return updated

    async def _mirror(self, booking_id: str) -> None:
        try:
            await self.reconcile_payment_status(booking_id)
        except BookingEngineError as e:
            logger.warning(
                f"Payment status mirror for booking {booking_id} left stale: {e}",
                exc_info=True,
            )

    async def _notify(
        self,
        notification_type: NotificationType,
        actor: Actor,
        request: PaymentRequest,
    ) -> None:
        recipient = (
            request.companion_id if actor.id == request.user_id else request.user_id
        )
        await self.notifier.dispatch(
            notification_type,
            actor.id,
            recipient,
            PaymentPayload(
                booking_id=request.booking_id,
                payment_request_id=request.id,
                amount=request.amount,
            ),
        )

    # ========== Transitions ==========

    async def request_payment(
        self,
        actor: Actor,
        booking_id: str,
        amount: Optional[float] = None,
        payment_qr_url: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> PaymentRequest:
        """
        Ask the client to pay for an accepted booking.

        Args:
            actor: Companion of the booking
            booking_id: Booking to request payment for
            amount: Defaults to the booking total; may be a smaller part of it
            payment_qr_url: Payment instructions image
            payment_method: Method label (e.g. esewa, khalti, bank)

        Raises:
            PermissionDeniedError: If the actor is not the companion
            InvalidTransition: If the booking is not accepted/active or is
                already settled
            ValidationError: If the amount is not in ``(0, total_amount]``
        """
        booking = await self._load_booking(booking_id)
        if actor.id != booking.companion_id:
            raise PermissionDeniedError(
                f"Only the companion of booking {booking_id} can request payment"
            )
        if booking.status not in ENGAGED_STATUSES:
            raise InvalidTransition(
                f"Cannot request payment for booking {booking_id} in status "
                f"{booking.status.value}",
                current_status=booking.status.value,
            )

        amount = booking.total_amount if amount is None else amount
        if not 0 < amount <= booking.total_amount:
            raise ValidationError(
                f"Amount must be greater than 0 and at most {booking.total_amount}"
            )

        latest = await self.latest_request(booking_id)
        if latest is not None and latest.status is PaymentRequestStatus.CONFIRMED:
            raise InvalidTransition(
                f"Payment for booking {booking_id} is already confirmed",
                current_status=latest.status.value,
            )

        request = await self.db.create_payment_request(
            PaymentRequestCreate(
                booking_id=booking.id,
                companion_id=booking.companion_id,
                user_id=booking.user_id,
                amount=amount,
                requested_at=self.clock(),
                payment_qr_url=payment_qr_url,
                payment_method=payment_method,
            )
        )
        logger.info(
            f"Payment request {request.id} for booking {booking.id}: {amount}"
        )

        await self._mirror(booking.id)
        await self._notify(NotificationType.PAYMENT_REQUESTED, actor, request)
        return request

    async def _advance(
        self,
        request: PaymentRequest,
        target: PaymentRequestStatus,
        extra: Optional[dict[str, Any]] = None,
    ) -> PaymentRequest:
        """Conditionally move the latest request of a booking to ``target``."""
        latest = await self.latest_request(request.booking_id)
        if latest is None or latest.id != request.id:
            raise InvalidTransition(
                f"Payment request {request.id} was superseded by a newer request",
                current_status=request.status.value,
            )
        if not can_transition_payment(request.status, target):
            raise InvalidTransition(
                f"Payment request {request.id} cannot go from "
                f"{request.status.value} to {target.value}",
                current_status=request.status.value,
            )

        updated = await self.db.update_payment_request_status(
            request.id, request.status, target, extra
        )
        if updated is None:
            raise ConflictError(
                f"Payment request {request.id} changed concurrently; "
                f"expected {request.status.value}"
            )

        logger.info(
            f"Payment request {request.id}: {request.status.value} -> {target.value}"
        )
        await self._mirror(request.booking_id)
        return updated

    async def mark_paid(self, actor: Actor, request_id: str) -> PaymentRequest:
        """Client attests that the requested amount was paid."""
        request = await self._load_request(request_id)
        if actor.id != request.user_id:
            raise PermissionDeniedError("Only the client can mark a payment as paid")

        request = await self._advance(
            request,
            PaymentRequestStatus.PAID,
            {"paid_at": self.clock().isoformat()},
        )
        await self._notify(NotificationType.PAYMENT_MARKED_PAID, actor, request)
        return request

    async def confirm_paid(self, actor: Actor, request_id: str) -> PaymentRequest:
        """Companion confirms the attested payment was received."""
        request = await self._load_request(request_id)
        if actor.id != request.companion_id:
            raise PermissionDeniedError("Only the companion can confirm a payment")

        request = await self._advance(
            request,
            PaymentRequestStatus.CONFIRMED,
            {"confirmed_at": self.clock().isoformat()},
        )
        await self._notify(NotificationType.PAYMENT_CONFIRMED, actor, request)
        return request

    async def dispute(self, actor: Actor, request_id: str) -> PaymentRequest:
        """
        Dispute a payment request.

        The client may dispute an outstanding request; once it is marked
        paid either party may. The booking itself is left untouched.
        """
        request = await self._load_request(request_id)
        if actor.id not in (request.user_id, request.companion_id):
            raise PermissionDeniedError(
                f"{actor.id} is not a party of payment request {request_id}"
            )
        if (
            request.status is PaymentRequestStatus.REQUESTED
            and actor.id != request.user_id
        ):
            raise PermissionDeniedError(
                "Only the client can dispute a payment that is not marked paid"
            )

        request = await self._advance(request, PaymentRequestStatus.DISPUTED)
        await self._notify(NotificationType.PAYMENT_DISPUTED, actor, request)
        return request
