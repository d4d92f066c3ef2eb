"""
Booking lifecycle service.

Every status change is a conditional write on the status the caller
observed. A write that matches no row lost a race to another party and
surfaces as ConflictError; an edge that is not in the lifecycle graph is
refused before touching the store with InvalidTransition.
"""

from datetime import datetime, timedelta, tzinfo
from typing import Any, Optional

from availability import AvailabilityResolver
from chat import ChatService
from config import settings
from db import get_db_client
from models.actor import Actor
from models.booking import (
    Booking,
    BookingCreate,
    BookingSchedule,
    BookingStatus,
    can_transition,
)
from models.notification import BookingPayload, NotificationType
from notifications import NotificationDispatcher
from utils.constants import (
    MAX_ACTIVITY_LENGTH,
    MAX_NOTES_LENGTH,
    MIN_BOOKING_DURATION_HOURS,
)
from utils.datetime_utils import Clock, combine_local, get_zone, utc_now
from utils.exceptions import (
    BookingEngineError,
    BookingNotFoundError,
    CompanionBusyError,
    ConflictError,
    InvalidTransition,
    PermissionDeniedError,
    ValidationError,
)
from utils.logging_config import setup_logging
from utils.validation import clean_text, optional_text, required_text

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="bookings.log", log_dir="logs"
)


def split_upcoming_past(
    bookings: list[Booking], now: datetime, tz: tzinfo
) -> tuple[list[Booking], list[Booking]]:
    """
    Partition bookings for the "upcoming" and "past" tabs.

    A booking is upcoming while it is not terminal and its scheduled end has
    not passed yet; everything else is past.
    """
    upcoming, past = [], []
    for booking in bookings:
        if not booking.is_terminal and booking.scheduled_end(tz) >= now:
            upcoming.append(booking)
        else:
            past.append(booking)
    return upcoming, past


class BookingService:
    """Create bookings and move them through their lifecycle."""

    def __init__(
        self,
        db=None,
        notifier: Optional[NotificationDispatcher] = None,
        chat: Optional[ChatService] = None,
        availability: Optional[AvailabilityResolver] = None,
        clock: Clock = utc_now,
        tz: Optional[tzinfo] = None,
        grace_period: Optional[timedelta] = None,
    ):
        self.db = db or get_db_client()
        self.clock = clock
        self.tz = tz or get_zone(settings.timezone)
        self.grace_period = grace_period or timedelta(
            minutes=settings.grace_period_minutes
        )
        self.notifier = notifier or NotificationDispatcher(self.db, clock)
        self.chat = chat or ChatService(
            self.db, self.notifier, clock, self.tz, self.grace_period
        )
        self.availability = availability or AvailabilityResolver(self.db, clock)

    # ========== Queries ==========

    async def _load(self, booking_id: str) -> Booking:
        booking = await self.db.get_booking_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    async def get_booking(self, actor: Actor, booking_id: str) -> Booking:
        booking = await self._load(booking_id)
        if not booking.is_party(actor.id) and not actor.is_admin:
            raise PermissionDeniedError(
                f"{actor.id} is not a party of booking {booking_id}"
            )
        return booking

    async def list_bookings_for_client(self, actor: Actor) -> list[Booking]:
        return await self.db.get_bookings_by_client(actor.id)

    async def list_bookings_for_companion(self, actor: Actor) -> list[Booking]:
        return await self.db.get_bookings_by_companion(actor.id)

    def split_upcoming_past(
        self, bookings: list[Booking]
    ) -> tuple[list[Booking], list[Booking]]:
        return split_upcoming_past(bookings, self.clock(), self.tz)

    # ========== Creation ==========

    async def create(
        self,
        actor: Actor,
        companion_id: str,
        schedule: BookingSchedule,
        activity: str,
        hourly_rate: Optional[float] = None,
        location: Optional[str] = None,
        user_notes: Optional[str] = None,
    ) -> Booking:
        """
        Create a pending booking request from ``actor`` (the client).

        The rate is the companion's listed ``hourly_rate``. A caller that
        passes the rate it showed the client gets a ValidationError when the
        listing has changed since. ``total_amount`` is computed here and never
        recomputed, so later rate changes do not affect the booking.

        Raises:
            ValidationError: On malformed input, a schedule in the past, or a
                companion without a bookable listing at the quoted rate
            PermissionDeniedError: If either party has blocked the other
            CompanionBusyError: If the companion is engaged in another booking
        """
        if companion_id == actor.id:
            raise ValidationError("You cannot book yourself")

        duration = schedule.duration_hours
        if not MIN_BOOKING_DURATION_HOURS <= duration <= settings.max_booking_duration_hours:
            raise ValidationError(
                f"Duration must be between {MIN_BOOKING_DURATION_HOURS} and "
                f"{settings.max_booking_duration_hours} hours"
            )
        if hourly_rate is not None and hourly_rate < 0:
            raise ValidationError("Hourly rate cannot be negative")

        activity_text = required_text(activity, "Activity", MAX_ACTIVITY_LENGTH)
        notes = optional_text(user_notes, "Notes", MAX_NOTES_LENGTH)

        starts_at = combine_local(schedule.booking_date, schedule.start_time, self.tz)
        if starts_at < self.clock():
            raise ValidationError("Cannot book a time in the past")

        listing = await self.db.get_companion_listing(companion_id)
        if listing is None or listing.availability_status is False:
            raise ValidationError(f"Companion {companion_id} is not taking bookings")
        if hourly_rate is not None and hourly_rate != listing.hourly_rate:
            raise ValidationError(
                f"Hourly rate {hourly_rate} does not match the listed "
                f"{listing.hourly_rate}"
            )
        hourly_rate = listing.hourly_rate

        blocks = await self.db.get_blocks_involving(actor.id)
        if any(companion_id in (block.blocker_id, block.blocked_id) for block in blocks):
            raise PermissionDeniedError(
                f"Booking between {actor.id} and {companion_id} is blocked"
            )

        if await self.availability.is_busy(companion_id):
            raise CompanionBusyError(f"Companion {companion_id} is currently booked")

        booking = await self.db.create_booking(
            BookingCreate(
                user_id=actor.id,
                companion_id=companion_id,
                booking_date=schedule.booking_date,
                start_time=schedule.start_time,
                duration_hours=duration,
                activity=activity_text,
                location=optional_text(location, "Location"),
                hourly_rate=hourly_rate,
                total_amount=hourly_rate * duration,
                user_notes=notes,
            )
        )
        logger.info(
            f"Booking {booking.id} created: {actor.id} -> {companion_id}, "
            f"{duration}h at {hourly_rate}"
        )

        await self._notify(NotificationType.BOOKING_REQUEST, actor.id, booking)
        return booking

    # ========== Transitions ==========

    async def _transition(
        self,
        booking: Booking,
        target: BookingStatus,
        extra: Optional[dict[str, Any]] = None,
    ) -> Booking:
        """Move ``booking`` to ``target`` if it still holds the observed status."""
        if not can_transition(booking.status, target):
            raise InvalidTransition(
                f"Booking {booking.id} cannot go from {booking.status.value} "
                f"to {target.value}",
                current_status=booking.status.value,
            )

        updated = await self.db.update_booking_status(
            booking.id, booking.status, target, extra
        )
        if updated is None:
            raise ConflictError(
                f"Booking {booking.id} changed concurrently; "
                f"expected {booking.status.value}"
            )

        logger.info(
            f"Booking {booking.id}: {booking.status.value} -> {target.value}"
        )
        return updated

    async def _notify(
        self, notification_type: NotificationType, actor_id: str, booking: Booking
    ) -> None:
        await self.notifier.dispatch(
            notification_type,
            actor_id,
            booking.counterparty(actor_id),
            BookingPayload(booking_id=booking.id),
            activity=booking.activity,
        )

    @staticmethod
    def _require_companion(actor: Actor, booking: Booking) -> None:
        if actor.id != booking.companion_id:
            raise PermissionDeniedError(
                f"Only the companion of booking {booking.id} can do this"
            )

    @staticmethod
    def _require_party(actor: Actor, booking: Booking) -> None:
        if not booking.is_party(actor.id):
            raise PermissionDeniedError(
                f"{actor.id} is not a party of booking {booking.id}"
            )

    async def accept(self, actor: Actor, booking_id: str) -> Booking:
        """
        Accept a pending booking and open its chat session.

        A failure to create the chat session is logged and left for the
        sweep to repair; the accept itself stands.
        """
        booking = await self._load(booking_id)
        self._require_companion(actor, booking)
        booking = await self._transition(booking, BookingStatus.ACCEPTED)

        try:
            await self.chat.ensure_session(booking)
        except BookingEngineError as e:
            logger.error(
                f"Chat session for booking {booking.id} not created: {e}",
                exc_info=True,
            )

        await self._notify(NotificationType.BOOKING_ACCEPTED, actor.id, booking)
        return booking

    async def reject(self, actor: Actor, booking_id: str) -> Booking:
        booking = await self._load(booking_id)
        self._require_companion(actor, booking)
        booking = await self._transition(booking, BookingStatus.REJECTED)
        await self._notify(NotificationType.BOOKING_REJECTED, actor.id, booking)
        return booking

    async def cancel(
        self, actor: Actor, booking_id: str, reason: Optional[str] = None
    ) -> Booking:
        """Cancel a non-terminal booking. Either party may cancel at any time."""
        booking = await self._load(booking_id)
        self._require_party(actor, booking)

        extra = {"cancelled_by": actor.id}
        if reason:
            extra["cancellation_reason"] = clean_text(reason)[:MAX_NOTES_LENGTH]

        booking = await self._transition(booking, BookingStatus.CANCELLED, extra)
        await self._notify(NotificationType.BOOKING_CANCELLED, actor.id, booking)
        return booking

    async def activate(self, actor: Optional[Actor], booking_id: str) -> Booking:
        """
        Mark an accepted booking active once its scheduled start has arrived.

        ``actor`` is None when the lifecycle sweep drives the change.
        """
        booking = await self._load(booking_id)
        if actor is not None:
            self._require_party(actor, booking)

        if booking.status is BookingStatus.ACCEPTED and self.clock() < booking.scheduled_start(self.tz):
            raise InvalidTransition(
                f"Booking {booking.id} has not started yet",
                current_status=booking.status.value,
            )
        return await self._transition(booking, BookingStatus.ACTIVE)

    async def complete(self, actor: Optional[Actor], booking_id: str) -> Booking:
        """
        Complete an accepted or active booking after its scheduled end.

        Only completions by a party notify the other party.
        """
        booking = await self._load(booking_id)
        if actor is not None:
            self._require_party(actor, booking)

        if booking.is_engaged and self.clock() < booking.scheduled_end(self.tz):
            raise InvalidTransition(
                f"Booking {booking.id} has not ended yet",
                current_status=booking.status.value,
            )
        booking = await self._transition(booking, BookingStatus.COMPLETED)

        if actor is not None:
            await self._notify(NotificationType.BOOKING_COMPLETED, actor.id, booking)
        return booking
