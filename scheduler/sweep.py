"""
Booking lifecycle sweep using APScheduler.

Runs on a fixed interval and drives the time-triggered side of the
lifecycle that no party announces:
- accepted bookings become active once their window starts
- accepted/active bookings complete once the grace period has ended
- missing chat sessions of accepted/active bookings are created
- drifted payment_status mirrors are re-derived from the latest request

Each step goes through the same conditional writes the parties use, so a
party acting at the same moment simply wins or loses the race.
"""

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from bookings import BookingService
from config import settings
from models.booking import ENGAGED_STATUSES, Booking, BookingStatus
from payments import PaymentWorkflow
from utils.exceptions import BookingEngineError, UpstreamUnavailable
from utils.logging_config import setup_logging

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="scheduler.log", log_dir="logs"
)

scheduler = AsyncIOScheduler()

_SWEPT_STATUSES = [BookingStatus.PENDING, BookingStatus.ACCEPTED, BookingStatus.ACTIVE]


async def _advance(service: BookingService, booking: Booking, stats: dict) -> Booking:
    now = service.clock()
    grace_ends_at = booking.scheduled_end(service.tz) + service.grace_period

    if booking.is_engaged and now > grace_ends_at:
        booking = await service.complete(None, booking.id)
        stats["completed"] += 1
    elif booking.status is BookingStatus.ACCEPTED and now >= booking.scheduled_start(service.tz):
        booking = await service.activate(None, booking.id)
        stats["activated"] += 1

    if booking.status in ENGAGED_STATUSES:
        await service.chat.ensure_session(booking)
    return booking


async def sweep_bookings(
    bookings: Optional[BookingService] = None,
    payments: Optional[PaymentWorkflow] = None,
) -> dict[str, int]:
    """
    Run one pass over every non-terminal booking.

    Returns:
        Counts of activated, completed, repaired and failed bookings
    """
    bookings = bookings or BookingService()
    payments = payments or PaymentWorkflow(bookings.db, bookings.notifier, bookings.clock)
    stats = {"activated": 0, "completed": 0, "repaired": 0, "failed": 0}

    try:
        candidates = await bookings.db.get_bookings_by_status(_SWEPT_STATUSES)
    except UpstreamUnavailable as e:
        logger.error(f"Sweep skipped, bookings unavailable: {e}", exc_info=True)
        return stats

    if not candidates:
        logger.debug("No open bookings to sweep")
        return stats

    for booking in candidates:
        try:
            booking = await _advance(bookings, booking, stats)
            reconciled = await payments.reconcile_payment_status(booking.id)
            if reconciled.payment_status != booking.payment_status:
                logger.warning(
                    f"Repaired payment_status of booking {booking.id}: "
                    f"{booking.payment_status.value} -> {reconciled.payment_status.value}"
                )
                stats["repaired"] += 1
        except BookingEngineError as e:
            logger.warning(f"Sweep of booking {booking.id} failed: {e}")
            stats["failed"] += 1

    logger.info(
        f"Sweep complete: {stats['activated']} activated, {stats['completed']} completed, "
        f"{stats['repaired']} repaired, {stats['failed']} failed"
    )
    return stats


def setup_scheduler(
    bookings: Optional[BookingService] = None,
    payments: Optional[PaymentWorkflow] = None,
) -> AsyncIOScheduler:
    """Register the sweep job and start the scheduler."""
    scheduler.add_job(
        sweep_bookings,
        trigger=IntervalTrigger(seconds=settings.sweep_interval_seconds),
        kwargs={"bookings": bookings, "payments": payments},
        id="sweep_bookings",
        name="Advance booking lifecycle and repair payment mirrors",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started, sweeping every {settings.sweep_interval_seconds}s")
    return scheduler


def shutdown_scheduler() -> None:
    """Shutdown the scheduler."""
    scheduler.shutdown()
    logger.info("Scheduler stopped")
