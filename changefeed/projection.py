"""Local booking view kept current from change events."""

from typing import AsyncIterator, Optional

from db import get_db_client
from models.booking import Booking
from utils.constants import BOOKINGS_TABLE
from utils.logging_config import setup_logging

from .feed import ChangeEvent, ChangeType

logger = setup_logging(name=__name__, log_level="INFO")


class BookingProjection:
    """
    id -> Booking view for a UI or trigger layer.

    An event only says which booking to look at; the row read from the store
    is what gets stored, so replayed, duplicated or reordered events always
    converge on the stored state.
    """

    def __init__(self, db=None):
        self.db = db or get_db_client()
        self._bookings: dict[str, Booking] = {}

    def get(self, booking_id: str) -> Optional[Booking]:
        return self._bookings.get(booking_id)

    def all(self) -> list[Booking]:
        return list(self._bookings.values())

    def __len__(self) -> int:
        return len(self._bookings)

    def load(self, bookings: list[Booking]) -> None:
        """Seed the view, e.g. from list_bookings_for_client()."""
        for booking in bookings:
            self._bookings[booking.id] = booking

    async def apply(self, change: ChangeEvent) -> Optional[Booking]:
        """Refresh the booking a change event refers to."""
        if change.table != BOOKINGS_TABLE:
            return None

        booking_id = change.row_id
        if not booking_id:
            logger.warning(f"Ignoring {change.event.value} on bookings without an id")
            return None

        booking = await self.db.get_booking_by_id(booking_id)
        if booking is None:
            if change.event is ChangeType.DELETE:
                self._bookings.pop(booking_id, None)
            return None

        self._bookings[booking.id] = booking
        return booking

    async def follow(self, events: AsyncIterator[ChangeEvent]) -> None:
        """Apply events from a feed subscription until it is exhausted."""
        async for change in events:
            await self.apply(change)
