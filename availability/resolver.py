"""
Availability (busy-set) resolver and the discovery listing built on it.

The busy-set is recomputed from the store on every query; there is no
incremental index to keep in sync. Every booking in accepted or active
removes both of its parties from discovery until it becomes terminal.
"""

from datetime import date
from typing import Iterable, Optional

from db import get_db_client
from models.actor import Actor
from models.booking import ENGAGED_STATUSES, Booking
from models.profile import CompanionProfile, DiscoveryFilters
from utils.datetime_utils import Clock, utc_now
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_level="INFO")


def compute_busy_set(bookings: Iterable[Booking]) -> frozenset[str]:
    """Identities engaged in an accepted or active booking, in either role."""
    busy: set[str] = set()
    for booking in bookings:
        if booking.status in ENGAGED_STATUSES:
            busy.update(booking.parties())
    return frozenset(busy)


def _matches(companion: CompanionProfile, filters: DiscoveryFilters) -> bool:
    profile = companion.profile
    if filters.city and profile.city != filters.city:
        return False
    if filters.gender and profile.gender != filters.gender:
        return False
    if filters.min_price is not None and companion.hourly_rate < filters.min_price:
        return False
    if filters.max_price is not None and companion.hourly_rate > filters.max_price:
        return False
    if filters.activities and not any(
        activity in companion.activities for activity in filters.activities
    ):
        return False
    if filters.online_only and not profile.is_online:
        return False
    return True


def filter_discoverable(
    companions: Iterable[CompanionProfile],
    busy: frozenset[str],
    hidden: frozenset[str] = frozenset(),
    filters: Optional[DiscoveryFilters] = None,
    today: Optional[date] = None,
) -> list[CompanionProfile]:
    """
    Apply the discovery rules to a set of companion listings.

    A listing is shown only if its owner is identity-verified, not
    deactivated, not in ``busy`` and not in ``hidden`` (blocked either way
    with the viewer); the optional filters are applied after that.
    """
    filters = filters or DiscoveryFilters()
    visible = []
    for companion in companions:
        profile = companion.profile
        if profile is None:
            continue
        if profile.is_identity_verified is not True or profile.is_active is False:
            continue
        if profile.user_id in busy or profile.user_id in hidden:
            continue
        if not _matches(companion, filters):
            continue
        if today is not None:
            companion = companion.model_copy(
                update={"profile": profile.model_copy(update={"age": profile.age_on(today)})}
            )
        visible.append(companion)
    return visible


class AvailabilityResolver:
    """Busy-set queries and the companion discovery listing."""

    def __init__(self, db=None, clock: Clock = utc_now):
        self.db = db or get_db_client()
        self.clock = clock

    async def busy_identities(self) -> frozenset[str]:
        bookings = await self.db.get_bookings_by_status(list(ENGAGED_STATUSES))
        return compute_busy_set(bookings)

    async def is_busy(self, identity: str) -> bool:
        return identity in await self.busy_identities()

    async def discover_companions(
        self,
        filters: Optional[DiscoveryFilters] = None,
        viewer: Optional[Actor] = None,
    ) -> list[CompanionProfile]:
        """Companions a viewer may book right now."""
        companions = await self.db.get_available_companions()
        busy = await self.busy_identities()

        hidden: frozenset[str] = frozenset()
        if viewer is not None:
            blocks = await self.db.get_blocks_involving(viewer.id)
            hidden = frozenset(
                block.blocked_id if block.blocker_id == viewer.id else block.blocker_id
                for block in blocks
            )

        visible = filter_discoverable(
            companions, busy, hidden, filters, today=self.clock().date()
        )
        logger.debug(
            f"Discovery: {len(visible)}/{len(companions)} listings visible, "
            f"{len(busy)} busy identities"
        )
        return visible
