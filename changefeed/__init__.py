"""Change-feed interface and consumers."""

from .feed import ChangeEvent, ChangeFeed, ChangeFilter, ChangeType, PollingMessageFeed
from .projection import BookingProjection

__all__ = [
    "BookingProjection",
    "ChangeEvent",
    "ChangeFeed",
    "ChangeFilter",
    "ChangeType",
    "PollingMessageFeed",
]
