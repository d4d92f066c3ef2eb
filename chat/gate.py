"""
Chat session time gate.

Pure functions of (now, session): no timers or mutable state live here, so
any scheduler, request handler or test can evaluate them. The ACTIVE -> ENDED
change is time-triggered and nothing announces it, which is why displays
re-evaluate on a fixed interval via watch_chat_status().
"""

import asyncio
from datetime import datetime, timedelta, tzinfo
from typing import AsyncIterator, Optional

from models.booking import Booking
from models.chat import ChatSession, ChatSessionCreate, ChatStatus
from utils.datetime_utils import Clock, utc_now


def chat_status(session: ChatSession, now: datetime) -> ChatStatus:
    """
    Derive the availability of a chat session at ``now``.

    The window is closed at both ends: messaging opens exactly at
    ``starts_at`` and is still open exactly at ``grace_period_ends_at``.
    """
    if now < session.starts_at:
        return ChatStatus.NOT_STARTED
    if now <= session.grace_period_ends_at:
        return ChatStatus.ACTIVE
    return ChatStatus.ENDED


def can_send(session: ChatSession, now: datetime) -> bool:
    return chat_status(session, now) is ChatStatus.ACTIVE


def time_remaining(session: ChatSession, now: datetime) -> timedelta:
    """Time until the chat opens, until the grace period ends, or zero once ended."""
    status = chat_status(session, now)
    if status is ChatStatus.NOT_STARTED:
        return session.starts_at - now
    if status is ChatStatus.ACTIVE:
        return session.grace_period_ends_at - now
    return timedelta(0)


def session_window(
    booking: Booking, tz: tzinfo, grace: timedelta
) -> tuple[datetime, datetime, datetime]:
    """Return ``(starts_at, ends_at, grace_period_ends_at)`` for a booking."""
    starts_at = booking.scheduled_start(tz)
    ends_at = starts_at + timedelta(hours=booking.duration_hours)
    return starts_at, ends_at, ends_at + grace


def build_session(booking: Booking, tz: tzinfo, grace: timedelta) -> ChatSessionCreate:
    starts_at, ends_at, grace_ends_at = session_window(booking, tz, grace)
    return ChatSessionCreate(
        booking_id=booking.id,
        user_id=booking.user_id,
        companion_id=booking.companion_id,
        starts_at=starts_at,
        ends_at=ends_at,
        grace_period_ends_at=grace_ends_at,
    )


async def watch_chat_status(
    session: ChatSession,
    clock: Clock = utc_now,
    interval: float = 1.0,
) -> AsyncIterator[ChatStatus]:
    """
    Re-evaluate the gate every ``interval`` seconds.

    Yields the current status first and then every change, finishing after
    ENDED has been yielded.
    """
    last: Optional[ChatStatus] = None
    while True:
        status = chat_status(session, clock())
        if status is not last:
            last = status
            yield status
        if status is ChatStatus.ENDED:
            return
        await asyncio.sleep(interval)


def effective_status(
    session: ChatSession, booking: Optional[Booking], now: datetime
) -> ChatStatus:
    """Gate status once the owning booking is taken into account.

    A completed, rejected or cancelled booking closes its chat immediately.
    """
    if booking is not None and booking.is_terminal:
        return ChatStatus.ENDED
    return chat_status(session, now)
