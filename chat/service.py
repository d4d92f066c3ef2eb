"""Chat sessions and time-gated messaging."""

from datetime import datetime, timedelta, tzinfo
from typing import Optional

from config import settings
from db import get_db_client
from models.actor import Actor
from models.booking import Booking, BookingStatus
from models.chat import ChatSession, ChatStatus, Message, MessageCreate
from models.notification import MessagePayload, NotificationType
from notifications import NotificationDispatcher
from utils.datetime_utils import Clock, get_zone, utc_now
from utils.exceptions import (
    BookingNotFoundError,
    ChatNotAvailable,
    ChatNotFoundError,
    DuplicateRelation,
    InvalidTransition,
    PermissionDeniedError,
)
from utils.logging_config import setup_logging
from utils.validation import required_text

from .gate import build_session, effective_status

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="chat.log", log_dir="logs"
)

# A session may only exist for a booking the companion has accepted
_SESSION_STATUSES = frozenset({BookingStatus.ACCEPTED, BookingStatus.ACTIVE})


class ChatService:
    """Chat session creation and messaging for booking participants."""

    def __init__(
        self,
        db=None,
        notifier: Optional[NotificationDispatcher] = None,
        clock: Clock = utc_now,
        tz: Optional[tzinfo] = None,
        grace_period: Optional[timedelta] = None,
    ):
        self.db = db or get_db_client()
        self.notifier = notifier or NotificationDispatcher(self.db, clock)
        self.clock = clock
        self.tz = tz or get_zone(settings.timezone)
        self.grace_period = grace_period or timedelta(
            minutes=settings.grace_period_minutes
        )

    async def ensure_session(self, booking: Booking) -> ChatSession:
        """
        Return the booking's chat session, creating it if it does not exist yet.

        Raises:
            InvalidTransition: If the booking is not accepted or active
        """
        if booking.status not in _SESSION_STATUSES:
            raise InvalidTransition(
                f"Cannot open a chat for booking {booking.id} in status "
                f"{booking.status.value}",
                current_status=booking.status.value,
            )

        existing = await self.db.get_chat_by_booking(booking.id)
        if existing:
            return existing

        try:
            session = await self.db.create_chat_session(
                build_session(booking, self.tz, self.grace_period)
            )
        except DuplicateRelation:
            # Lost a creation race; the winner's row is the session
            session = await self.db.get_chat_by_booking(booking.id)
            if session is None:
                raise

        logger.info(
            f"Chat {session.id} opened for booking {booking.id}: "
            f"{session.starts_at.isoformat()} - {session.grace_period_ends_at.isoformat()}"
        )
        return session

    async def get_session(self, actor: Actor, chat_id: str) -> ChatSession:
        session = await self.db.get_chat_by_id(chat_id)
        if session is None:
            raise ChatNotFoundError(f"Chat {chat_id} not found")
        if not session.is_participant(actor.id):
            raise PermissionDeniedError(f"{actor.id} is not a participant of chat {chat_id}")
        return session

    async def get_session_for_booking(
        self, actor: Actor, booking_id: str
    ) -> Optional[ChatSession]:
        session = await self.db.get_chat_by_booking(booking_id)
        if session is not None and not session.is_participant(actor.id):
            raise PermissionDeniedError(
                f"{actor.id} is not a participant of booking {booking_id}"
            )
        return session

    async def status(self, actor: Actor, chat_id: str) -> ChatStatus:
        session = await self.get_session(actor, chat_id)
        booking = await self.db.get_booking_by_id(session.booking_id)
        return effective_status(session, booking, self.clock())

    async def send_message(self, actor: Actor, chat_id: str, content: str) -> Message:
        """
        Append a message to a chat.

        Raises:
            ValidationError: If the content is empty or too long
            ChatNotAvailable: Outside of the session's active window
        """
        text = required_text(content, "Message", settings.message_max_length)

        session = await self.get_session(actor, chat_id)
        booking = await self.db.get_booking_by_id(session.booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {session.booking_id} not found")

        now = self.clock()
        status = effective_status(session, booking, now)
        if status is not ChatStatus.ACTIVE:
            raise ChatNotAvailable(
                f"Chat {chat_id} is {status.value}", chat_status=status.value
            )

        message = await self.db.create_message(
            MessageCreate(
                chat_id=chat_id, sender_id=actor.id, content=text, created_at=now
            )
        )

        await self.notifier.dispatch(
            NotificationType.NEW_MESSAGE,
            actor.id,
            session.counterparty(actor.id),
            MessagePayload(
                booking_id=session.booking_id, chat_id=chat_id, message_id=message.id
            ),
        )
        return message

    async def list_messages(
        self, actor: Actor, chat_id: str, since: Optional[datetime] = None
    ) -> list[Message]:
        """Read messages in creation order. Works without any change feed."""
        await self.get_session(actor, chat_id)
        return await self.db.get_messages(chat_id, since=since)

    async def mark_messages_read(self, actor: Actor, chat_id: str) -> int:
        await self.get_session(actor, chat_id)
        return await self.db.mark_messages_read(chat_id, actor.id)
