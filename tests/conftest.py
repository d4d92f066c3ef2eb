"""
Pytest configuration and shared fixtures.

Services run against FakeStore, an in-memory stand-in for SupabaseClient
with the same conditional-update semantics. Every call yields to the event
loop first so that operations started with asyncio.gather() interleave the
way two clients hitting the store at once would.
"""

import asyncio
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from unittest.mock import MagicMock

import pytest

from admin import AdminService
from availability import AvailabilityResolver
from bookings import BookingService
from chat import ChatService
from models.actor import Actor
from models.booking import Booking, BookingCreate, BookingSchedule, BookingStatus, PaymentStatus
from models.chat import ChatSession, ChatSessionCreate, Message, MessageCreate
from models.notification import Notification, NotificationCreate
from models.payment import PaymentRequest, PaymentRequestCreate, PaymentRequestStatus
from models.profile import CompanionProfile
from models.safety import AdminLog, Block, Complaint
from notifications import NotificationDispatcher, NotificationInbox
from payments import PaymentWorkflow
from safety import SafetyService
from utils.constants import (
    ADMIN_LOGS_TABLE,
    BLOCKS_TABLE,
    BOOKINGS_TABLE,
    CHATS_TABLE,
    COMPANION_PROFILES_TABLE,
    COMPLAINTS_TABLE,
    MESSAGES_TABLE,
    NOTIFICATIONS_TABLE,
    PAYMENT_REQUESTS_TABLE,
    PROFILES_TABLE,
)
from utils.datetime_utils import parse_iso_datetime
from utils.exceptions import DuplicateRelation, UpstreamUnavailable

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
GRACE = timedelta(minutes=15)


class FakeClock:
    """Controllable clock; call it to read the time."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, when: datetime) -> None:
        self.now = when

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeStore:
    """In-memory SupabaseClient with conditional writes and unique constraints."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock or FakeClock()
        self.tables: dict[str, dict[str, dict]] = defaultdict(dict)
        self.fail_on: set[str] = set()
        self._seq = 0

    async def _enter(self, operation: str) -> None:
        await asyncio.sleep(0)
        if operation in self.fail_on:
            raise UpstreamUnavailable(f"Failed to {operation}")

    def _insert(self, table: str, model: Any) -> dict:
        self._seq += 1
        row = model.model_dump(mode="json")
        if not row.get("id"):
            row["id"] = str(uuid.uuid4())
        if not row.get("created_at"):
            row["created_at"] = self.clock().isoformat()
        row["_seq"] = self._seq
        self.tables[table][row["id"]] = row
        return dict(row)

    def _rows(self, table: str, **conditions) -> list[dict]:
        return sorted(
            (
                dict(row)
                for row in self.tables[table].values()
                if all(row.get(key) == value for key, value in conditions.items())
            ),
            key=lambda row: row["_seq"],
        )

    # ========== Booking Operations ==========

    async def create_booking(self, booking_data: BookingCreate) -> Booking:
        await self._enter("create_booking")
        return Booking.model_validate(self._insert(BOOKINGS_TABLE, booking_data))

    async def get_booking_by_id(self, booking_id: str) -> Optional[Booking]:
        await self._enter("get_booking_by_id")
        row = self.tables[BOOKINGS_TABLE].get(booking_id)
        return Booking.model_validate(row) if row else None

    async def get_bookings_by_client(self, user_id: str) -> list[Booking]:
        await self._enter("get_bookings_by_client")
        rows = self._rows(BOOKINGS_TABLE, user_id=user_id)
        return [Booking.model_validate(row) for row in reversed(rows)]

    async def get_bookings_by_companion(self, companion_id: str) -> list[Booking]:
        await self._enter("get_bookings_by_companion")
        rows = self._rows(BOOKINGS_TABLE, companion_id=companion_id)
        return [Booking.model_validate(row) for row in reversed(rows)]

    async def get_bookings_by_status(self, statuses: list[BookingStatus]) -> list[Booking]:
        await self._enter("get_bookings_by_status")
        wanted = {status.value for status in statuses}
        return [
            Booking.model_validate(row)
            for row in self._rows(BOOKINGS_TABLE)
            if row["status"] in wanted
        ]

    async def update_booking_status(
        self,
        booking_id: str,
        expected: BookingStatus,
        status: BookingStatus,
        extra: Optional[dict[str, Any]] = None,
    ) -> Optional[Booking]:
        await self._enter("update_booking_status")
        row = self.tables[BOOKINGS_TABLE].get(booking_id)
        if row is None or row["status"] != expected.value:
            return None
        row.update(extra or {})
        row["status"] = status.value
        row["updated_at"] = self.clock().isoformat()
        return Booking.model_validate(row)

    async def update_booking_payment_status(
        self, booking_id: str, expected: PaymentStatus, payment_status: PaymentStatus
    ) -> Optional[Booking]:
        await self._enter("update_booking_payment_status")
        row = self.tables[BOOKINGS_TABLE].get(booking_id)
        if row is None or row["payment_status"] != expected.value:
            return None
        row["payment_status"] = payment_status.value
        return Booking.model_validate(row)

    # ========== Payment Request Operations ==========

    async def create_payment_request(self, request_data: PaymentRequestCreate) -> PaymentRequest:
        await self._enter("create_payment_request")
        return PaymentRequest.model_validate(
            self._insert(PAYMENT_REQUESTS_TABLE, request_data)
        )

    async def get_payment_request_by_id(self, request_id: str) -> Optional[PaymentRequest]:
        await self._enter("get_payment_request_by_id")
        row = self.tables[PAYMENT_REQUESTS_TABLE].get(request_id)
        return PaymentRequest.model_validate(row) if row else None

    async def get_latest_payment_request(self, booking_id: str) -> Optional[PaymentRequest]:
        await self._enter("get_latest_payment_request")
        rows = self._rows(PAYMENT_REQUESTS_TABLE, booking_id=booking_id)
        if not rows:
            return None
        latest = max(
            rows, key=lambda row: (parse_iso_datetime(row["requested_at"]), row["_seq"])
        )
        return PaymentRequest.model_validate(latest)

    async def get_payment_requests_for_booking(self, booking_id: str) -> list[PaymentRequest]:
        await self._enter("get_payment_requests_for_booking")
        return [
            PaymentRequest.model_validate(row)
            for row in self._rows(PAYMENT_REQUESTS_TABLE, booking_id=booking_id)
        ]

    async def update_payment_request_status(
        self,
        request_id: str,
        expected: PaymentRequestStatus,
        status: PaymentRequestStatus,
        extra: Optional[dict[str, Any]] = None,
    ) -> Optional[PaymentRequest]:
        await self._enter("update_payment_request_status")
        row = self.tables[PAYMENT_REQUESTS_TABLE].get(request_id)
        if row is None or row["status"] != expected.value:
            return None
        row.update(extra or {})
        row["status"] = status.value
        return PaymentRequest.model_validate(row)

    # ========== Chat Operations ==========

    async def create_chat_session(self, chat_data: ChatSessionCreate) -> ChatSession:
        await self._enter("create_chat_session")
        if self._rows(CHATS_TABLE, booking_id=chat_data.booking_id):
            raise DuplicateRelation("Failed to create chat session: already exists")
        return ChatSession.model_validate(self._insert(CHATS_TABLE, chat_data))

    async def get_chat_by_id(self, chat_id: str) -> Optional[ChatSession]:
        await self._enter("get_chat_by_id")
        row = self.tables[CHATS_TABLE].get(chat_id)
        return ChatSession.model_validate(row) if row else None

    async def get_chat_by_booking(self, booking_id: str) -> Optional[ChatSession]:
        await self._enter("get_chat_by_booking")
        rows = self._rows(CHATS_TABLE, booking_id=booking_id)
        return ChatSession.model_validate(rows[0]) if rows else None

    # ========== Message Operations ==========

    async def create_message(self, message_data: MessageCreate) -> Message:
        await self._enter("create_message")
        return Message.model_validate(self._insert(MESSAGES_TABLE, message_data))

    async def get_messages(
        self, chat_id: str, since: Optional[datetime] = None
    ) -> list[Message]:
        await self._enter("get_messages")
        messages = [
            Message.model_validate(row) for row in self._rows(MESSAGES_TABLE, chat_id=chat_id)
        ]
        if since:
            messages = [message for message in messages if message.created_at > since]
        return sorted(messages, key=lambda message: message.created_at)

    async def mark_messages_read(self, chat_id: str, reader_id: str) -> int:
        await self._enter("mark_messages_read")
        count = 0
        for row in self.tables[MESSAGES_TABLE].values():
            if row["chat_id"] == chat_id and row["sender_id"] != reader_id and not row.get("is_read"):
                row["is_read"] = True
                count += 1
        return count

    # ========== Notification Operations ==========

    async def create_notification(self, notification_data: NotificationCreate) -> Notification:
        await self._enter("create_notification")
        return Notification.model_validate(
            self._insert(NOTIFICATIONS_TABLE, notification_data)
        )

    async def get_notifications(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]:
        await self._enter("get_notifications")
        rows = self._rows(NOTIFICATIONS_TABLE, user_id=user_id)
        if unread_only:
            rows = [row for row in rows if not row["is_read"]]
        return [Notification.model_validate(row) for row in reversed(rows)][:limit]

    async def mark_notification_read(
        self, notification_id: str, user_id: str
    ) -> Optional[Notification]:
        await self._enter("mark_notification_read")
        row = self.tables[NOTIFICATIONS_TABLE].get(notification_id)
        if row is None or row["user_id"] != user_id:
            return None
        row["is_read"] = True
        return Notification.model_validate(row)

    async def mark_all_notifications_read(self, user_id: str) -> int:
        await self._enter("mark_all_notifications_read")
        count = 0
        for row in self.tables[NOTIFICATIONS_TABLE].values():
            if row["user_id"] == user_id and not row["is_read"]:
                row["is_read"] = True
                count += 1
        return count

    # ========== Discovery Reads ==========

    async def get_companion_listing(self, user_id: str) -> Optional[CompanionProfile]:
        await self._enter("get_companion_listing")
        for row in self._rows(COMPANION_PROFILES_TABLE):
            profile = self.tables[PROFILES_TABLE].get(row["profile_id"])
            if profile and profile["user_id"] == user_id:
                return CompanionProfile.model_validate({**row, "profile": profile})
        return None

    async def get_available_companions(self) -> list[CompanionProfile]:
        await self._enter("get_available_companions")
        listings = []
        for row in self._rows(COMPANION_PROFILES_TABLE, availability_status=True):
            profile = self.tables[PROFILES_TABLE].get(row["profile_id"])
            listings.append(CompanionProfile.model_validate({**row, "profile": profile}))
        return listings

    # ========== Safety Operations ==========

    async def create_block(self, block: Block) -> Block:
        await self._enter("create_block")
        if self._rows(BLOCKS_TABLE, blocker_id=block.blocker_id, blocked_id=block.blocked_id):
            raise DuplicateRelation("Failed to create block: already exists")
        return Block.model_validate(self._insert(BLOCKS_TABLE, block))

    async def delete_block(self, blocker_id: str, blocked_id: str) -> bool:
        await self._enter("delete_block")
        rows = self._rows(BLOCKS_TABLE, blocker_id=blocker_id, blocked_id=blocked_id)
        for row in rows:
            del self.tables[BLOCKS_TABLE][row["id"]]
        return bool(rows)

    async def get_blocks_involving(self, user_id: str) -> list[Block]:
        await self._enter("get_blocks_involving")
        return [
            Block.model_validate(row)
            for row in self._rows(BLOCKS_TABLE)
            if user_id in (row["blocker_id"], row["blocked_id"])
        ]

    async def create_complaint(self, complaint: Complaint) -> Complaint:
        await self._enter("create_complaint")
        return Complaint.model_validate(self._insert(COMPLAINTS_TABLE, complaint))

    async def update_complaint(
        self, complaint_id: str, update_data: dict[str, Any]
    ) -> Optional[Complaint]:
        await self._enter("update_complaint")
        row = self.tables[COMPLAINTS_TABLE].get(complaint_id)
        if row is None:
            return None
        row.update(update_data)
        return Complaint.model_validate(row)

    # ========== Admin Operations ==========

    async def create_admin_log(self, log: AdminLog) -> AdminLog:
        await self._enter("create_admin_log")
        return AdminLog.model_validate(self._insert(ADMIN_LOGS_TABLE, log))

    # ========== Seeding ==========

    def add_companion(
        self,
        user_id: str,
        first_name: str = "Asha",
        hourly_rate: float = 500,
        activities: Optional[list[str]] = None,
        **profile_fields,
    ) -> CompanionProfile:
        """Insert a profile and its companion listing."""
        profile_id = f"profile-{user_id}"
        self.tables[PROFILES_TABLE][profile_id] = {
            "id": profile_id,
            "user_id": user_id,
            "first_name": first_name,
            "is_companion": True,
            "is_identity_verified": True,
            "is_active": True,
            "city": "Kathmandu",
            "gender": "female",
            "is_online": False,
            **profile_fields,
        }
        listing_id = f"listing-{user_id}"
        self._seq += 1
        self.tables[COMPANION_PROFILES_TABLE][listing_id] = {
            "id": listing_id,
            "profile_id": profile_id,
            "hourly_rate": hourly_rate,
            "activities": activities or ["Coffee"],
            "availability_status": True,
            "_seq": self._seq,
        }
        return CompanionProfile.model_validate(
            {
                **self.tables[COMPANION_PROFILES_TABLE][listing_id],
                "profile": self.tables[PROFILES_TABLE][profile_id],
            }
        )

    def notifications_for(self, user_id: str) -> list[dict]:
        return self._rows(NOTIFICATIONS_TABLE, user_id=user_id)


def schedule_at(start: datetime, duration_hours: int = 2) -> BookingSchedule:
    """Schedule starting at the UTC instant ``start``."""
    start = start.astimezone(timezone.utc)
    return BookingSchedule(
        booking_date=start.date(), start_time=start.time(), duration_hours=duration_hours
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return FakeStore(clock)


@pytest.fixture
def client():
    return Actor(id="client-1")


@pytest.fixture
def companion(store):
    store.add_companion("companion-1", hourly_rate=800)
    return Actor(id="companion-1", is_companion=True)


@pytest.fixture
def stranger():
    return Actor(id="stranger-1")


@pytest.fixture
def admin():
    return Actor(id="admin-1", is_admin=True)


@pytest.fixture
def notifier(store, clock):
    return NotificationDispatcher(store, clock)


@pytest.fixture
def chat_service(store, notifier, clock):
    return ChatService(store, notifier, clock, tz=timezone.utc, grace_period=GRACE)


@pytest.fixture
def availability(store, clock):
    return AvailabilityResolver(store, clock)


@pytest.fixture
def booking_service(store, notifier, chat_service, availability, clock):
    return BookingService(
        store,
        notifier,
        chat_service,
        availability,
        clock,
        tz=timezone.utc,
        grace_period=GRACE,
    )


@pytest.fixture
def payments(store, notifier, clock):
    return PaymentWorkflow(store, notifier, clock)


@pytest.fixture
def safety(store):
    return SafetyService(store)


@pytest.fixture
def admin_service(store, payments, clock):
    return AdminService(store, payments, clock)


@pytest.fixture
def inbox(store):
    return NotificationInbox(store)


@pytest.fixture
def make_booking(booking_service, client, companion, clock):
    """Create a booking starting ``start_in`` from now, optionally accepted."""

    async def _make(
        start_in: timedelta = timedelta(days=1),
        duration_hours: int = 2,
        hourly_rate: float = 800,
        accept: bool = False,
    ) -> Booking:
        booking = await booking_service.create(
            client,
            companion.id,
            schedule_at(clock() + start_in, duration_hours),
            hourly_rate=hourly_rate,
            activity="Coffee",
        )
        if accept:
            booking = await booking_service.accept(companion, booking.id)
        return booking

    return _make


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client."""
    mock_client = MagicMock()
    mock_table = MagicMock()
    mock_client.table.return_value = mock_table
    return mock_client, mock_table


@pytest.fixture
def schedule():
    """Build a BookingSchedule from a UTC start instant."""
    return schedule_at
