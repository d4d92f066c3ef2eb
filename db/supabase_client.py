"""
Supabase database client with typed operations for the booking engine.
Handles all store interactions for bookings, payment requests, chats,
messages, notifications, blocks, complaints and discovery reads.

Concurrency Notes:
==================
Status changes are conditional writes: the UPDATE carries the expected
current status as an extra filter, so of two racing writers exactly one gets
the row back. An empty result means the condition failed; those methods
return None and the caller decides between "not found" and "conflict" by
re-reading.

Every call runs in a worker thread under a bounded timeout; failures are
translated here into UpstreamUnavailable / DuplicateRelation so the rest of
the engine never sees PostgREST or httpx exceptions.

Row Level Security (RLS) Notes:
==============================
The service role key bypasses RLS. User-facing deployments should still
enforce at the database level that:
1. Bookings are readable by their user_id and companion_id only
2. Messages are insertable only by chat participants
3. Notifications are readable and updatable by their user_id only
"""

import asyncio
from datetime import datetime
from typing import Any, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client as SupabaseClientType
from supabase import ClientOptions, create_client

from config import settings
from models.booking import Booking, BookingCreate, BookingStatus, PaymentStatus
from models.chat import ChatSession, ChatSessionCreate, Message, MessageCreate
from models.notification import Notification, NotificationCreate
from models.payment import PaymentRequest, PaymentRequestCreate, PaymentRequestStatus
from models.profile import CompanionProfile
from models.safety import AdminLog, Block, Complaint
from utils.constants import (
    ADMIN_LOGS_TABLE,
    BLOCKS_TABLE,
    BOOKINGS_QUERY_LIMIT,
    BOOKINGS_TABLE,
    CHATS_TABLE,
    COMPANION_PROFILES_TABLE,
    COMPLAINTS_TABLE,
    MESSAGES_TABLE,
    NOTIFICATIONS_QUERY_LIMIT,
    NOTIFICATIONS_TABLE,
    PAYMENT_REQUESTS_TABLE,
    UNIQUE_VIOLATION_CODE,
)
from utils.datetime_utils import to_iso_string, utc_now
from utils.exceptions import DuplicateRelation, UpstreamUnavailable
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_level="INFO")


class SupabaseClient:
    """
    Supabase database client wrapper.

    Uses the service_role key which bypasses RLS.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = timeout or settings.store_timeout_seconds
        self.client: SupabaseClientType = create_client(
            settings.supabase_url,
            settings.supabase_key,
            options=ClientOptions(postgrest_client_timeout=self._timeout),
        )

    async def _execute(self, query: Any, operation: str) -> Any:
        """
        Run a prepared PostgREST query off the event loop with a bounded timeout.

        Args:
            query: Query builder ready for ``.execute()``
            operation: Human readable description used in error messages

        Raises:
            DuplicateRelation: On a unique constraint violation
            UpstreamUnavailable: On any store, transport or timeout failure
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(query.execute), timeout=self._timeout
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Store call timed out after {self._timeout}s: {operation}")
            raise UpstreamUnavailable(f"Timed out trying to {operation}") from e
        except APIError as e:
            if e.code == UNIQUE_VIOLATION_CODE:
                raise DuplicateRelation(f"Failed to {operation}: already exists") from e
            raise UpstreamUnavailable(f"Failed to {operation}: {e.message}") from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Failed to {operation}: {e}") from e

    @staticmethod
    def _dump(model: Any) -> dict:
        return model.model_dump(mode="json", exclude_none=True)

    # ========== Booking Operations ==========

    async def create_booking(self, booking_data: BookingCreate) -> Booking:
        """Insert a new booking row."""
        query = self.client.table(BOOKINGS_TABLE).insert(self._dump(booking_data))
        response = await self._execute(query, "create booking")

        if not response.data:
            raise UpstreamUnavailable("Failed to create booking: no data returned")

        return Booking.model_validate(response.data[0])

    async def get_booking_by_id(self, booking_id: str) -> Optional[Booking]:
        """Get booking by ID."""
        query = self.client.table(BOOKINGS_TABLE).select("*").eq("id", booking_id)
        response = await self._execute(query, "get booking")

        if response.data:
            return Booking.model_validate(response.data[0])
        return None

    async def get_bookings_by_client(self, user_id: str) -> list[Booking]:
        """Get all bookings made by a client, newest first."""
        query = (
            self.client.table(BOOKINGS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(BOOKINGS_QUERY_LIMIT)
        )
        response = await self._execute(query, "get client bookings")
        return [Booking.model_validate(item) for item in response.data]

    async def get_bookings_by_companion(self, companion_id: str) -> list[Booking]:
        """Get all bookings addressed to a companion, newest first."""
        query = (
            self.client.table(BOOKINGS_TABLE)
            .select("*")
            .eq("companion_id", companion_id)
            .order("created_at", desc=True)
            .limit(BOOKINGS_QUERY_LIMIT)
        )
        response = await self._execute(query, "get companion bookings")
        return [Booking.model_validate(item) for item in response.data]

    async def get_bookings_by_status(
        self, statuses: list[BookingStatus]
    ) -> list[Booking]:
        """Get every booking currently in one of ``statuses``."""
        query = (
            self.client.table(BOOKINGS_TABLE)
            .select("*")
            .in_("status", [status.value for status in statuses])
        )
        response = await self._execute(query, "get bookings by status")
        return [Booking.model_validate(item) for item in response.data]

    async def update_booking_status(
        self,
        booking_id: str,
        expected: BookingStatus,
        status: BookingStatus,
        extra: Optional[dict[str, Any]] = None,
    ) -> Optional[Booking]:
        """
        Move a booking to ``status`` only if it is still in ``expected``.

        Returns:
            The updated booking, or None if no row matched
        """
        update_data = {
            **(extra or {}),
            "status": status.value,
            "updated_at": to_iso_string(utc_now()),
        }
        query = (
            self.client.table(BOOKINGS_TABLE)
            .update(update_data)
            .eq("id", booking_id)
            .eq("status", expected.value)
        )
        response = await self._execute(query, "update booking status")

        if not response.data:
            return None
        return Booking.model_validate(response.data[0])

    async def update_booking_payment_status(
        self,
        booking_id: str,
        expected: PaymentStatus,
        payment_status: PaymentStatus,
    ) -> Optional[Booking]:
        """Rewrite the mirrored payment status if it still holds ``expected``."""
        update_data = {
            "payment_status": payment_status.value,
            "updated_at": to_iso_string(utc_now()),
        }
        query = (
            self.client.table(BOOKINGS_TABLE)
            .update(update_data)
            .eq("id", booking_id)
            .eq("payment_status", expected.value)
        )
        response = await self._execute(query, "update booking payment status")

        if not response.data:
            return None
        return Booking.model_validate(response.data[0])

    # ========== Payment Request Operations ==========

    async def create_payment_request(
        self, request_data: PaymentRequestCreate
    ) -> PaymentRequest:
        query = self.client.table(PAYMENT_REQUESTS_TABLE).insert(
            self._dump(request_data)
        )
        response = await self._execute(query, "create payment request")

        if not response.data:
            raise UpstreamUnavailable("Failed to create payment request: no data returned")

        return PaymentRequest.model_validate(response.data[0])

    async def get_payment_request_by_id(
        self, request_id: str
    ) -> Optional[PaymentRequest]:
        query = (
            self.client.table(PAYMENT_REQUESTS_TABLE).select("*").eq("id", request_id)
        )
        response = await self._execute(query, "get payment request")

        if response.data:
            return PaymentRequest.model_validate(response.data[0])
        return None

    async def get_latest_payment_request(
        self, booking_id: str
    ) -> Optional[PaymentRequest]:
        """Get the most recently created payment request of a booking."""
        query = (
            self.client.table(PAYMENT_REQUESTS_TABLE)
            .select("*")
            .eq("booking_id", booking_id)
            .order("requested_at", desc=True)
            .limit(1)
        )
        response = await self._execute(query, "get latest payment request")

        if response.data:
            return PaymentRequest.model_validate(response.data[0])
        return None

    async def get_payment_requests_for_booking(
        self, booking_id: str
    ) -> list[PaymentRequest]:
        """Full payment history of a booking, oldest first."""
        query = (
            self.client.table(PAYMENT_REQUESTS_TABLE)
            .select("*")
            .eq("booking_id", booking_id)
            .order("requested_at", desc=False)
        )
        response = await self._execute(query, "get payment requests")
        return [PaymentRequest.model_validate(item) for item in response.data]

    async def update_payment_request_status(
        self,
        request_id: str,
        expected: PaymentRequestStatus,
        status: PaymentRequestStatus,
        extra: Optional[dict[str, Any]] = None,
    ) -> Optional[PaymentRequest]:
        """Move a payment request to ``status`` only if it is still in ``expected``."""
        update_data = {**(extra or {}), "status": status.value}
        query = (
            self.client.table(PAYMENT_REQUESTS_TABLE)
            .update(update_data)
            .eq("id", request_id)
            .eq("status", expected.value)
        )
        response = await self._execute(query, "update payment request status")

        if not response.data:
            return None
        return PaymentRequest.model_validate(response.data[0])

    # ========== Chat Operations ==========

    async def create_chat_session(self, chat_data: ChatSessionCreate) -> ChatSession:
        query = self.client.table(CHATS_TABLE).insert(self._dump(chat_data))
        response = await self._execute(query, "create chat session")

        if not response.data:
            raise UpstreamUnavailable("Failed to create chat session: no data returned")

        return ChatSession.model_validate(response.data[0])

    async def get_chat_by_id(self, chat_id: str) -> Optional[ChatSession]:
        query = self.client.table(CHATS_TABLE).select("*").eq("id", chat_id)
        response = await self._execute(query, "get chat session")

        if response.data:
            return ChatSession.model_validate(response.data[0])
        return None

    async def get_chat_by_booking(self, booking_id: str) -> Optional[ChatSession]:
        query = (
            self.client.table(CHATS_TABLE)
            .select("*")
            .eq("booking_id", booking_id)
            .limit(1)
        )
        response = await self._execute(query, "get chat session for booking")

        if response.data:
            return ChatSession.model_validate(response.data[0])
        return None

    # ========== Message Operations ==========

    async def create_message(self, message_data: MessageCreate) -> Message:
        query = self.client.table(MESSAGES_TABLE).insert(self._dump(message_data))
        response = await self._execute(query, "create message")

        if not response.data:
            raise UpstreamUnavailable("Failed to create message: no data returned")

        return Message.model_validate(response.data[0])

    async def get_messages(
        self, chat_id: str, since: Optional[datetime] = None
    ) -> list[Message]:
        """Messages of a chat in creation order, optionally only newer than ``since``."""
        query = self.client.table(MESSAGES_TABLE).select("*").eq("chat_id", chat_id)

        if since:
            query = query.gt("created_at", to_iso_string(since))

        query = query.order("created_at", desc=False)
        response = await self._execute(query, "get messages")
        return [Message.model_validate(item) for item in response.data]

    async def mark_messages_read(self, chat_id: str, reader_id: str) -> int:
        """Flip ``is_read`` on unread messages the reader received."""
        query = (
            self.client.table(MESSAGES_TABLE)
            .update({"is_read": True})
            .eq("chat_id", chat_id)
            .neq("sender_id", reader_id)
            .eq("is_read", False)
        )
        response = await self._execute(query, "mark messages read")
        return len(response.data or [])

    # ========== Notification Operations ==========

    async def create_notification(
        self, notification_data: NotificationCreate
    ) -> Notification:
        query = self.client.table(NOTIFICATIONS_TABLE).insert(
            self._dump(notification_data)
        )
        response = await self._execute(query, "create notification")

        if not response.data:
            raise UpstreamUnavailable("Failed to create notification: no data returned")

        return Notification.model_validate(response.data[0])

    async def get_notifications(
        self,
        user_id: str,
        unread_only: bool = False,
        limit: int = NOTIFICATIONS_QUERY_LIMIT,
    ) -> list[Notification]:
        query = self.client.table(NOTIFICATIONS_TABLE).select("*").eq("user_id", user_id)

        if unread_only:
            query = query.eq("is_read", False)

        query = query.order("created_at", desc=True).limit(limit)
        response = await self._execute(query, "get notifications")
        return [Notification.model_validate(item) for item in response.data]

    async def mark_notification_read(
        self, notification_id: str, user_id: str
    ) -> Optional[Notification]:
        query = (
            self.client.table(NOTIFICATIONS_TABLE)
            .update({"is_read": True})
            .eq("id", notification_id)
            .eq("user_id", user_id)
        )
        response = await self._execute(query, "mark notification read")

        if not response.data:
            return None
        return Notification.model_validate(response.data[0])

    async def mark_all_notifications_read(self, user_id: str) -> int:
        query = (
            self.client.table(NOTIFICATIONS_TABLE)
            .update({"is_read": True})
            .eq("user_id", user_id)
            .eq("is_read", False)
        )
        response = await self._execute(query, "mark all notifications read")
        return len(response.data or [])

    # ========== Discovery Reads ==========

    async def get_companion_listing(self, user_id: str) -> Optional[CompanionProfile]:
        """Listing owned by identity ``user_id``, whatever its availability."""
        query = (
            self.client.table(COMPANION_PROFILES_TABLE)
            .select("*, profile:profile_id!inner(*)")
            .eq("profile.user_id", user_id)
            .limit(1)
        )
        response = await self._execute(query, "get companion listing")
        if not response.data:
            return None
        return CompanionProfile.model_validate(response.data[0])

    async def get_available_companions(self) -> list[CompanionProfile]:
        """Companion listings switched to available, joined with their profile."""
        query = (
            self.client.table(COMPANION_PROFILES_TABLE)
            .select("*, profile:profile_id(*)")
            .eq("availability_status", True)
        )
        response = await self._execute(query, "get available companions")
        return [CompanionProfile.model_validate(item) for item in response.data]

    # ========== Safety Operations ==========

    async def create_block(self, block: Block) -> Block:
        """
        Insert a block.

        Raises:
            DuplicateRelation: If ``(blocker_id, blocked_id)`` already exists
        """
        query = self.client.table(BLOCKS_TABLE).insert(self._dump(block))
        response = await self._execute(query, "create block")

        if not response.data:
            raise UpstreamUnavailable("Failed to create block: no data returned")

        return Block.model_validate(response.data[0])

    async def delete_block(self, blocker_id: str, blocked_id: str) -> bool:
        query = (
            self.client.table(BLOCKS_TABLE)
            .delete()
            .eq("blocker_id", blocker_id)
            .eq("blocked_id", blocked_id)
        )
        response = await self._execute(query, "delete block")
        return len(response.data or []) > 0

    async def get_blocks_involving(self, user_id: str) -> list[Block]:
        """Blocks where the identity is either blocker or blocked."""
        query = (
            self.client.table(BLOCKS_TABLE)
            .select("*")
            .or_(f"blocker_id.eq.{user_id},blocked_id.eq.{user_id}")
        )
        response = await self._execute(query, "get blocks")
        return [Block.model_validate(item) for item in response.data]

    async def create_complaint(self, complaint: Complaint) -> Complaint:
        query = self.client.table(COMPLAINTS_TABLE).insert(self._dump(complaint))
        response = await self._execute(query, "create complaint")

        if not response.data:
            raise UpstreamUnavailable("Failed to create complaint: no data returned")

        return Complaint.model_validate(response.data[0])

    async def update_complaint(
        self, complaint_id: str, update_data: dict[str, Any]
    ) -> Optional[Complaint]:
        query = (
            self.client.table(COMPLAINTS_TABLE)
            .update({**update_data, "updated_at": to_iso_string(utc_now())})
            .eq("id", complaint_id)
        )
        response = await self._execute(query, "update complaint")

        if not response.data:
            return None
        return Complaint.model_validate(response.data[0])

    # ========== Admin Operations ==========

    async def create_admin_log(self, log: AdminLog) -> AdminLog:
        query = self.client.table(ADMIN_LOGS_TABLE).insert(self._dump(log))
        response = await self._execute(query, "create admin log")

        if not response.data:
            raise UpstreamUnavailable("Failed to create admin log: no data returned")

        return AdminLog.model_validate(response.data[0])


# Global database client instance
_db_client: Optional[SupabaseClient] = None


def get_db_client() -> SupabaseClient:
    """Get or create database client instance."""
    global _db_client
    if _db_client is None:
        settings.validate_all_required()
        _db_client = SupabaseClient()
    return _db_client
