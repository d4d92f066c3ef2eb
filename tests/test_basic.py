"""
Basic unit tests for models and lifecycle graphs.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from models.booking import (
    BOOKING_TRANSITIONS,
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
    can_transition,
)
from models.chat import ChatSession
from models.notification import (
    PAYLOAD_TYPES,
    BookingPayload,
    Notification,
    NotificationType,
)
from models.payment import PaymentRequest, PaymentRequestStatus, can_transition_payment
from models.profile import Profile
from utils.datetime_utils import combine_local, get_zone
from utils.validation import parse_start_time


def _booking(**overrides) -> Booking:
    data = {
        "id": "booking-1",
        "user_id": "client-1",
        "companion_id": "companion-1",
        "booking_date": "2026-03-11",
        "start_time": "10:00:00",
        "duration_hours": 2,
        "activity": "Coffee",
        "hourly_rate": 800,
        "total_amount": 1600,
    }
    data.update(overrides)
    return Booking.model_validate(data)


def test_booking_status_enum():
    """Test booking status enum."""
    assert BookingStatus.PENDING.value == "pending"
    assert BookingStatus.ACTIVE.value == "active"
    assert PaymentStatus.DISPUTED.value == "disputed"


def test_terminal_statuses_have_no_exits():
    for status in TERMINAL_STATUSES:
        assert BOOKING_TRANSITIONS[status] == frozenset()
        for target in BookingStatus:
            assert not can_transition(status, target)


def test_lifecycle_edges():
    assert can_transition(BookingStatus.PENDING, BookingStatus.ACCEPTED)
    assert can_transition(BookingStatus.PENDING, BookingStatus.REJECTED)
    assert can_transition(BookingStatus.ACCEPTED, BookingStatus.ACTIVE)
    assert can_transition(BookingStatus.ACTIVE, BookingStatus.CANCELLED)
    assert not can_transition(BookingStatus.PENDING, BookingStatus.COMPLETED)
    assert not can_transition(BookingStatus.PENDING, BookingStatus.ACTIVE)
    assert not can_transition(BookingStatus.ACCEPTED, BookingStatus.REJECTED)


def test_can_transition_accepts_raw_values():
    assert can_transition("pending", BookingStatus.ACCEPTED)


def test_payment_edges():
    assert can_transition_payment(PaymentRequestStatus.REQUESTED, PaymentRequestStatus.PAID)
    assert can_transition_payment(PaymentRequestStatus.PAID, PaymentRequestStatus.CONFIRMED)
    assert can_transition_payment(PaymentRequestStatus.PAID, PaymentRequestStatus.DISPUTED)
    assert not can_transition_payment(
        PaymentRequestStatus.REQUESTED, PaymentRequestStatus.CONFIRMED
    )
    assert not can_transition_payment(
        PaymentRequestStatus.DISPUTED, PaymentRequestStatus.CONFIRMED
    )


def test_payment_request_mirrors_to_booking_status():
    request = PaymentRequest(
        booking_id="b", companion_id="c", user_id="u", amount=100, status="paid"
    )
    assert request.mirrored_status is PaymentStatus.PAID


def test_payment_request_amount_must_be_positive():
    with pytest.raises(PydanticValidationError):
        PaymentRequest(booking_id="b", companion_id="c", user_id="u", amount=0)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("10:00", time(10, 0)),
        ("10:00:00", time(10, 0)),
        ("02:30 PM", time(14, 30)),
        ("9:15am", time(9, 15)),
    ],
)
def test_parse_start_time(value, expected):
    assert parse_start_time(value) == expected


def test_parse_start_time_rejects_garbage():
    with pytest.raises(ValueError):
        parse_start_time("noon")


def test_booking_accepts_twelve_hour_start_time():
    booking = _booking(start_time="02:00 PM")
    assert booking.start_time == time(14, 0)


def test_booking_schedule_in_zone():
    booking = _booking()
    kathmandu = get_zone("Asia/Kathmandu")

    start = booking.scheduled_start(kathmandu)

    # Kathmandu is UTC+05:45
    assert start == datetime(2026, 3, 11, 4, 15, tzinfo=timezone.utc)
    assert booking.scheduled_end(kathmandu) - start == timedelta(hours=2)


def test_combine_local_utc():
    result = combine_local(date(2026, 1, 1), time(8, 30), get_zone("UTC"))
    assert result == datetime(2026, 1, 1, 8, 30, tzinfo=timezone.utc)


def test_booking_counterparty():
    booking = _booking()
    assert booking.counterparty("client-1") == "companion-1"
    assert booking.counterparty("companion-1") == "client-1"
    with pytest.raises(ValueError):
        booking.counterparty("someone-else")


def test_chat_session_window_must_be_ordered():
    start = datetime(2026, 3, 11, 10, tzinfo=timezone.utc)
    with pytest.raises(PydanticValidationError):
        ChatSession(
            booking_id="b",
            user_id="u",
            companion_id="c",
            starts_at=start,
            ends_at=start - timedelta(hours=1),
            grace_period_ends_at=start,
        )


def test_every_notification_type_has_a_payload():
    assert set(PAYLOAD_TYPES) == set(NotificationType)


def test_notification_payload_is_typed():
    notification = Notification(
        user_id="u",
        type=NotificationType.BOOKING_ACCEPTED,
        title="Booking Confirmed",
        message="...",
        data={"booking_id": "booking-1"},
    )
    assert notification.payload() == BookingPayload(booking_id="booking-1")


def test_profile_age():
    profile = Profile(id="p", user_id="u", first_name="Asha", date_of_birth=date(2000, 6, 15))
    assert profile.age_on(date(2026, 6, 14)) == 25
    assert profile.age_on(date(2026, 6, 15)) == 26
    assert Profile(id="p", user_id="u", first_name="Asha").age_on(date(2026, 1, 1)) is None
