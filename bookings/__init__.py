"""Booking lifecycle."""

from .service import BookingService, split_upcoming_past

__all__ = ["BookingService", "split_upcoming_past"]
