"""Background lifecycle sweep."""

from .sweep import setup_scheduler, shutdown_scheduler, sweep_bookings

__all__ = ["setup_scheduler", "shutdown_scheduler", "sweep_bookings"]
