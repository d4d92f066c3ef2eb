"""Busy-set computation and companion discovery."""

from .resolver import AvailabilityResolver, compute_busy_set, filter_discoverable

__all__ = ["AvailabilityResolver", "compute_busy_set", "filter_discoverable"]
