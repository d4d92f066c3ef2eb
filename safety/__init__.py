"""Blocks and reports."""

from .service import SafetyService

__all__ = ["SafetyService"]
