"""Administrative overrides."""

from .service import AdminService, DisputeOutcome, is_admin_actor

__all__ = ["AdminService", "DisputeOutcome", "is_admin_actor"]
