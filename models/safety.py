"""Block, complaint and admin audit models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ComplaintType(str, Enum):
    PAYMENT_NOT_RECEIVED = "payment_not_received"
    MISBEHAVIOR = "misbehavior"
    NO_SHOW = "no_show"
    HARASSMENT = "harassment"
    RULE_VIOLATION = "rule_violation"
    OTHER = "other"


class ComplaintStatus(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class Block(BaseModel):
    """``blocker_id`` no longer wants contact with ``blocked_id``."""

    id: Optional[str] = None
    blocker_id: str
    blocked_id: str
    reason: Optional[str] = None
    created_at: Optional[datetime] = None


class Complaint(BaseModel):
    id: Optional[str] = None
    reporter_id: str
    reported_user_id: str
    booking_id: Optional[str] = None
    complaint_type: ComplaintType
    description: str
    status: ComplaintStatus = ComplaintStatus.OPEN
    evidence_urls: list[str] = Field(default_factory=list)
    assigned_to: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AdminLog(BaseModel):
    """Audit record of an administrative action."""

    id: Optional[str] = None
    admin_id: str
    action: str
    target_type: str
    target_id: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
