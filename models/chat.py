"""Chat session and message models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, model_validator


class ChatStatus(str, Enum):
    """Derived availability of a chat session."""

    NOT_STARTED = "not_started"
    ACTIVE = "active"
    ENDED = "ended"


class ChatSession(BaseModel):
    """Chat session bound to one booking's scheduled window."""

    id: Optional[str] = None
    booking_id: str
    user_id: str
    companion_id: str
    starts_at: datetime
    ends_at: datetime
    grace_period_ends_at: datetime
    is_active: Optional[bool] = True
    created_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_window(self) -> "ChatSession":
        if not self.starts_at <= self.ends_at <= self.grace_period_ends_at:
            raise ValueError(
                "Chat window must satisfy starts_at <= ends_at <= grace_period_ends_at"
            )
        return self

    def is_participant(self, identity: str) -> bool:
        return identity in (self.user_id, self.companion_id)

    def counterparty(self, identity: str) -> str:
        return self.companion_id if identity == self.user_id else self.user_id


class ChatSessionCreate(BaseModel):
    booking_id: str
    user_id: str
    companion_id: str
    starts_at: datetime
    ends_at: datetime
    grace_period_ends_at: datetime
    is_active: bool = True


class Message(BaseModel):
    """Chat message. Append-only, ordered by ``created_at``."""

    id: Optional[str] = None
    chat_id: str
    sender_id: str
    content: str
    is_read: Optional[bool] = False
    created_at: Optional[datetime] = None


class MessageCreate(BaseModel):
    chat_id: str
    sender_id: str
    content: str
    created_at: datetime
