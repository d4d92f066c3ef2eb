"""Time-gated chat between the parties of a booking."""

from .gate import (
    can_send,
    chat_status,
    effective_status,
    session_window,
    time_remaining,
    watch_chat_status,
)
from .service import ChatService

__all__ = [
    "ChatService",
    "can_send",
    "chat_status",
    "effective_status",
    "session_window",
    "time_remaining",
    "watch_chat_status",
]
