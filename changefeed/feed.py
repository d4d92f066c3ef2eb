"""
Change-feed interface.

The push transport belongs to an external bridge; the engine depends only on
the ChangeFeed protocol below. Events are hints: consumers re-read the rows
they refer to, so a feed may deliver duplicates or deliver out of order.
"""

import asyncio
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, AsyncIterator, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from config import settings
from models.actor import Actor
from utils.constants import MESSAGES_TABLE


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """One row mutation reported by a change feed."""

    table: str
    event: ChangeType
    record: dict[str, Any] = Field(default_factory=dict)
    old_record: dict[str, Any] = Field(default_factory=dict)
    commit_timestamp: Optional[datetime] = None

    @property
    def row_id(self) -> Optional[str]:
        return self.record.get("id") or self.old_record.get("id")


class ChangeFilter(BaseModel):
    """Subscription filter, e.g. INSERT on messages where chat_id = X."""

    table: str
    event: Optional[ChangeType] = None  # None matches every event type
    column: Optional[str] = None
    value: Optional[str] = None

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        if self.event is not None and change.event != self.event:
            return False
        if self.column is not None:
            row = change.record or change.old_record
            if str(row.get(self.column)) != self.value:
                return False
        return True


@runtime_checkable
class ChangeFeed(Protocol):
    def subscribe(self, change_filter: ChangeFilter) -> AsyncIterator[ChangeEvent]:
        ...


class PollingMessageFeed:
    """
    ChangeFeed for new chat messages that polls the store.

    This is the path used when no push channel is available; it reads with
    ``list_messages(since=...)`` on a fixed interval.
    """

    def __init__(
        self,
        chat_service,
        actor: Actor,
        interval: Optional[float] = None,
    ):
        self.chat = chat_service
        self.actor = actor
        self.interval = (
            settings.chat_poll_interval_seconds if interval is None else interval
        )

    async def subscribe(self, change_filter: ChangeFilter) -> AsyncIterator[ChangeEvent]:
        if change_filter.table != MESSAGES_TABLE or change_filter.column != "chat_id":
            raise ValueError("PollingMessageFeed only serves messages filtered by chat_id")
        if change_filter.event not in (None, ChangeType.INSERT):
            raise ValueError("Messages are append-only; only INSERT can be followed")

        chat_id = change_filter.value
        newest: Optional[datetime] = None
        seen: set[str] = set()

        while True:
            # Overlap by one second so rows sharing the newest timestamp are not missed
            since = newest - timedelta(seconds=1) if newest else None
            messages = await self.chat.list_messages(self.actor, chat_id, since=since)
            for message in messages:
                if message.id in seen:
                    continue
                seen.add(message.id)
                if message.created_at and (newest is None or message.created_at > newest):
                    newest = message.created_at
                yield ChangeEvent(
                    table=MESSAGES_TABLE,
                    event=ChangeType.INSERT,
                    record=message.model_dump(mode="json"),
                    commit_timestamp=message.created_at,
                )
            await asyncio.sleep(self.interval)
