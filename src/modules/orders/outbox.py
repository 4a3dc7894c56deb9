"""Notification outbox.

Every confirmed mutation obliges the backend to notify the customer.
The core records that obligation here, after the commit, instead of
calling anything inline.  Consumers (operator notices, audit export)
drain ``PENDING`` entries in order and mark them published or failed,
independently of the state machine.

Workflow:
1. A domain event handler calls ``record(event)``.
2. A consumer reads ``pending()`` (ordered by uuid7 id, i.e. creation time).
3. On success -> ``mark_as_published(entry_id)``.
4. On failure -> ``mark_as_failed(entry_id, error)`` increments ``retry_count``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID

import structlog
import uuid6

from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)

MAX_RETRIES = 5


class EventStatus(str, Enum):
    PENDING = "PENDING"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


@dataclass
class OutboxEntry:
    event: DomainEvent
    id: UUID = field(default_factory=uuid6.uuid7)
    status: EventStatus = EventStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    retry_count: int = 0

    @property
    def event_type(self) -> str:
        return self.event.event_name

    @property
    def aggregate_id(self) -> str:
        return self.event.aggregate_id

    def mark_as_published(self) -> None:
        """Mark the entry as successfully published."""
        self.status = EventStatus.PUBLISHED
        self.processed_at = datetime.now(timezone.utc)
        self.error_message = None

    def mark_as_failed(self, error: str) -> None:
        """Record a failed publish attempt; gives up after ``MAX_RETRIES``."""
        self.retry_count += 1
        self.error_message = error
        self.status = (
            EventStatus.FAILED if self.retry_count >= MAX_RETRIES else EventStatus.PENDING
        )


class NotificationOutbox:
    """In-memory outbox of notification obligations."""

    def __init__(self) -> None:
        self._entries: Dict[UUID, OutboxEntry] = {}

    def record(self, event: DomainEvent) -> OutboxEntry:
        entry = OutboxEntry(event=event)
        self._entries[entry.id] = entry
        logger.info(
            "outbox.recorded",
            entry_id=str(entry.id),
            event_type=entry.event_type,
            aggregate_id=entry.aggregate_id,
        )
        return entry

    def pending(self) -> List[OutboxEntry]:
        return sorted(
            (e for e in self._entries.values() if e.status is EventStatus.PENDING),
            key=lambda e: e.id,
        )

    def for_order(self, order_id: str) -> List[OutboxEntry]:
        return sorted(
            (e for e in self._entries.values() if e.aggregate_id == order_id),
            key=lambda e: e.id,
        )

    def mark_as_published(self, entry_id: UUID) -> None:
        self._entries[entry_id].mark_as_published()

    def mark_as_failed(self, entry_id: UUID, error: str) -> None:
        entry = self._entries[entry_id]
        entry.mark_as_failed(error)
        logger.warning(
            "outbox.publish_failed",
            entry_id=str(entry_id),
            retry_count=entry.retry_count,
            status=entry.status.value,
        )

    def __len__(self) -> int:
        return len(self._entries)
