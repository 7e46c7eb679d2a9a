"""
Notification Center

Session-scoped rolling list of recent notifications with read/unread
state. Newest first, capped at a fixed capacity; the oldest record is
evicted on overflow. Nothing here is persisted.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from orderflow.core.exceptions import NotFound

logger = logging.getLogger(__name__)

NEW_ORDER = "new_order"
STATUS_CHANGE = "status_change"


@dataclass
class NotificationRecord:
    id: str
    kind: str
    title: str
    message: str
    order_id: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    read: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "order_id": self.order_id,
            "timestamp": self.timestamp.isoformat(),
            "read": self.read,
        }


class NotificationCenter:
    """Bounded, newest-first list of notifications for one dashboard."""

    def __init__(self, capacity: int = 10, on_locate: Optional[Callable[[int], None]] = None):
        self.capacity = capacity
        self.on_locate = on_locate
        self._records: deque[NotificationRecord] = deque(maxlen=capacity)

    def push(self, record: NotificationRecord) -> None:
        # appendleft on a full deque drops the rightmost (oldest) record
        self._records.appendleft(record)

    def records(self) -> list[NotificationRecord]:
        return list(self._records)

    def unread_count(self) -> int:
        return sum(1 for record in self._records if not record.read)

    def _find(self, notification_id: str) -> NotificationRecord:
        for record in self._records:
            if record.id == notification_id:
                return record
        raise NotFound(f"Notification {notification_id} not found")

    def acknowledge(self, notification_id: str) -> NotificationRecord:
        record = self._find(notification_id)
        record.read = True
        return record

    def acknowledge_all(self) -> int:
        """Mark everything read. Returns how many records changed."""
        changed = 0
        for record in self._records:
            if not record.read:
                record.read = True
                changed += 1
        return changed

    def open(self, notification_id: str) -> Optional[int]:
        """
        Handle a click on a notification: mark it read and ask the
        dashboard to locate and highlight the linked order.
        """
        record = self.acknowledge(notification_id)
        if record.order_id is not None and self.on_locate is not None:
            self.on_locate(record.order_id)
        return record.order_id
