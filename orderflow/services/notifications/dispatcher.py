"""
Notification Dispatcher

Turns feed deltas into notification records and ephemeral alerts.
Each new order produces exactly one record, one alert and one call to the
`on_new_order` callback (used by the dashboard to scroll to the order).
"""

import logging
import uuid
from typing import Callable, Optional

from orderflow.core.config import get_settings
from orderflow.services.feed import FeedDelta, NewOrderEvent, StatusChangeEvent
from orderflow.services.notifications.base import Alert, BaseAlertSink
from orderflow.services.notifications.center import (
    NEW_ORDER,
    STATUS_CHANGE,
    NotificationCenter,
    NotificationRecord,
)

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Feeds one NotificationCenter and one alert sink."""

    def __init__(
        self,
        center: NotificationCenter,
        sink: BaseAlertSink,
        on_new_order: Optional[Callable[[int], None]] = None,
        session_id: Optional[str] = None,
    ):
        self.center = center
        self.sink = sink
        self.on_new_order = on_new_order
        self.session_id = session_id
        settings = get_settings()
        self._currency = settings.currency_symbol
        self._banner_ms = settings.alert_banner_ms

    def dispatch(self, delta: FeedDelta) -> list[NotificationRecord]:
        """Record and announce every event in `delta`, in order."""
        created = []
        for event in delta.new_orders:
            created.append(self._new_order(event))
        for event in delta.status_changes:
            created.append(self._status_change(event))
        return created

    def _new_order(self, event: NewOrderEvent) -> NotificationRecord:
        record = NotificationRecord(
            id=f"order_{event.order_id}_{uuid.uuid4().hex[:8]}",
            kind=NEW_ORDER,
            title="🔔 New order received!",
            message=(
                f"{event.customer_name} placed a new order. "
                f"Total: {self._currency}{event.total_amount}"
            ),
            order_id=event.order_id,
        )
        self.center.push(record)
        self._alert(record, play_sound=True, action_label="View")
        if self.on_new_order is not None:
            try:
                self.on_new_order(event.order_id)
            except Exception:
                # The cursor has already moved past this delta; keep dispatching the rest
                logger.exception(f"on_new_order callback failed for order #{event.order_id}")
        return record

    def _status_change(self, event: StatusChangeEvent) -> NotificationRecord:
        record = NotificationRecord(
            id=f"status_{event.order_id}_{uuid.uuid4().hex[:8]}",
            kind=STATUS_CHANGE,
            title=f"📝 Order #{event.order_id} updated",
            message=(
                f"{event.customer_name}'s order moved from "
                f"{event.previous_status} to {event.status}"
            ),
            order_id=event.order_id,
        )
        self.center.push(record)
        self._alert(record, play_sound=False, action_label=None)
        return record

    def _alert(self, record: NotificationRecord, play_sound: bool, action_label: Optional[str]) -> None:
        result = self.sink.emit(Alert(
            notification_id=record.id,
            kind=record.kind,
            title=record.title,
            message=record.message,
            order_id=record.order_id,
            play_sound=play_sound,
            banner_ms=self._banner_ms,
            action_label=action_label,
            session_id=self.session_id,
        ))
        if not result.success:
            logger.error(
                f"Alert for {record.id} not delivered via {result.provider}: {result.error_message}"
            )
