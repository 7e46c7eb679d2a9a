"""
Order Feed Differ

Each dashboard session owns a FeedCursor holding the snapshot it saw last.
New snapshots are compared by order id (set difference), never by
position or length, so an insert anywhere in the window is caught once
and a reorder alone raises nothing.

Also home to the dashboard read model, which is recomputed in full from
every snapshot.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Sequence

from orderflow.models import Order, OrderStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderSnapshot:
    """The fields of an order the feed and dashboard care about."""
    id: int
    customer_name: str
    total_amount: int
    status: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderSnapshot":
        return cls(
            id=order.id,
            customer_name=order.customer_name,
            total_amount=order.total_amount,
            status=order.status.value,
            created_at=order.created_at,
        )


@dataclass(frozen=True)
class NewOrderEvent:
    order_id: int
    customer_name: str
    total_amount: int


@dataclass(frozen=True)
class StatusChangeEvent:
    order_id: int
    customer_name: str
    previous_status: str
    status: str


@dataclass
class FeedDelta:
    new_orders: list[NewOrderEvent] = field(default_factory=list)
    status_changes: list[StatusChangeEvent] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.new_orders and not self.status_changes


class FeedCursor:
    """Per-session memory of the previously observed order window."""

    def __init__(self, window: int = 50):
        self.window = window
        self._previous: dict[int, OrderSnapshot] = {}
        self._sequence: Optional[int] = None
        self.primed = False

    @property
    def previous_ids(self) -> set[int]:
        return set(self._previous)

    def observe(self, snapshot: Sequence[OrderSnapshot], sequence: Optional[int] = None) -> FeedDelta:
        """
        Diff `snapshot` (most recent first) against the last observation.

        The first call only records a baseline. After that, every id that
        is present now and was absent before yields one NewOrderEvent, and
        every order whose status differs yields one StatusChangeEvent.

        `sequence` numbers the read that produced the snapshot. A snapshot
        read before the last accepted one is stale: it is ignored and the
        cursor keeps the newer baseline.
        """
        if sequence is not None and self._sequence is not None and sequence <= self._sequence:
            logger.debug(f"Ignoring stale snapshot {sequence} (last accepted {self._sequence})")
            return FeedDelta()

        current = list(snapshot)[: self.window]
        delta = FeedDelta()

        if self.primed:
            for order in current:
                previous = self._previous.get(order.id)
                if previous is None:
                    delta.new_orders.append(
                        NewOrderEvent(order.id, order.customer_name, order.total_amount)
                    )
                elif previous.status != order.status:
                    delta.status_changes.append(
                        StatusChangeEvent(
                            order.id, order.customer_name, previous.status, order.status
                        )
                    )

        self._previous = {order.id: order for order in current}
        if sequence is not None:
            self._sequence = sequence
        self.primed = True
        return delta


# =============================================================================
# DASHBOARD READ MODEL
# =============================================================================

@dataclass(frozen=True)
class DashboardStats:
    total_orders: int
    pending_orders: int
    processing_orders: int
    completed_orders: int
    cancelled_orders: int
    revenue: int  # completed orders only

    def to_dict(self) -> dict:
        return {
            "total_orders": self.total_orders,
            "pending_orders": self.pending_orders,
            "processing_orders": self.processing_orders,
            "completed_orders": self.completed_orders,
            "cancelled_orders": self.cancelled_orders,
            "revenue": self.revenue,
        }


def summarize_orders(snapshot: Iterable[OrderSnapshot]) -> DashboardStats:
    """Counts and revenue derived from one snapshot, from scratch."""
    counts = {status.value: 0 for status in OrderStatus}
    revenue = 0
    total = 0
    for order in snapshot:
        total += 1
        counts[order.status] = counts.get(order.status, 0) + 1
        if order.status == OrderStatus.COMPLETED.value:
            revenue += order.total_amount

    return DashboardStats(
        total_orders=total,
        pending_orders=counts[OrderStatus.PENDING.value],
        processing_orders=counts[OrderStatus.PROCESSING.value],
        completed_orders=counts[OrderStatus.COMPLETED.value],
        cancelled_orders=counts[OrderStatus.CANCELLED.value],
        revenue=revenue,
    )
