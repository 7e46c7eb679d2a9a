"""
SQLAlchemy Database Models

The orders table is the single source of truth for order state.
Only status, version and updated_at change after an order is created;
everything else is a snapshot taken at submit time.

Author: Khalil Bannouri
Version: 1.0.0
"""

import enum
import json
from typing import Any

from sqlalchemy import Column, DateTime, Enum, Integer, String, Text

from orderflow.core.exceptions import IllegalTransition, ValidationFailed
from orderflow.database import Base


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return not LEGAL_TRANSITIONS[self]

    @classmethod
    def parse(cls, value: str) -> "OrderStatus":
        """Parse a status string, rejecting unknown values as input errors."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = [s.value for s in cls]
            raise ValidationFailed(
                f"Unknown status {value!r}. Options: {valid}", field="status"
            )


# Single source of truth for status transitions
LEGAL_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),  # Terminal
    OrderStatus.CANCELLED: frozenset(),  # Terminal
}


def validate_transition(current: OrderStatus, target: OrderStatus) -> None:
    """
    Validate whether a status transition is allowed.

    Raises IllegalTransition if invalid.
    """
    if target not in LEGAL_TRANSITIONS[current]:
        raise IllegalTransition(current.value, target.value)


class Order(Base):
    """
    Main Order table - one row per submitted order.

    `version` is bumped by every status change and is the compare-and-swap
    token for concurrent transitions.
    """
    __tablename__ = "orders"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(20), nullable=False, index=True)
    customer_email = Column(String(255), nullable=True)
    customer_location = Column(String(255), nullable=False)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    items = Column(Text, nullable=False)  # JSON string of selection snapshots
    total_amount = Column(Integer, nullable=False)

    # =========================================================================
    # ORDER STATUS
    # =========================================================================
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    version = Column(Integer, nullable=False, default=1)

    # =========================================================================
    # DEDUPLICATION
    # =========================================================================
    idempotency_key = Column(String(64), nullable=True, unique=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def selections(self) -> list[dict[str, Any]]:
        return json.loads(self.items)

    def __repr__(self):
        return f"<Order #{self.id} - {self.customer_name} - {self.status.value} v{self.version}>"
