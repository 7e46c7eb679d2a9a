"""
Order Lifecycle Manager

The only entry point for new orders and status changes. Enforces:

    - required customer fields and a non-empty selection list
    - total_amount == sum(unit_price * quantity), recomputed server-side
    - total_amount >= configured minimum
    - the legal status transition table, applied with a per-order
      compare-and-swap so concurrent staff actions cannot both win

Author: Khalil Bannouri
Version: 1.0.0
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from orderflow.core.exceptions import (
    BelowMinimum,
    IllegalTransition,
    NotFound,
    TransitionConflict,
    ValidationFailed,
)
from orderflow.models import Order, OrderStatus, validate_transition
from orderflow.services.cart import MenuSelection
from orderflow.services.order_store import OrderStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderEvent:
    """A committed lifecycle change, handed to the optional event hook."""
    kind: str  # "created" | "status_changed"
    order_id: int
    status: str
    customer_name: str
    total_amount: int
    previous_status: Optional[str] = None
    items: Optional[str] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "order_id": self.order_id,
            "status": self.status,
            "previous_status": self.previous_status,
            "customer_name": self.customer_name,
            "total_amount": self.total_amount,
            "items": self.items,
            "occurred_at": self.occurred_at.isoformat(),
        }


def _require(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationFailed(f"{field_name} is required", field=field_name)
    return str(value).strip()


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def recompute_total(selections: Sequence[MenuSelection]) -> int:
    """Validate each selection and return the exact sum of line totals."""
    total = 0
    for selection in selections:
        if not _is_int(selection.quantity) or selection.quantity <= 0:
            raise ValidationFailed(
                f"Quantity for {selection.menu_item_name!r} must be a positive integer",
                field="selections",
            )
        if not _is_int(selection.unit_price) or selection.unit_price < 0:
            raise ValidationFailed(
                f"Price for {selection.menu_item_name!r} must be a non-negative integer",
                field="selections",
            )
        total += selection.unit_price * selection.quantity
    return total


class OrderLifecycleManager:
    """Creates orders and moves them through the status state machine."""

    def __init__(
        self,
        store: OrderStore,
        minimum_order_amount: int,
        on_event: Optional[Callable[[OrderEvent], None]] = None,
    ):
        self.store = store
        self.minimum_order_amount = minimum_order_amount
        self._on_event = on_event

    def _emit(self, event: OrderEvent) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event)
        except Exception:
            # The order is already committed; a failing hook must not undo that
            logger.exception(f"Order event hook failed for order #{event.order_id}")

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create(
        self,
        customer_name: str,
        customer_phone: str,
        customer_location: str,
        selections: Sequence[MenuSelection],
        total_amount: int,
        customer_email: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> int:
        """
        Validate and persist a new pending order.

        Returns:
            The id of the new order, or of the existing order when the
            idempotency key was already used.

        Raises:
            ValidationFailed: Bad customer fields, selections or total
            BelowMinimum: Total under the configured minimum
            StoreUnavailable: Persistence failure
        """
        name = _require(customer_name, "customer_name")
        phone = _require(customer_phone, "customer_phone")
        location = _require(customer_location, "customer_location")
        email = customer_email.strip() if customer_email and customer_email.strip() else None

        if not selections:
            raise ValidationFailed("Order must contain at least one item", field="selections")

        expected = recompute_total(selections)
        if not _is_int(total_amount) or total_amount != expected:
            logger.warning(
                f"Rejected order for {name}: total {total_amount!r} != recomputed {expected}"
            )
            raise ValidationFailed(
                f"Total amount {total_amount!r} does not match item total {expected}",
                field="total_amount",
            )

        if total_amount < self.minimum_order_amount:
            logger.warning(
                f"Rejected order for {name}: {total_amount} below minimum "
                f"{self.minimum_order_amount}"
            )
            raise BelowMinimum(total_amount, self.minimum_order_amount)

        items_json = json.dumps([s.to_dict() for s in selections], ensure_ascii=False)

        order, created = await self.store.insert(
            customer_name=name,
            customer_phone=phone,
            customer_email=email,
            customer_location=location,
            items=items_json,
            total_amount=total_amount,
            idempotency_key=idempotency_key,
        )

        if not created:
            logger.info(f"Duplicate submission for key {idempotency_key}; returning order #{order.id}")
            return order.id

        logger.info(f"Order #{order.id} created for {name} (total {total_amount})")
        self._emit(OrderEvent(
            kind="created",
            order_id=order.id,
            status=order.status.value,
            customer_name=order.customer_name,
            total_amount=order.total_amount,
            items=order.items,
            occurred_at=order.created_at,
        ))
        return order.id

    # =========================================================================
    # TRANSITION
    # =========================================================================

    async def transition(self, order_id: int, target_status) -> Order:
        """
        Move an order to `target_status`.

        Raises:
            ValidationFailed: Unknown status value
            NotFound: No such order
            IllegalTransition: Pair not in the legal table
            TransitionConflict: Order changed between read and update
            StoreUnavailable: Persistence failure
        """
        target = OrderStatus.parse(target_status)
        order = await self.get(order_id)
        current = order.status

        try:
            validate_transition(current, target)
        except IllegalTransition:
            logger.warning(f"Order #{order_id}: rejected {current.value} → {target.value}")
            raise

        applied = await self.store.compare_and_set_status(
            order_id=order_id,
            expected_version=order.version,
            expected_status=current,
            new_status=target,
        )
        if not applied:
            latest = await self.store.get(order_id)
            observed = latest.status.value if latest is not None else current.value
            logger.warning(
                f"Order #{order_id}: {current.value} → {target.value} lost a race (now {observed})"
            )
            raise TransitionConflict(observed, target.value)

        updated = await self.get(order_id)
        logger.info(f"Order #{order_id}: {current.value} → {target.value}")
        self._emit(OrderEvent(
            kind="status_changed",
            order_id=updated.id,
            status=updated.status.value,
            previous_status=current.value,
            customer_name=updated.customer_name,
            total_amount=updated.total_amount,
        ))
        return updated

    # =========================================================================
    # READS
    # =========================================================================

    async def get(self, order_id: int) -> Order:
        order = await self.store.get(order_id)
        if order is None:
            raise NotFound(f"Order #{order_id} not found")
        return order

    async def list_recent(self, limit: int) -> list[Order]:
        return await self.store.list_recent(limit)
