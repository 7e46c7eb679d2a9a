"""
Cart Aggregator

Client-local accumulation of menu selections into a priced draft order.
A cart belongs to one browsing session and is never shared, so it holds
plain in-memory state with no locking.

The minimum order check here is advisory; OrderLifecycleManager.create
re-validates it against the same configured threshold.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from orderflow.core.exceptions import BelowMinimum

if TYPE_CHECKING:
    from orderflow.services.lifecycle import OrderLifecycleManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MenuItem:
    """A menu entry as supplied by the menu/category provider."""
    id: str
    name: str
    price: int


@dataclass(frozen=True)
class MenuSelection:
    """One cart line: menu item, unit price at selection time and quantity."""
    menu_item_id: str
    menu_item_name: str
    unit_price: int
    quantity: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "menu_item_id": self.menu_item_id,
            "menu_item_name": self.menu_item_name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class CartEvent:
    """User-visible acknowledgment of a cart change."""
    kind: str  # "added" | "removed" | "cleared"
    menu_item_id: Optional[str]
    message: str


@dataclass(frozen=True)
class CustomerDetails:
    name: str
    phone: str
    location: str
    email: Optional[str] = None


class Cart:
    """Ephemeral draft order for one customer session."""

    def __init__(self, listener: Optional[Callable[[CartEvent], None]] = None):
        self._lines: list[MenuSelection] = []
        self._listener = listener

    def _notify(self, event: CartEvent) -> None:
        logger.debug(event.message)
        if self._listener is not None:
            self._listener(event)

    def _index_of(self, item_id: str) -> Optional[int]:
        for index, line in enumerate(self._lines):
            if line.menu_item_id == item_id:
                return index
        return None

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add(self, item: MenuItem) -> None:
        index = self._index_of(item.id)
        if index is None:
            self._lines.append(MenuSelection(item.id, item.name, item.price, 1))
        else:
            line = self._lines[index]
            self._lines[index] = MenuSelection(
                line.menu_item_id, line.menu_item_name, line.unit_price, line.quantity + 1
            )
        self._notify(CartEvent("added", item.id, f"{item.name} added to cart!"))

    def set_quantity(self, item_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove(item_id)
            return
        index = self._index_of(item_id)
        if index is None:
            return
        line = self._lines[index]
        self._lines[index] = MenuSelection(
            line.menu_item_id, line.menu_item_name, line.unit_price, quantity
        )

    def remove(self, item_id: str) -> None:
        index = self._index_of(item_id)
        if index is None:
            return
        del self._lines[index]
        self._notify(CartEvent("removed", item_id, "Item removed from cart"))

    def clear(self) -> None:
        self._lines.clear()

    # =========================================================================
    # QUERIES
    # =========================================================================

    def selections(self) -> list[MenuSelection]:
        return list(self._lines)

    def total(self) -> int:
        return sum(line.line_total for line in self._lines)

    def can_submit(self, minimum: int) -> bool:
        return self.total() >= minimum

    def shortfall(self, minimum: int) -> int:
        """Amount still needed to reach the minimum ("add N more")."""
        return max(0, minimum - self.total())

    def __len__(self) -> int:
        return len(self._lines)

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    async def submit(
        self,
        manager: "OrderLifecycleManager",
        customer: CustomerDetails,
        idempotency_key: Optional[str] = None,
    ) -> int:
        """
        Submit the cart as a new order.

        Prevalidates the minimum locally, then hands the selections and the
        cart total to the lifecycle manager, which validates everything
        again. The cart is cleared only after the order is stored.

        Returns:
            The new order id

        Raises:
            BelowMinimum: Cart total is under the manager's minimum
            OrderEngineError: Anything the manager rejects
        """
        minimum = manager.minimum_order_amount
        total = self.total()
        if not self.can_submit(minimum):
            raise BelowMinimum(total, minimum)

        order_id = await manager.create(
            customer_name=customer.name,
            customer_phone=customer.phone,
            customer_email=customer.email,
            customer_location=customer.location,
            selections=self.selections(),
            total_amount=total,
            idempotency_key=idempotency_key,
        )
        self.clear()
        self._notify(CartEvent("cleared", None, "Order placed successfully!"))
        return order_id
