"""
                        Services Module

Business logic of the order engine.

Services:
    - cart: client-local cart aggregation
    - order_store: durable order records with compare-and-swap updates
    - lifecycle: order creation and status transitions
    - feed: snapshot differ and dashboard read model
    - notifications: notification list, dispatcher and alert sinks (Mock/Redis)
    - dashboard: per-dashboard session state
    - ledger: process-safe Excel ledger of lifecycle events
"""

from orderflow.services.cart import Cart, CustomerDetails, MenuItem, MenuSelection
from orderflow.services.lifecycle import OrderEvent, OrderLifecycleManager
from orderflow.services.order_store import OrderStore

__all__ = [
    "Cart",
    "CustomerDetails",
    "MenuItem",
    "MenuSelection",
    "OrderEvent",
    "OrderLifecycleManager",
    "OrderStore",
]
