"""
Integration tests for the Order Lifecycle Manager against a real SQLite
order store.
"""

import asyncio
import json

import pytest
from sqlalchemy.exc import OperationalError

from orderflow.core.exceptions import (
    BelowMinimum,
    IllegalTransition,
    NotFound,
    StoreUnavailable,
    TransitionConflict,
    ValidationFailed,
)
from orderflow.models import OrderStatus
from orderflow.services.cart import Cart, CustomerDetails, MenuItem, MenuSelection
from orderflow.services.order_store import OrderStore


class TestCreate:

    async def test_create_persists_pending_order(self, manager, store, customer, selections, events):
        order_id = await manager.create(**customer, selections=selections, total_amount=350)

        order = await store.get(order_id)
        assert order.status == OrderStatus.PENDING
        assert order.total_amount == 350
        assert order.version == 1
        assert order.created_at is not None
        assert [s["quantity"] for s in order.selections] == [2, 1]
        assert events[0].kind == "created"
        assert events[0].order_id == order_id

    @pytest.mark.parametrize("field", ["customer_name", "customer_phone", "customer_location"])
    @pytest.mark.parametrize("value", ["", "   ", None])
    async def test_missing_required_field(self, manager, store, customer, selections, field, value):
        customer[field] = value
        with pytest.raises(ValidationFailed) as exc_info:
            await manager.create(**customer, selections=selections, total_amount=350)
        assert exc_info.value.field == field
        assert await store.list_recent(50) == []

    async def test_empty_selections(self, manager, customer):
        with pytest.raises(ValidationFailed):
            await manager.create(**customer, selections=[], total_amount=350)

    @pytest.mark.parametrize("claimed", [349, 351, 0, 3500, 350.5])
    async def test_total_mismatch_always_fails(self, manager, store, customer, selections, claimed):
        with pytest.raises(ValidationFailed) as exc_info:
            await manager.create(**customer, selections=selections, total_amount=claimed)
        assert exc_info.value.field == "total_amount"
        assert await store.list_recent(50) == []

    @pytest.mark.parametrize("bad", [
        MenuSelection("x", "X", 100, 0),
        MenuSelection("x", "X", 100, -1),
        MenuSelection("x", "X", -5, 1),
    ])
    async def test_invalid_selection(self, manager, customer, bad):
        with pytest.raises(ValidationFailed):
            await manager.create(**customer, selections=[bad], total_amount=bad.unit_price * bad.quantity)

    async def test_below_minimum_reports_shortfall_and_persists_nothing(self, manager, store, customer):
        with pytest.raises(BelowMinimum) as exc_info:
            await manager.create(
                **customer,
                selections=[MenuSelection("borhani", "Borhani", 50, 2)],
                total_amount=100,
            )
        assert exc_info.value.shortfall == 200
        assert exc_info.value.minimum == 300
        assert await store.list_recent(50) == []

    async def test_exact_minimum_is_accepted(self, manager, customer):
        order_id = await manager.create(
            **customer,
            selections=[MenuSelection("biryani", "Kacchi Biryani", 150, 2)],
            total_amount=300,
        )
        assert order_id > 0

    async def test_optional_email(self, manager, store, customer, selections):
        order_id = await manager.create(
            **customer, selections=selections, total_amount=350, customer_email="r@example.com"
        )
        assert (await store.get(order_id)).customer_email == "r@example.com"

    async def test_idempotency_key_returns_same_order(self, manager, store, customer, selections, events):
        first = await manager.create(**customer, selections=selections, total_amount=350, idempotency_key="abc")
        second = await manager.create(**customer, selections=selections, total_amount=350, idempotency_key="abc")
        assert first == second
        assert len(await store.list_recent(50)) == 1
        assert len(events) == 1

    async def test_concurrent_duplicate_submissions(self, manager, store, customer, selections):
        ids = await asyncio.gather(*[
            manager.create(**customer, selections=selections, total_amount=350, idempotency_key="dup")
            for _ in range(5)
        ])
        assert len(set(ids)) == 1
        assert len(await store.list_recent(50)) == 1

    async def test_selection_snapshot_is_independent_of_menu(self, manager, store, customer):
        cart = Cart()
        cart.add(MenuItem("biryani", "Kacchi Biryani", 150))
        cart.add(MenuItem("biryani", "Kacchi Biryani", 150))
        order_id = await cart.submit(manager, CustomerDetails("Rahim", "0171", "Block C"))
        stored = json.loads((await store.get(order_id)).items)
        assert stored == [{
            "menu_item_id": "biryani",
            "menu_item_name": "Kacchi Biryani",
            "unit_price": 150,
            "quantity": 2,
        }]


class TestTransition:

    async def _order(self, manager, customer, selections):
        return await manager.create(**customer, selections=selections, total_amount=350)

    async def test_not_found(self, manager):
        with pytest.raises(NotFound):
            await manager.transition(9999, "processing")

    async def test_unknown_status(self, manager, customer, selections):
        order_id = await self._order(manager, customer, selections)
        with pytest.raises(ValidationFailed):
            await manager.transition(order_id, "delivered")

    async def test_skip_to_completed_is_illegal(self, manager, customer, selections):
        order_id = await self._order(manager, customer, selections)
        with pytest.raises(IllegalTransition) as exc_info:
            await manager.transition(order_id, "completed")
        assert exc_info.value.current == "pending"
        assert exc_info.value.target == "completed"

    @pytest.mark.parametrize("path", [
        ["processing", "completed"],
        ["cancelled"],
        ["processing", "cancelled"],
    ])
    @pytest.mark.parametrize("target", ["pending", "processing", "completed", "cancelled"])
    async def test_terminal_orders_never_move(self, manager, customer, selections, path, target):
        order_id = await self._order(manager, customer, selections)
        for status in path:
            await manager.transition(order_id, status)
        with pytest.raises(IllegalTransition):
            await manager.transition(order_id, target)

    async def test_version_and_event(self, manager, customer, selections, events):
        order_id = await self._order(manager, customer, selections)
        order = await manager.transition(order_id, OrderStatus.PROCESSING)
        assert order.status == OrderStatus.PROCESSING
        assert order.version == 2
        assert order.updated_at is not None
        assert events[-1].kind == "status_changed"
        assert events[-1].previous_status == "pending"
        assert events[-1].status == "processing"

    async def test_total_is_never_recomputed(self, manager, customer, selections):
        order_id = await self._order(manager, customer, selections)
        order = await manager.transition(order_id, "processing")
        order = await manager.transition(order_id, "completed")
        assert order.total_amount == 350


class GatedStore(OrderStore):
    """Holds every reader until `parties` reads are in flight, forcing a race."""

    def __init__(self, session_maker, parties):
        super().__init__(session_maker)
        self.gated = False
        self._parties = parties
        self._waiting = 0
        self._released = asyncio.Event()

    async def get(self, order_id):
        order = await super().get(order_id)
        if self.gated:
            self._waiting += 1
            if self._waiting >= self._parties:
                self._released.set()
            await asyncio.wait_for(self._released.wait(), timeout=5)
        return order


class TestConcurrency:

    @pytest.mark.parametrize("source_path,targets", [
        ([], ("processing", "cancelled")),
        (["processing"], ("completed", "cancelled")),
        ([], ("processing", "processing")),
    ])
    async def test_racing_transitions_exactly_one_wins(
        self, session_maker, customer, selections, source_path, targets
    ):
        from orderflow.services.lifecycle import OrderLifecycleManager

        store = GatedStore(session_maker, parties=2)
        manager = OrderLifecycleManager(store, minimum_order_amount=300)
        order_id = await manager.create(**customer, selections=selections, total_amount=350)
        for status in source_path:
            await manager.transition(order_id, status)

        store.gated = True
        results = await asyncio.gather(
            *[manager.transition(order_id, t) for t in targets],
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], IllegalTransition)
        assert isinstance(failures[0], TransitionConflict)

        final = await store.get(order_id)
        assert final.status == successes[0].status
        assert final.version == len(source_path) + 2

    async def test_store_cas_rejects_stale_version(self, manager, store, customer, selections):
        order_id = await manager.create(**customer, selections=selections, total_amount=350)
        first = await store.compare_and_set_status(order_id, 1, OrderStatus.PENDING, OrderStatus.PROCESSING)
        second = await store.compare_and_set_status(order_id, 1, OrderStatus.PENDING, OrderStatus.CANCELLED)
        assert (first, second) == (True, False)


class TestStoreFailures:

    async def test_storage_errors_become_store_unavailable(self, customer, selections):
        class BrokenSession:
            async def __aenter__(self):
                raise OperationalError("SELECT 1", {}, Exception("connection refused"))

            async def __aexit__(self, *exc):
                return False

        from orderflow.services.lifecycle import OrderLifecycleManager

        manager = OrderLifecycleManager(OrderStore(lambda: BrokenSession()), minimum_order_amount=300)
        with pytest.raises(StoreUnavailable) as exc_info:
            await manager.create(**customer, selections=selections, total_amount=350)
        assert exc_info.value.retryable is True
        with pytest.raises(StoreUnavailable):
            await manager.transition(1, "processing")


class TestOrdering:

    async def test_list_recent_is_most_recent_first_and_bounded(self, manager, store, customer, selections):
        ids = [
            await manager.create(**customer, selections=selections, total_amount=350)
            for _ in range(5)
        ]
        recent = await store.list_recent(3)
        assert [o.id for o in recent] == list(reversed(ids))[:3]

    async def test_creation_timestamps_are_monotonic(self, manager, store, customer, selections):
        for _ in range(5):
            await manager.create(**customer, selections=selections, total_amount=350)
        stamps = [o.created_at for o in await store.list_recent(50)]
        assert stamps == sorted(stamps, reverse=True)
        assert len(set(stamps)) == len(stamps)


async def test_end_to_end_lifecycle(manager, store):
    """Cart → create → processing → (pending rejected) → completed → (cancelled rejected)."""
    cart = Cart()
    biryani = MenuItem("biryani", "Kacchi Biryani", 150)
    cart.add(biryani)
    cart.add(biryani)
    cart.add(MenuItem("borhani", "Borhani", 50))
    assert cart.total() == 350

    order_id = await cart.submit(manager, CustomerDetails("Rahim Uddin", "01711-000000", "Block C"))
    assert (await store.get(order_id)).status == OrderStatus.PENDING

    await manager.transition(order_id, "processing")
    with pytest.raises(IllegalTransition):
        await manager.transition(order_id, "pending")
    await manager.transition(order_id, "completed")
    with pytest.raises(IllegalTransition):
        await manager.transition(order_id, "cancelled")

    final = await store.get(order_id)
    assert final.status == OrderStatus.COMPLETED
    assert final.total_amount == 350
