"""
Unit tests for the Order Feed Differ and the dashboard read model.
"""

from orderflow.services.feed import (
    FeedCursor,
    NewOrderEvent,
    OrderSnapshot,
    StatusChangeEvent,
    summarize_orders,
)


def snap(order_id, status="pending", total=300, name=None):
    return OrderSnapshot(order_id, name or f"Customer {order_id}", total, status)


def primed(snapshot, window=50):
    cursor = FeedCursor(window=window)
    cursor.observe(snapshot)
    return cursor


class TestFeedCursor:

    def test_first_observation_only_primes(self):
        cursor = FeedCursor()
        delta = cursor.observe([snap(1), snap(2)])
        assert delta.is_empty
        assert cursor.primed
        assert cursor.previous_ids == {1, 2}

    def test_insert_at_front_emits_only_new_order(self):
        cursor = primed([snap(1), snap(2), snap(3)])
        delta = cursor.observe([snap(4, total=450, name="Karim"), snap(1), snap(2), snap(3)])
        assert delta.new_orders == [NewOrderEvent(4, "Karim", 450)]
        assert delta.status_changes == []

    def test_reorder_emits_nothing(self):
        cursor = primed([snap(1), snap(2)])
        delta = cursor.observe([snap(2), snap(1)])
        assert delta.is_empty

    def test_insert_in_middle_is_detected(self):
        cursor = primed([snap(5), snap(3)])
        delta = cursor.observe([snap(5), snap(4), snap(3)])
        assert [e.order_id for e in delta.new_orders] == [4]

    def test_same_length_window_with_new_order_is_detected(self):
        """A full window that shifted by one still yields the new id."""
        cursor = primed([snap(3), snap(2)], window=2)
        delta = cursor.observe([snap(4), snap(3), snap(2), snap(1)])
        assert [e.order_id for e in delta.new_orders] == [4]
        assert cursor.previous_ids == {4, 3}

    def test_each_order_alerts_at_most_once(self):
        cursor = primed([snap(1)])
        first = cursor.observe([snap(2), snap(1)])
        second = cursor.observe([snap(2), snap(1)])
        assert len(first.new_orders) == 1
        assert second.is_empty

    def test_empty_store_then_first_order_alerts(self):
        cursor = primed([])
        delta = cursor.observe([snap(1)])
        assert [e.order_id for e in delta.new_orders] == [1]

    def test_multiple_new_orders_in_snapshot_order(self):
        cursor = primed([snap(1)])
        delta = cursor.observe([snap(3), snap(2), snap(1)])
        assert [e.order_id for e in delta.new_orders] == [3, 2]

    def test_status_change_detected(self):
        cursor = primed([snap(1), snap(2)])
        delta = cursor.observe([snap(1, "processing"), snap(2)])
        assert delta.new_orders == []
        assert delta.status_changes == [
            StatusChangeEvent(1, "Customer 1", "pending", "processing")
        ]

    def test_stale_snapshot_is_ignored(self):
        cursor = FeedCursor()
        cursor.observe([snap(1)], sequence=1)
        fresh = cursor.observe([snap(2), snap(1, "processing")], sequence=3)
        stale = cursor.observe([snap(1)], sequence=2)
        after = cursor.observe([snap(2), snap(1, "processing")], sequence=4)

        assert [e.order_id for e in fresh.new_orders] == [2]
        assert len(fresh.status_changes) == 1
        assert stale.is_empty
        assert cursor.previous_ids == {1, 2}
        assert after.is_empty

    def test_independent_cursors(self):
        a = primed([snap(1)])
        b = primed([snap(1)])
        a.observe([snap(2), snap(1)])
        delta = b.observe([snap(2), snap(1)])
        assert [e.order_id for e in delta.new_orders] == [2]


class TestSummarize:

    def test_counts_and_completed_revenue(self):
        stats = summarize_orders([
            snap(1, "pending", 300),
            snap(2, "processing", 400),
            snap(3, "completed", 500),
            snap(4, "completed", 350),
            snap(5, "cancelled", 900),
        ])
        assert stats.total_orders == 5
        assert stats.pending_orders == 1
        assert stats.processing_orders == 1
        assert stats.completed_orders == 2
        assert stats.cancelled_orders == 1
        assert stats.revenue == 850

    def test_empty_snapshot(self):
        stats = summarize_orders([])
        assert stats.total_orders == 0
        assert stats.revenue == 0
