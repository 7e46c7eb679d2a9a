"""
Tests for the Excel order ledger and the Celery hook that feeds it.
"""

import json
import logging
from datetime import datetime, timezone

import pytest

from orderflow.core.config import get_settings
from orderflow.services.lifecycle import OrderEvent
from orderflow.services.ledger import OrderLedger
from orderflow import tasks


def make_event(order_id=1, kind="created", status="pending", previous_status=None):
    return OrderEvent(
        kind=kind,
        order_id=order_id,
        status=status,
        customer_name="Rahim Uddin",
        total_amount=350,
        previous_status=previous_status,
        items=json.dumps([{"menu_item_id": "biryani", "quantity": 2}]),
        occurred_at=datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


class TestOrderLedger:

    def test_append_creates_file_and_rows(self, tmp_path):
        ledger = OrderLedger(tmp_path / "data" / "ledger.xlsx", lock_timeout=5)

        first = ledger.append(make_event(1).to_dict())
        second = ledger.append(make_event(
            1, kind="status_changed", status="processing", previous_status="pending"
        ).to_dict())

        assert first["success"] and second["success"]
        rows = ledger.read_all()
        assert [r["event"] for r in rows] == ["created", "status_changed"]
        assert rows[1]["status"] == "processing"
        assert rows[1]["previous_status"] == "pending"
        assert rows[0]["total_amount"] == 350

    def test_read_all_without_file(self, tmp_path):
        assert OrderLedger(tmp_path / "missing.xlsx").read_all() == []

    def test_lock_timeout_is_reported(self, tmp_path):
        from filelock import FileLock

        ledger = OrderLedger(tmp_path / "ledger.xlsx", lock_timeout=0.1)
        with FileLock(str(ledger.lock_path)):
            result = ledger.append(make_event(7).to_dict())

        assert result["success"] is False
        assert "timeout" in result["message"].lower()
        assert not ledger.path.exists()


@pytest.fixture
def export_settings(monkeypatch, tmp_path):
    settings = get_settings()
    monkeypatch.setattr(settings, "ledger_export_enabled", True)
    monkeypatch.setattr(settings, "data_directory", str(tmp_path))
    return settings


class TestQueueOrderEvent:

    def test_disabled_export_queues_nothing(self, monkeypatch):
        queued = []
        monkeypatch.setattr(get_settings(), "ledger_export_enabled", False)
        monkeypatch.setattr(tasks.record_order_event, "delay", queued.append)

        tasks.queue_order_event(make_event())
        assert queued == []

    def test_enabled_export_queues_payload(self, monkeypatch, export_settings):
        queued = []
        monkeypatch.setattr(tasks.record_order_event, "delay", queued.append)

        tasks.queue_order_event(make_event(5))
        assert queued[0]["order_id"] == 5
        assert queued[0]["kind"] == "created"

    def test_broker_failure_is_logged_not_raised(self, monkeypatch, export_settings, caplog):
        def refuse(payload):
            raise ConnectionError("broker down")

        monkeypatch.setattr(tasks.record_order_event, "delay", refuse)
        with caplog.at_level(logging.ERROR, logger="orderflow.tasks"):
            tasks.queue_order_event(make_event(9))
        assert "order #9" in caplog.text

    def test_task_writes_to_configured_ledger(self, export_settings, tmp_path):
        result = tasks.record_order_event.apply(args=[make_event(3).to_dict()]).get()

        assert result["success"] is True
        rows = OrderLedger(tmp_path / export_settings.ledger_filename).read_all()
        assert [r["order_id"] for r in rows] == [3]


class LockedLedger:

    def append(self, event):
        return {"success": False, "message": "Lock timeout (30s)", "order_id": event["order_id"]}


class RetryRequested(Exception):
    pass


class TestRecordOrderEventRetry:

    def test_lock_timeout_schedules_a_retry(self, monkeypatch):
        requested = []

        def retry(**kwargs):
            requested.append(kwargs)
            return RetryRequested()

        monkeypatch.setattr(tasks, "get_ledger", lambda: LockedLedger())
        monkeypatch.setattr(tasks.record_order_event, "retry", retry)

        with pytest.raises(RetryRequested):
            tasks.record_order_event(make_event(4).to_dict())
        assert requested and requested[0]["countdown"] >= tasks.record_order_event.default_retry_delay
