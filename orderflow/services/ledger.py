"""
Order Ledger with Concurrency Control

Append-only Excel ledger of order lifecycle events:
- one "created" row per order
- one "status_changed" row per applied transition

Writes are serialized across Celery worker processes with a file lock.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from orderflow.core.config import get_settings

logger = logging.getLogger(__name__)


class OrderLedger:
    """Process-safe Excel ledger writer."""

    COLUMNS = [
        "order_id",
        "event",
        "status",
        "previous_status",
        "customer_name",
        "total_amount",
        "items",
        "occurred_at",
        "exported_at",
    ]

    def __init__(self, path: Path, lock_timeout: int = 30):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.path.parent}")

    def _load_or_create_df(self) -> pd.DataFrame:
        if self.path.exists():
            return pd.read_excel(self.path, engine="openpyxl")
        return pd.DataFrame(columns=self.COLUMNS)

    def append(self, event: dict[str, Any]) -> dict[str, Any]:
        """
        Append one lifecycle event to the ledger under the file lock.

        Args:
            event: OrderEvent.to_dict() payload

        Returns:
            Result dict with success flag and message. A lock timeout is
            reported here; any other error propagates to the caller.
        """
        self._ensure_data_dir()

        order_id = event.get("order_id", 0)
        result = {
            "success": False,
            "message": "",
            "order_id": order_id,
            "exported_at": None,
        }

        try:
            with FileLock(str(self.lock_path), timeout=self.lock_timeout):
                logger.debug(f"Lock acquired for Order #{order_id}")

                df = self._load_or_create_df()

                export_time = datetime.now().isoformat()
                new_row = {
                    "order_id": order_id,
                    "event": event.get("kind"),
                    "status": event.get("status"),
                    "previous_status": event.get("previous_status"),
                    "customer_name": event.get("customer_name"),
                    "total_amount": event.get("total_amount"),
                    "items": event.get("items"),
                    "occurred_at": event.get("occurred_at", export_time),
                    "exported_at": export_time,
                }

                if df.empty:
                    df = pd.DataFrame([new_row], columns=self.COLUMNS)
                else:
                    df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(self.path), index=False, engine="openpyxl")

                logger.info(f"Order #{order_id} {new_row['event']} written to ledger")

                result["success"] = True
                result["message"] = f"Order #{order_id} {new_row['event']} recorded"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for Order #{order_id}")

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Ledger lock timeout for Order #{order_id}")

        return result

    def read_all(self) -> list[dict[str, Any]]:
        """All ledger rows, oldest first."""
        if not self.path.exists():
            return []
        df = pd.read_excel(self.path, engine="openpyxl")
        return df.to_dict("records")


def get_ledger(path: Optional[Path] = None) -> OrderLedger:
    settings = get_settings()
    return OrderLedger(
        path or Path(settings.data_directory) / settings.ledger_filename,
        lock_timeout=settings.ledger_lock_timeout,
    )
