"""
Mock Alert Sink

Used in development and tests. No sound is played and no banner is shown;
alerts are logged and kept in memory so they can be inspected.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging

from orderflow.services.notifications.base import Alert, AlertResult, BaseAlertSink

logger = logging.getLogger(__name__)


class MockAlertSink(BaseAlertSink):
    """Mock alert sink for development."""

    def __init__(self):
        self.alerts: list[Alert] = []
        logger.info("MockAlertSink initialized")

    @property
    def provider_name(self) -> str:
        return "mock"

    def emit(self, alert: Alert) -> AlertResult:
        self.alerts.append(alert)
        sound = "🔔 " if alert.play_sound else ""
        logger.info(f"Mock alert: {sound}{alert.title} - {alert.message}")
        return AlertResult(success=True, provider="mock")

    def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True
