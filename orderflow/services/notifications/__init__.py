"""
Alert Sink Factory

Returns the Mock or Redis alert sink based on ENV_MODE, and re-exports
the notification building blocks.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from functools import lru_cache

from orderflow.core.config import get_settings
from orderflow.services.notifications.base import Alert, AlertResult, BaseAlertSink
from orderflow.services.notifications.center import (
    NEW_ORDER,
    STATUS_CHANGE,
    NotificationCenter,
    NotificationRecord,
)
from orderflow.services.notifications.dispatcher import NotificationDispatcher
from orderflow.services.notifications.mock import MockAlertSink
from orderflow.services.notifications.pubsub import RedisAlertSink

logger = logging.getLogger(__name__)


@lru_cache()
def get_alert_sink() -> BaseAlertSink:
    """Get the configured alert sink."""
    settings = get_settings()

    if settings.use_real_services:
        logger.info(f"Alert Sink: Using RedisAlertSink ({settings.env_mode.value} mode)")
        return RedisAlertSink()
    else:
        logger.info("Alert Sink: Using MockAlertSink (development mode)")
        return MockAlertSink()


def reset_alert_sink() -> None:
    """Clear the cached sink instance."""
    get_alert_sink.cache_clear()


__all__ = [
    "get_alert_sink",
    "reset_alert_sink",
    "Alert",
    "AlertResult",
    "BaseAlertSink",
    "MockAlertSink",
    "RedisAlertSink",
    "NotificationCenter",
    "NotificationRecord",
    "NotificationDispatcher",
    "NEW_ORDER",
    "STATUS_CHANGE",
]
