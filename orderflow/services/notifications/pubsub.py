"""
Redis Alert Sink

Production implementation: publishes each alert as JSON on a Redis
pub/sub channel. Push-based dashboards subscribe to the channel to play
the sound and show the banner.

Author: Khalil Bannouri
Version: 1.0.0
"""

import json
import logging
from typing import Optional

import redis

from orderflow.core.config import get_settings
from orderflow.services.notifications.base import Alert, AlertResult, BaseAlertSink

logger = logging.getLogger(__name__)


class RedisAlertSink(BaseAlertSink):
    """Production alert sink using Redis pub/sub."""

    def __init__(self, client: Optional[redis.Redis] = None, channel: Optional[str] = None):
        settings = get_settings()
        self.client = client or redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        self.channel = channel or settings.alert_channel
        logger.info(f"RedisAlertSink initialized (channel={self.channel})")

    @property
    def provider_name(self) -> str:
        return "redis"

    def emit(self, alert: Alert) -> AlertResult:
        try:
            receivers = self.client.publish(
                self.channel, json.dumps(alert.to_dict(), ensure_ascii=False)
            )
            logger.debug(f"Alert {alert.notification_id} published to {receivers} subscribers")
            return AlertResult(success=True, provider="redis")

        except redis.RedisError as e:
            logger.error(f"Redis alert publish failed: {e}")
            return AlertResult(success=False, error_message=str(e), provider="redis")

    def health_check(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False
