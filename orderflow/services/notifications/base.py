"""
Alert Sink Abstract Base Class

Defines the interface for raising ephemeral dashboard alerts (sound +
transient banner). Supports both Mock (development) and Redis (production)
implementations.

Author: Khalil Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class Alert:
    """One ephemeral alert bound to a notification."""
    notification_id: str
    kind: str
    title: str
    message: str
    order_id: Optional[int] = None
    play_sound: bool = True
    banner_ms: int = 5000
    action_label: Optional[str] = None
    session_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "notification_id": self.notification_id,
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "order_id": self.order_id,
            "play_sound": self.play_sound,
            "banner_ms": self.banner_ms,
            "action_label": self.action_label,
            "session_id": self.session_id,
        }


@dataclass
class AlertResult:
    """Result from raising an alert."""
    success: bool
    error_message: Optional[str] = None
    provider: str = "unknown"


class BaseAlertSink(ABC):
    """Abstract base class for alert sinks."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    def emit(self, alert: Alert) -> AlertResult:
        """Raise one alert."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check sink connectivity."""
        pass
