"""
Core module initialization.
Exports configuration, logging utilities and error kinds.
"""

from orderflow.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from orderflow.core.exceptions import (
    OrderEngineError,
    ValidationFailed,
    BelowMinimum,
    NotFound,
    IllegalTransition,
    TransitionConflict,
    StoreUnavailable,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "OrderEngineError",
    "ValidationFailed",
    "BelowMinimum",
    "NotFound",
    "IllegalTransition",
    "TransitionConflict",
    "StoreUnavailable",
]
