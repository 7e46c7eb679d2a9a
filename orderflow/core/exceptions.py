"""
Order Engine Error Kinds

Every failed create/transition surfaces exactly one of these to the caller.
Only StoreUnavailable is transient; the engine never retries it itself.

Author: Khalil Bannouri
Version: 1.0.0
"""

from typing import Any, Optional


class OrderEngineError(Exception):
    """Base class for all order engine failures."""

    code = "order_engine_error"
    http_status = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationFailed(OrderEngineError):
    """Missing customer field, empty selections or a total that does not add up."""

    code = "validation_failed"
    http_status = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class BelowMinimum(OrderEngineError):
    """Order total is under the configured minimum."""

    code = "below_minimum"
    http_status = 400

    def __init__(self, total: int, minimum: int):
        self.total = total
        self.minimum = minimum
        self.shortfall = minimum - total
        super().__init__(
            f"Order total {total} is below the minimum of {minimum}; "
            f"add {self.shortfall} more"
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(total=self.total, minimum=self.minimum, shortfall=self.shortfall)
        return data


class NotFound(OrderEngineError):
    """Referenced order (or dashboard resource) does not exist."""

    code = "not_found"
    http_status = 404


class IllegalTransition(OrderEngineError):
    """Requested status change is not in the legal transition table."""

    code = "illegal_transition"
    http_status = 409

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(message or f"Illegal transition: {current} → {target}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(current=self.current, target=self.target)
        return data


class TransitionConflict(IllegalTransition):
    """Another writer changed the order between our read and our update."""

    code = "transition_conflict"

    def __init__(self, current: str, target: str):
        super().__init__(
            current,
            target,
            f"Order changed concurrently (now {current}); {target} was not applied",
        )


class StoreUnavailable(OrderEngineError):
    """The persistence layer failed (timeout, connectivity)."""

    code = "store_unavailable"
    http_status = 503
    retryable = True
