"""
Domain errors for the workshop backend.

Every error carries a machine-readable ``code``, an HTTP ``status`` and a
``details`` mapping that is merged into the JSON error body, so routes can
translate any WorkshopError uniformly via ``to_response``.
"""
from __future__ import annotations

from typing import Any, Iterable


class WorkshopError(Exception):
    """Base class for business rule failures."""

    code = "WORKSHOP_ERROR"
    status = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body = {"error": self.code, "message": self.message}
        body.update(self.details)
        return body

    def to_response(self) -> tuple[dict[str, Any], int]:
        return self.to_dict(), self.status


class ValidationError(WorkshopError):
    """400-level input problem."""

    code = "VALIDATION_FAILED"
    status = 400


class NotFoundError(WorkshopError):
    """Entity missing, soft-deleted, or owned by another tenant."""

    code = "NOT_FOUND"
    status = 404

    def __init__(self, entity: str, identifier: Any = None):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.identifier = identifier


class InvalidTransitionError(WorkshopError):
    code = "INVALID_TRANSITION"
    status = 400

    def __init__(self, current: str, requested: str, allowed: Iterable[str]):
        allowed = list(allowed)
        super().__init__(
            f"Invalid status transition: {current} -> {requested}",
            details={
                "currentStatus": current,
                "requestedStatus": requested,
                "allowedTransitions": allowed,
            },
        )
        self.current = current
        self.requested = requested
        self.allowed = allowed


class InsufficientStockError(WorkshopError):
    code = "INSUFFICIENT_STOCK"
    status = 409

    def __init__(self, item_id: str, requested: int, available: int):
        super().__init__(
            f"Cannot reserve {requested} units. Only {available} available.",
            details={
                "itemId": item_id,
                "stockAvailable": available,
                "stockRequested": requested,
            },
        )
        self.item_id = item_id
        self.requested = requested
        self.available = available


class TaskLockedError(WorkshopError):
    code = "TASK_LOCKED"
    status = 409

    def __init__(self, message: str, task_status: str, fields: Iterable[str] = ()):
        super().__init__(
            message,
            details={"taskStatus": task_status, "lockedFields": sorted(fields)},
        )
        self.task_status = task_status


class AllocationStateError(WorkshopError):
    """Allocation is no longer in the state an operation requires."""

    code = "ALLOCATION_STATE_CONFLICT"
    status = 409

    def __init__(self, allocation_id: str, current_status: str, operation: str):
        super().__init__(
            f"Cannot {operation} allocation {allocation_id} in status {current_status}",
            details={"allocationId": allocation_id, "allocationStatus": current_status},
        )


class PersistenceFailure(WorkshopError):
    """Underlying store error. The message is never exposed to clients."""

    code = "PERSISTENCE_FAILURE"
    status = 500

    def to_dict(self) -> dict[str, Any]:
        return {"error": "Internal server error"}


class RateLimitExceeded(WorkshopError):
    code = "RATE_LIMITED"
    status = 429

    def __init__(self, retry_after_seconds: int):
        super().__init__(
            "Too many requests",
            details={"retryAfterSeconds": retry_after_seconds},
        )
        self.retry_after_seconds = retry_after_seconds
