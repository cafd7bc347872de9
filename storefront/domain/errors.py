"""
Typed errors raised by the order lifecycle.

Errors carry a stable ``code`` and structured ``details`` only. Turning them
into user-facing text is the transport layer's job.
"""
from __future__ import annotations

from enum import Enum
from typing import Any


class OrderError(Exception):
    """Base class for order workflow errors."""
    code = "ORDER_ERROR"

    def __init__(self, **details: Any):
        self.details = {
            key: value.value if isinstance(value, Enum) else value
            for key, value in details.items()
        }
        super().__init__(self.code, self.details)


class NotFound(OrderError):
    code = "NOT_FOUND"


class Forbidden(OrderError):
    code = "FORBIDDEN"


class InvalidState(OrderError):
    code = "INVALID_STATE"


class InvalidTransition(OrderError):
    code = "INVALID_TRANSITION"


class InvalidItem(OrderError):
    code = "INVALID_ITEM"


class InvalidAssignee(OrderError):
    code = "INVALID_ASSIGNEE"


class InvalidInput(OrderError):
    code = "INVALID_INPUT"


class Conflict(OrderError):
    code = "CONFLICT"


class StorageError(OrderError):
    code = "STORAGE_ERROR"
