"""
Principal resolution and error mapping for the API.
"""
import logging

from django.http import JsonResponse

from storefront.domain.errors import OrderError
from storefront.domain.roles import Principal, Role

logger = logging.getLogger(__name__)


def resolve_principal(request) -> Principal:
    """
    Build the caller identity from X-User-ID / X-User-Role headers.

    Token issuance and verification happen upstream; anything missing or
    unparseable is treated as a guest.
    """
    raw_id = request.headers.get("X-User-ID")
    raw_role = request.headers.get("X-User-Role")
    if not raw_id or not raw_role:
        return Principal.guest()

    try:
        return Principal(id=int(raw_id), role=Role.parse(raw_role))
    except ValueError:
        logger.warning(
            "invalid_principal_headers",
            extra={
                "user_id": raw_id,
                "role": raw_role,
            },
        )
        return Principal.guest()


class ErrorHandler:
    """Maps typed order errors to HTTP status codes and messages."""

    ERROR_CODES = {
        "NOT_FOUND": 404,
        "FORBIDDEN": 403,
        "INVALID_STATE": 409,
        "INVALID_TRANSITION": 409,
        "INVALID_ITEM": 400,
        "INVALID_ASSIGNEE": 400,
        "INVALID_INPUT": 400,
        "CONFLICT": 409,
        "STORAGE_ERROR": 503,
        "DUPLICATE_REQUEST": 409,
        "INTERNAL_ERROR": 500,
    }

    MESSAGES = {
        "NOT_FOUND": "Not found",
        "FORBIDDEN": "Forbidden: insufficient role",
        "INVALID_STATE": "Operation is not allowed in the current order state",
        "INVALID_TRANSITION": "Order is closed and cannot change status",
        "INVALID_ITEM": "Invalid order item",
        "INVALID_ASSIGNEE": "User is not an assembler",
        "INVALID_INPUT": "Invalid input",
        "CONFLICT": "Order was modified concurrently, reload and retry",
        "STORAGE_ERROR": "Storage is unavailable",
        "DUPLICATE_REQUEST": "Idempotency key already used with different request",
        "INTERNAL_ERROR": "An internal error occurred",
    }

    @classmethod
    def status_for(cls, code: str) -> int:
        return cls.ERROR_CODES.get(code, 500)

    @classmethod
    def message_for(cls, code: str) -> str:
        return cls.MESSAGES.get(code, cls.MESSAGES["INTERNAL_ERROR"])

    @classmethod
    def to_payload(cls, error: OrderError) -> dict:
        return {
            "code": error.code,
            "message": cls.message_for(error.code),
            "details": error.details,
        }

    @classmethod
    def handle_error(cls, error: Exception) -> JsonResponse:
        """Handle error and return JSON response."""
        if isinstance(error, OrderError):
            return JsonResponse(
                {"error": cls.to_payload(error)},
                status=cls.status_for(error.code),
            )

        # Log unexpected errors
        logger.error(
            "unexpected_error",
            extra={
                "error": f"{type(error).__name__}: {error}",
            },
            exc_info=error,
        )

        return JsonResponse(
            {
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": cls.message_for("INTERNAL_ERROR"),
                }
            },
            status=500,
        )
