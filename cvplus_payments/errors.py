"""
Structured error classes for callable handlers.

Every handler failure surfaces as a FunctionError carrying a
machine-readable code. Unexpected exceptions are re-wrapped as
InternalError by run_handler; already-typed errors propagate unchanged.
"""

import logging
from typing import Any, Callable, Dict, Optional, TypeVar

from fastapi import status

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FunctionError(Exception):
    """Base exception for handler errors with a machine-readable code."""

    code = "internal"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        body: Dict[str, Any] = {
            "status": self.code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return {"error": body}


class UnauthenticatedError(FunctionError):
    """No caller identity."""
    code = "unauthenticated"
    http_status = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(FunctionError):
    """Caller identity does not match the resource owner."""
    code = "permission-denied"
    http_status = status.HTTP_403_FORBIDDEN


class InvalidArgumentError(FunctionError):
    """Malformed or missing input field."""
    code = "invalid-argument"
    http_status = status.HTTP_400_BAD_REQUEST


class FailedPreconditionError(FunctionError):
    """State conflict, e.g. the user already has lifetime access."""
    code = "failed-precondition"
    http_status = status.HTTP_400_BAD_REQUEST


class NotFoundError(FunctionError):
    """Referenced resource is absent."""
    code = "not-found"
    http_status = status.HTTP_404_NOT_FOUND


class InternalError(FunctionError):
    """Unexpected external-dependency failure."""
    code = "internal"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------

class InvalidFeatureError(InvalidArgumentError):
    """Feature identifier is not in the static catalogue."""

    def __init__(self, feature: Optional[str]):
        self.feature = feature
        super().__init__("Valid premium feature required", details={"feature": feature})


class UserNotFoundError(NotFoundError):
    """No user profile exists for the given uid."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("User profile not found")


class MalformedEventError(Exception):
    """
    Payment event is missing its intent id or required metadata.

    Never surfaced to the webhook caller; logged and dropped.
    """

    def __init__(self, event_id: str, missing_fields: list):
        self.event_id = event_id
        self.missing_fields = missing_fields
        super().__init__(f"Event {event_id} missing required fields: {', '.join(missing_fields)}")


def run_handler(name: str, fn: Callable[[], T], context: Optional[Dict[str, Any]] = None) -> T:
    """
    Execute a handler body with the standard error policy.

    Args:
        name: Handler name for logging
        fn: Zero-argument callable performing the work
        context: Extra fields for the error log line

    Returns:
        Whatever fn returns

    Raises:
        FunctionError: The typed error unchanged, or InternalError wrapping
            anything unexpected
    """
    try:
        return fn()
    except FunctionError as e:
        logger.warning(f"{name} failed", extra={
            **(context or {}),
            "code": e.code,
            "error": e.message,
        })
        raise
    except Exception as e:
        logger.error(f"{name} failed unexpectedly", extra={
            **(context or {}),
            "error": str(e),
            "error_type": type(e).__name__,
        }, exc_info=True)
        raise InternalError(f"Failed to {_describe(name)}") from e


def _describe(name: str) -> str:
    """Turn a camelCase handler name into lower-case words."""
    words = []
    current = ""
    for ch in name:
        if ch.isupper() and current:
            words.append(current)
            current = ch.lower()
        else:
            current += ch.lower()
    if current:
        words.append(current)
    return " ".join(words)
