# ridehub/common/exceptions.py
"""
Domain error taxonomy shared by the HTTP routes and the real-time handlers.

Each error carries the HTTP status and error code it is rendered with, so the
FastAPI exception handler and the WebSocket `error` event stay consistent.
"""

from __future__ import annotations

from typing import Any


class RideHubError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(RideHubError):
    """Entity id does not resolve."""

    status_code = 404
    error_code = "NOT_FOUND"


class ForbiddenError(RideHubError):
    """Authenticated, but not allowed to act on this trip or session."""

    status_code = 403
    error_code = "FORBIDDEN"


class ConflictError(RideHubError):
    """Duplicate active session or a second stop."""

    status_code = 409
    error_code = "CONFLICT"


class InvalidStateError(RideHubError):
    """Operation is not valid for the current session status."""

    status_code = 400
    error_code = "INVALID_STATE"


class ValidationError(RideHubError):
    """Missing or malformed required fields."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class AuthenticationError(RideHubError):
    """Missing, expired or malformed access token."""

    status_code = 401
    error_code = "UNAUTHORIZED"


class PersistenceError(RideHubError):
    """The persistence layer failed; not retried here."""

    status_code = 500
    error_code = "INTERNAL_ERROR"
