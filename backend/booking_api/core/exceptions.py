"""
Typed errors raised by the service layer.

Each class carries the HTTP status the API layer answers with, so route
handlers never translate errors by hand. See api/errors.py for rendering.
"""

from typing import Any, Optional


class BookingAPIError(Exception):
    """Base class for all errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(BookingAPIError):
    status_code = 400


class AuthenticationError(BookingAPIError):
    status_code = 401

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(message, **kwargs)


class PermissionDeniedError(BookingAPIError):
    status_code = 403

    def __init__(self, message: str = "You do not have permission to perform this action", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(BookingAPIError):
    """Resource does not exist or is not visible to the requester."""

    status_code = 404


class ConflictError(BookingAPIError):
    """Duplicate of a resource that must be unique (email, confirmed booking)."""

    status_code = 409


class InvalidStateError(BookingAPIError):
    """Action attempted outside its allowed state or time window."""

    status_code = 400


class CapacityError(BookingAPIError):
    status_code = 400

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Not enough seats: requested {requested}, only {available} available",
            details={"requested": requested, "available": available},
        )
        self.requested = requested
        self.available = available
