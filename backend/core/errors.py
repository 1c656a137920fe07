"""Domain errors raised by the booking services.

Every error carries the HTTP status the API answers with, so route handlers
can let them propagate and ``backend.main`` renders them uniformly.
"""

from fastapi import status


class ServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(ServiceError):
    """Malformed input or a violated booking rule."""
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidTransition(InvalidRequest):
    """Requested appointment status change is not in the transition table."""

    def __init__(self, current: str, requested: str, message: str | None = None):
        super().__init__(message or f'Cannot change appointment status from {current} to {requested}.')
        self.current = current
        self.requested = requested


class PermissionDenied(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(ServiceError):
    """Slot already taken by another non-cancelled appointment."""
    status_code = status.HTTP_409_CONFLICT
