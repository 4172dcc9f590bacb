"""Typed error taxonomy raised by the service layer.

Services raise these instead of returning sentinel values; the exception
handlers in ``app.main`` translate them into the standard response envelope.
"""

from typing import Any

from fastapi import status


class ElectionError(Exception):
    """Base class for errors the API reports to clients."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, errors: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(ElectionError):
    """Malformed input: missing field, wrong format, unknown reference in payload."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation failed"


class UnauthenticatedError(ElectionError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class ForbiddenError(ElectionError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFoundError(ElectionError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"

    @classmethod
    def for_resource(cls, resource: str) -> "NotFoundError":
        return cls(f"{resource} not found")


class ConflictError(ElectionError):
    """Duplicate vote, duplicate pending batch, duplicate unique key."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class InvalidStateError(ElectionError):
    """Operation attempted against an election or batch in the wrong status."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Invalid state for this operation"


class StorageError(ElectionError):
    """The database failed while a transaction was in flight."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Storage failure, no changes were saved"
