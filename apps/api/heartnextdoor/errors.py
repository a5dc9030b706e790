"""Domain errors raised by the service layer and mapped to HTTP responses in main."""
from __future__ import annotations


class HeartError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class NotFoundError(HeartError):
    status_code = 404
    message = "Not found"


class ForbiddenError(HeartError):
    status_code = 403
    message = "You do not have access to this resource"


class ConflictError(HeartError):
    status_code = 409
    message = "Conflict"


class InvalidOrExpiredCode(HeartError):
    status_code = 400
    message = "This invite code is invalid or has expired"


class DuplicateActivePartnership(ConflictError):
    message = "An active partnership already exists for this partner"


class ExternalServiceError(HeartError):
    """Raised inside adapters; never allowed past their public functions."""

    status_code = 502
    message = "External service unavailable"
