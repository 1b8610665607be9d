"""
Domain error taxonomy.

Services raise these; the API layer in rentease.main maps each class to an
HTTP status through ``status_code``. Every error is scoped to one request and
nothing here is retried.
"""

from __future__ import annotations

from typing import Any


class RentalError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.message}


class ValidationError(RentalError):
    """Malformed or missing input, or a precondition on the input failed."""

    status_code = 400
    code = "validation_error"


class AuthorizationError(RentalError):
    """The actor lacks permission for the requested operation."""

    status_code = 403
    code = "forbidden"


class NotFoundError(RentalError):
    """A property, booking, payment or other record does not exist."""

    status_code = 404
    code = "not_found"


class ConflictError(RentalError):
    """Overlapping date range or another uniqueness conflict."""

    status_code = 409
    code = "conflict"


class DuplicateIntentError(ConflictError):
    """An active payment intent already exists for the booking."""

    code = "duplicate_intent"


class InvalidStateTransition(RentalError):
    """The requested status change is not in the allowed transition table."""

    status_code = 409
    code = "invalid_state_transition"


class ExpiredError(RentalError):
    """A payment intent's TTL elapsed."""

    status_code = 410
    code = "expired"


class RateLimitedError(RentalError):
    """Too many attempts for a key within the limiter window."""

    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str, retry_after: int = 0, **context: Any) -> None:
        super().__init__(message, **context)
        self.retry_after = retry_after
