"""
Domain error taxonomy shared by the workflow engines and the HTTP layer.

Every error carries a machine-readable ``kind``, a human message and a
free-form context mapping, so callers can render a user-facing response
without parsing messages.
"""

from typing import Any


class MarketplaceError(Exception):
    """Base exception for marketplace domain errors."""

    kind = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for API responses."""
        return {
            "error": self.kind,
            "message": self.message,
            "context": {key: _jsonable(value) for key, value in self.context.items()},
        }


class ValidationFailedError(MarketplaceError):
    """Raised when caller input or a precondition is invalid."""

    kind = "VALIDATION_FAILED"
    status_code = 400


class NotFoundError(MarketplaceError):
    """Raised when a referenced entity does not exist."""

    kind = "NOT_FOUND"
    status_code = 404


class InvalidTransitionError(MarketplaceError):
    """Raised when a state machine guard rejects a transition."""

    kind = "INVALID_TRANSITION"
    status_code = 409


class AlreadyDecidedError(InvalidTransitionError):
    """Raised when an admin tries to re-decide a reviewed product."""

    kind = "ALREADY_DECIDED"


class GenerationExhaustedError(MarketplaceError):
    """Raised when no unique order number could be produced."""

    kind = "GENERATION_EXHAUSTED"
    status_code = 503


class UnauthorizedError(MarketplaceError):
    """Raised when the principal is missing or lacks the required role."""

    kind = "UNAUTHORIZED"
    status_code = 401


class ForbiddenError(MarketplaceError):
    """Raised when the principal does not own the target resource."""

    kind = "FORBIDDEN"
    status_code = 403


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)
