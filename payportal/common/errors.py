"""Error taxonomy shared by both services.

Every error carries a stable HTTP status and a machine-readable code. Messages
are safe to show to callers; internal detail stays in the logs.
"""

from typing import Any


class PortalError(Exception):
    """Base class for errors that map to a client-facing response."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(PortalError):
    status_code = 400
    code = "VALIDATION_FAILED"
    default_message = "Validation failed."

    def __init__(self, message: str | None = None, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class InvalidTransition(PortalError):
    status_code = 400
    code = "INVALID_TRANSITION"
    default_message = "Payment status does not allow this action."


class InvalidReasonCode(PortalError):
    status_code = 400
    code = "INVALID_REASON_CODE"
    default_message = "A valid reasonCode is required."


class NotFound(PortalError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Payment not found."


class Unauthenticated(PortalError):
    status_code = 401
    code = "UNAUTHENTICATED"
    default_message = "Access denied. No token provided."


class TokenExpired(Unauthenticated):
    code = "TOKEN_EXPIRED"
    default_message = "Token has expired."


class InvalidToken(Unauthenticated):
    code = "INVALID_TOKEN"
    default_message = "Invalid token."


class StepUpRequired(Unauthenticated):
    code = "STEP_UP_REQUIRED"
    default_message = "Step-up confirmation required for this action."


class Forbidden(PortalError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied. Insufficient permissions."


class RateLimited(PortalError):
    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Too many requests, please try again later."

    def __init__(self, message: str | None = None, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after
