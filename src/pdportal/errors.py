"""Typed business-rule failures.

Services raise these instead of leaking storage exceptions; the global error
handler renders them as ``{"detail": ..., "code": ...}`` with a fixed status.
"""

from __future__ import annotations


class PortalError(Exception):
    """Base class for all business-rule violations."""

    code: str = "ERROR"
    status_code: int = 400
    default_message: str = "Request could not be completed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(PortalError):
    """Session, registration or pet does not exist."""

    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class InvalidStateError(PortalError):
    """Session is not open for registration."""

    code = "INVALID_STATE"
    status_code = 409
    default_message = "Session is not available for registration"


class DuplicateRegistrationError(PortalError):
    code = "DUPLICATE"
    status_code = 409
    default_message = "Already registered for this session"


class CapacityExceededError(PortalError):
    code = "CAPACITY_EXCEEDED"
    status_code = 409
    default_message = "Session is full"


class InvalidInputError(PortalError, ValueError):
    """Non-positive experience amount, unknown reason, blank name, etc."""

    code = "INVALID_INPUT"
    status_code = 422
    default_message = "Invalid input"


class ConflictError(PortalError):
    """Unique-constraint race on a create that the caller did not resolve."""

    code = "CONFLICT"
    status_code = 409
    default_message = "Resource already exists"
