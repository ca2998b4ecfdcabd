"""
Error hierarchy shared by the store, the transport and the controllers.

Each error carries an HTTP-like status code so callers can treat the
simulated backend the way they would treat a real one.
"""

from typing import Any


class TalentFlowError(Exception):
    """Base class for all errors raised by the core."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(TalentFlowError):
    """A request, patch or query was malformed. Raised before the store is touched."""

    status_code = 400


class RecordNotFound(TalentFlowError):
    """The addressed record does not exist."""

    status_code = 404


class ConstraintViolation(TalentFlowError):
    """A unique key clashed or an immutable key was patched."""

    status_code = 409


class SimulatedFailure(TalentFlowError):
    """Failure injected by the simulated transport."""

    status_code = 500

    def __init__(self, message: str, operation: str = "") -> None:
        super().__init__(message, details={"operation": operation} if operation else None)
        self.operation = operation


class UnknownCollection(TalentFlowError):
    """The named collection is not registered with the store."""
