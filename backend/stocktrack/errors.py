# Overview: Typed domain errors raised by the service layer and mapped to HTTP by routes.

from __future__ import annotations


class EngineError(Exception):
    """
    Base class for every business-rule failure the engine reports.

    code:        stable machine-readable identifier (used in bulk results and JSON)
    status_code: HTTP status the API layer answers with
    details:     optional structured context for the caller
    """
    code = "engine_error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "code": self.code,
            "details": self.details,
        }


class NotFoundError(EngineError):
    """Unit, sale or pending update does not exist."""
    code = "not_found"
    status_code = 404


class InvalidTransitionError(EngineError):
    """Status change not allowed by the lifecycle state machine."""
    code = "invalid_transition"
    status_code = 409


class AlreadySoldError(EngineError):
    """A sale already exists for the unit."""
    code = "already_sold"
    status_code = 409


class AlreadyDecidedError(EngineError):
    """Pending update was already approved or rejected."""
    code = "already_decided"
    status_code = 409


class ValidationError(EngineError, ValueError):
    """400-level input problem (missing or contradictory fields)."""
    code = "validation_error"
    status_code = 400
