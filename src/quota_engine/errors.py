"""Business error taxonomy.

Every error raised by the engine for a business condition derives from
QuotaEngineError and carries a stable `code` and an HTTP-ish `status_code`
so callers can render an actionable message instead of a generic failure.
None of these are transient: they are never retried.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class QuotaEngineError(Exception):
    """Base class for business errors."""

    code = "QUOTA_ENGINE_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {"detail": self.message, "code": self.code, **self.details}


class ValidationError(QuotaEngineError):
    """Malformed or missing input. Caller-fixable."""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(QuotaEngineError):
    """Referenced record does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: str | UUID):
        self.resource = resource
        self.identifier = str(identifier)
        super().__init__(
            f"{resource} with identifier '{identifier}' not found",
            {"resource": resource, "identifier": str(identifier)},
        )


class DuplicateRecordError(QuotaEngineError):
    """A storage-level uniqueness constraint rejected the record."""

    code = "DUPLICATE_ENTRY"
    status_code = 409

    def __init__(self, field: str, value: str, message: str | None = None):
        self.field = field
        self.value = value
        super().__init__(
            message or f"{field} '{value}' already exists",
            {"field": field, "value": value},
        )


class DuplicatePermitError(DuplicateRecordError):
    """Permit number is already registered."""

    code = "DUPLICATE_PERMIT"

    def __init__(self, permit_number: str):
        self.permit_number = permit_number
        super().__init__(
            "permit_number",
            permit_number,
            f"Permit number '{permit_number}' is already registered",
        )
        self.details["permit_number"] = permit_number


class QuotaExceededError(QuotaEngineError):
    """Requested headcount exceeds the permit's remaining balance."""

    code = "QUOTA_EXCEEDED"
    status_code = 409

    def __init__(self, permit_number: str, requested: int, remaining: int):
        self.permit_number = permit_number
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Permit '{permit_number}' has {remaining} remaining, "
            f"cannot record {requested}",
            {"permit_number": permit_number, "requested": requested, "remaining": remaining},
        )


class InvalidTransitionError(QuotaEngineError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, {"from_status": from_status, "to_status": to_status})


class NotEligibleError(QuotaEngineError):
    """Employer is not eligible for additional quota.

    The calculator itself returns `eligible: false`; this is raised only by
    callers that ask for a hard failure.
    """

    code = "NOT_ELIGIBLE"
    status_code = 422

    def __init__(self, reason: str, details: dict[str, Any] | None = None):
        self.reason = reason
        super().__init__(reason, details)
