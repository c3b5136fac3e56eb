"""Job order state machine with transition validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from quota_engine.errors import InvalidTransitionError
from quota_engine.models import JobOrderStatus

if TYPE_CHECKING:
    from quota_engine.models import JobOrder


class JobOrderStateMachine:
    """State machine for job order status transitions.

    Allowed transitions:
    - active → completed (exactly once, on issuance of a linked permit)
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        JobOrderStatus.ACTIVE.value: [JobOrderStatus.COMPLETED.value],
        JobOrderStatus.COMPLETED.value: [],  # Terminal state
    }

    # Statuses where the order may still be edited (certificate, hires)
    MUTABLE = {JobOrderStatus.ACTIVE.value}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_modify(cls, status: str) -> bool:
        """Check if the order's certificate and hire counts can change."""
        return status in cls.MUTABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def validate_for_permit(cls, job_order: JobOrder) -> list[str]:
        """Validate a job order for permit issuance, returning any errors.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []

        if not cls.can_transition(job_order.status, JobOrderStatus.COMPLETED.value):
            errors.append(f"Job order is '{job_order.status}', expected 'active'")
            return errors

        if not job_order.certificate_number:
            errors.append("Job order has no futility certificate")

        return errors

    @classmethod
    def transition(cls, job_order: JobOrder, to_status: JobOrderStatus) -> JobOrder:
        """Apply a validated transition to a job order."""
        cls.validate_transition(job_order.status, to_status.value)
        job_order.status = to_status.value
        return job_order
