"""Tests for the job order state machine."""

from datetime import date

import pytest

from quota_engine.errors import InvalidTransitionError
from quota_engine.models import JobOrder, JobOrderStatus
from quota_engine.services.state_machine import JobOrderStateMachine


def make_job_order(status: str = "active", certificate_number: str | None = "FC-1") -> JobOrder:
    return JobOrder(
        job_type="factory_worker",
        vacancy_count=10,
        registry_date=date(2024, 1, 1),
        expiry_date=date(2024, 3, 1),
        certificate_number=certificate_number,
        success_count=0,
        status=status,
    )


class TestJobOrderStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """active → completed is the only transition."""
        assert JobOrderStateMachine.can_transition("active", "completed") is True

    def test_invalid_transitions(self):
        """Completed is terminal and there is no way back."""
        assert JobOrderStateMachine.can_transition("completed", "active") is False
        assert JobOrderStateMachine.can_transition("completed", "completed") is False
        assert JobOrderStateMachine.can_transition("active", "active") is False
        assert JobOrderStateMachine.can_transition("unknown", "completed") is False

    def test_validate_transition_raises(self):
        """validate_transition raises with both statuses."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            JobOrderStateMachine.validate_transition("completed", "active")

        assert exc_info.value.from_status == "completed"
        assert exc_info.value.to_status == "active"
        assert exc_info.value.code == "INVALID_TRANSITION"

    def test_can_modify(self):
        """Only active orders take certificates and hire counts."""
        assert JobOrderStateMachine.can_modify("active") is True
        assert JobOrderStateMachine.can_modify("completed") is False

    def test_get_next_statuses(self):
        assert JobOrderStateMachine.get_next_statuses("active") == ["completed"]
        assert JobOrderStateMachine.get_next_statuses("completed") == []

    def test_transition_happens_once(self):
        """A second completion is rejected."""
        job_order = make_job_order()

        JobOrderStateMachine.transition(job_order, JobOrderStatus.COMPLETED)
        assert job_order.status == "completed"

        with pytest.raises(InvalidTransitionError):
            JobOrderStateMachine.transition(job_order, JobOrderStatus.COMPLETED)


class TestValidateForPermit:
    """Readiness of a job order to back a permit."""

    def test_ready(self):
        assert JobOrderStateMachine.validate_for_permit(make_job_order()) == []

    def test_missing_certificate(self):
        errors = JobOrderStateMachine.validate_for_permit(
            make_job_order(certificate_number=None)
        )
        assert errors == ["Job order has no futility certificate"]

    def test_completed_order(self):
        errors = JobOrderStateMachine.validate_for_permit(make_job_order(status="completed"))
        assert len(errors) == 1
        assert "completed" in errors[0]
