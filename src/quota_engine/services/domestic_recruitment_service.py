"""Domestic recruitment tracker (job orders).

Before recruiting abroad an employer must advertise the vacancies locally.
The registration (job order) starts a statutory waiting period; once it has
passed, a futility certificate can be recorded, and only then may a
recruitment permit be issued against the order.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quota_engine.config import QuotaRules
from quota_engine.dates import parse_non_negative_int, parse_positive_int
from quota_engine.errors import InvalidTransitionError, NotFoundError, ValidationError
from quota_engine.models import EmployerType, JobOrder, JobOrderStatus, JobType
from quota_engine.services.employer_service import EmployerService, parse_employer_type
from quota_engine.services.state_machine import JobOrderStateMachine

logger = logging.getLogger(__name__)


def waiting_days_for(employer_type: EmployerType | str, rules: QuotaRules) -> int:
    """Statutory waiting period for an employer type, in calendar days."""
    if parse_employer_type(employer_type) is EmployerType.INDIVIDUAL:
        return rules.individual_waiting_days
    return rules.corporate_waiting_days


def compute_earliest_certificate_date(
    registry_date: date,
    employer_type: EmployerType | str = EmployerType.CORPORATE,
    rules: QuotaRules | None = None,
) -> date:
    """Earliest date a futility certificate may carry.

    Pure: registry date plus the waiting period, counted in calendar days.
    """
    rules = rules or QuotaRules()
    return registry_date + timedelta(days=waiting_days_for(employer_type, rules))


def parse_job_type(value: JobType | str) -> JobType:
    """Validate a job type at the boundary."""
    try:
        return JobType(value)
    except ValueError as exc:
        allowed = ", ".join(t.value for t in JobType)
        raise ValidationError(
            f"Unknown job type '{value}' (expected one of: {allowed})",
            {"field": "job_type"},
        ) from exc


class DomesticRecruitmentService:
    """Registers job orders and tracks their certificate and hires."""

    def __init__(self, session: AsyncSession, rules: QuotaRules):
        self.session = session
        self.rules = rules
        self.employers = EmployerService(session)

    async def register_domestic_recruitment(
        self,
        employer_id: UUID,
        job_type: JobType | str,
        vacancy_count: int,
        registry_date: date,
    ) -> JobOrder:
        """Register a domestic recruitment; the order starts active."""
        parsed_type = parse_job_type(job_type)
        vacancy_count = parse_positive_int(vacancy_count, "vacancy_count")

        await self.employers.get_employer(employer_id)

        job_order = JobOrder(
            employer_id=employer_id,
            job_type=parsed_type.value,
            vacancy_count=vacancy_count,
            registry_date=registry_date,
            expiry_date=registry_date + timedelta(days=self.rules.job_order_validity_days),
            success_count=0,
            status=JobOrderStatus.ACTIVE.value,
        )
        self.session.add(job_order)
        await self.session.flush()

        logger.info(
            "Job order %s registered for employer %s: %d x %s",
            job_order.job_order_id,
            employer_id,
            vacancy_count,
            parsed_type.value,
        )
        return job_order

    async def get_job_order(self, job_order_id: UUID, *, for_update: bool = False) -> JobOrder:
        """Load a job order or raise NotFoundError."""
        query = select(JobOrder).where(JobOrder.job_order_id == job_order_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(query)
        job_order = result.scalar_one_or_none()
        if job_order is None:
            raise NotFoundError("JobOrder", job_order_id)
        return job_order

    async def earliest_certificate_date(self, job_order: JobOrder) -> date:
        """Earliest certificate date of a stored order, using its employer's type."""
        employer = await self.employers.get_employer(job_order.employer_id)
        return compute_earliest_certificate_date(
            job_order.registry_date, employer.employer_type, self.rules
        )

    async def record_certificate(
        self,
        job_order_id: UUID,
        certificate_number: str,
        certificate_date: date,
    ) -> JobOrder:
        """Attach the futility certificate to an active order.

        The certificate cannot predate the end of the waiting period nor
        postdate the order's expiry.
        """
        number = (certificate_number or "").strip()
        if not number:
            raise ValidationError(
                "Certificate number is required", {"field": "certificate_number"}
            )

        job_order = await self.get_job_order(job_order_id, for_update=True)
        self._require_mutable(job_order)

        earliest = await self.earliest_certificate_date(job_order)
        if certificate_date < earliest:
            required = (earliest - job_order.registry_date).days
            actual = (certificate_date - job_order.registry_date).days
            logger.warning(
                "Certificate for job order %s rejected: %d of %d waiting days elapsed",
                job_order_id,
                actual,
                required,
            )
            raise ValidationError(
                f"Certificate date {certificate_date.isoformat()} is before the earliest "
                f"allowed date {earliest.isoformat()}: the waiting period requires "
                f"{required} days, only {actual} have elapsed",
                {
                    "field": "certificate_date",
                    "earliest_certificate_date": earliest.isoformat(),
                    "required_days": required,
                    "actual_days": actual,
                },
            )
        if certificate_date > job_order.expiry_date:
            raise ValidationError(
                f"Certificate date {certificate_date.isoformat()} is after the job order "
                f"expired on {job_order.expiry_date.isoformat()}",
                {"field": "certificate_date"},
            )

        job_order.certificate_number = number
        job_order.certificate_date = certificate_date
        await self.session.flush()
        return job_order

    async def record_domestic_hires(self, job_order_id: UUID, success_count: int) -> JobOrder:
        """Set the number of vacancies filled by domestic workers."""
        success_count = parse_non_negative_int(success_count, "success_count")
        job_order = await self.get_job_order(job_order_id, for_update=True)
        self._require_mutable(job_order)

        if success_count > job_order.vacancy_count:
            raise ValidationError(
                f"success_count must be between 0 and {job_order.vacancy_count}",
                {"field": "success_count"},
            )

        job_order.success_count = success_count
        await self.session.flush()
        return job_order

    async def complete_job_order(self, job_order_id: UUID) -> JobOrder:
        """Move an order to completed. Called only from permit issuance."""
        job_order = await self.get_job_order(job_order_id)
        JobOrderStateMachine.transition(job_order, JobOrderStatus.COMPLETED)
        await self.session.flush()
        return job_order

    def _require_mutable(self, job_order: JobOrder) -> None:
        if not JobOrderStateMachine.can_modify(job_order.status):
            raise InvalidTransitionError(
                job_order.status,
                job_order.status,
                "job order is no longer active",
            )
