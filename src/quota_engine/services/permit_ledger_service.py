"""Recruitment permit ledger.

Issuance relies on the storage-level unique constraint on permit_number:
the row is inserted and a constraint violation is translated into
DuplicatePermitError. There is no read-then-insert check.

Lock order for every mutation: employer row, then permit row.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quota_engine.config import QuotaRules
from quota_engine.database import is_unique_violation
from quota_engine.dates import add_months, parse_positive_int
from quota_engine.errors import DuplicatePermitError, NotFoundError, ValidationError
from quota_engine.models import RecruitmentPermit
from quota_engine.services.domestic_recruitment_service import DomesticRecruitmentService
from quota_engine.services.employer_service import EmployerService
from quota_engine.services.quota_aggregator import QuotaAggregator, remaining_balance
from quota_engine.services.state_machine import JobOrderStateMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermitExpiryStatus:
    """Expiry view of a permit on a given date."""

    permit_id: UUID
    permit_number: str
    valid_until: date
    days_until_expiry: int
    can_extend: bool
    is_urgent: bool
    is_expired: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "permit_id": str(self.permit_id),
            "permit_number": self.permit_number,
            "valid_until": self.valid_until.isoformat(),
            "days_until_expiry": self.days_until_expiry,
            "can_extend": self.can_extend,
            "is_urgent": self.is_urgent,
            "is_expired": self.is_expired,
        }


def permit_expiry_status(
    permit: RecruitmentPermit,
    as_of: date,
    rules: QuotaRules,
) -> PermitExpiryStatus:
    """Classify how close a permit is to expiry.

    A permit is expired only after its valid_until day, matching the
    ledger. Extension is possible inside the extension window but not on
    or after the last valid day.
    """
    days = (permit.valid_until - as_of).days
    return PermitExpiryStatus(
        permit_id=permit.recruitment_permit_id,
        permit_number=permit.permit_number,
        valid_until=permit.valid_until,
        days_until_expiry=days,
        can_extend=0 < days <= rules.extension_window_days,
        is_urgent=days <= rules.urgent_days,
        is_expired=days < 0,
    )


class PermitLedgerService:
    """Issues permits, revokes quota and looks permits up."""

    def __init__(
        self,
        session: AsyncSession,
        rules: QuotaRules,
        clock: Callable[[], date] = date.today,
    ):
        self.session = session
        self.rules = rules
        self.clock = clock
        self.employers = EmployerService(session)
        self.job_orders = DomesticRecruitmentService(session, rules)
        self.aggregator = QuotaAggregator(session, rules, clock)

    async def issue_permit(
        self,
        employer_id: UUID,
        permit_number: str,
        issue_date: date,
        approved_quota: int,
        job_order_id: UUID | None = None,
        valid_until: date | None = None,
        attachment_ref: str | None = None,
    ) -> RecruitmentPermit:
        """Record a government-issued permit and grow the employer's quota.

        Raises:
            ValidationError: malformed input or an unusable job order
            DuplicatePermitError: the permit number is already registered
        """
        number = (permit_number or "").strip()
        if not number:
            raise ValidationError("Permit number is required", {"field": "permit_number"})
        approved = parse_positive_int(approved_quota, "approved_quota")
        if issue_date is None:
            raise ValidationError("issue_date is required", {"field": "issue_date"})
        if valid_until is None:
            valid_until = add_months(issue_date, self.rules.permit_validity_months)
        elif valid_until < issue_date:
            raise ValidationError(
                "valid_until cannot be before issue_date", {"field": "valid_until"}
            )

        await self.employers.get_employer(employer_id, for_update=True)

        if job_order_id is not None:
            job_order = await self.job_orders.get_job_order(job_order_id, for_update=True)
            if job_order.employer_id != employer_id:
                raise ValidationError(
                    "Job order belongs to a different employer", {"field": "job_order_id"}
                )
            errors = JobOrderStateMachine.validate_for_permit(job_order)
            if errors:
                raise ValidationError(
                    f"Job order cannot back a permit: {'; '.join(errors)}",
                    {"field": "job_order_id", "errors": errors},
                )
            if approved > job_order.requestable_headcount:
                raise ValidationError(
                    f"approved_quota {approved} exceeds the {job_order.requestable_headcount} "
                    "vacancies not filled domestically",
                    {"field": "approved_quota"},
                )

        permit = RecruitmentPermit(
            employer_id=employer_id,
            job_order_id=job_order_id,
            permit_number=number,
            issue_date=issue_date,
            valid_until=valid_until,
            approved_quota=approved,
            used_quota=0,
            revoked_quota=0,
            attachment_ref=attachment_ref,
        )
        self.session.add(permit)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            if is_unique_violation(
                exc, "uq_recruitment_permit_number", "recruitment_permit.permit_number"
            ):
                logger.warning("Duplicate permit number %s rejected", number)
                raise DuplicatePermitError(number) from exc
            if is_unique_violation(
                exc, "uq_recruitment_permit_job_order", "recruitment_permit.job_order_id"
            ):
                raise ValidationError(
                    "Job order already backs another permit", {"field": "job_order_id"}
                ) from exc
            raise

        if job_order_id is not None:
            await self.job_orders.complete_job_order(job_order_id)

        total = await self.aggregator.refresh_employer_total(employer_id)
        logger.info(
            "Permit %s issued to employer %s for %d workers; total quota now %d",
            number,
            employer_id,
            approved,
            total,
        )
        return permit

    async def get_permit(self, permit_id: UUID, *, for_update: bool = False) -> RecruitmentPermit:
        """Load a permit or raise NotFoundError."""
        query = select(RecruitmentPermit).where(
            RecruitmentPermit.recruitment_permit_id == permit_id
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(query)
        permit = result.scalar_one_or_none()
        if permit is None:
            raise NotFoundError("RecruitmentPermit", permit_id)
        return permit

    async def lock_permit(self, permit_id: UUID) -> RecruitmentPermit:
        """Lock a permit's employer and then the permit itself."""
        permit = await self.get_permit(permit_id)
        await self.employers.get_employer(permit.employer_id, for_update=True)
        return await self.get_permit(permit_id, for_update=True)

    async def list_permits(self, employer_id: UUID) -> list[RecruitmentPermit]:
        """An employer's permits ordered by issue date then number."""
        result = await self.session.execute(
            select(RecruitmentPermit)
            .where(RecruitmentPermit.employer_id == employer_id)
            .order_by(RecruitmentPermit.issue_date, RecruitmentPermit.permit_number)
        )
        return list(result.scalars().all())

    async def revoke_permit_quota(self, permit_id: UUID, amount: int) -> RecruitmentPermit:
        """Withdraw part of a permit's unused headcount."""
        amount = parse_positive_int(amount, "amount")
        permit = await self.lock_permit(permit_id)

        used = await self.aggregator.used_for_permit(permit_id)
        remaining = remaining_balance(permit.approved_quota, used, permit.revoked_quota)
        if amount > remaining:
            raise ValidationError(
                f"Cannot revoke {amount} from permit '{permit.permit_number}': "
                f"only {remaining} remaining",
                {"field": "amount", "remaining": remaining},
            )

        permit.revoked_quota += amount
        permit.used_quota = used
        await self.session.flush()

        total = await self.aggregator.refresh_employer_total(permit.employer_id)
        logger.info(
            "Revoked %d from permit %s; employer %s total quota now %d",
            amount,
            permit.permit_number,
            permit.employer_id,
            total,
        )
        return permit

    async def expiry_status(self, permit_id: UUID) -> PermitExpiryStatus:
        """Expiry view of a stored permit as of today."""
        permit = await self.get_permit(permit_id)
        return permit_expiry_status(permit, self.clock(), self.rules)
