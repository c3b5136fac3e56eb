"""Quota aggregator: per-permit balances, employer totals and reconciliation.

The per-permit ledger is the source of truth. `Employer.total_quota` and
`RecruitmentPermit.used_quota` are caches, recomputed here inside the same
transaction as every write that changes the ledger, and corrected by
`reconcile()` when they drift.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from quota_engine.config import QuotaRules
from quota_engine.models import Employer, EntryPermit, JobOrder, RecruitmentPermit
from quota_engine.services.employer_service import EmployerService

logger = logging.getLogger(__name__)

STATUS_AVAILABLE = "available"
STATUS_EXHAUSTED = "exhausted"

FIELD_OVERDRAWN = "overdrawn"


def remaining_balance(approved: int, used: int, revoked: int) -> int:
    """Headcount still recruitable under a permit. Never negative."""
    return max(0, approved - used - revoked)


@dataclass(frozen=True)
class PermitBalance:
    """Balance of one permit, derived from its entry rows."""

    permit_id: UUID
    permit_number: str
    issue_date: date
    valid_until: date
    approved: int
    used: int
    revoked: int
    is_expired: bool
    job_type: str | None = None

    @property
    def remaining(self) -> int:
        return remaining_balance(self.approved, self.used, self.revoked)

    @property
    def status(self) -> str:
        return STATUS_AVAILABLE if self.remaining > 0 else STATUS_EXHAUSTED

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable view."""
        return {
            "permit_id": str(self.permit_id),
            "permit_number": self.permit_number,
            "issue_date": self.issue_date.isoformat(),
            "valid_until": self.valid_until.isoformat(),
            "approved": self.approved,
            "used": self.used,
            "revoked": self.revoked,
            "remaining": self.remaining,
            "status": self.status,
            "is_expired": self.is_expired,
            "job_type": self.job_type,
        }


@dataclass(frozen=True)
class QuotaDrift:
    """A cache value that disagreed with the ledger."""

    employer_id: UUID
    field: str
    cached: int
    actual: int
    permit_id: UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "employer_id": str(self.employer_id),
            "permit_id": str(self.permit_id) if self.permit_id else None,
            "field": self.field,
            "cached": self.cached,
            "actual": self.actual,
        }


@dataclass
class ReconciliationResult:
    """Result of a reconciliation run."""

    employers_checked: int = 0
    permits_checked: int = 0
    drifts: list[QuotaDrift] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        """Whether every cache already matched the ledger."""
        return not self.drifts

    def to_dict(self) -> dict[str, Any]:
        return {
            "employers_checked": self.employers_checked,
            "permits_checked": self.permits_checked,
            "consistent": self.consistent,
            "drifts": [drift.to_dict() for drift in self.drifts],
        }


class QuotaAggregator:
    """Computes balances from the ledger and maintains the cached totals."""

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

    async def used_for_permit(self, permit_id: UUID) -> int:
        """Authoritative used figure: the sum of the permit's entry rows."""
        result = await self.session.execute(
            select(func.coalesce(func.sum(EntryPermit.worker_count), 0)).where(
                EntryPermit.recruitment_permit_id == permit_id
            )
        )
        return int(result.scalar_one())

    async def permit_balances(
        self,
        employer_id: UUID,
        *,
        include_expired: bool = True,
    ) -> list[PermitBalance]:
        """Balances of an employer's permits, ordered by issue date then number."""
        as_of = self.clock()
        used_sum = func.coalesce(func.sum(EntryPermit.worker_count), 0)
        result = await self.session.execute(
            select(
                RecruitmentPermit.recruitment_permit_id,
                RecruitmentPermit.permit_number,
                RecruitmentPermit.issue_date,
                RecruitmentPermit.valid_until,
                RecruitmentPermit.approved_quota,
                RecruitmentPermit.revoked_quota,
                JobOrder.job_type,
                used_sum,
            )
            .outerjoin(JobOrder, JobOrder.job_order_id == RecruitmentPermit.job_order_id)
            .outerjoin(
                EntryPermit,
                EntryPermit.recruitment_permit_id == RecruitmentPermit.recruitment_permit_id,
            )
            .where(RecruitmentPermit.employer_id == employer_id)
            .group_by(
                RecruitmentPermit.recruitment_permit_id,
                RecruitmentPermit.permit_number,
                RecruitmentPermit.issue_date,
                RecruitmentPermit.valid_until,
                RecruitmentPermit.approved_quota,
                RecruitmentPermit.revoked_quota,
                JobOrder.job_type,
            )
            .order_by(RecruitmentPermit.issue_date, RecruitmentPermit.permit_number)
        )

        balances = [
            PermitBalance(
                permit_id=permit_id,
                permit_number=permit_number,
                issue_date=issue_date,
                valid_until=valid_until,
                approved=int(approved),
                used=int(used),
                revoked=int(revoked),
                is_expired=valid_until < as_of,
                job_type=job_type,
            )
            for (
                permit_id,
                permit_number,
                issue_date,
                valid_until,
                approved,
                revoked,
                job_type,
                used,
            ) in result.all()
        ]
        if include_expired:
            return balances
        return [b for b in balances if not b.is_expired]

    async def available_quota(
        self,
        employer_id: UUID,
        include_expired: bool = False,
    ) -> list[PermitBalance]:
        """Per-permit availability for display. Read-only."""
        await self.employers.get_employer(employer_id)
        return await self.permit_balances(employer_id, include_expired=include_expired)

    def _counted(self, balances: Iterable[PermitBalance]) -> list[PermitBalance]:
        if not self.rules.exclude_expired_permits:
            return list(balances)
        return [b for b in balances if not b.is_expired]

    async def employer_total_quota(self, employer_id: UUID) -> int:
        """Sum of remaining balances over the counted permits."""
        balances = await self.permit_balances(employer_id)
        return sum(b.remaining for b in self._counted(balances))

    async def authorized_headcount(self, employer_id: UUID) -> int:
        """Headcount granted and not revoked over the counted permits."""
        balances = await self.permit_balances(employer_id)
        return sum(b.approved - b.revoked for b in self._counted(balances))

    async def refresh_employer_total(self, employer_id: UUID) -> int:
        """Recompute and persist the employer's cached total.

        Must run inside the transaction of the write that changed the ledger,
        after that write has been flushed.
        """
        employer = await self.employers.get_employer(employer_id)
        total = await self.employer_total_quota(employer_id)
        if employer.total_quota != total:
            logger.debug(
                "Employer %s total quota %d -> %d", employer_id, employer.total_quota, total
            )
            employer.total_quota = total
            await self.session.flush()
        return total

    async def reconcile(self, employer_ids: Iterable[UUID] | None = None) -> ReconciliationResult:
        """Recompute every cache from the ledger and report what drifted.

        Idempotent: a second run right after the first reports only permits
        whose entry rows exceed their authorization, which no cache can fix.
        """
        if employer_ids is None:
            ids_result = await self.session.execute(
                select(Employer.employer_id).order_by(Employer.created_at, Employer.employer_id)
            )
            employer_ids = list(ids_result.scalars().all())

        result = ReconciliationResult()
        for employer_id in employer_ids:
            employer = await self.employers.get_employer(employer_id, for_update=True)
            result.employers_checked += 1

            permits_result = await self.session.execute(
                select(RecruitmentPermit)
                .where(RecruitmentPermit.employer_id == employer_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            permits = list(permits_result.scalars().all())
            balances = {
                b.permit_id: b for b in await self.permit_balances(employer_id)
            }

            for permit in permits:
                result.permits_checked += 1
                actual_used = balances[permit.recruitment_permit_id].used
                # Entry rows beyond approved - revoked cannot be cached; the
                # row constraint bounds used + revoked by approved.
                ceiling = permit.approved_quota - permit.revoked_quota
                if actual_used > ceiling:
                    drift = QuotaDrift(
                        employer_id=employer_id,
                        permit_id=permit.recruitment_permit_id,
                        field=FIELD_OVERDRAWN,
                        cached=permit.used_quota,
                        actual=actual_used,
                    )
                    result.drifts.append(drift)
                    logger.error(
                        "Permit %s overdrawn: entries total %d, only %d authorized; "
                        "used_quota cache clamped",
                        permit.permit_number,
                        actual_used,
                        ceiling,
                    )
                    permit.used_quota = ceiling
                elif permit.used_quota != actual_used:
                    drift = QuotaDrift(
                        employer_id=employer_id,
                        permit_id=permit.recruitment_permit_id,
                        field="used_quota",
                        cached=permit.used_quota,
                        actual=actual_used,
                    )
                    result.drifts.append(drift)
                    logger.warning(
                        "Permit %s used_quota drift: cached %d, ledger %d; corrected",
                        permit.permit_number,
                        drift.cached,
                        drift.actual,
                    )
                    permit.used_quota = actual_used

            actual_total = sum(b.remaining for b in self._counted(balances.values()))
            if employer.total_quota != actual_total:
                drift = QuotaDrift(
                    employer_id=employer_id,
                    field="total_quota",
                    cached=employer.total_quota,
                    actual=actual_total,
                )
                result.drifts.append(drift)
                logger.warning(
                    "Employer %s total_quota drift: cached %d, ledger %d; corrected",
                    employer_id,
                    drift.cached,
                    drift.actual,
                )
                employer.total_quota = actual_total

            await self.session.flush()

        logger.info(
            "Reconciliation checked %d employers, %d permits, corrected %d values",
            result.employers_checked,
            result.permits_checked,
            len(result.drifts),
        )
        return result
