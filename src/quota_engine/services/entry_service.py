"""Entry realization tracker: records workers actually imported under a permit."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from quota_engine.config import QuotaRules
from quota_engine.dates import parse_positive_int
from quota_engine.errors import QuotaExceededError, ValidationError
from quota_engine.models import EntryPermit
from quota_engine.services.permit_ledger_service import PermitLedgerService
from quota_engine.services.quota_aggregator import QuotaAggregator, remaining_balance

logger = logging.getLogger(__name__)


class EntryService:
    """Consumes permit balance, one entry batch at a time."""

    def __init__(
        self,
        session: AsyncSession,
        rules: QuotaRules,
        clock: Callable[[], date] = date.today,
    ):
        self.session = session
        self.rules = rules
        self.permits = PermitLedgerService(session, rules, clock)
        self.aggregator = QuotaAggregator(session, rules, clock)

    async def record_entry(
        self,
        permit_id: UUID,
        worker_count: int,
        occurred_at: date,
    ) -> EntryPermit:
        """Record an entry batch against a permit.

        The balance is re-derived from the entry rows after the permit is
        locked, so two concurrent entries cannot both pass the check.

        Raises:
            ValidationError: non-positive count or a date outside the permit window
            QuotaExceededError: the batch is larger than the remaining balance
        """
        count = parse_positive_int(worker_count, "worker_count")
        if occurred_at is None:
            raise ValidationError("occurred_at is required", {"field": "occurred_at"})

        permit = await self.permits.lock_permit(permit_id)
        if not permit.issue_date <= occurred_at <= permit.valid_until:
            raise ValidationError(
                f"Entry date {occurred_at.isoformat()} is outside the permit validity "
                f"{permit.issue_date.isoformat()} to {permit.valid_until.isoformat()}",
                {"field": "occurred_at"},
            )

        used = await self.aggregator.used_for_permit(permit_id)
        remaining = remaining_balance(permit.approved_quota, used, permit.revoked_quota)
        if count > remaining:
            logger.warning(
                "Entry of %d rejected for permit %s: %d remaining",
                count,
                permit.permit_number,
                remaining,
            )
            raise QuotaExceededError(permit.permit_number, count, remaining)

        entry = EntryPermit(
            recruitment_permit_id=permit_id,
            worker_count=count,
            occurred_at=occurred_at,
        )
        self.session.add(entry)
        permit.used_quota = used + count
        await self.session.flush()

        total = await self.aggregator.refresh_employer_total(permit.employer_id)
        logger.info(
            "Entry of %d recorded on permit %s; %d remaining, employer total %d",
            count,
            permit.permit_number,
            remaining - count,
            total,
        )
        return entry
