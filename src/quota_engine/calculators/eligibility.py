"""Tiered additional-quota eligibility.

The additional-quota mechanism lets an employer with an active industry
recognition recruit an extra `additional_rate` share of its average
workforce, as long as the combined rate stays under the statutory ceiling.

    base_ceiling = floor(avg * (base + extra))
    full_ceiling = floor(avg * (base + extra + additional))
    A = full_ceiling - base_ceiling                        bucket size
    B = min(A, max(0, authorized - base_ceiling))          bucket usage
    C = max(0, A - B)                                      available
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from decimal import ROUND_FLOOR, Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from quota_engine.calculators.types import (
    AdditionalQuotaResult,
    EligibilityInputs,
    EligibilityReason,
    RecognitionRates,
)
from quota_engine.config import QuotaRules
from quota_engine.models import RecognitionTier
from quota_engine.services.employer_service import EmployerService
from quota_engine.services.labor_count_service import LaborCountService
from quota_engine.services.quota_aggregator import QuotaAggregator
from quota_engine.services.recognition_service import RecognitionService


def floor_headcount(value: Decimal) -> int:
    """Round a fractional headcount down."""
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def calculate_additional_quota(
    inputs: EligibilityInputs,
    rules: QuotaRules,
) -> AdditionalQuotaResult:
    """Compute the additional quota. Pure."""
    details: dict[str, object] = {
        "average_labor_count": inputs.average_labor_count,
        "months_used": inputs.months_used,
        "authorized_headcount": inputs.authorized_headcount,
        "additional_rate": rules.additional_rate,
        "rate_ceiling": rules.rate_ceiling,
    }

    recognition = inputs.recognition
    if recognition is None:
        return AdditionalQuotaResult(
            eligible=False,
            quota=0,
            reason=EligibilityReason.NO_ACTIVE_RECOGNITION,
            details=details,
        )

    granted_rate = recognition.base_rate + recognition.extra_rate
    total_rate = granted_rate + rules.additional_rate
    details.update(
        tier=recognition.tier.value,
        base_rate=recognition.base_rate,
        extra_rate=recognition.extra_rate,
        total_rate=total_rate,
    )

    if total_rate > rules.rate_ceiling:
        return AdditionalQuotaResult(
            eligible=False,
            quota=0,
            reason=EligibilityReason.RATE_CEILING_EXCEEDED,
            details=details,
        )

    average = max(inputs.average_labor_count, Decimal("0"))
    base_ceiling = floor_headcount(average * granted_rate)
    full_ceiling = floor_headcount(average * total_rate)
    bucket_size = full_ceiling - base_ceiling
    bucket_usage = min(bucket_size, max(0, inputs.authorized_headcount - base_ceiling))
    available = max(0, bucket_size - bucket_usage)

    details.update(
        base_ceiling=base_ceiling,
        full_ceiling=full_ceiling,
        bucket_size=bucket_size,
        bucket_usage=bucket_usage,
    )
    return AdditionalQuotaResult(
        eligible=True,
        quota=available,
        reason=EligibilityReason.ELIGIBLE,
        details=details,
    )


class EligibilityCalculator:
    """Gathers the calculation inputs from the stores. Read-only."""

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
        self.labor_counts = LaborCountService(session)
        self.recognitions = RecognitionService(session)
        self.aggregator = QuotaAggregator(session, rules, clock)

    async def gather_inputs(self, employer_id: UUID, as_of: date) -> EligibilityInputs:
        await self.employers.get_employer(employer_id)

        average = await self.labor_counts.average_labor_count(
            employer_id, self.rules.labor_count_window_months
        )
        active = await self.recognitions.get_active_recognition(employer_id, as_of)
        recognition = None
        if active is not None:
            recognition = RecognitionRates(
                tier=RecognitionTier(active.tier),
                base_rate=Decimal(active.base_allocation_rate),
                extra_rate=Decimal(active.extra_rate),
            )

        return EligibilityInputs(
            average_labor_count=average.average,
            months_used=average.months_used,
            recognition=recognition,
            authorized_headcount=await self.aggregator.authorized_headcount(employer_id),
        )

    async def calculate(
        self,
        employer_id: UUID,
        as_of: date | None = None,
    ) -> AdditionalQuotaResult:
        """Additional quota of an employer on `as_of` (default today)."""
        inputs = await self.gather_inputs(employer_id, as_of or self.clock())
        return calculate_additional_quota(inputs, self.rules)
