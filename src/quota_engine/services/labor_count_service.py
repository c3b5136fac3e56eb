"""Labor-count register: monthly headcount snapshots per employer."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quota_engine.errors import ValidationError
from quota_engine.models import LaborCountRecord
from quota_engine.services.employer_service import EmployerService


@dataclass(frozen=True)
class LaborCountInput:
    """One monthly snapshot to store."""

    year: int
    month: int
    count: int

    def validate(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValidationError(f"Invalid month {self.month}", {"field": "month"})
        if self.year < 1900:
            raise ValidationError(f"Invalid year {self.year}", {"field": "year"})
        if self.count < 0:
            raise ValidationError("Labor count cannot be negative", {"field": "count"})


@dataclass(frozen=True)
class LaborCountAverage:
    """Average over the most recent snapshots."""

    average: Decimal
    months_used: int


class LaborCountService:
    """Upsert-by-period store; read-only input to the eligibility formula."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.employers = EmployerService(session)

    async def upsert_labor_counts(
        self,
        employer_id: UUID,
        counts: Iterable[LaborCountInput],
    ) -> list[LaborCountRecord]:
        """Insert or overwrite snapshots by (year, month).

        The employer row is locked so concurrent batches for the same employer
        serialize instead of racing on the period constraint.
        """
        items = list(counts)
        for item in items:
            item.validate()

        periods = {(item.year, item.month) for item in items}
        if len(periods) != len(items):
            raise ValidationError("Duplicate period in labor count batch")

        await self.employers.get_employer(employer_id, for_update=True)

        result = await self.session.execute(
            select(LaborCountRecord).where(LaborCountRecord.employer_id == employer_id)
        )
        existing = {(r.year, r.month): r for r in result.scalars().all()}

        records: list[LaborCountRecord] = []
        for item in items:
            record = existing.get((item.year, item.month))
            if record is None:
                record = LaborCountRecord(
                    employer_id=employer_id,
                    year=item.year,
                    month=item.month,
                    count=item.count,
                )
                self.session.add(record)
            else:
                record.count = item.count
            records.append(record)

        await self.session.flush()
        return records

    async def list_labor_counts(
        self,
        employer_id: UUID,
        year: int | None = None,
    ) -> list[LaborCountRecord]:
        """List snapshots, newest period first."""
        query = select(LaborCountRecord).where(LaborCountRecord.employer_id == employer_id)
        if year is not None:
            query = query.where(LaborCountRecord.year == year)
        query = query.order_by(LaborCountRecord.year.desc(), LaborCountRecord.month.desc())

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def average_labor_count(
        self,
        employer_id: UUID,
        window_months: int,
    ) -> LaborCountAverage:
        """Average of the latest `window_months` snapshots.

        Fewer snapshots are averaged over the months available; none gives 0.
        """
        result = await self.session.execute(
            select(LaborCountRecord.count)
            .where(LaborCountRecord.employer_id == employer_id)
            .order_by(LaborCountRecord.year.desc(), LaborCountRecord.month.desc())
            .limit(window_months)
        )
        counts = [int(c) for c in result.scalars().all()]

        if not counts:
            return LaborCountAverage(average=Decimal("0"), months_used=0)

        return LaborCountAverage(
            average=Decimal(sum(counts)) / Decimal(len(counts)),
            months_used=len(counts),
        )
