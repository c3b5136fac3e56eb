"""Employer registry."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quota_engine.errors import NotFoundError, ValidationError
from quota_engine.models import Employer, EmployerType


def parse_employer_type(value: EmployerType | str) -> EmployerType:
    """Validate an employer type at the boundary."""
    try:
        return EmployerType(value)
    except ValueError as exc:
        allowed = ", ".join(t.value for t in EmployerType)
        raise ValidationError(
            f"Unknown employer type '{value}' (expected one of: {allowed})",
            {"field": "employer_type"},
        ) from exc


class EmployerService:
    """Creates employers and loads them, optionally row-locked."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_employer(
        self,
        name: str,
        employer_type: EmployerType | str = EmployerType.CORPORATE,
    ) -> Employer:
        """Create an employer with an empty quota."""
        if not name or not name.strip():
            raise ValidationError("Employer name is required", {"field": "name"})

        employer = Employer(
            name=name.strip(),
            employer_type=parse_employer_type(employer_type).value,
            total_quota=0,
        )
        self.session.add(employer)
        await self.session.flush()
        return employer

    async def get_employer(self, employer_id: UUID, *, for_update: bool = False) -> Employer:
        """Load an employer or raise NotFoundError.

        With for_update the row is locked for the rest of the transaction;
        every quota mutation takes this lock first.
        """
        query = select(Employer).where(Employer.employer_id == employer_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(query)
        employer = result.scalar_one_or_none()
        if employer is None:
            raise NotFoundError("Employer", employer_id)
        return employer
