"""Industry recognition store."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quota_engine.database import is_unique_violation
from quota_engine.errors import DuplicateRecordError, ValidationError
from quota_engine.models import IndustryRecognition, RecognitionTier
from quota_engine.services.employer_service import EmployerService

logger = logging.getLogger(__name__)


def parse_tier(value: RecognitionTier | str) -> RecognitionTier:
    """Validate a tier code at the boundary; free text is rejected."""
    if isinstance(value, str) and not isinstance(value, RecognitionTier):
        value = value.strip().upper()
    try:
        return RecognitionTier(value)
    except ValueError as exc:
        allowed = ", ".join(t.value for t in RecognitionTier)
        raise ValidationError(
            f"Unknown recognition tier '{value}' (expected one of: {allowed})",
            {"field": "tier"},
        ) from exc


def parse_rate(value: Decimal | str | float | None, field: str) -> Decimal | None:
    """Coerce a rate given as a decimal fraction (0.25 for 25%)."""
    if value is None:
        return None
    try:
        rate = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"{field} is not a number: {value!r}", {"field": field}) from exc
    if not rate.is_finite() or rate < 0 or rate > 1:
        raise ValidationError(f"{field} must be between 0 and 1", {"field": field})
    return rate


class RecognitionService:
    """Stores recognitions and resolves the one in force on a date."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.employers = EmployerService(session)

    async def create_recognition(
        self,
        employer_id: UUID,
        tier: RecognitionTier | str,
        issue_date: date,
        reference_number: str,
        base_allocation_rate: Decimal | None = None,
        extra_rate: Decimal | None = None,
        expiry_date: date | None = None,
    ) -> IndustryRecognition:
        """Store a recognition document.

        The base rate defaults to the tier's statutory rate and the extra rate
        to zero.
        """
        parsed_tier = parse_tier(tier)
        reference = (reference_number or "").strip()
        if not reference:
            raise ValidationError(
                "Recognition reference number is required", {"field": "reference_number"}
            )
        if expiry_date is not None and expiry_date < issue_date:
            raise ValidationError(
                "expiry_date cannot be before issue_date", {"field": "expiry_date"}
            )

        base = parse_rate(base_allocation_rate, "base_allocation_rate")
        extra = parse_rate(extra_rate, "extra_rate")

        await self.employers.get_employer(employer_id)

        recognition = IndustryRecognition(
            employer_id=employer_id,
            tier=parsed_tier.value,
            base_allocation_rate=base if base is not None else parsed_tier.default_allocation_rate,
            extra_rate=extra if extra is not None else Decimal("0"),
            issue_date=issue_date,
            expiry_date=expiry_date,
            reference_number=reference,
        )
        self.session.add(recognition)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            if is_unique_violation(
                exc, "uq_industry_recognition_reference", "industry_recognition.reference_number"
            ):
                raise DuplicateRecordError("reference_number", reference) from exc
            raise

        logger.info(
            "Recognition %s (tier %s) stored for employer %s",
            reference,
            parsed_tier.value,
            employer_id,
        )
        return recognition

    async def list_recognitions(self, employer_id: UUID) -> list[IndustryRecognition]:
        """All recognitions of an employer, newest issue first."""
        result = await self.session.execute(
            select(IndustryRecognition)
            .where(IndustryRecognition.employer_id == employer_id)
            .order_by(IndustryRecognition.issue_date.desc(), IndustryRecognition.reference_number)
        )
        return list(result.scalars().all())

    async def get_active_recognition(
        self,
        employer_id: UUID,
        as_of: date,
    ) -> IndustryRecognition | None:
        """The recognition in force on `as_of`; the latest issue date wins."""
        result = await self.session.execute(
            select(IndustryRecognition)
            .where(
                IndustryRecognition.employer_id == employer_id,
                IndustryRecognition.issue_date <= as_of,
                or_(
                    IndustryRecognition.expiry_date.is_(None),
                    IndustryRecognition.expiry_date >= as_of,
                ),
            )
            .order_by(
                IndustryRecognition.issue_date.desc(),
                IndustryRecognition.created_at.desc(),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()
