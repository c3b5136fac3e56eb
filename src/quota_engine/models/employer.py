"""Employer aggregate and its read-only quota inputs."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quota_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from quota_engine.models.recruitment import JobOrder, RecruitmentPermit


class EmployerType(str, Enum):
    """Employer classification; decides the domestic recruitment waiting period."""

    CORPORATE = "corporate"
    INDIVIDUAL = "individual"


class RecognitionTier(str, Enum):
    """Industry recognition tiers."""

    A_PLUS = "A+"
    A = "A"
    B = "B"
    C = "C"
    D = "D"

    @property
    def default_allocation_rate(self) -> Decimal:
        """Statutory base allocation rate of the tier."""
        return TIER_ALLOCATION_RATES[self]


TIER_ALLOCATION_RATES: dict[RecognitionTier, Decimal] = {
    RecognitionTier.A_PLUS: Decimal("0.35"),
    RecognitionTier.A: Decimal("0.25"),
    RecognitionTier.B: Decimal("0.20"),
    RecognitionTier.C: Decimal("0.15"),
    RecognitionTier.D: Decimal("0.10"),
}


def _in_check(column: str, enum_cls: type[Enum]) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


class Employer(Base, TimestampMixin):
    """Aggregate root. Holds the cached total quota."""

    __tablename__ = "employer"

    employer_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    employer_type: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default=EmployerType.CORPORATE.value,
    )
    # Denormalized: sum of remaining balances of counted permits.
    # Written only through QuotaAggregator.refresh_employer_total.
    total_quota: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(_in_check("employer_type", EmployerType), name="employer_type_check"),
        CheckConstraint("total_quota >= 0", name="employer_total_quota_non_negative"),
    )

    # Relationships
    labor_counts: Mapped[list[LaborCountRecord]] = relationship(back_populates="employer")
    recognitions: Mapped[list[IndustryRecognition]] = relationship(back_populates="employer")
    job_orders: Mapped[list[JobOrder]] = relationship(back_populates="employer")
    permits: Mapped[list[RecruitmentPermit]] = relationship(back_populates="employer")


class LaborCountRecord(Base, TimestampMixin):
    """Monthly headcount snapshot of an employer."""

    __tablename__ = "labor_count_record"

    labor_count_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employer_id: Mapped[UUID] = mapped_column(
        ForeignKey("employer.employer_id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("employer_id", "year", "month", name="uq_labor_count_period"),
        CheckConstraint("month BETWEEN 1 AND 12", name="labor_count_month_range"),
        CheckConstraint("count >= 0", name="labor_count_non_negative"),
    )

    employer: Mapped[Employer] = relationship(back_populates="labor_counts")


class IndustryRecognition(Base, TimestampMixin):
    """Time-bounded tiered authorization document."""

    __tablename__ = "industry_recognition"

    industry_recognition_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employer_id: Mapped[UUID] = mapped_column(
        ForeignKey("employer.employer_id", ondelete="CASCADE"),
        nullable=False,
    )
    tier: Mapped[str] = mapped_column(String, nullable=False)
    base_allocation_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    extra_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 4),
        nullable=False,
        default=Decimal("0"),
    )
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    reference_number: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("reference_number", name="uq_industry_recognition_reference"),
        CheckConstraint(_in_check("tier", RecognitionTier), name="recognition_tier_check"),
        CheckConstraint(
            "base_allocation_rate >= 0 AND extra_rate >= 0",
            name="recognition_rates_non_negative",
        ),
    )

    employer: Mapped[Employer] = relationship(back_populates="recognitions")
