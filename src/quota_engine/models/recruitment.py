"""Recruitment document chain: job order → recruitment permit → entry."""

from __future__ import annotations

from datetime import date
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quota_engine.models.base import Base, TimestampMixin
from quota_engine.models.employer import Employer, _in_check


class JobType(str, Enum):
    """Job categories open to foreign recruitment."""

    FACTORY_WORKER = "factory_worker"
    CONSTRUCTION_WORKER = "construction_worker"
    CARETAKER = "caretaker"
    DOMESTIC_HELPER = "domestic_helper"
    AGRICULTURE_WORKER = "agriculture_worker"
    FISHING_CREW = "fishing_crew"


class JobOrderStatus(str, Enum):
    """Job order status values."""

    ACTIVE = "active"
    COMPLETED = "completed"


class JobOrder(Base, TimestampMixin):
    """Domestic recruitment registration (mandatory local-recruitment-first step)."""

    __tablename__ = "job_order"

    job_order_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employer_id: Mapped[UUID] = mapped_column(
        ForeignKey("employer.employer_id", ondelete="CASCADE"),
        nullable=False,
    )
    job_type: Mapped[str] = mapped_column(String, nullable=False)
    vacancy_count: Mapped[int] = mapped_column(Integer, nullable=False)
    registry_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    certificate_number: Mapped[str | None] = mapped_column(String, nullable=True)
    certificate_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default=JobOrderStatus.ACTIVE.value,
    )

    __table_args__ = (
        CheckConstraint(_in_check("job_type", JobType), name="job_order_job_type_check"),
        CheckConstraint(_in_check("status", JobOrderStatus), name="job_order_status_check"),
        CheckConstraint("vacancy_count > 0", name="job_order_vacancy_positive"),
        CheckConstraint(
            "success_count >= 0 AND success_count <= vacancy_count",
            name="job_order_success_range",
        ),
    )

    employer: Mapped[Employer] = relationship(back_populates="job_orders")
    permit: Mapped[RecruitmentPermit | None] = relationship(back_populates="job_order")

    @property
    def requestable_headcount(self) -> int:
        """Vacancies not filled domestically; the most a linked permit may approve."""
        return self.vacancy_count - self.success_count


class RecruitmentPermit(Base, TimestampMixin):
    """Government-issued recruitment permit.

    permit_number is unique at the storage layer; duplicate issuance is
    detected by the constraint, never by a read-then-insert check.
    """

    __tablename__ = "recruitment_permit"

    recruitment_permit_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employer_id: Mapped[UUID] = mapped_column(
        ForeignKey("employer.employer_id", ondelete="CASCADE"),
        nullable=False,
    )
    job_order_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("job_order.job_order_id"),
        nullable=True,
    )
    permit_number: Mapped[str] = mapped_column(String, nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    valid_until: Mapped[date] = mapped_column(Date, nullable=False)
    approved_quota: Mapped[int] = mapped_column(Integer, nullable=False)
    # Cache of sum(entry_permit.worker_count); never trusted for balance checks
    used_quota: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    revoked_quota: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attachment_ref: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("permit_number", name="uq_recruitment_permit_number"),
        UniqueConstraint("job_order_id", name="uq_recruitment_permit_job_order"),
        CheckConstraint("approved_quota > 0", name="permit_approved_positive"),
        CheckConstraint(
            "used_quota >= 0 AND revoked_quota >= 0",
            name="permit_counters_non_negative",
        ),
        CheckConstraint(
            "used_quota + revoked_quota <= approved_quota",
            name="permit_consumption_bounded",
        ),
        CheckConstraint("valid_until >= issue_date", name="permit_validity_window"),
    )

    employer: Mapped[Employer] = relationship(back_populates="permits")
    job_order: Mapped[JobOrder | None] = relationship(back_populates="permit")
    entries: Mapped[list[EntryPermit]] = relationship(back_populates="permit")


class EntryPermit(Base, TimestampMixin):
    """One batch of workers actually imported against a permit. Append-only."""

    __tablename__ = "entry_permit"

    entry_permit_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    recruitment_permit_id: Mapped[UUID] = mapped_column(
        ForeignKey("recruitment_permit.recruitment_permit_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    worker_count: Mapped[int] = mapped_column(Integer, nullable=False)
    occurred_at: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (CheckConstraint("worker_count > 0", name="entry_worker_count_positive"),)

    permit: Mapped[RecruitmentPermit] = relationship(back_populates="entries")
