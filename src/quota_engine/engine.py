"""Quota engine facade.

The single entry point used by the HTTP API, the CLI and the tests.
Every operation runs in its own transaction:

    engine = QuotaEngine.from_settings()
    employer = await engine.create_employer("Acme Manufacturing")
    permit = await engine.issue_permit(employer.employer_id, "P-001", "2024-03-01", 10)
    await engine.record_entry(permit.recruitment_permit_id, 4, "2024-04-15")
    balances = await engine.available_quota(employer.employer_id)

Mutations are retried with exponential backoff on transient storage failures
only; business errors propagate to the caller unchanged.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from quota_engine.calculators import AdditionalQuotaResult, EligibilityCalculator
from quota_engine.config import QuotaRules, Settings, get_rules, get_settings
from quota_engine.database import create_engine_for, create_session_factory, run_with_retry
from quota_engine.dates import parse_date
from quota_engine.errors import ValidationError
from quota_engine.models import (
    Employer,
    EmployerType,
    EntryPermit,
    IndustryRecognition,
    JobOrder,
    JobType,
    LaborCountRecord,
    RecognitionTier,
    RecruitmentPermit,
)
from quota_engine.services import (
    DomesticRecruitmentService,
    EmployerService,
    EntryService,
    LaborCountInput,
    LaborCountService,
    PermitBalance,
    PermitExpiryStatus,
    PermitLedgerService,
    QuotaAggregator,
    RecognitionService,
    ReconciliationResult,
    compute_earliest_certificate_date,
)

T = TypeVar("T")


def parse_uuid(value: UUID | str, field: str) -> UUID:
    """Coerce an identifier, raising ValidationError when malformed."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise ValidationError(f"{field} is not a valid identifier", {"field": field}) from exc


@dataclass
class ServiceBundle:
    """Services bound to one session."""

    session: AsyncSession
    employers: EmployerService
    labor_counts: LaborCountService
    recognitions: RecognitionService
    job_orders: DomesticRecruitmentService
    permits: PermitLedgerService
    entries: EntryService
    aggregator: QuotaAggregator
    eligibility: EligibilityCalculator


class QuotaEngine:
    """Transactional facade over the quota services."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        rules: QuotaRules | None = None,
        clock: Callable[[], date] = date.today,
        *,
        retry_attempts: int = 3,
        retry_base_delay: float = 0.05,
        db_engine: AsyncEngine | None = None,
    ):
        self.session_factory = session_factory
        self.db_engine = db_engine
        self.rules = rules or get_rules()
        self.clock = clock
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        rules: QuotaRules | None = None,
    ) -> QuotaEngine:
        """Build an engine with its own connection pool."""
        settings = settings or get_settings()
        engine = create_engine_for(settings.database_url)
        return cls(
            create_session_factory(engine),
            rules,
            retry_attempts=settings.db_retry_attempts,
            retry_base_delay=settings.db_retry_base_delay,
            db_engine=engine,
        )

    async def close(self) -> None:
        """Dispose the connection pool the engine owns, if any."""
        if self.db_engine is not None:
            await self.db_engine.dispose()

    def _services(self, session: AsyncSession) -> ServiceBundle:
        return ServiceBundle(
            session=session,
            employers=EmployerService(session),
            labor_counts=LaborCountService(session),
            recognitions=RecognitionService(session),
            job_orders=DomesticRecruitmentService(session, self.rules),
            permits=PermitLedgerService(session, self.rules, self.clock),
            entries=EntryService(session, self.rules, self.clock),
            aggregator=QuotaAggregator(session, self.rules, self.clock),
            eligibility=EligibilityCalculator(session, self.rules, self.clock),
        )

    async def _run(self, operation: Callable[[ServiceBundle], Awaitable[T]]) -> T:
        async def attempt() -> T:
            async with self.session_factory() as session:
                async with session.begin():
                    return await operation(self._services(session))

        return await run_with_retry(
            attempt,
            attempts=self.retry_attempts,
            base_delay=self.retry_base_delay,
        )

    # Employers

    async def create_employer(
        self,
        name: str,
        employer_type: EmployerType | str = EmployerType.CORPORATE,
    ) -> Employer:
        return await self._run(lambda s: s.employers.create_employer(name, employer_type))

    async def get_employer(self, employer_id: UUID | str) -> Employer:
        employer_id = parse_uuid(employer_id, "employer_id")
        return await self._run(lambda s: s.employers.get_employer(employer_id))

    # Labor counts and recognitions

    async def upsert_labor_counts(
        self,
        employer_id: UUID | str,
        counts: Iterable[LaborCountInput],
    ) -> list[LaborCountRecord]:
        employer_id = parse_uuid(employer_id, "employer_id")
        items = list(counts)
        return await self._run(lambda s: s.labor_counts.upsert_labor_counts(employer_id, items))

    async def list_labor_counts(
        self,
        employer_id: UUID | str,
        year: int | None = None,
    ) -> list[LaborCountRecord]:
        employer_id = parse_uuid(employer_id, "employer_id")

        async def operation(s: ServiceBundle) -> list[LaborCountRecord]:
            await s.employers.get_employer(employer_id)
            return await s.labor_counts.list_labor_counts(employer_id, year)

        return await self._run(operation)

    async def create_recognition(
        self,
        employer_id: UUID | str,
        tier: RecognitionTier | str,
        issue_date: date | str,
        reference_number: str,
        base_allocation_rate: Decimal | None = None,
        extra_rate: Decimal | None = None,
        expiry_date: date | str | None = None,
    ) -> IndustryRecognition:
        employer_id = parse_uuid(employer_id, "employer_id")
        issued = parse_date(issue_date, "issue_date")
        expires = parse_date(expiry_date, "expiry_date") if expiry_date else None
        return await self._run(
            lambda s: s.recognitions.create_recognition(
                employer_id,
                tier,
                issued,
                reference_number,
                base_allocation_rate=base_allocation_rate,
                extra_rate=extra_rate,
                expiry_date=expires,
            )
        )

    async def list_recognitions(self, employer_id: UUID | str) -> list[IndustryRecognition]:
        employer_id = parse_uuid(employer_id, "employer_id")

        async def operation(s: ServiceBundle) -> list[IndustryRecognition]:
            await s.employers.get_employer(employer_id)
            return await s.recognitions.list_recognitions(employer_id)

        return await self._run(operation)

    # Domestic recruitment

    def compute_earliest_certificate_date(
        self,
        registry_date: date | str,
        employer_type: EmployerType | str = EmployerType.CORPORATE,
    ) -> date:
        """Pure; no storage access."""
        return compute_earliest_certificate_date(
            parse_date(registry_date, "registry_date"), employer_type, self.rules
        )

    async def register_domestic_recruitment(
        self,
        employer_id: UUID | str,
        job_type: JobType | str,
        vacancy_count: int,
        registry_date: date | str,
    ) -> JobOrder:
        employer_id = parse_uuid(employer_id, "employer_id")
        registered = parse_date(registry_date, "registry_date")
        return await self._run(
            lambda s: s.job_orders.register_domestic_recruitment(
                employer_id, job_type, vacancy_count, registered
            )
        )

    async def get_job_order(self, job_order_id: UUID | str) -> JobOrder:
        job_order_id = parse_uuid(job_order_id, "job_order_id")
        return await self._run(lambda s: s.job_orders.get_job_order(job_order_id))

    async def record_certificate(
        self,
        job_order_id: UUID | str,
        certificate_number: str,
        certificate_date: date | str,
    ) -> JobOrder:
        job_order_id = parse_uuid(job_order_id, "job_order_id")
        certified = parse_date(certificate_date, "certificate_date")
        return await self._run(
            lambda s: s.job_orders.record_certificate(job_order_id, certificate_number, certified)
        )

    async def record_domestic_hires(self, job_order_id: UUID | str, success_count: int) -> JobOrder:
        job_order_id = parse_uuid(job_order_id, "job_order_id")
        return await self._run(
            lambda s: s.job_orders.record_domestic_hires(job_order_id, success_count)
        )

    # Permits

    async def issue_permit(
        self,
        employer_id: UUID | str,
        permit_number: str,
        issue_date: date | str,
        approved_quota: int,
        job_order_id: UUID | str | None = None,
        valid_until: date | str | None = None,
        attachment_ref: str | None = None,
    ) -> RecruitmentPermit:
        employer_id = parse_uuid(employer_id, "employer_id")
        issued = parse_date(issue_date, "issue_date")
        until = parse_date(valid_until, "valid_until") if valid_until else None
        order_id = parse_uuid(job_order_id, "job_order_id") if job_order_id else None
        return await self._run(
            lambda s: s.permits.issue_permit(
                employer_id,
                permit_number,
                issued,
                approved_quota,
                job_order_id=order_id,
                valid_until=until,
                attachment_ref=attachment_ref,
            )
        )

    async def get_permit(self, permit_id: UUID | str) -> RecruitmentPermit:
        permit_id = parse_uuid(permit_id, "permit_id")
        return await self._run(lambda s: s.permits.get_permit(permit_id))

    async def list_permits(self, employer_id: UUID | str) -> list[RecruitmentPermit]:
        employer_id = parse_uuid(employer_id, "employer_id")

        async def operation(s: ServiceBundle) -> list[RecruitmentPermit]:
            await s.employers.get_employer(employer_id)
            return await s.permits.list_permits(employer_id)

        return await self._run(operation)

    async def revoke_permit_quota(self, permit_id: UUID | str, amount: int) -> RecruitmentPermit:
        permit_id = parse_uuid(permit_id, "permit_id")
        return await self._run(lambda s: s.permits.revoke_permit_quota(permit_id, amount))

    async def permit_expiry_status(self, permit_id: UUID | str) -> PermitExpiryStatus:
        permit_id = parse_uuid(permit_id, "permit_id")
        return await self._run(lambda s: s.permits.expiry_status(permit_id))

    # Entries

    async def record_entry(
        self,
        permit_id: UUID | str,
        worker_count: int,
        occurred_at: date | str,
    ) -> EntryPermit:
        permit_id = parse_uuid(permit_id, "permit_id")
        occurred = parse_date(occurred_at, "occurred_at")
        return await self._run(lambda s: s.entries.record_entry(permit_id, worker_count, occurred))

    # Aggregates

    async def available_quota(
        self,
        employer_id: UUID | str,
        include_expired: bool = False,
    ) -> list[PermitBalance]:
        employer_id = parse_uuid(employer_id, "employer_id")
        return await self._run(
            lambda s: s.aggregator.available_quota(employer_id, include_expired=include_expired)
        )

    async def employer_total_quota(self, employer_id: UUID | str) -> int:
        """Total recomputed from the ledger (not the cached column)."""
        employer_id = parse_uuid(employer_id, "employer_id")

        async def operation(s: ServiceBundle) -> int:
            await s.employers.get_employer(employer_id)
            return await s.aggregator.employer_total_quota(employer_id)

        return await self._run(operation)

    async def authorized_headcount(self, employer_id: UUID | str) -> int:
        employer_id = parse_uuid(employer_id, "employer_id")
        return await self._run(lambda s: s.aggregator.authorized_headcount(employer_id))

    async def calculate_additional_quota(
        self,
        employer_id: UUID | str,
        as_of: date | str | None = None,
    ) -> AdditionalQuotaResult:
        employer_id = parse_uuid(employer_id, "employer_id")
        on = parse_date(as_of, "as_of") if as_of else None
        return await self._run(lambda s: s.eligibility.calculate(employer_id, on))

    async def reconcile(
        self,
        employer_ids: Iterable[UUID | str] | None = None,
    ) -> ReconciliationResult:
        ids = (
            [parse_uuid(value, "employer_id") for value in employer_ids]
            if employer_ids is not None
            else None
        )
        return await self._run(lambda s: s.aggregator.reconcile(ids))
