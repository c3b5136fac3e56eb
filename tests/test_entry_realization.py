"""Tests for entry recording against permit balances."""

import asyncio
from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from quota_engine.errors import NotFoundError, QuotaExceededError, ValidationError
from quota_engine.models import EntryPermit

ISSUE_DATE = date(2024, 3, 1)


async def entry_rows(session, permit_id) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(EntryPermit)
        .where(EntryPermit.recruitment_permit_id == permit_id)
    )
    count = result.scalar_one()
    await session.rollback()
    return count


class TestRecordEntry:
    """Entries consume the permit balance."""

    async def test_entry_consumes_balance(self, engine, employer, assert_total_consistent):
        permit = await engine.issue_permit(employer.employer_id, "P-100", ISSUE_DATE, 10)

        entry = await engine.record_entry(permit.recruitment_permit_id, 4, date(2024, 4, 15))

        assert entry.worker_count == 4
        assert entry.occurred_at == date(2024, 4, 15)
        assert (await engine.get_permit(permit.recruitment_permit_id)).used_quota == 4
        [balance] = await engine.available_quota(employer.employer_id)
        assert balance.used == 4
        assert balance.remaining == 6
        assert await assert_total_consistent(employer.employer_id) == 6

    async def test_exceeding_entry_rejected(self, engine, employer, session):
        """Entry of 12 on a fresh permit of 10: rejected, nothing stored."""
        permit = await engine.issue_permit(employer.employer_id, "P-100", ISSUE_DATE, 10)

        with pytest.raises(QuotaExceededError) as exc_info:
            await engine.record_entry(permit.recruitment_permit_id, 12, date(2024, 4, 15))

        assert exc_info.value.requested == 12
        assert exc_info.value.remaining == 10
        assert exc_info.value.code == "QUOTA_EXCEEDED"
        [balance] = await engine.available_quota(employer.employer_id)
        assert balance.remaining == 10
        assert (await engine.get_employer(employer.employer_id)).total_quota == 10
        assert await entry_rows(session, permit.recruitment_permit_id) == 0

    async def test_exact_remaining_exhausts_permit(self, engine, employer, assert_total_consistent):
        permit = await engine.issue_permit(employer.employer_id, "P-100", ISSUE_DATE, 10)
        await engine.record_entry(permit.recruitment_permit_id, 3, date(2024, 4, 1))
        await engine.record_entry(permit.recruitment_permit_id, 7, date(2024, 5, 1))

        [balance] = await engine.available_quota(employer.employer_id)
        assert balance.remaining == 0
        assert balance.status == "exhausted"
        assert await assert_total_consistent(employer.employer_id) == 0

        with pytest.raises(QuotaExceededError):
            await engine.record_entry(permit.recruitment_permit_id, 1, date(2024, 5, 2))

    async def test_revoked_headcount_is_not_available(self, engine, employer):
        permit = await engine.issue_permit(employer.employer_id, "P-100", ISSUE_DATE, 10)
        await engine.revoke_permit_quota(permit.recruitment_permit_id, 8)

        with pytest.raises(QuotaExceededError) as exc_info:
            await engine.record_entry(permit.recruitment_permit_id, 3, date(2024, 4, 1))

        assert exc_info.value.remaining == 2

    async def test_concurrent_entries_cannot_overdraw(
        self, engine, employer, session, assert_total_consistent
    ):
        """Two entries of 6 on a permit of 10: exactly one is stored."""
        permit = await engine.issue_permit(employer.employer_id, "P-100", ISSUE_DATE, 10)

        results = await asyncio.gather(
            engine.record_entry(permit.recruitment_permit_id, 6, date(2024, 4, 1)),
            engine.record_entry(permit.recruitment_permit_id, 6, date(2024, 4, 1)),
            return_exceptions=True,
        )

        assert sum(isinstance(r, EntryPermit) for r in results) == 1
        assert sum(isinstance(r, QuotaExceededError) for r in results) == 1
        assert await assert_total_consistent(employer.employer_id) == 4
        assert await entry_rows(session, permit.recruitment_permit_id) == 1

    @pytest.mark.parametrize("occurred_at", [date(2024, 2, 29), date(2025, 3, 2)])
    async def test_entry_outside_validity(self, engine, employer, occurred_at):
        permit = await engine.issue_permit(employer.employer_id, "P-100", ISSUE_DATE, 10)

        with pytest.raises(ValidationError):
            await engine.record_entry(permit.recruitment_permit_id, 1, occurred_at)

    @pytest.mark.parametrize("worker_count", [0, -3])
    async def test_worker_count_must_be_positive(self, engine, employer, worker_count):
        permit = await engine.issue_permit(employer.employer_id, "P-100", ISSUE_DATE, 10)

        with pytest.raises(ValidationError):
            await engine.record_entry(permit.recruitment_permit_id, worker_count, date(2024, 4, 1))

    async def test_unknown_permit(self, engine):
        with pytest.raises(NotFoundError):
            await engine.record_entry(uuid4(), 1, date(2024, 4, 1))
