"""Tests for transient-failure retry and storage helpers."""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

from quota_engine.database import is_transient_error, is_unique_violation, run_with_retry
from quota_engine.errors import ValidationError


class FakePgError(Exception):
    def __init__(self, pgcode: str):
        super().__init__(f"pg error {pgcode}")
        self.pgcode = pgcode


def locked() -> OperationalError:
    return OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))


class TestIsTransientError:
    def test_sqlite_busy(self):
        assert is_transient_error(locked()) is True

    @pytest.mark.parametrize("pgcode", ["40001", "40P01"])
    def test_serialization_and_deadlock(self, pgcode):
        assert is_transient_error(OperationalError("UPDATE", {}, FakePgError(pgcode))) is True

    def test_integrity_error_is_never_transient(self):
        exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        assert is_transient_error(exc) is False

    def test_other_operational_error(self):
        exc = OperationalError("SELECT", {}, Exception("no such table: employer"))
        assert is_transient_error(exc) is False

    def test_connection_invalidated(self):
        exc = OperationalError("SELECT", {}, Exception("closed"), connection_invalidated=True)
        assert is_transient_error(exc) is True


class TestRunWithRetry:
    """Backoff applies to transient storage failures only."""

    async def test_retries_then_succeeds(self, caplog):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) < 3:
                raise locked()
            return "done"

        result = await run_with_retry(operation, attempts=3, base_delay=0.001)

        assert result == "done"
        assert len(calls) == 3
        assert "retrying" in caplog.text

    async def test_gives_up_after_attempts(self):
        calls = []

        async def operation():
            calls.append(1)
            raise locked()

        with pytest.raises(OperationalError):
            await run_with_retry(operation, attempts=2, base_delay=0.001)
        assert len(calls) == 2

    async def test_integrity_error_not_retried(self):
        calls = []

        async def operation():
            calls.append(1)
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(IntegrityError):
            await run_with_retry(operation, attempts=5, base_delay=0.001)
        assert len(calls) == 1

    async def test_business_error_not_retried(self):
        calls = []

        async def operation():
            calls.append(1)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            await run_with_retry(operation, attempts=5, base_delay=0.001)
        assert len(calls) == 1


class TestStorage:
    def test_unique_violation_matching(self):
        sqlite_exc = IntegrityError(
            "INSERT", {}, Exception("UNIQUE constraint failed: recruitment_permit.permit_number")
        )
        pg_exc = IntegrityError(
            "INSERT",
            {},
            Exception('duplicate key value violates unique constraint "uq_recruitment_permit_number"'),
        )
        other = IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))

        for exc in (sqlite_exc, pg_exc):
            assert is_unique_violation(
                exc, "uq_recruitment_permit_number", "recruitment_permit.permit_number"
            )
        assert not is_unique_violation(
            other, "uq_recruitment_permit_number", "recruitment_permit.permit_number"
        )

    async def test_foreign_keys_enforced(self, db_engine):
        with pytest.raises(IntegrityError):
            async with db_engine.begin() as conn:
                await conn.execute(
                    text(
                        "INSERT INTO labor_count_record "
                        "(labor_count_record_id, employer_id, year, month, count) "
                        "VALUES ('a', 'missing', 2024, 1, 1)"
                    )
                )
