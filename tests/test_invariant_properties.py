"""Property-based tests for the pure quota arithmetic.

Balances must never go negative, the additional-quota bucket must always
split into usage plus availability, and calendar arithmetic must stay
inside the target month.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from decimal import Decimal

from hypothesis import given, settings, strategies as st

from quota_engine.calculators import (
    EligibilityInputs,
    RecognitionRates,
    calculate_additional_quota,
)
from quota_engine.config import QuotaRules
from quota_engine.dates import add_months
from quota_engine.models import RecognitionTier
from quota_engine.services import compute_earliest_certificate_date, remaining_balance

counts = st.integers(min_value=0, max_value=10_000)
rates = st.decimals(min_value=Decimal("0"), max_value=Decimal("0.5"), places=4)
averages = st.decimals(min_value=Decimal("0"), max_value=Decimal("100000"), places=2)


@given(approved=counts, used=counts, revoked=counts)
def test_remaining_balance_never_negative(approved, used, revoked):
    remaining = remaining_balance(approved, used, revoked)

    assert remaining >= 0
    if used + revoked <= approved:
        assert remaining == approved - used - revoked


@given(approved=st.integers(min_value=1, max_value=500), batches=st.lists(counts, max_size=20))
def test_accepting_only_batches_that_fit_keeps_ledger_bounded(approved, batches):
    """Replays the entry admission rule against a plain counter."""
    used = 0
    for batch in batches:
        if 0 < batch <= remaining_balance(approved, used, 0):
            used += batch

    assert 0 <= used <= approved
    assert remaining_balance(approved, used, 0) == approved - used


@settings(max_examples=300)
@given(
    average=averages,
    base=rates,
    extra=rates,
    authorized=counts,
    tier=st.sampled_from(list(RecognitionTier)),
)
def test_additional_quota_bucket_partition(average, base, extra, authorized, tier):
    rules = QuotaRules()
    result = calculate_additional_quota(
        EligibilityInputs(
            average_labor_count=average,
            recognition=RecognitionRates(tier=tier, base_rate=base, extra_rate=extra),
            authorized_headcount=authorized,
        ),
        rules,
    )

    total_rate = base + extra + rules.additional_rate
    assert result.eligible is (total_rate <= rules.rate_ceiling)
    assert result.quota >= 0
    if result.eligible:
        details = result.details
        assert details["bucket_size"] >= 0
        assert 0 <= details["bucket_usage"] <= details["bucket_size"]
        assert result.quota + details["bucket_usage"] == details["bucket_size"]
        assert details["full_ceiling"] <= average * total_rate
    else:
        assert result.quota == 0


@given(
    average=averages,
    authorized=counts,
    more=st.integers(min_value=0, max_value=1000),
)
def test_more_authorized_headcount_never_increases_quota(average, authorized, more):
    rules = QuotaRules()
    recognition = RecognitionRates(tier=RecognitionTier.A, base_rate=Decimal("0.25"))

    def quota(headcount: int) -> int:
        return calculate_additional_quota(
            EligibilityInputs(
                average_labor_count=average,
                recognition=recognition,
                authorized_headcount=headcount,
            ),
            rules,
        ).quota

    assert quota(authorized + more) <= quota(authorized)


@given(
    start=st.dates(min_value=date(2000, 1, 1), max_value=date(2090, 12, 31)),
    months=st.integers(min_value=0, max_value=60),
)
def test_add_months_lands_in_target_month(start, months):
    result = add_months(start, months)

    year, month_offset = divmod(start.year * 12 + start.month - 1 + months, 12)
    assert (result.year, result.month) == (year, month_offset + 1)
    assert result.day <= start.day
    if result.day < start.day:
        assert result.day == calendar.monthrange(result.year, result.month)[1]


@given(
    registry=st.dates(min_value=date(2000, 1, 1), max_value=date(2090, 12, 31)),
    waiting=st.integers(min_value=0, max_value=120),
)
def test_earliest_certificate_date_is_exact_day_count(registry, waiting):
    rules = QuotaRules(corporate_waiting_days=waiting)

    earliest = compute_earliest_certificate_date(registry, "corporate", rules)

    assert earliest - registry == timedelta(days=waiting)
