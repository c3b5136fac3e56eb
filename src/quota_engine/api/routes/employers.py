"""Employer, labor-count, recognition and quota endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from quota_engine.api.dependencies import Engine
from quota_engine.api.schemas import (
    AdditionalQuotaResponse,
    EmployerCreate,
    EmployerResponse,
    ErrorResponse,
    LaborCountItem,
    LaborCountUpsert,
    PermitBalanceResponse,
    PermitResponse,
    QuotaResponse,
    RecognitionCreate,
    RecognitionResponse,
)
from quota_engine.services import LaborCountInput

router = APIRouter(prefix="/employers", tags=["employers"])

EmployerId = Annotated[UUID, Path(description="Employer ID")]


@router.post(
    "",
    response_model=EmployerResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_employer(engine: Engine, payload: EmployerCreate) -> EmployerResponse:
    """Register an employer with an empty quota."""
    employer = await engine.create_employer(payload.name, payload.employer_type)
    return EmployerResponse.model_validate(employer)


@router.get(
    "/{employer_id}",
    response_model=EmployerResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_employer(engine: Engine, employer_id: EmployerId) -> EmployerResponse:
    """Get an employer with its cached total quota."""
    employer = await engine.get_employer(employer_id)
    return EmployerResponse.model_validate(employer)


# ============================================================================
# Labor counts
# ============================================================================


@router.put(
    "/{employer_id}/labor-counts",
    response_model=list[LaborCountItem],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def upsert_labor_counts(
    engine: Engine,
    employer_id: EmployerId,
    payload: LaborCountUpsert,
) -> list[LaborCountItem]:
    """Insert or overwrite monthly headcounts by period."""
    records = await engine.upsert_labor_counts(
        employer_id,
        [LaborCountInput(year=c.year, month=c.month, count=c.count) for c in payload.counts],
    )
    return [LaborCountItem.model_validate(r) for r in records]


@router.get(
    "/{employer_id}/labor-counts",
    response_model=list[LaborCountItem],
    responses={404: {"model": ErrorResponse}},
)
async def list_labor_counts(
    engine: Engine,
    employer_id: EmployerId,
    year: Annotated[int | None, Query()] = None,
) -> list[LaborCountItem]:
    """List monthly headcounts, newest first."""
    records = await engine.list_labor_counts(employer_id, year)
    return [LaborCountItem.model_validate(r) for r in records]


# ============================================================================
# Industry recognitions
# ============================================================================


@router.post(
    "/{employer_id}/recognitions",
    response_model=RecognitionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def create_recognition(
    engine: Engine,
    employer_id: EmployerId,
    payload: RecognitionCreate,
) -> RecognitionResponse:
    """Store an industry recognition document."""
    recognition = await engine.create_recognition(
        employer_id,
        payload.tier,
        payload.issue_date,
        payload.reference_number,
        base_allocation_rate=payload.base_allocation_rate,
        extra_rate=payload.extra_rate,
        expiry_date=payload.expiry_date,
    )
    return RecognitionResponse.model_validate(recognition)


@router.get(
    "/{employer_id}/recognitions",
    response_model=list[RecognitionResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_recognitions(engine: Engine, employer_id: EmployerId) -> list[RecognitionResponse]:
    """List recognitions, newest issue first."""
    recognitions = await engine.list_recognitions(employer_id)
    return [RecognitionResponse.model_validate(r) for r in recognitions]


# ============================================================================
# Permits
# ============================================================================


@router.get(
    "/{employer_id}/permits",
    response_model=list[PermitResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_permits(engine: Engine, employer_id: EmployerId) -> list[PermitResponse]:
    """An employer's permits ordered by issue date then permit number."""
    permits = await engine.list_permits(employer_id)
    return [PermitResponse.model_validate(p) for p in permits]


# ============================================================================
# Quota
# ============================================================================


@router.get(
    "/{employer_id}/quota",
    response_model=QuotaResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_available_quota(
    engine: Engine,
    employer_id: EmployerId,
    include_expired: Annotated[bool, Query()] = False,
) -> QuotaResponse:
    """Per-permit balances and the employer total, computed from the ledger."""
    balances = await engine.available_quota(employer_id, include_expired=include_expired)
    total = await engine.employer_total_quota(employer_id)
    return QuotaResponse(
        employer_id=employer_id,
        total_quota=total,
        permits=[PermitBalanceResponse(**b.to_dict()) for b in balances],
    )


@router.get(
    "/{employer_id}/additional-quota",
    response_model=AdditionalQuotaResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_additional_quota(
    engine: Engine,
    employer_id: EmployerId,
    as_of: Annotated[date | None, Query()] = None,
) -> AdditionalQuotaResponse:
    """Tiered additional quota; `eligible: false` is a normal response."""
    result = await engine.calculate_additional_quota(employer_id, as_of)
    return AdditionalQuotaResponse(**result.to_dict())
