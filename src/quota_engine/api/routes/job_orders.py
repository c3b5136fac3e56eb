"""Domestic recruitment (job order) endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from quota_engine.api.dependencies import Engine
from quota_engine.api.schemas import (
    CertificateCreate,
    DomesticHiresUpdate,
    EarliestCertificateDateResponse,
    ErrorResponse,
    JobOrderCreate,
    JobOrderResponse,
)
from quota_engine.models import EmployerType

router = APIRouter(prefix="/job-orders", tags=["job-orders"])

JobOrderId = Annotated[UUID, Path(description="Job order ID")]


@router.post(
    "",
    response_model=JobOrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def register_domestic_recruitment(
    engine: Engine,
    payload: JobOrderCreate,
) -> JobOrderResponse:
    """Register a domestic recruitment."""
    job_order = await engine.register_domestic_recruitment(
        payload.employer_id,
        payload.job_type,
        payload.vacancy_count,
        payload.registry_date,
    )
    return JobOrderResponse.model_validate(job_order)


@router.get(
    "/earliest-certificate-date",
    response_model=EarliestCertificateDateResponse,
    responses={400: {"model": ErrorResponse}},
)
async def earliest_certificate_date(
    engine: Engine,
    registry_date: Annotated[date, Query()],
    employer_type: Annotated[EmployerType, Query()] = EmployerType.CORPORATE,
) -> EarliestCertificateDateResponse:
    """Registry date plus the statutory waiting period."""
    return EarliestCertificateDateResponse(
        registry_date=registry_date,
        employer_type=employer_type,
        earliest_certificate_date=engine.compute_earliest_certificate_date(
            registry_date, employer_type
        ),
    )


@router.get(
    "/{job_order_id}",
    response_model=JobOrderResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_job_order(engine: Engine, job_order_id: JobOrderId) -> JobOrderResponse:
    """Get a job order."""
    job_order = await engine.get_job_order(job_order_id)
    return JobOrderResponse.model_validate(job_order)


@router.post(
    "/{job_order_id}/certificate",
    response_model=JobOrderResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def record_certificate(
    engine: Engine,
    job_order_id: JobOrderId,
    payload: CertificateCreate,
) -> JobOrderResponse:
    """Attach the futility certificate."""
    job_order = await engine.record_certificate(
        job_order_id, payload.certificate_number, payload.certificate_date
    )
    return JobOrderResponse.model_validate(job_order)


@router.post(
    "/{job_order_id}/domestic-hires",
    response_model=JobOrderResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def record_domestic_hires(
    engine: Engine,
    job_order_id: JobOrderId,
    payload: DomesticHiresUpdate,
) -> JobOrderResponse:
    """Set the number of vacancies filled domestically."""
    job_order = await engine.record_domestic_hires(job_order_id, payload.success_count)
    return JobOrderResponse.model_validate(job_order)
