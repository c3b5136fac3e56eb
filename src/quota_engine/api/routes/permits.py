"""Recruitment permit endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from quota_engine.api.dependencies import Engine
from quota_engine.api.schemas import (
    EntryCreate,
    EntryResponse,
    ErrorResponse,
    PermitCreate,
    PermitExpiryResponse,
    PermitResponse,
    RevocationCreate,
)

router = APIRouter(prefix="/permits", tags=["permits"])

PermitId = Annotated[UUID, Path(description="Recruitment permit ID")]


@router.post(
    "",
    response_model=PermitResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def issue_permit(engine: Engine, payload: PermitCreate) -> PermitResponse:
    """Record a permit. A reused permit number is rejected with 409."""
    permit = await engine.issue_permit(
        payload.employer_id,
        payload.permit_number,
        payload.issue_date,
        payload.approved_quota,
        job_order_id=payload.job_order_id,
        valid_until=payload.valid_until,
        attachment_ref=payload.attachment_ref,
    )
    return PermitResponse.model_validate(permit)


@router.get(
    "/{permit_id}",
    response_model=PermitResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_permit(engine: Engine, permit_id: PermitId) -> PermitResponse:
    """Get a permit."""
    permit = await engine.get_permit(permit_id)
    return PermitResponse.model_validate(permit)


@router.get(
    "/{permit_id}/expiry",
    response_model=PermitExpiryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_permit_expiry(engine: Engine, permit_id: PermitId) -> PermitExpiryResponse:
    """Days until expiry and whether an extension can be requested."""
    expiry = await engine.permit_expiry_status(permit_id)
    return PermitExpiryResponse(**expiry.to_dict())


@router.post(
    "/{permit_id}/revocations",
    response_model=PermitResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def revoke_permit_quota(
    engine: Engine,
    permit_id: PermitId,
    payload: RevocationCreate,
) -> PermitResponse:
    """Withdraw unused headcount from a permit."""
    permit = await engine.revoke_permit_quota(permit_id, payload.amount)
    return PermitResponse.model_validate(permit)


@router.post(
    "/{permit_id}/entries",
    response_model=EntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def record_entry(
    engine: Engine,
    permit_id: PermitId,
    payload: EntryCreate,
) -> EntryResponse:
    """Record workers entering under a permit."""
    entry = await engine.record_entry(permit_id, payload.worker_count, payload.occurred_at)
    return EntryResponse.model_validate(entry)
