"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from quota_engine.models import EmployerType, JobType, RecognitionTier


class ErrorResponse(BaseModel):
    """Error body shared by every business error."""

    detail: str
    code: str


# ============================================================================
# Employer schemas
# ============================================================================


class EmployerCreate(BaseModel):
    """Schema for creating an employer."""

    name: str
    employer_type: EmployerType = EmployerType.CORPORATE


class EmployerResponse(BaseModel):
    """Schema for employer response."""

    model_config = ConfigDict(from_attributes=True)

    employer_id: UUID
    name: str
    employer_type: str
    total_quota: int
    created_at: datetime


class LaborCountItem(BaseModel):
    """One monthly headcount snapshot."""

    model_config = ConfigDict(from_attributes=True)

    year: int
    month: int
    count: int


class LaborCountUpsert(BaseModel):
    """Batch of snapshots to insert or overwrite by period."""

    counts: list[LaborCountItem] = Field(min_length=1)


class RecognitionCreate(BaseModel):
    """Schema for storing an industry recognition."""

    tier: RecognitionTier
    issue_date: date
    reference_number: str
    base_allocation_rate: Decimal | None = None
    extra_rate: Decimal | None = None
    expiry_date: date | None = None


class RecognitionResponse(BaseModel):
    """Schema for recognition response."""

    model_config = ConfigDict(from_attributes=True)

    industry_recognition_id: UUID
    employer_id: UUID
    tier: str
    base_allocation_rate: Decimal
    extra_rate: Decimal
    issue_date: date
    expiry_date: date | None = None
    reference_number: str


# ============================================================================
# Job order schemas
# ============================================================================


class JobOrderCreate(BaseModel):
    """Schema for registering a domestic recruitment."""

    employer_id: UUID
    job_type: JobType
    vacancy_count: int
    registry_date: date


class JobOrderResponse(BaseModel):
    """Schema for job order response."""

    model_config = ConfigDict(from_attributes=True)

    job_order_id: UUID
    employer_id: UUID
    job_type: str
    vacancy_count: int
    registry_date: date
    expiry_date: date
    certificate_number: str | None = None
    certificate_date: date | None = None
    success_count: int
    requestable_headcount: int
    status: str


class CertificateCreate(BaseModel):
    """Futility certificate for a job order."""

    certificate_number: str
    certificate_date: date


class DomesticHiresUpdate(BaseModel):
    """Number of vacancies filled by domestic workers."""

    success_count: int


class EarliestCertificateDateResponse(BaseModel):
    """Earliest date a futility certificate may carry."""

    registry_date: date
    employer_type: EmployerType
    earliest_certificate_date: date


# ============================================================================
# Permit schemas
# ============================================================================


class PermitCreate(BaseModel):
    """Schema for recording a recruitment permit."""

    employer_id: UUID
    permit_number: str
    issue_date: date
    approved_quota: int
    job_order_id: UUID | None = None
    valid_until: date | None = None
    attachment_ref: str | None = None


class PermitResponse(BaseModel):
    """Schema for permit response."""

    model_config = ConfigDict(from_attributes=True)

    recruitment_permit_id: UUID
    employer_id: UUID
    job_order_id: UUID | None = None
    permit_number: str
    issue_date: date
    valid_until: date
    approved_quota: int
    used_quota: int
    revoked_quota: int
    attachment_ref: str | None = None
    created_at: datetime


class RevocationCreate(BaseModel):
    """Headcount to withdraw from a permit."""

    amount: int


class EntryCreate(BaseModel):
    """An entry batch against a permit."""

    worker_count: int
    occurred_at: date


class EntryResponse(BaseModel):
    """Schema for entry response."""

    model_config = ConfigDict(from_attributes=True)

    entry_permit_id: UUID
    recruitment_permit_id: UUID
    worker_count: int
    occurred_at: date


class PermitExpiryResponse(BaseModel):
    """Expiry status of a permit."""

    permit_id: UUID
    permit_number: str
    valid_until: date
    days_until_expiry: int
    can_extend: bool
    is_urgent: bool
    is_expired: bool


# ============================================================================
# Quota schemas
# ============================================================================


class PermitBalanceResponse(BaseModel):
    """Balance of one permit."""

    permit_id: UUID
    permit_number: str
    issue_date: date
    valid_until: date
    approved: int
    used: int
    revoked: int
    remaining: int
    status: str
    is_expired: bool
    job_type: str | None = None


class QuotaResponse(BaseModel):
    """Available quota of an employer."""

    employer_id: UUID
    total_quota: int
    permits: list[PermitBalanceResponse]


class AdditionalQuotaResponse(BaseModel):
    """Result of the additional-quota calculation."""

    eligible: bool
    quota: int
    reason: str
    details: dict[str, Any]


class ReconcileRequest(BaseModel):
    """Employers to reconcile; all when omitted."""

    employer_ids: list[UUID] | None = None


class QuotaDriftResponse(BaseModel):
    """A corrected cache value."""

    employer_id: UUID
    permit_id: UUID | None = None
    field: str
    cached: int
    actual: int


class ReconcileResponse(BaseModel):
    """Result of a reconciliation run."""

    employers_checked: int
    permits_checked: int
    consistent: bool
    drifts: list[QuotaDriftResponse]
