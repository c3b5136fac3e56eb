"""ORM models."""

from quota_engine.models.base import Base, TimestampMixin
from quota_engine.models.employer import (
    TIER_ALLOCATION_RATES,
    Employer,
    EmployerType,
    IndustryRecognition,
    LaborCountRecord,
    RecognitionTier,
)
from quota_engine.models.recruitment import (
    EntryPermit,
    JobOrder,
    JobOrderStatus,
    JobType,
    RecruitmentPermit,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "TIER_ALLOCATION_RATES",
    "Employer",
    "EmployerType",
    "IndustryRecognition",
    "LaborCountRecord",
    "RecognitionTier",
    "EntryPermit",
    "JobOrder",
    "JobOrderStatus",
    "JobType",
    "RecruitmentPermit",
]
