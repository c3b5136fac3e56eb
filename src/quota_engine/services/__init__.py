"""Domain services. Each is session-scoped and flushes without committing."""

from quota_engine.services.domestic_recruitment_service import (
    DomesticRecruitmentService,
    compute_earliest_certificate_date,
)
from quota_engine.services.employer_service import EmployerService
from quota_engine.services.entry_service import EntryService
from quota_engine.services.labor_count_service import LaborCountInput, LaborCountService
from quota_engine.services.permit_ledger_service import (
    PermitExpiryStatus,
    PermitLedgerService,
    permit_expiry_status,
)
from quota_engine.services.quota_aggregator import (
    PermitBalance,
    QuotaAggregator,
    QuotaDrift,
    ReconciliationResult,
    remaining_balance,
)
from quota_engine.services.recognition_service import RecognitionService
from quota_engine.services.state_machine import JobOrderStateMachine

__all__ = [
    "DomesticRecruitmentService",
    "compute_earliest_certificate_date",
    "EmployerService",
    "EntryService",
    "LaborCountInput",
    "LaborCountService",
    "PermitExpiryStatus",
    "PermitLedgerService",
    "permit_expiry_status",
    "PermitBalance",
    "QuotaAggregator",
    "QuotaDrift",
    "ReconciliationResult",
    "remaining_balance",
    "RecognitionService",
    "JobOrderStateMachine",
]
