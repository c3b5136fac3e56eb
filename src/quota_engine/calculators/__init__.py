"""Additional-quota eligibility calculation."""

from quota_engine.calculators.eligibility import (
    EligibilityCalculator,
    calculate_additional_quota,
)
from quota_engine.calculators.types import (
    AdditionalQuotaResult,
    EligibilityInputs,
    EligibilityReason,
    RecognitionRates,
)

__all__ = [
    "EligibilityCalculator",
    "calculate_additional_quota",
    "AdditionalQuotaResult",
    "EligibilityInputs",
    "EligibilityReason",
    "RecognitionRates",
]
