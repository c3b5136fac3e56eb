"""Type definitions for the additional-quota calculation."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from quota_engine.errors import NotEligibleError
from quota_engine.models import RecognitionTier


class EligibilityReason(str, Enum):
    """Outcome codes of the additional-quota calculation."""

    ELIGIBLE = "ELIGIBLE"
    NO_ACTIVE_RECOGNITION = "NO_ACTIVE_RECOGNITION"
    RATE_CEILING_EXCEEDED = "RATE_CEILING_EXCEEDED"


@dataclass(frozen=True)
class RecognitionRates:
    """Rates of the recognition in force."""

    tier: RecognitionTier
    base_rate: Decimal
    extra_rate: Decimal = Decimal("0")


@dataclass(frozen=True)
class EligibilityInputs:
    """Everything the pure calculation needs."""

    average_labor_count: Decimal
    recognition: RecognitionRates | None
    authorized_headcount: int
    months_used: int = 0


@dataclass
class AdditionalQuotaResult:
    """Result of the additional-quota calculation.

    `eligible: false` is a normal outcome, not an error.
    """

    eligible: bool
    quota: int
    reason: EligibilityReason
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable view (decimals rendered as strings)."""
        return {
            "eligible": self.eligible,
            "quota": self.quota,
            "reason": self.reason.value,
            "details": {
                key: str(value) if isinstance(value, Decimal) else value
                for key, value in self.details.items()
            },
        }

    def require_eligible(self) -> AdditionalQuotaResult:
        """Return self, or raise NotEligibleError for callers needing a hard failure."""
        if not self.eligible:
            raise NotEligibleError(
                f"Employer is not eligible for additional quota ({self.reason.value})",
                {"reason": self.reason.value},
            )
        return self
