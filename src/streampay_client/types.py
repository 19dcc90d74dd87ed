from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class StreamType(str, Enum):
    WORK = "work"
    SUBSCRIPTION = "subscription"
    GAMING = "gaming"


class Recommendation(str, Enum):
    PROCEED = "proceed"
    WARN = "warn"
    BLOCK = "block"


class IssueCode(str, Enum):
    MISSING = "missing"
    PARSE_ERROR = "parse_error"
    INVALID_ADDRESS = "invalid_address"
    OUT_OF_RANGE = "out_of_range"


@dataclass(frozen=True)
class StreamDraft:
    recipient: str = ""
    total_amount: str = ""
    duration_hours: str = ""
    stream_type: StreamType = StreamType.WORK
    description: str = ""
    usd_hourly_rate_hint: str | None = None

    def is_complete(self) -> bool:
        return all(
            v.strip()
            for v in (self.recipient, self.total_amount, self.duration_hours, self.description)
        )


@dataclass(frozen=True)
class RateQuote:
    total_amount_atomic: int
    duration_seconds: int
    rate_per_second_atomic: int
    rate_per_hour_usd: Decimal
    rate_per_hour_display: str
    duration_display: str

    @property
    def residual_atomic(self) -> int:
        """Atomic units left undistributed by flooring the per-second rate."""
        return self.total_amount_atomic - self.rate_per_second_atomic * self.duration_seconds


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    code: IssueCode
    message: str


@dataclass(frozen=True)
class ValidationResult:
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.issues

    def for_field(self, name: str) -> list[ValidationIssue]:
        return [i for i in self.issues if i.field == name]


@dataclass(frozen=True)
class FraudAssessment:
    risk_score: int
    risk_factors: tuple[str, ...]
    recommendation: Recommendation
    message: str


@dataclass(frozen=True)
class CheckOutcome:
    assessment: FraudAssessment
    service_error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.service_error is not None


@dataclass(frozen=True)
class SubmissionReceipt:
    reference: str
    recipient: str
    duration_seconds: int
    stream_type: StreamType
    total_amount_atomic: int
    details: dict[str, Any] = field(default_factory=dict)
