"""
Fraud gate: one risk-assessment round trip per submission attempt.

The gate is fail-open. When the assessment service cannot be reached or
answers with anything other than a well-formed assessment, a fixed synthetic
PROCEED assessment is used instead (see ``FALLBACK_ASSESSMENT``) and the
outcome is flagged as degraded. The synthetic assessment is built locally and
never sent anywhere. A response that says block is honoured even when its
other fields are malformed.

States::

    IDLE -> CHECKING -> ASSESSED -> CONFIRMED | CANCELLED
                                 -> BLOCKED_CLOSED   (recommendation == BLOCK)
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Protocol

import requests
from pydantic import ValidationError as SchemaError

from .errors import AttemptInProgress, FraudBlocked, FraudServiceError, GateStateError
from .rates import hours_to_seconds
from .schemas import FraudCheckRequest, FraudCheckResponse
from .settings import Settings, settings as default_settings
from .types import CheckOutcome, FraudAssessment, Recommendation, StreamDraft

logger = logging.getLogger(__name__)

FALLBACK_ASSESSMENT = FraudAssessment(
    risk_score=30,
    risk_factors=("Detection service error",),
    recommendation=Recommendation.PROCEED,
    message="Fraud detection temporarily unavailable. Please double-check the details.",
)


def fallback_outcome(reason: str) -> CheckOutcome:
    return CheckOutcome(assessment=FALLBACK_ASSESSMENT, service_error=reason)


def risk_band(score: int) -> str:
    if score < 30:
        return "low"
    if score < 60:
        return "medium"
    return "high"


def salvage_block(body: Any) -> FraudAssessment | None:
    """A BLOCK from a response that failed validation, or None when it did not say block."""
    if not isinstance(body, dict):
        return None
    if str(body.get("recommendation") or "").strip().lower() != Recommendation.BLOCK.value:
        return None
    score = body.get("riskScore")
    factors = body.get("riskFactors")
    message = body.get("message")
    return FraudAssessment(
        risk_score=score if type(score) is int and 0 <= score <= 100 else 100,
        risk_factors=tuple(str(f) for f in factors) if isinstance(factors, list) else (),
        recommendation=Recommendation.BLOCK,
        message=message if isinstance(message, str) else "",
    )


def build_request(draft: StreamDraft, sender_address: str) -> FraudCheckRequest:
    return FraudCheckRequest(
        recipient=draft.recipient.strip(),
        amount=draft.total_amount.strip(),
        duration=hours_to_seconds(draft.duration_hours),
        sender_address=sender_address,
    )


class AssessmentClient(Protocol):
    async def assess(self, request: FraudCheckRequest) -> FraudAssessment: ...


class FraudCheckClient:
    """POSTs a check to the fraud endpoint; failures surface as FraudServiceError, see salvage_block."""

    def __init__(self, settings: Settings = default_settings, session: requests.Session | None = None) -> None:
        self.url = settings.fraud_check_url
        self.timeout = settings.fraud_check_timeout_seconds
        self.session = session or requests.Session()

    def _post(self, payload: dict[str, Any]) -> Any:
        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            raise FraudServiceError(f"Fraud check request failed: {exc}") from exc
        except ValueError as exc:
            raise FraudServiceError("Fraud check returned a non-JSON body") from exc

    async def assess(self, request: FraudCheckRequest) -> FraudAssessment:
        body = await asyncio.to_thread(self._post, request.to_payload())
        try:
            return FraudCheckResponse.model_validate(body).to_assessment()
        except SchemaError as exc:
            blocked = salvage_block(body)
            if blocked is not None:
                logger.warning("Malformed fraud check response still says block; honouring it: %s", exc)
                return blocked
            raise FraudServiceError(f"Fraud check returned an unexpected payload: {exc}") from exc


class GateState(str, Enum):
    IDLE = "idle"
    CHECKING = "checking"
    ASSESSED = "assessed"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    BLOCKED_CLOSED = "blocked_closed"


class FraudGate:
    def __init__(self, client: AssessmentClient) -> None:
        self.client = client
        self.state = GateState.IDLE
        self.outcome: CheckOutcome | None = None
        self.draft: StreamDraft | None = None

    @property
    def busy(self) -> bool:
        return self.state is GateState.CHECKING

    @property
    def assessment(self) -> FraudAssessment | None:
        return self.outcome.assessment if self.outcome else None

    def matches(self, draft: StreamDraft) -> bool:
        return self.draft is not None and self.draft == draft

    async def check(self, draft: StreamDraft, sender_address: str) -> CheckOutcome:
        if self.state is GateState.CHECKING:
            raise AttemptInProgress("A fraud check is already in flight for this draft")
        if self.state is not GateState.IDLE:
            raise GateStateError(f"Cannot start a fraud check from state {self.state.value}")
        if not sender_address.strip():
            raise ValueError("sender_address is required to run a fraud check")

        request = build_request(draft, sender_address.strip())
        self.draft = draft
        self.outcome = None
        self.state = GateState.CHECKING
        try:
            outcome = await self._assess(request)
        except BaseException:
            self.reset()
            raise
        self.outcome = outcome
        self.state = GateState.ASSESSED
        return outcome

    async def _assess(self, request: FraudCheckRequest) -> CheckOutcome:
        try:
            assessment = await self.client.assess(request)
        except (FraudServiceError, OSError) as exc:
            logger.warning("Fraud check unavailable, continuing with fallback assessment: %s", exc)
            return fallback_outcome(str(exc))
        logger.debug(
            "Fraud check for %s: score=%d recommendation=%s",
            request.recipient,
            assessment.risk_score,
            assessment.recommendation.value,
        )
        return CheckOutcome(assessment=assessment)

    def _require_assessed(self) -> FraudAssessment:
        if self.state is not GateState.ASSESSED or self.outcome is None:
            raise GateStateError(f"No assessment awaiting a decision (state {self.state.value})")
        return self.outcome.assessment

    def confirm(self) -> FraudAssessment:
        assessment = self._require_assessed()
        if assessment.recommendation is Recommendation.BLOCK:
            raise FraudBlocked(assessment)
        self.state = GateState.CONFIRMED
        return assessment

    def cancel(self) -> None:
        assessment = self._require_assessed()
        if assessment.recommendation is Recommendation.BLOCK:
            raise GateStateError("A blocked assessment can only be closed")
        self.state = GateState.CANCELLED

    def close(self) -> None:
        assessment = self._require_assessed()
        if assessment.recommendation is not Recommendation.BLOCK:
            raise GateStateError("Only a blocked assessment can be closed; confirm or cancel instead")
        self.state = GateState.BLOCKED_CLOSED

    def reset(self) -> None:
        self.state = GateState.IDLE
        self.outcome = None
        self.draft = None
