from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import assert_never

from .errors import AttemptInProgress, FraudBlocked, GateStateError, SubmissionError
from .fraud_gate import FraudGate, GateState
from .rates import quote, usd_rate_to_total_amount
from .settings import settings
from .submitter import StreamSubmitter
from .types import (
    CheckOutcome,
    FraudAssessment,
    IssueCode,
    RateQuote,
    Recommendation,
    StreamDraft,
    SubmissionReceipt,
    ValidationIssue,
)
from .validation import validate

logger = logging.getLogger(__name__)

DEGRADED_NOTICE = "Fraud check failed. Please be cautious."
NO_ANALYSIS_NOTICE = "No analysis available"


class AttemptStatus(str, Enum):
    INVALID = "invalid"
    STALE = "stale"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"
    CLOSED = "closed"
    SUBMITTED = "submitted"
    SUBMISSION_FAILED = "submission_failed"


@dataclass(frozen=True)
class AttemptResult:
    status: AttemptStatus
    issues: tuple[ValidationIssue, ...] = ()
    assessment: FraudAssessment | None = None
    notice: str | None = None
    error: SubmissionError | None = None
    receipt: SubmissionReceipt | None = None


class CreationOrchestrator:
    """Owns the draft for one form session and sequences each submission attempt.

    validate -> fraud check -> explicit user decision -> create_stream -> reset.
    Only the fraud check and the submission leave the process; everything else
    is in-memory state.
    """

    def __init__(
        self,
        gate: FraudGate,
        submitter: StreamSubmitter,
        sender_address: str = "",
        draft: StreamDraft | None = None,
    ) -> None:
        self.gate = gate
        self.submitter = submitter
        self.sender_address = sender_address or settings.sender_address
        self._draft = draft or StreamDraft()
        self._submitting = False
        self._blocked: tuple[StreamDraft, FraudAssessment] | None = None

    @property
    def draft(self) -> StreamDraft:
        return self._draft

    @property
    def busy(self) -> bool:
        return self.gate.busy or self._submitting

    @property
    def can_submit(self) -> bool:
        return (
            self._draft.is_complete()
            and not self.busy
            and self.gate.state is GateState.IDLE
            and not self._is_blocked(self._draft)
        )

    def _is_blocked(self, draft: StreamDraft) -> bool:
        return self._blocked is not None and self._blocked[0] == draft

    def update_draft(self, draft: StreamDraft) -> StreamDraft:
        self._draft = draft
        return draft

    def edit(self, **changes) -> StreamDraft:
        return self.update_draft(dataclasses.replace(self._draft, **changes))

    def apply_usd_rate_hint(self, usd_per_hour: str) -> StreamDraft:
        """Store the USD/hour hint and back-compute the total when the duration parses."""
        draft = dataclasses.replace(self._draft, usd_hourly_rate_hint=usd_per_hour or None)
        if usd_per_hour.strip() and draft.duration_hours.strip():
            try:
                draft = dataclasses.replace(
                    draft, total_amount=usd_rate_to_total_amount(usd_per_hour, draft.duration_hours)
                )
            except ValueError as exc:
                logger.debug("USD rate hint not applied: %s", exc)
        return self.update_draft(draft)

    def current_quote(self) -> RateQuote | None:
        if not validate(self._draft).ok:
            return None
        return quote(self._draft.total_amount, self._draft.duration_hours)

    async def begin_attempt(self, sender_address: str | None = None) -> AttemptResult:
        if self.busy:
            raise AttemptInProgress("A fraud check or submission is already in progress")
        if self.gate.state is not GateState.IDLE:
            raise GateStateError("Resolve the current assessment before starting a new attempt")

        draft = self._draft
        result = validate(draft)
        if not result.ok:
            return AttemptResult(AttemptStatus.INVALID, issues=result.issues)

        sender = (self.sender_address if sender_address is None else sender_address).strip()
        if not sender:
            issue = ValidationIssue("sender_address", IssueCode.MISSING, "Connect a wallet before creating a stream")
            return AttemptResult(AttemptStatus.INVALID, issues=(issue,))

        if self._blocked is not None and self._blocked[0] == draft:
            raise FraudBlocked(self._blocked[1])

        outcome = await self.gate.check(draft, sender)
        if self._draft != draft:
            logger.warning("Draft edited while the fraud check was in flight; discarding the assessment")
            self.gate.reset()
            return AttemptResult(AttemptStatus.STALE)
        return self._present(outcome)

    def _present(self, outcome: CheckOutcome) -> AttemptResult:
        assessment = outcome.assessment
        notice = DEGRADED_NOTICE if outcome.degraded else None
        rec = assessment.recommendation
        if rec is Recommendation.BLOCK:
            notice = assessment.message or NO_ANALYSIS_NOTICE
            return AttemptResult(AttemptStatus.BLOCKED, assessment=assessment, notice=notice)
        elif rec is Recommendation.WARN or rec is Recommendation.PROCEED:
            # PROCEED still waits for an explicit confirm.
            return AttemptResult(AttemptStatus.AWAITING_CONFIRMATION, assessment=assessment, notice=notice)
        else:
            assert_never(rec)

    def cancel(self) -> AttemptResult:
        assessment = self.gate.assessment
        self.gate.cancel()
        self.gate.reset()
        return AttemptResult(AttemptStatus.CANCELLED, assessment=assessment)

    def close(self) -> AttemptResult:
        assessment = self.gate.assessment
        draft = self.gate.draft
        self.gate.close()
        self._blocked = (draft, assessment)
        self.gate.reset()
        return AttemptResult(AttemptStatus.CLOSED, assessment=assessment)

    async def confirm(self) -> AttemptResult:
        if self._submitting:
            raise AttemptInProgress("Submission already in progress")
        if self.gate.state is GateState.ASSESSED and not self.gate.matches(self._draft):
            logger.warning("Draft edited after the fraud check; discarding the assessment")
            self.gate.reset()
            return AttemptResult(AttemptStatus.STALE)

        assessment = self.gate.confirm()
        draft = self.gate.draft
        q = quote(draft.total_amount, draft.duration_hours)

        self._submitting = True
        try:
            receipt = await self.submitter.create_stream(
                draft.recipient.strip(),
                q.duration_seconds,
                draft.stream_type,
                draft.description.strip(),
                q.total_amount_atomic,
            )
        except SubmissionError as exc:
            logger.error("Stream creation failed for %s: %s", draft.recipient, exc)
            return AttemptResult(AttemptStatus.SUBMISSION_FAILED, assessment=assessment, error=exc)
        finally:
            # The draft is kept on any failure; the gate must be usable for a retry.
            self._submitting = False
            self.gate.reset()

        logger.info("Stream %s created for %s", receipt.reference, draft.recipient)
        self._draft = StreamDraft()
        self._blocked = None
        return AttemptResult(AttemptStatus.SUBMITTED, assessment=assessment, receipt=receipt)
