from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import FraudAssessment, ValidationIssue


class StreamPayError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(StreamPayError):
    def __init__(self, issues: tuple[ValidationIssue, ...]) -> None:
        self.issues = issues
        summary = "; ".join(f"{i.field}: {i.message}" for i in issues)
        super().__init__(f"Invalid stream draft: {summary}")


class InvalidDuration(StreamPayError, ValueError):
    def __init__(self, duration_seconds: int) -> None:
        self.duration_seconds = duration_seconds
        super().__init__(f"Duration must be a positive number of seconds, got {duration_seconds}")


class FraudServiceError(StreamPayError):
    """The risk-assessment service could not produce an assessment."""


class FraudBlocked(StreamPayError):
    def __init__(self, assessment: FraudAssessment) -> None:
        self.assessment = assessment
        super().__init__(f"Stream blocked by fraud detection: {assessment.message}")


class GateStateError(StreamPayError):
    """A transition was requested that the current gate state does not allow."""


class AttemptInProgress(GateStateError):
    pass


class SubmissionError(StreamPayError):
    """The stream-submission collaborator failed to create the stream."""
