from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Protocol

from .errors import SubmissionError
from .types import StreamType, SubmissionReceipt
from .validation import is_valid_address

logger = logging.getLogger(__name__)


class StreamSubmitter(Protocol):
    """Creates the stream on chain. Implementations raise SubmissionError on failure."""

    async def create_stream(
        self,
        recipient: str,
        duration_seconds: int,
        stream_type: StreamType,
        description: str,
        total_amount_atomic: int,
    ) -> SubmissionReceipt: ...


@dataclass
class SubmittedStream:
    recipient: str
    duration_seconds: int
    stream_type: StreamType
    description: str
    total_amount_atomic: int


@dataclass
class DryRunStreamSubmitter:
    """Records create_stream calls without signing or broadcasting anything."""

    submitted: list[SubmittedStream] = field(default_factory=list)

    async def create_stream(
        self,
        recipient: str,
        duration_seconds: int,
        stream_type: StreamType,
        description: str,
        total_amount_atomic: int,
    ) -> SubmissionReceipt:
        if not is_valid_address(recipient):
            raise SubmissionError(f"Recipient {recipient!r} is not a valid address")
        if duration_seconds <= 0:
            raise SubmissionError("Stream duration must be positive")
        if total_amount_atomic <= 0:
            raise SubmissionError("Stream must carry a positive amount")

        self.submitted.append(
            SubmittedStream(recipient, duration_seconds, stream_type, description, total_amount_atomic)
        )
        reference = f"dry-run-{uuid.uuid4().hex[:12]}"
        logger.info("Dry run: would create %s stream %s to %s", stream_type.value, reference, recipient)
        return SubmissionReceipt(
            reference=reference,
            recipient=recipient,
            duration_seconds=duration_seconds,
            stream_type=stream_type,
            total_amount_atomic=total_amount_atomic,
            details={"dry_run": True, "description": description},
        )
