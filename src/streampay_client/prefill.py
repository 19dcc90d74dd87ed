from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from .rates import SECONDS_PER_HOUR, plain, to_decimal, usd_to_amount
from .types import StreamDraft, StreamType

logger = logging.getLogger(__name__)

DurationUnit = Literal["seconds", "minutes", "hours", "days"]


def to_hours(duration: str | int | Decimal, unit: DurationUnit) -> str:
    d = to_decimal(duration)
    if unit == "seconds":
        hours = d / SECONDS_PER_HOUR
    elif unit == "minutes":
        hours = d / 60
    elif unit == "hours":
        hours = d
    elif unit == "days":
        hours = d * 24
    else:
        raise ValueError(f"Unknown duration unit {unit!r}")
    return plain(hours)


def parse_stream_type(value: str | None) -> StreamType:
    if not value:
        return StreamType.WORK
    try:
        return StreamType(value.strip().lower())
    except ValueError:
        logger.warning("Unknown stream type %r, defaulting to %s", value, StreamType.WORK.value)
        return StreamType.WORK


def draft_from_prefill(
    recipient: str,
    amount: str,
    duration: str | int | Decimal,
    duration_unit: DurationUnit,
    stream_type: str | None = None,
    description: str | None = None,
) -> StreamDraft:
    """Build a draft from externally parsed values, e.g. a natural-language parser."""
    return StreamDraft(
        recipient=recipient,
        total_amount=amount,
        duration_hours=to_hours(duration, duration_unit),
        stream_type=parse_stream_type(stream_type),
        description=description or "",
    )


@dataclass(frozen=True)
class StreamPreset:
    stream_type: StreamType
    total_usd: Decimal
    duration_seconds: int
    description: str


PRESETS: dict[StreamType, StreamPreset] = {
    StreamType.WORK: StreamPreset(StreamType.WORK, Decimal("25"), 3600, "Freelance development work"),
    StreamType.SUBSCRIPTION: StreamPreset(
        StreamType.SUBSCRIPTION, Decimal("10"), 30 * 86400, "Premium content subscription"
    ),
    StreamType.GAMING: StreamPreset(StreamType.GAMING, Decimal("2.50"), 1800, "Gaming rewards stream"),
}


def draft_from_preset(stream_type: StreamType, recipient: str = "", price_usd: Decimal | None = None) -> StreamDraft:
    preset = PRESETS[stream_type]
    return StreamDraft(
        recipient=recipient,
        total_amount=usd_to_amount(preset.total_usd, price_usd),
        duration_hours=to_hours(preset.duration_seconds, "seconds"),
        stream_type=preset.stream_type,
        description=preset.description,
    )
