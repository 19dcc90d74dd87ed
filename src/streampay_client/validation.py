from __future__ import annotations

from eth_utils import is_address

from .errors import ValidationError
from .rates import hours_to_seconds, parse_to_atomic, to_decimal
from .types import IssueCode, StreamDraft, ValidationIssue, ValidationResult

REQUIRED_FIELDS = ("recipient", "total_amount", "duration_hours", "description")


def is_valid_address(value: str) -> bool:
    value = value.strip()
    return value.startswith("0x") and is_address(value)


def _check_recipient(value: str) -> ValidationIssue | None:
    if not is_valid_address(value):
        return ValidationIssue(
            "recipient",
            IssueCode.INVALID_ADDRESS,
            "Recipient must be a 0x-prefixed 20-byte hex address",
        )
    return None


def _check_total_amount(value: str) -> ValidationIssue | None:
    try:
        amount = to_decimal(value)
    except ValueError:
        return ValidationIssue("total_amount", IssueCode.PARSE_ERROR, f"Total amount is not a number: {value!r}")
    if amount < 0:
        return ValidationIssue("total_amount", IssueCode.OUT_OF_RANGE, "Total amount must not be negative")
    try:
        parse_to_atomic(amount)
    except ValueError as exc:
        return ValidationIssue("total_amount", IssueCode.OUT_OF_RANGE, str(exc))
    return None


def _check_duration(value: str) -> ValidationIssue | None:
    try:
        hours = to_decimal(value)
    except ValueError:
        return ValidationIssue("duration_hours", IssueCode.PARSE_ERROR, f"Duration is not a number: {value!r}")
    if hours <= 0:
        return ValidationIssue("duration_hours", IssueCode.OUT_OF_RANGE, "Duration must be greater than zero")
    try:
        seconds = hours_to_seconds(hours)
    except ValueError as exc:
        return ValidationIssue("duration_hours", IssueCode.OUT_OF_RANGE, str(exc))
    if seconds < 1:
        return ValidationIssue("duration_hours", IssueCode.OUT_OF_RANGE, "Duration must be at least one second")
    return None


_FIELD_CHECKS = {
    "recipient": _check_recipient,
    "total_amount": _check_total_amount,
    "duration_hours": _check_duration,
}


def validate(draft: StreamDraft) -> ValidationResult:
    """Field-level checks run before any network call. Never raises on bad input."""
    issues: list[ValidationIssue] = []
    for name in REQUIRED_FIELDS:
        value = getattr(draft, name)
        if not value.strip():
            label = name.replace("_", " ").capitalize()
            issues.append(ValidationIssue(name, IssueCode.MISSING, f"{label} is required"))
            continue
        check = _FIELD_CHECKS.get(name)
        issue = check(value) if check else None
        if issue is not None:
            issues.append(issue)
    return ValidationResult(tuple(issues))


def require_valid(draft: StreamDraft) -> StreamDraft:
    result = validate(draft)
    if not result.ok:
        raise ValidationError(result.issues)
    return draft
