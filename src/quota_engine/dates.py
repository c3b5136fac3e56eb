"""Calendar helpers for statutory date arithmetic."""

from __future__ import annotations

import calendar
from datetime import date, datetime

from quota_engine.errors import ValidationError


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping to the last day of the target month.

    2024-01-31 + 1 month is 2024-02-29; 2024-02-29 + 12 months is 2025-02-28.
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def parse_date(value: date | str | None, field: str) -> date:
    """Coerce a date or ISO-8601 string, raising ValidationError otherwise."""
    if value is None or value == "":
        raise ValidationError(f"{field} is required", {"field": field})
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    # Anything longer than YYYY-MM-DD must be a full ISO datetime
    parser = datetime.fromisoformat if len(text) > 10 else date.fromisoformat
    try:
        parsed = parser(text)
    except ValueError as exc:
        raise ValidationError(
            f"{field} is not a valid date: {value!r}", {"field": field}
        ) from exc
    return parsed.date() if isinstance(parsed, datetime) else parsed


def _parse_whole_number(value: object, field: str, kind: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a {kind} integer", {"field": field})
    try:
        number = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"{field} must be a {kind} integer", {"field": field}
        ) from exc
    if number != value and not isinstance(value, str):
        raise ValidationError(f"{field} must be a whole number", {"field": field})
    return number


def parse_positive_int(value: object, field: str) -> int:
    """Coerce a strictly positive integer, raising ValidationError otherwise."""
    number = _parse_whole_number(value, field, "positive")
    if number <= 0:
        raise ValidationError(f"{field} must be greater than 0", {"field": field})
    return number


def parse_non_negative_int(value: object, field: str) -> int:
    """Coerce an integer of zero or more, raising ValidationError otherwise."""
    number = _parse_whole_number(value, field, "non-negative")
    if number < 0:
        raise ValidationError(f"{field} must not be negative", {"field": field})
    return number
