from __future__ import annotations

import calendar
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal


DATE_FORMAT = "%Y-%m-%d"

WEEKDAY_CODES: tuple[str, ...] = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")


def parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        return None


def require_date(value: str | date) -> date:
    """Return ``value`` as a date, raising ``ValueError`` for bad input."""

    if isinstance(value, date):
        return value
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    return parsed


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def weekday_code(day: date | int) -> str:
    index = day if isinstance(day, int) else day.weekday()
    return WEEKDAY_CODES[index]


def round_currency(amount: Decimal | int) -> int:
    """Round an amount to whole currency units, halves going up."""

    return int(Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def quantize_cents(amount: Decimal | int) -> Decimal:
    return Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
