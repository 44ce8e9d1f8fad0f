"""Integer-cent money helpers and calendar-month arithmetic."""

from __future__ import annotations

from calendar import monthrange
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

Amount = Union[Decimal, int, float, str]

CENTS_PER_UNIT = 100
_CENT = Decimal("0.01")


def to_decimal(value: Amount) -> Decimal:
    """Convert user input to Decimal without binary float artefacts."""

    if isinstance(value, bool):
        raise TypeError("boolean is not an amount")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def to_cents(value: Amount) -> int:
    """Round a major-unit amount half-up to the nearest cent and return cents."""

    cents = to_decimal(value) * CENTS_PER_UNIT
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a two-place Decimal in major units."""

    return (Decimal(cents) / CENTS_PER_UNIT).quantize(_CENT)


def round_cents(value: Decimal) -> int:
    """Round a fractional cent amount half-up to whole cents."""

    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def add_months(value: date, months: int) -> date:
    """Return *value* shifted by *months*, clamping the day to the month end."""

    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, monthrange(year, month)[1])
    return date(year, month, day)


def add_years(value: date, years: int) -> date:
    """Return *value* shifted by *years*; Feb 29 becomes Feb 28 in common years."""

    return add_months(value, years * 12)


def months_between(start: date, end: date) -> int:
    """Count monthly periods from *start* to *end*, a partial month counting as one."""

    if end <= start:
        return 0
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if add_months(start, months) < end:
        months += 1
    return months
