"""Tests for integer-cent money helpers and month arithmetic."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from debtledger.clock import FixedClock
from debtledger.money import add_months, add_years, from_cents, months_between, to_cents


class TestCentConversion:
    """Amounts are held as integer cents, rounded half-up."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (1000, 100000),
            ("0.005", 1),
            ("0.004", 0),
            (0.1 + 0.2, 30),
            (Decimal("1234.565"), 123457),
            ("-1.005", -101),
        ],
    )
    def test_to_cents(self, value, expected):
        assert to_cents(value) == expected

    @pytest.mark.parametrize("value", [True, "abc", "NaN", float("inf")])
    def test_rejects_non_amounts(self, value):
        with pytest.raises((TypeError, ValueError)):
            to_cents(value)

    def test_from_cents_has_two_places(self):
        assert from_cents(123457) == Decimal("1234.57")
        assert str(from_cents(100)) == "1.00"


class TestMonthArithmetic:
    def test_add_months_clamps_to_month_end(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)

    def test_add_years_from_leap_day(self):
        assert add_years(date(2000, 2, 29), 50) == date(2050, 2, 28)
        assert add_years(date(2000, 2, 29), 4) == date(2004, 2, 29)

    @pytest.mark.parametrize(
        ("start", "end", "expected"),
        [
            (date(2024, 1, 1), date(2026, 1, 1), 24),
            (date(2024, 1, 1), date(2024, 1, 2), 1),
            (date(2024, 1, 31), date(2024, 2, 29), 1),
            (date(2024, 1, 15), date(2024, 3, 16), 3),
            (date(2024, 1, 1), date(2024, 1, 1), 0),
        ],
    )
    def test_months_between(self, start, end, expected):
        assert months_between(start, end) == expected


def test_fixed_clock_moves_only_when_set():
    clock = FixedClock(date(2024, 6, 15))

    assert clock.today() == date(2024, 6, 15)
    assert clock.now().tzinfo is not None

    clock.set(date(2024, 7, 1))
    assert clock.today() == date(2024, 7, 1)
