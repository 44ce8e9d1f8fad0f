"""Tests for the SQLModel debt repository."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import text

from debtledger.errors import NotFoundError
from debtledger.models import Debt, DebtPayment, DebtType

HOUSEHOLD_ID = "household-1"


def build_debt(name: str, balance_cents: int, **overrides) -> Debt:
    values = {
        "household_id": HOUSEHOLD_ID,
        "type": DebtType.PERSONAL,
        "name": name,
        "creditor": "Family",
        "principal_amount_cents": max(balance_cents, 100000),
        "current_balance_cents": balance_cents,
        "start_date": date(2024, 1, 1),
        **overrides,
    }
    return Debt(**values)


async def test_create_and_get_round_trip(debt_repository):
    created = await debt_repository.create(
        build_debt(
            "Mortgage",
            50_000_000,
            type=DebtType.ISLAMIC,
            margin_rate=Decimal("0.055"),
            maturity_date=date(2044, 1, 1),
            meta={"account": "123"},
        )
    )

    loaded = await debt_repository.get_by_id(created.id)

    assert loaded is not None
    assert loaded.type == DebtType.ISLAMIC
    assert loaded.current_balance_cents == 50_000_000
    assert loaded.margin_rate == Decimal("0.055")
    assert loaded.interest_rate is None
    assert loaded.maturity_date == date(2044, 1, 1)
    assert loaded.meta == {"account": "123"}


async def test_get_missing_returns_none(debt_repository):
    assert await debt_repository.get_by_id("does-not-exist") is None


async def test_list_orders_active_first_then_balance(debt_repository):
    small = await debt_repository.create(build_debt("Small", 10_000))
    large = await debt_repository.create(build_debt("Large", 90_000))
    inactive = await debt_repository.create(build_debt("Closed", 99_000, is_active=False))
    await debt_repository.create(build_debt("Other household", 50_000, household_id="household-2"))

    debts = await debt_repository.list_by_household(HOUSEHOLD_ID)

    assert [d.id for d in debts] == [large.id, small.id, inactive.id]


async def test_list_filters(debt_repository):
    await debt_repository.create(build_debt("Car loan", 10_000, creditor="Bank Central"))
    await debt_repository.create(build_debt("Laptop", 20_000, creditor="Uncle Budi"))
    await debt_repository.create(
        build_debt(
            "Home", 30_000, creditor="Bank Syariah", type=DebtType.ISLAMIC, margin_rate=Decimal("0.05")
        )
    )

    by_creditor = await debt_repository.list_by_household(HOUSEHOLD_ID, creditor="bank")
    by_search = await debt_repository.list_by_household(HOUSEHOLD_ID, search="BUDI")
    by_name = await debt_repository.list_by_household(HOUSEHOLD_ID, search="car")
    by_type = await debt_repository.list_by_household(HOUSEHOLD_ID, debt_type=DebtType.ISLAMIC)
    wildcard = await debt_repository.list_by_household(HOUSEHOLD_ID, search="%")

    assert {d.name for d in by_creditor} == {"Car loan", "Home"}
    assert [d.name for d in by_search] == ["Laptop"]
    assert [d.name for d in by_name] == ["Car loan"]
    assert [d.name for d in by_type] == ["Home"]
    assert wildcard == []


async def test_update_fields_writes_only_given_columns(debt_repository):
    debt = await debt_repository.create(build_debt("Loan", 40_000))

    updated = await debt_repository.update_fields(debt.id, {"name": "Renamed", "meta": {"note": "x"}})

    assert updated.name == "Renamed"
    assert updated.meta == {"note": "x"}
    assert updated.current_balance_cents == 40_000


async def test_update_fields_refuses_balance_changes(debt_repository):
    debt = await debt_repository.create(build_debt("Loan", 40_000))

    with pytest.raises(ValueError):
        await debt_repository.update_fields(debt.id, {"current_balance_cents": 0})


async def test_update_missing_debt_raises(debt_repository):
    with pytest.raises(NotFoundError):
        await debt_repository.update_fields("missing", {"name": "x"})


async def test_delete_removes_payments(debt_repository, session_factory, clock):
    debt = await debt_repository.create(build_debt("Loan", 100_000))
    await debt_repository.record_payment(
        DebtPayment(
            debt_id=debt.id,
            amount_cents=1000,
            principal_amount_cents=1000,
            payment_date=date(2024, 2, 1),
            currency="IDR",
        ),
        recorded_at=clock.now(),
    )
    assert len(await debt_repository.list_payments(debt.id)) == 1

    await debt_repository.delete(debt.id)

    assert await debt_repository.get_by_id(debt.id) is None
    async with session_factory() as session:
        connection = await session.connection()
        remaining = (await connection.execute(text("SELECT COUNT(*) FROM debt_payment"))).scalar_one()
    assert remaining == 0


async def test_active_balance_by_type(debt_repository):
    await debt_repository.create(build_debt("A", 10_000))
    await debt_repository.create(build_debt("B", 15_000))
    await debt_repository.create(build_debt("Closed", 99_000, is_active=False))
    await debt_repository.create(
        build_debt(
            "C", 50_000, type=DebtType.CONVENTIONAL, interest_rate=Decimal("0.1")
        )
    )

    totals = await debt_repository.active_balance_by_type(HOUSEHOLD_ID)

    assert totals == {DebtType.PERSONAL: (25_000, 2), DebtType.CONVENTIONAL: (50_000, 1)}


async def test_record_payment_clamps_and_stamps_paid_off(debt_repository, clock):
    debt = await debt_repository.create(build_debt("Loan", 1_000, principal_amount_cents=1_000))

    await debt_repository.record_payment(
        DebtPayment(
            debt_id=debt.id,
            amount_cents=1_000,
            principal_amount_cents=1_000,
            payment_date=date(2024, 2, 1),
            currency="IDR",
        ),
        recorded_at=clock.now(),
    )

    loaded = await debt_repository.get_by_id(debt.id)
    assert loaded.current_balance_cents == 0
    assert loaded.paid_off_at == clock.now()


async def test_metadata_update_keeps_payoff_committed_after_load(debt_repository, clock):
    debt = await debt_repository.create(
        build_debt("Loan", 1_000, principal_amount_cents=1_000, meta={"note": "before"})
    )
    stale = await debt_repository.get_by_id(debt.id)
    await debt_repository.record_payment(
        DebtPayment(
            debt_id=debt.id,
            amount_cents=1_000,
            principal_amount_cents=1_000,
            payment_date=date(2024, 2, 1),
            currency="IDR",
        ),
        recorded_at=clock.now(),
    )

    updated = await debt_repository.update_fields(debt.id, {"meta": {**stale.meta, "note": "after"}})

    assert updated.meta == {"note": "after", "paidOffDate": clock.now().isoformat()}
    assert updated.paid_off_at == clock.now()
    assert updated.current_balance_cents == 0


async def test_metadata_update_of_missing_debt(debt_repository):
    with pytest.raises(NotFoundError):
        await debt_repository.update_fields("missing", {"meta": {"note": "x"}})
