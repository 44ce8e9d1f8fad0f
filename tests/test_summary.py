"""Household summary aggregation tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from debtledger.models import DebtType
from debtledger.services.payments import PaymentInput
from debtledger.services.validation import DebtPatch

HOUSEHOLD_ID = "household-1"


async def test_empty_household_yields_zeros(debt_service):
    summary = await debt_service.get_debt_summary(HOUSEHOLD_ID)

    assert summary.total_debt == Decimal("0.00")
    assert summary.by_type == []
    assert summary.currency is None
    assert summary.upcoming_payments.overdue == []
    assert summary.upcoming_payments.due_today == []
    assert summary.upcoming_payments.due_this_week == []
    assert summary.upcoming_payments.due_this_month == []
    assert summary.payoff_projection.total_interest_remaining == Decimal("0.00")
    assert summary.payoff_projection.average_payoff_months == Decimal("0.00")


async def test_totals_by_type_cover_active_debts_only(debt_service, debt_factory):
    await debt_factory(DebtType.PERSONAL)
    await debt_factory(DebtType.PERSONAL, name="Second loan", principal_amount=500)
    await debt_factory(DebtType.CONVENTIONAL)
    closed = await debt_factory(DebtType.ISLAMIC)
    await debt_service.update_debt(closed.id, HOUSEHOLD_ID, DebtPatch(is_active=False))
    await debt_factory(DebtType.CONVENTIONAL, household_id="household-2")

    summary = await debt_service.get_debt_summary(HOUSEHOLD_ID)

    assert summary.total_debt == Decimal("6500.00")
    assert summary.currency == "IDR"
    by_type = {group.type: group for group in summary.by_type}
    assert set(by_type) == {DebtType.PERSONAL, DebtType.CONVENTIONAL}
    assert by_type[DebtType.PERSONAL].count == 2
    assert by_type[DebtType.PERSONAL].total_balance == Decimal("1500.00")
    assert [item.name for item in by_type[DebtType.PERSONAL].debts] == ["Loan from family", "Second loan"]
    assert by_type[DebtType.CONVENTIONAL].total_balance == Decimal("5000.00")
    assert summary.total_debt == sum(group.total_balance for group in summary.by_type)


async def test_summary_reflects_payments(debt_service, debt_factory):
    debt = await debt_factory(DebtType.PERSONAL)
    await debt_service.record_payment(
        debt.id, HOUSEHOLD_ID, PaymentInput(amount=250, principal_amount=250, payment_date=date(2024, 3, 1))
    )

    summary = await debt_service.get_debt_summary(HOUSEHOLD_ID)

    assert summary.total_debt == Decimal("750.00")
    item = summary.by_type[0].debts[0]
    assert item.current_balance == Decimal("750.00")
    assert item.original_amount == Decimal("1000.00")
    assert item.next_payment_date is None


async def test_upcoming_payment_buckets(debt_service, debt_factory, clock):
    # today is 2024-06-15; the next projected due date is start + 1 month
    overdue = await debt_factory(DebtType.CONVENTIONAL, name="Overdue", start_date=date(2024, 1, 1))
    today = await debt_factory(DebtType.CONVENTIONAL, name="Today", start_date=date(2024, 5, 15))
    week = await debt_factory(DebtType.CONVENTIONAL, name="Week", start_date=date(2024, 5, 20))
    month = await debt_factory(DebtType.ISLAMIC, name="Month", start_date=date(2024, 6, 10))
    await debt_factory(DebtType.PERSONAL, name="Flexible")

    summary = await debt_service.get_debt_summary(HOUSEHOLD_ID)
    upcoming = summary.upcoming_payments

    assert [item.id for item in upcoming.overdue] == [overdue.id]
    assert [item.id for item in upcoming.due_today] == [today.id]
    assert [item.id for item in upcoming.due_this_week] == [week.id]
    assert [item.id for item in upcoming.due_this_month] == [month.id]
    assert upcoming.due_today[0].next_payment_date == clock.today()
    assert upcoming.due_today[0].next_payment_amount > 0


async def test_payoff_projection(debt_service, debt_factory):
    conventional = await debt_factory(DebtType.CONVENTIONAL)  # 24 months remaining
    islamic = await debt_factory(DebtType.ISLAMIC)  # 120 months remaining
    await debt_factory(DebtType.PERSONAL)

    summary = await debt_service.get_debt_summary(HOUSEHOLD_ID)

    conventional_schedule = await debt_service.calculate_payment_schedule(conventional.id, HOUSEHOLD_ID)
    islamic_schedule = await debt_service.calculate_payment_schedule(islamic.id, HOUSEHOLD_ID)
    expected_interest = (
        conventional_schedule.summary.total_interest + islamic_schedule.summary.total_interest
    )
    assert summary.payoff_projection.total_interest_remaining == expected_interest
    assert summary.payoff_projection.average_payoff_months == Decimal("72.00")


async def test_mixed_currencies_have_no_shared_currency(debt_factory, debt_service):
    await debt_factory(DebtType.PERSONAL)
    await debt_factory(DebtType.PERSONAL, currency="USD")

    summary = await debt_service.get_debt_summary(HOUSEHOLD_ID)

    assert summary.currency is None
    assert summary.as_dict()["by_type"][0]["count"] == 2
