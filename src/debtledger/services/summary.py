"""Household-level debt summary."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from ..clock import Clock
from ..domain.repositories.debt import DebtRepository
from ..models.debt import Debt, DebtType
from ..money import from_cents
from .amortization import PaymentSchedule, calculate_schedule

# Upcoming-payment windows, in days from today.
WEEK_DAYS = 7
MONTH_DAYS = 30


@dataclass(slots=True)
class DebtSummaryItem:
    id: str
    name: str
    type: DebtType
    creditor: str
    current_balance: Decimal
    original_amount: Decimal
    currency: str
    next_payment_date: Optional[date] = None
    next_payment_amount: Optional[Decimal] = None


@dataclass(slots=True)
class DebtSummaryByType:
    type: DebtType
    total_balance: Decimal
    count: int
    debts: list[DebtSummaryItem] = field(default_factory=list)


@dataclass(slots=True)
class UpcomingPayments:
    """Debts bucketed by the due date of their next projected installment."""

    overdue: list[DebtSummaryItem] = field(default_factory=list)
    due_today: list[DebtSummaryItem] = field(default_factory=list)
    due_this_week: list[DebtSummaryItem] = field(default_factory=list)
    due_this_month: list[DebtSummaryItem] = field(default_factory=list)

    def add(self, item: DebtSummaryItem, today: date) -> None:
        if item.next_payment_date is None:
            return
        days = (item.next_payment_date - today).days
        if days < 0:
            self.overdue.append(item)
        elif days == 0:
            self.due_today.append(item)
        elif days <= WEEK_DAYS:
            self.due_this_week.append(item)
        elif days <= MONTH_DAYS:
            self.due_this_month.append(item)


@dataclass(slots=True)
class PayoffProjection:
    total_interest_remaining: Decimal = Decimal("0.00")
    average_payoff_months: Decimal = Decimal("0.00")


@dataclass(slots=True)
class DebtSummary:
    """Active-debt overview for one household."""

    total_debt: Decimal
    currency: Optional[str]
    by_type: list[DebtSummaryByType]
    upcoming_payments: UpcomingPayments
    payoff_projection: PayoffProjection

    def as_dict(self) -> dict:
        return asdict(self)


def _summary_item(debt: Debt, schedule: PaymentSchedule) -> DebtSummaryItem:
    upcoming = schedule.future_rows
    return DebtSummaryItem(
        id=debt.id,
        name=debt.name,
        type=DebtType(debt.type),
        creditor=debt.creditor,
        current_balance=from_cents(debt.current_balance_cents),
        original_amount=from_cents(debt.principal_amount_cents),
        currency=debt.currency,
        next_payment_date=upcoming[0].due_date if upcoming else None,
        next_payment_amount=upcoming[0].payment_amount if upcoming else None,
    )


def _shared_currency(debts: list[Debt]) -> Optional[str]:
    currencies = {debt.currency for debt in debts}
    return currencies.pop() if len(currencies) == 1 else None


class SummaryAggregator:
    """Builds the household summary from store-side totals and projected schedules."""

    def __init__(self, repository: DebtRepository, clock: Clock) -> None:
        self.repository = repository
        self.clock = clock

    async def get_debt_summary(self, household_id: str) -> DebtSummary:
        today = self.clock.today()
        totals = await self.repository.active_balance_by_type(household_id)
        debts = await self.repository.list_by_household(household_id, is_active=True)

        items: dict[DebtType, list[DebtSummaryItem]] = {debt_type: [] for debt_type in DebtType}
        upcoming = UpcomingPayments()
        interest_remaining = Decimal("0.00")
        projected_months: list[int] = []

        for debt in debts:
            payments = await self.repository.list_payments(debt.id)
            schedule = calculate_schedule(debt, payments, today)
            item = _summary_item(debt, schedule)
            items[item.type].append(item)
            upcoming.add(item, today)

            future = schedule.future_rows
            if future:
                interest_remaining += sum((row.interest_amount for row in future), Decimal("0.00"))
                projected_months.append(len(future))

        by_type = [
            DebtSummaryByType(
                type=debt_type,
                total_balance=from_cents(totals[debt_type][0]),
                count=totals[debt_type][1],
                debts=items[debt_type],
            )
            for debt_type in DebtType
            if totals.get(debt_type, (0, 0))[1] > 0
        ]
        average_months = (
            (Decimal(sum(projected_months)) / len(projected_months)).quantize(Decimal("0.01"))
            if projected_months
            else Decimal("0.00")
        )
        return DebtSummary(
            total_debt=from_cents(sum(cents for cents, _count in totals.values())),
            currency=_shared_currency(debts),
            by_type=by_type,
            upcoming_payments=upcoming,
            payoff_projection=PayoffProjection(
                total_interest_remaining=interest_remaining,
                average_payoff_months=average_months,
            ),
        )


__all__ = [
    "DebtSummary",
    "DebtSummaryByType",
    "DebtSummaryItem",
    "PayoffProjection",
    "SummaryAggregator",
    "UpcomingPayments",
]
