"""Amortization schedules per debt type.

Every emitted figure is held in integer cents and converted to two-place
``Decimal`` major units only when the schedule is assembled. Functions here
are pure: the same debt, payments and date always give the same schedule.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Iterable, Optional, Sequence

from ..errors import CalculationError
from ..models.debt import Debt, DebtType, ensure_covers_all_types
from ..models.payment import DebtPayment
from ..money import add_months, from_cents, months_between, round_cents

# Terms used when a debt has no maturity date: (max principal in major units, months)
DEFAULT_TERMS: dict[DebtType, tuple[tuple[Optional[int], int], ...]] = {
    DebtType.CONVENTIONAL: ((10_000, 36), (50_000, 60), (None, 120)),
    DebtType.ISLAMIC: ((50_000, 60), (200_000, 120), (None, 240)),
}


@dataclass(slots=True)
class ScheduleRow:
    """A single paid or projected installment."""

    payment_number: int
    due_date: date
    payment_amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    remaining_balance: Decimal
    is_paid: bool
    actual_payment_date: Optional[date] = None
    is_overdue: bool = False


@dataclass(slots=True)
class ScheduleSummary:
    total_interest: Decimal
    total_principal: Decimal
    total_amount: Decimal
    remaining_balance: Decimal
    next_payment_due: Optional[date] = None
    payoff_date: Optional[date] = None


@dataclass(slots=True)
class PaymentSchedule:
    """Full schedule for one debt: payment history followed by projections."""

    debt_id: str
    debt_name: str
    debt_type: DebtType
    currency: str
    schedule: list[ScheduleRow]
    summary: ScheduleSummary
    monthly_payment: Optional[Decimal] = None
    total_payments: int = field(init=False)

    def __post_init__(self) -> None:
        self.total_payments = len(self.schedule)

    @property
    def paid_rows(self) -> list[ScheduleRow]:
        return [row for row in self.schedule if row.is_paid]

    @property
    def future_rows(self) -> list[ScheduleRow]:
        return [row for row in self.schedule if not row.is_paid]

    def as_dict(self) -> dict:
        data = asdict(self)
        if self.monthly_payment is None:
            data.pop("monthly_payment")
        return data


@dataclass(slots=True)
class _CentRow:
    due_date: date
    payment: int
    principal: int
    interest: int
    remaining: int
    is_paid: bool
    actual_date: Optional[date] = None


def _chronological(payments: Iterable[DebtPayment]) -> list[DebtPayment]:
    return sorted(payments, key=lambda p: (p.payment_date, p.created_at.replace(tzinfo=None)))


def _history(debt: Debt, payments: Sequence[DebtPayment], *, with_interest: bool) -> list[_CentRow]:
    """Paid rows with the running balance after each payment."""

    balance = debt.principal_amount_cents
    rows: list[_CentRow] = []
    for payment in payments:
        balance = max(balance - payment.principal_amount_cents, 0)
        interest = payment.interest_amount_cents if with_interest else 0
        rows.append(
            _CentRow(
                due_date=payment.payment_date,
                payment=payment.amount_cents if with_interest else payment.principal_amount_cents,
                principal=payment.principal_amount_cents,
                interest=interest,
                remaining=balance,
                is_paid=True,
                actual_date=payment.payment_date,
            )
        )
    return rows


def term_months(debt: Debt) -> int:
    """Number of monthly periods in the contract."""

    if debt.maturity_date is not None:
        return max(months_between(debt.start_date, debt.maturity_date), 1)
    principal_units = debt.principal_amount_cents // 100
    for ceiling, months in DEFAULT_TERMS.get(DebtType(debt.type), ((None, 12),)):
        if ceiling is None or principal_units <= ceiling:
            return months
    raise CalculationError(f"No default term for debt {debt.id}")  # pragma: no cover


def remaining_due_dates(debt: Debt, last_payment_date: Optional[date]) -> list[date]:
    """Contract due dates falling after the later of start date and last payment."""

    total = term_months(debt)
    dues = [add_months(debt.start_date, k) for k in range(1, total + 1)]
    if debt.maturity_date is not None:
        dues[-1] = debt.maturity_date
    if last_payment_date is not None:
        dues = [due for due in dues if due > last_payment_date]
    if not dues:
        anchor = (last_payment_date or debt.start_date) + timedelta(days=1)
        dues = [max(debt.maturity_date or anchor, anchor)]
    return dues


def _conventional_projection(balance: int, annual_rate: Decimal, dues: list[date]) -> tuple[list[_CentRow], int]:
    """Annuity rows from an exact running balance.

    The installment and balance stay exact through the loop; each row emits
    the rounded interest and the drop in the rounded balance, so principal
    cents always sum to ``balance`` and the final row takes the residual.
    """
    n = len(dues)
    monthly_rate = annual_rate / 12
    if monthly_rate == 0:
        exact_payment = Decimal(balance) / n
    else:
        exact_payment = Decimal(balance) * monthly_rate / (1 - (1 + monthly_rate) ** -n)

    rows: list[_CentRow] = []
    exact_balance = Decimal(balance)
    outstanding = balance
    for index, due in enumerate(dues):
        exact_interest = exact_balance * monthly_rate
        interest = round_cents(exact_interest)
        if index == n - 1:
            remaining = 0
        else:
            exact_balance -= exact_payment - exact_interest
            remaining = min(max(round_cents(exact_balance), 0), outstanding)
        principal = outstanding - remaining
        outstanding = remaining
        rows.append(_CentRow(due, principal + interest, principal, interest, outstanding, False))
        if outstanding == 0:
            break
    return rows, round_cents(exact_payment)


def _murabahah_projection(balance: int, remaining_margin: int, dues: list[date]) -> tuple[list[_CentRow], int]:
    """Spread principal and margin in whole cents; installments differ by at most 1 cent.

    Spare margin cents go to the earliest rows and spare principal cents to
    the latest, so no row ever carries two spare cents more than another.
    """
    n = len(dues)
    margin_base, margin_extra = divmod(remaining_margin, n)
    principal_base, principal_extra = divmod(balance, n)

    rows: list[_CentRow] = []
    outstanding = balance
    for index, due in enumerate(dues):
        margin = margin_base + (1 if index < margin_extra else 0)
        principal = principal_base + (1 if index >= n - principal_extra else 0)
        outstanding -= principal
        rows.append(_CentRow(due, principal + margin, principal, margin, outstanding, False))
    return rows, round_cents(Decimal(balance + remaining_margin) / n)


def contractual_margin_cents(debt: Debt) -> int:
    """Fixed Murabahah margin agreed at origination."""

    if debt.margin_rate is None:
        raise CalculationError(f"Islamic debt {debt.id} has no margin rate")
    return round_cents(Decimal(debt.principal_amount_cents) * Decimal(debt.margin_rate))


def _assemble(
    debt: Debt,
    history: list[_CentRow],
    projection: list[_CentRow],
    *,
    monthly_payment: Optional[int],
    today: Optional[date],
) -> PaymentSchedule:
    rows: list[ScheduleRow] = []
    for number, row in enumerate(history + projection, start=1):
        rows.append(
            ScheduleRow(
                payment_number=number,
                due_date=row.due_date,
                payment_amount=from_cents(row.payment),
                principal_amount=from_cents(row.principal),
                interest_amount=from_cents(row.interest),
                remaining_balance=from_cents(row.remaining),
                is_paid=row.is_paid,
                actual_payment_date=row.actual_date,
                is_overdue=bool(today and not row.is_paid and row.due_date < today),
            )
        )

    total_interest = sum(row.interest for row in history + projection)
    total_principal = sum(row.principal for row in history + projection)
    if projection:
        payoff_date: Optional[date] = projection[-1].due_date
    elif history and debt.current_balance_cents == 0:
        payoff_date = history[-1].due_date
    else:
        payoff_date = None

    summary = ScheduleSummary(
        total_interest=from_cents(total_interest),
        total_principal=from_cents(total_principal),
        total_amount=from_cents(total_interest + total_principal),
        remaining_balance=from_cents(debt.current_balance_cents),
        next_payment_due=projection[0].due_date if projection else None,
        payoff_date=payoff_date,
    )
    return PaymentSchedule(
        debt_id=debt.id,
        debt_name=debt.name,
        debt_type=DebtType(debt.type),
        currency=debt.currency,
        schedule=rows,
        summary=summary,
        monthly_payment=from_cents(monthly_payment) if monthly_payment is not None else None,
    )


def personal_schedule(debt: Debt, payments: Sequence[DebtPayment], today: Optional[date] = None) -> PaymentSchedule:
    """Flexible repayment: history only, never any interest."""

    history = _history(debt, _chronological(payments), with_interest=False)
    return _assemble(debt, history, [], monthly_payment=None, today=today)


def conventional_schedule(
    debt: Debt, payments: Sequence[DebtPayment], today: Optional[date] = None
) -> PaymentSchedule:
    """Declining-balance annuity re-amortized over the remaining months."""

    if debt.interest_rate is None:
        raise CalculationError(f"Conventional debt {debt.id} has no interest rate")
    ordered = _chronological(payments)
    history = _history(debt, ordered, with_interest=True)
    balance = debt.current_balance_cents
    if balance <= 0:
        return _assemble(debt, history, [], monthly_payment=None, today=today)

    last_paid = ordered[-1].payment_date if ordered else None
    dues = remaining_due_dates(debt, last_paid)
    projection, installment = _conventional_projection(balance, Decimal(debt.interest_rate), dues)
    return _assemble(debt, history, projection, monthly_payment=installment, today=today)


def islamic_schedule(debt: Debt, payments: Sequence[DebtPayment], today: Optional[date] = None) -> PaymentSchedule:
    """Murabahah: fixed total margin settled in equal installments."""

    total_margin = contractual_margin_cents(debt)
    ordered = _chronological(payments)
    history = _history(debt, ordered, with_interest=True)
    balance = debt.current_balance_cents
    if balance <= 0:
        return _assemble(debt, history, [], monthly_payment=None, today=today)

    margin_paid = sum(p.interest_amount_cents for p in ordered)
    remaining_margin = max(total_margin - margin_paid, 0)
    last_paid = ordered[-1].payment_date if ordered else None
    dues = remaining_due_dates(debt, last_paid)
    projection, installment = _murabahah_projection(balance, remaining_margin, dues)
    return _assemble(debt, history, projection, monthly_payment=installment, today=today)


ScheduleBuilder = Callable[[Debt, Sequence[DebtPayment], Optional[date]], PaymentSchedule]

_BUILDERS: dict[DebtType, ScheduleBuilder] = {
    DebtType.PERSONAL: personal_schedule,
    DebtType.CONVENTIONAL: conventional_schedule,
    DebtType.ISLAMIC: islamic_schedule,
}

ensure_covers_all_types(_BUILDERS, "amortization")


def calculate_schedule(
    debt: Debt, payments: Sequence[DebtPayment], today: Optional[date] = None
) -> PaymentSchedule:
    """Dispatch on the debt type and build its schedule."""

    try:
        debt_type = DebtType(debt.type)
    except ValueError as exc:
        raise CalculationError(f"Unsupported debt type: {debt.type}") from exc
    return _BUILDERS[debt_type](debt, payments, today)


__all__ = [
    "PaymentSchedule",
    "ScheduleRow",
    "ScheduleSummary",
    "calculate_schedule",
    "contractual_margin_cents",
    "conventional_schedule",
    "islamic_schedule",
    "personal_schedule",
    "remaining_due_dates",
    "term_months",
]
