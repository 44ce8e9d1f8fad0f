"""Payment recording against a debt's balance."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_CEILING, Decimal
from typing import Callable, Optional, Sequence, Union

from ..clock import Clock
from ..domain.repositories.debt import DebtRepository
from ..errors import BusinessRuleError, ValidationError
from ..logging_config import get_logger
from ..models.debt import Debt, DebtType, ensure_covers_all_types
from ..models.payment import DebtPayment
from ..money import Amount, to_cents
from .amortization import contractual_margin_cents
from .ownership import load_owned_debt
from .validation import DateLike, normalize_date

logger = get_logger(__name__)

# Allowed gap between the total and principal + interest, in cents.
AMOUNT_TOLERANCE_CENTS = 1


@dataclass(slots=True)
class PaymentInput:
    """Caller-supplied payment, amounts in major units."""

    amount: Amount
    principal_amount: Amount
    payment_date: DateLike
    interest_amount: Amount = 0
    transaction_id: Optional[str] = None


@dataclass(slots=True)
class NormalizedPayment:
    amount_cents: int
    principal_cents: int
    interest_cents: int
    payment_date: date
    transaction_id: Optional[str]


def normalize_payment(data: PaymentInput) -> NormalizedPayment:
    """Convert amounts to cents and check their internal consistency."""

    converted = {}
    for field_name in ("amount", "principal_amount", "interest_amount"):
        raw = getattr(data, field_name)
        try:
            converted[field_name] = to_cents(0 if raw is None else raw)
        except (TypeError, ValueError) as exc:
            raise ValidationError(field_name, "numeric", f"{field_name} must be a number") from exc
        if converted[field_name] < 0:
            raise ValidationError(field_name, "non_negative", f"{field_name} cannot be negative")
    if converted["amount"] == 0:
        raise ValidationError("amount", "positive", "Payment amount must be greater than zero")

    components = converted["principal_amount"] + converted["interest_amount"]
    if abs(converted["amount"] - components) > AMOUNT_TOLERANCE_CENTS:
        raise ValidationError(
            "amount",
            "sum_mismatch",
            "Total payment amount must equal principal plus interest/margin",
        )
    return NormalizedPayment(
        amount_cents=converted["amount"],
        principal_cents=converted["principal_amount"],
        interest_cents=converted["interest_amount"],
        payment_date=normalize_date("payment_date", data.payment_date),
        transaction_id=data.transaction_id,
    )


def _personal_cap(debt: Debt, payments: Sequence[DebtPayment], multiplier: Decimal) -> int:
    return 0


def _conventional_cap(debt: Debt, payments: Sequence[DebtPayment], multiplier: Decimal) -> int:
    # One month of accrual on the balance before this payment, times the multiplier.
    monthly = Decimal(debt.current_balance_cents) * Decimal(debt.interest_rate or 0) / 12
    return int((monthly * multiplier).to_integral_value(rounding=ROUND_CEILING))


def _islamic_cap(debt: Debt, payments: Sequence[DebtPayment], multiplier: Decimal) -> int:
    # Margin is a fixed contractual amount; nothing beyond what remains can be owed.
    paid = sum(p.interest_amount_cents for p in payments)
    return max(contractual_margin_cents(debt) - paid, 0)


_INTEREST_CAPS: dict[DebtType, Callable[[Debt, Sequence[DebtPayment], Decimal], int]] = {
    DebtType.PERSONAL: _personal_cap,
    DebtType.CONVENTIONAL: _conventional_cap,
    DebtType.ISLAMIC: _islamic_cap,
}

ensure_covers_all_types(_INTEREST_CAPS, "payment interest check")


def interest_cap_cents(
    debt: Debt, payments: Sequence[DebtPayment], multiplier: Union[Decimal, float] = Decimal(2)
) -> int:
    """Largest interest/margin component accepted for the next payment."""

    return _INTEREST_CAPS[DebtType(debt.type)](debt, payments, Decimal(str(multiplier)))


class PaymentLedgerProcessor:
    """Applies payments to debts under the ledger's balance invariants."""

    def __init__(
        self,
        repository: DebtRepository,
        clock: Clock,
        *,
        interest_cap_multiplier: Union[Decimal, float] = Decimal(2),
    ) -> None:
        self.repository = repository
        self.clock = clock
        self.interest_cap_multiplier = Decimal(str(interest_cap_multiplier))

    async def record_payment(self, debt_id: str, household_id: str, data: PaymentInput) -> DebtPayment:
        """Validate and atomically record a payment; returns the stored payment."""

        try:
            payment = await self._record(debt_id, household_id, data)
        except (ValidationError, BusinessRuleError) as exc:
            logger.warning(
                "Payment rejected",
                extra={
                    "debt_id": debt_id,
                    "kind": exc.kind,
                    "rule": getattr(exc, "rule", None),
                    "field": getattr(exc, "field", None),
                },
            )
            raise

        logger.info(
            "Payment recorded",
            extra={
                "debt_id": debt_id,
                "payment_id": payment.id,
                "amount_cents": payment.amount_cents,
                "principal_cents": payment.principal_amount_cents,
            },
        )
        return payment

    async def _record(self, debt_id: str, household_id: str, data: PaymentInput) -> DebtPayment:
        debt = await load_owned_debt(self.repository, debt_id, household_id)

        if not debt.is_active:
            raise BusinessRuleError("inactive_debt", "Cannot record a payment for an inactive debt")

        payment_date = normalize_date("payment_date", data.payment_date)
        if payment_date < debt.start_date:
            raise ValidationError(
                "payment_date", "before_start", "Payment date cannot be before the debt start date"
            )
        if payment_date > self.clock.today():
            raise ValidationError("payment_date", "future", "Payment date cannot be in the future")

        normalized = normalize_payment(data)
        payments = await self.repository.list_payments(debt.id)
        if any(
            p.payment_date == normalized.payment_date and p.amount_cents == normalized.amount_cents
            for p in payments
        ):
            raise BusinessRuleError(
                "duplicate_payment",
                "A payment with the same date and amount already exists for this debt",
            )

        if normalized.principal_cents > debt.current_balance_cents:
            raise BusinessRuleError(
                "insufficient_balance", "Principal payment exceeds the current debt balance"
            )

        cap = interest_cap_cents(debt, payments, self.interest_cap_multiplier)
        if normalized.interest_cents > cap:
            if DebtType(debt.type) == DebtType.PERSONAL:
                raise BusinessRuleError(
                    "interest_not_allowed", "Personal loans cannot carry an interest component"
                )
            raise BusinessRuleError(
                "disproportionate_interest",
                "Interest/margin component is disproportionate to the outstanding balance",
            )

        payment = DebtPayment(
            debt_id=debt.id,
            amount_cents=normalized.amount_cents,
            principal_amount_cents=normalized.principal_cents,
            interest_amount_cents=normalized.interest_cents,
            payment_date=normalized.payment_date,
            currency=debt.currency,
            transaction_id=normalized.transaction_id,
        )
        return await self.repository.record_payment(payment, recorded_at=self.clock.now())
