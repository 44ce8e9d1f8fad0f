"""Debt operations exposed to callers: CRUD, payments, schedules, summary."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Union

from ..clock import Clock, SystemClock
from ..domain.repositories.debt import DebtRepository
from ..errors import ValidationError
from ..logging_config import get_logger
from ..models.debt import Debt, DebtType
from ..models.payment import DebtPayment
from .amortization import PaymentSchedule, calculate_schedule
from .ownership import load_owned_debt
from .payments import PaymentInput, PaymentLedgerProcessor
from .summary import DebtSummary, SummaryAggregator
from .validation import DebtInput, DebtPatch, validate_for_create, validate_for_update

logger = get_logger(__name__)


@dataclass
class DebtFilters:
    """Filters applied to household debt listings."""

    type: Optional[Union[DebtType, str]] = None
    is_active: Optional[bool] = None
    creditor: Optional[str] = None  # case-insensitive substring
    search: Optional[str] = None  # matches name or creditor

    def debt_type(self) -> Optional[DebtType]:
        if self.type is None or self.type == "":
            return None
        try:
            return DebtType(str(self.type).strip().upper())
        except ValueError as exc:
            raise ValidationError("type", "supported", f"Unsupported debt type: {self.type}") from exc


@dataclass
class DebtDetail:
    """A debt together with its payments, oldest first."""

    debt: Debt
    payments: list[DebtPayment] = field(default_factory=list)


class DebtService:
    """Household-scoped facade over the debt components.

    Every operation taking a ``household_id`` checks that the debt belongs
    to it before reading or writing anything else.
    """

    def __init__(
        self,
        repository: DebtRepository,
        clock: Optional[Clock] = None,
        *,
        interest_cap_multiplier: Union[Decimal, float] = Decimal(2),
    ) -> None:
        self.repository = repository
        self.clock = clock or SystemClock()
        self.payments = PaymentLedgerProcessor(
            repository, self.clock, interest_cap_multiplier=interest_cap_multiplier
        )
        self.summaries = SummaryAggregator(repository, self.clock)

    async def create_debt(self, household_id: str, data: DebtInput, creator_user_id: str) -> Debt:
        values = validate_for_create(data)
        now = self.clock.now()
        debt = Debt(
            household_id=household_id,
            type=values.type,
            name=values.name,
            creditor=values.creditor,
            principal_amount_cents=values.principal_amount_cents,
            current_balance_cents=values.principal_amount_cents,
            currency=values.currency,
            interest_rate=values.interest_rate,
            margin_rate=values.margin_rate,
            start_date=values.start_date,
            maturity_date=values.maturity_date,
            is_active=True,
            meta=values.metadata,
            created_by=creator_user_id,
            created_at=now,
            updated_at=now,
        )
        created = await self.repository.create(debt)
        logger.info(
            "Debt created",
            extra={
                "debt_id": created.id,
                "household_id": household_id,
                "type": values.type.value,
                "principal_cents": created.principal_amount_cents,
            },
        )
        return created

    async def get_debt_by_id(self, debt_id: str, household_id: str) -> DebtDetail:
        debt = await load_owned_debt(self.repository, debt_id, household_id)
        payments = await self.repository.list_payments(debt.id)
        return DebtDetail(debt=debt, payments=payments)

    async def get_debts_by_household(
        self, household_id: str, filters: Optional[DebtFilters] = None
    ) -> list[Debt]:
        filters = filters or DebtFilters()
        return await self.repository.list_by_household(
            household_id,
            debt_type=filters.debt_type(),
            is_active=filters.is_active,
            creditor=(filters.creditor or "").strip() or None,
            search=(filters.search or "").strip() or None,
        )

    async def update_debt(self, debt_id: str, household_id: str, patch: DebtPatch) -> Debt:
        existing = await load_owned_debt(self.repository, debt_id, household_id)
        changes = validate_for_update(existing, patch)
        if not changes:
            return existing
        changes["updated_at"] = self.clock.now()
        updated = await self.repository.update_fields(existing.id, changes)
        logger.info(
            "Debt updated",
            extra={"debt_id": updated.id, "fields": sorted(k for k in changes if k != "updated_at")},
        )
        return updated

    async def delete_debt(self, debt_id: str, household_id: str) -> None:
        debt = await load_owned_debt(self.repository, debt_id, household_id)
        await self.repository.delete(debt.id)
        logger.info("Debt deleted", extra={"debt_id": debt.id, "household_id": household_id})

    async def record_payment(self, debt_id: str, household_id: str, data: PaymentInput) -> DebtPayment:
        return await self.payments.record_payment(debt_id, household_id, data)

    async def calculate_payment_schedule(self, debt_id: str, household_id: str) -> PaymentSchedule:
        debt = await load_owned_debt(self.repository, debt_id, household_id)
        payments = await self.repository.list_payments(debt.id)
        return calculate_schedule(debt, payments, self.clock.today())

    async def get_debt_summary(self, household_id: str) -> DebtSummary:
        return await self.summaries.get_debt_summary(household_id)


__all__ = ["DebtDetail", "DebtFilters", "DebtService"]
