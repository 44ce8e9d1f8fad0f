"""Household ownership check shared by every debt operation."""

from __future__ import annotations

from ..domain.repositories.debt import DebtRepository
from ..errors import ForbiddenError, NotFoundError
from ..models.debt import Debt


async def load_owned_debt(repository: DebtRepository, debt_id: str, household_id: str) -> Debt:
    """Return the debt if it exists and belongs to *household_id*.

    Absence and foreign ownership are reported separately; the forbidden
    error carries no detail about the record.
    """

    debt = await repository.get_by_id(debt_id)
    if debt is None:
        raise NotFoundError(f"Debt with ID {debt_id} not found")
    if debt.household_id != household_id:
        raise ForbiddenError()
    return debt
