"""Debt repository protocol."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol

from ...models.debt import Debt, DebtType
from ...models.payment import DebtPayment


class DebtRepository(Protocol):
    """Record store for debts and their payments."""

    async def get_by_id(self, debt_id: str) -> Optional[Debt]:
        """Retrieve a debt by ID regardless of household."""
        ...

    async def list_by_household(
        self,
        household_id: str,
        *,
        debt_type: Optional[DebtType] = None,
        is_active: Optional[bool] = None,
        creditor: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Debt]:
        """List a household's debts, active first then by balance descending."""
        ...

    async def create(self, debt: Debt) -> Debt:
        """Persist a new debt."""
        ...

    async def update_fields(self, debt_id: str, changes: dict[str, Any]) -> Debt:
        """Write only the given mutable fields and return the fresh row."""
        ...

    async def delete(self, debt_id: str) -> None:
        """Delete a debt and its payments."""
        ...

    async def list_payments(self, debt_id: str) -> list[DebtPayment]:
        """Payments for a debt in chronological order."""
        ...

    async def record_payment(self, payment: DebtPayment, *, recorded_at: datetime) -> DebtPayment:
        """Insert a payment and decrement the balance in one transaction."""
        ...

    async def active_balance_by_type(self, household_id: str) -> dict[DebtType, tuple[int, int]]:
        """Sum of current balance cents and count per type, active debts only."""
        ...
