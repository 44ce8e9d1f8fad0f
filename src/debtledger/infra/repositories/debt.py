"""SQLModel implementation of the Debt repository."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, or_, text, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlmodel import col, select

from ...errors import BusinessRuleError, NotFoundError, StorageError
from ...logging_config import get_logger
from ...models.debt import PAID_OFF_DATE_KEY, Debt, DebtType
from ...models.payment import DebtPayment
from ..database import SessionFactory

logger = get_logger(__name__)

_DEBT_TABLE = Debt.__table__  # type: ignore[attr-defined]
_PAYMENT_TABLE = DebtPayment.__table__  # type: ignore[attr-defined]

# Fields a caller may change after creation; balance is owned by record_payment.
MUTABLE_FIELDS = frozenset(
    {
        "name",
        "creditor",
        "interest_rate",
        "margin_rate",
        "start_date",
        "maturity_date",
        "is_active",
        "meta",
    }
)


def _debt_column(attribute: str):
    return _DEBT_TABLE.c["metadata" if attribute == "meta" else attribute]


class SQLModelDebtRepository:
    """SQLModel-based debt repository implementation."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        lock_timeout: float = 5.0,
        transaction_timeout: float = 10.0,
    ):
        """Initialize with a session factory and payment transaction bounds."""
        self.session_factory = session_factory
        self.lock_timeout = lock_timeout
        self.transaction_timeout = transaction_timeout

    async def get_by_id(self, debt_id: str) -> Optional[Debt]:
        """Retrieve a debt by ID regardless of household."""
        try:
            async with self.session_factory() as session:
                result = await session.exec(select(Debt).where(Debt.id == debt_id))
                return result.first()
        except DBAPIError as exc:
            raise StorageError("Failed to load debt", cause=exc) from exc

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
        statement = select(Debt).where(Debt.household_id == household_id)
        if debt_type is not None:
            statement = statement.where(Debt.type == DebtType(debt_type))
        if is_active is not None:
            statement = statement.where(Debt.is_active == is_active)
        if creditor:
            statement = statement.where(col(Debt.creditor).icontains(creditor, autoescape=True))
        if search:
            statement = statement.where(
                or_(
                    col(Debt.name).icontains(search, autoescape=True),
                    col(Debt.creditor).icontains(search, autoescape=True),
                )
            )
        statement = statement.order_by(
            col(Debt.is_active).desc(),
            col(Debt.current_balance_cents).desc(),
            col(Debt.created_at),
        )
        try:
            async with self.session_factory() as session:
                return list((await session.exec(statement)).all())
        except DBAPIError as exc:
            raise StorageError("Failed to list debts", cause=exc) from exc

    async def create(self, debt: Debt) -> Debt:
        """Persist a new debt."""
        try:
            async with self.session_factory() as session:
                session.add(debt)
                await session.flush()
                await session.refresh(debt)
                return debt
        except DBAPIError as exc:
            raise StorageError("Failed to create debt", cause=exc) from exc

    async def update_fields(self, debt_id: str, changes: dict[str, Any]) -> Debt:
        """Write only the given mutable fields and return the fresh row.

        A targeted UPDATE leaves ``current_balance_cents`` untouched so a
        concurrent payment is never overwritten by a stale copy. A metadata
        replacement takes the row's write lock first and carries over the
        payoff stamp as stored at that point.
        """
        unknown = set(changes) - MUTABLE_FIELDS - {"updated_at"}
        if unknown:
            raise ValueError(f"Fields are not updatable: {', '.join(sorted(unknown))}")
        try:
            async with self.session_factory() as session:
                connection = await session.connection()
                if "meta" in changes:
                    stamped = await self._merge_ledger_metadata(connection, debt_id, changes["meta"])
                    changes = {**changes, "meta": stamped}
                values = {_debt_column(key): value for key, value in changes.items()}
                result = await connection.execute(
                    update(_DEBT_TABLE).where(_DEBT_TABLE.c.id == debt_id).values(values)
                )
                if result.rowcount != 1:
                    raise NotFoundError(f"Debt with ID {debt_id} not found")
                refreshed = await session.exec(select(Debt).where(Debt.id == debt_id))
                return refreshed.one()
        except DBAPIError as exc:
            raise StorageError("Failed to update debt", cause=exc) from exc

    async def _merge_ledger_metadata(
        self, connection: AsyncConnection, debt_id: str, metadata: dict[str, Any]
    ) -> dict[str, Any]:
        await self._bound_lock_wait(connection)
        # Self-assignment takes the write lock on SQLite and PostgreSQL alike.
        locked = await connection.execute(
            update(_DEBT_TABLE)
            .where(_DEBT_TABLE.c.id == debt_id)
            .values({_DEBT_TABLE.c.updated_at: _DEBT_TABLE.c.updated_at})
        )
        if locked.rowcount != 1:
            raise NotFoundError(f"Debt with ID {debt_id} not found")
        stored = (
            await connection.execute(
                select(_debt_column("meta")).where(_DEBT_TABLE.c.id == debt_id)
            )
        ).scalar_one()
        merged = {key: value for key, value in (metadata or {}).items() if key != PAID_OFF_DATE_KEY}
        stamp = (stored or {}).get(PAID_OFF_DATE_KEY)
        if stamp:
            merged[PAID_OFF_DATE_KEY] = stamp
        return merged

    async def delete(self, debt_id: str) -> None:
        """Delete a debt and its payments."""
        try:
            async with self.session_factory() as session:
                connection = await session.connection()
                await connection.execute(
                    delete(_PAYMENT_TABLE).where(_PAYMENT_TABLE.c.debt_id == debt_id)
                )
                await connection.execute(delete(_DEBT_TABLE).where(_DEBT_TABLE.c.id == debt_id))
        except DBAPIError as exc:
            raise StorageError("Failed to delete debt", cause=exc) from exc

    async def list_payments(self, debt_id: str) -> list[DebtPayment]:
        """Payments for a debt in chronological order."""
        statement = (
            select(DebtPayment)
            .where(DebtPayment.debt_id == debt_id)
            .order_by(col(DebtPayment.payment_date), col(DebtPayment.created_at))
        )
        try:
            async with self.session_factory() as session:
                return list((await session.exec(statement)).all())
        except DBAPIError as exc:
            raise StorageError("Failed to load payments", cause=exc) from exc

    async def active_balance_by_type(self, household_id: str) -> dict[DebtType, tuple[int, int]]:
        """Sum of current balance cents and count per type, active debts only."""
        statement = (
            select(
                Debt.type,
                func.coalesce(func.sum(Debt.current_balance_cents), 0),
                func.count(col(Debt.id)),
            )
            .where(Debt.household_id == household_id, Debt.is_active == True)  # noqa: E712
            .group_by(Debt.type)
        )
        try:
            async with self.session_factory() as session:
                rows = (await session.exec(statement)).all()
        except DBAPIError as exc:
            raise StorageError("Failed to aggregate balances", cause=exc) from exc
        return {DebtType(row[0]): (int(row[1]), int(row[2])) for row in rows}

    async def record_payment(self, payment: DebtPayment, *, recorded_at: datetime) -> DebtPayment:
        """Insert a payment and decrement the balance in one transaction.

        Balance sufficiency is re-checked inside the transaction and enforced
        again by a conditional decrement, so two concurrent payments against
        the same debt can never overdraw it. The whole unit is bounded by
        ``transaction_timeout``; lock waits are bounded by ``lock_timeout``.
        """
        try:
            return await asyncio.wait_for(
                self._apply_payment(payment, recorded_at), timeout=self.transaction_timeout
            )
        except asyncio.TimeoutError as exc:
            logger.error(
                "Payment transaction timed out",
                extra={"debt_id": payment.debt_id, "timeout": self.transaction_timeout},
            )
            raise StorageError("Payment transaction timed out; retry later", cause=exc) from exc
        except IntegrityError as exc:
            if "unique" not in str(exc.orig).lower():
                raise StorageError("Payment violated a store constraint", cause=exc) from exc
            raise BusinessRuleError(
                "duplicate_payment",
                "A payment with the same date and amount already exists for this debt",
            ) from exc
        except DBAPIError as exc:
            logger.error(
                "Payment transaction failed in the store",
                extra={"debt_id": payment.debt_id, "error": str(exc.orig)},
            )
            raise StorageError("Payment could not be committed; retry later", cause=exc) from exc

    async def _bound_lock_wait(self, connection: AsyncConnection) -> None:
        # SQLite applies the connect-time busy timeout instead.
        if connection.dialect.name == "postgresql":
            millis = int(self.lock_timeout * 1000)
            await connection.execute(text(f"SET LOCAL lock_timeout = {millis}"))

    async def _apply_payment(self, payment: DebtPayment, recorded_at: datetime) -> DebtPayment:
        principal = payment.principal_amount_cents
        async with self.session_factory() as session:
            connection = await session.connection()
            await self._bound_lock_wait(connection)

            debt = (
                await session.exec(
                    select(Debt).where(Debt.id == payment.debt_id).with_for_update()
                )
            ).first()
            if debt is None:
                raise NotFoundError(f"Debt with ID {payment.debt_id} not found")
            if not debt.is_active:
                raise BusinessRuleError("inactive_debt", "Cannot record a payment for an inactive debt")
            if principal > debt.current_balance_cents:
                raise BusinessRuleError(
                    "insufficient_balance",
                    "Principal payment exceeds the current debt balance",
                )

            session.add(payment)
            await session.flush()

            result = await connection.execute(
                update(_DEBT_TABLE)
                .where(
                    _DEBT_TABLE.c.id == debt.id,
                    _DEBT_TABLE.c.current_balance_cents >= principal,
                )
                .values(
                    current_balance_cents=_DEBT_TABLE.c.current_balance_cents - principal,
                    updated_at=recorded_at,
                )
            )
            if result.rowcount != 1:
                raise BusinessRuleError(
                    "insufficient_balance",
                    "Principal payment exceeds the current debt balance",
                )

            await session.refresh(debt)
            if debt.current_balance_cents <= 0:
                metadata = dict(debt.meta or {})
                metadata[PAID_OFF_DATE_KEY] = recorded_at.isoformat()
                await connection.execute(
                    update(_DEBT_TABLE)
                    .where(_DEBT_TABLE.c.id == debt.id)
                    .values({_DEBT_TABLE.c.current_balance_cents: 0, _debt_column("meta"): metadata})
                )
                logger.info("Debt paid off", extra={"debt_id": debt.id})

        return payment
