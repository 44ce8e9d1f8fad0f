"""Debt entity and its product types."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Mapping, Optional
from uuid import uuid4

from sqlalchemy import JSON, BigInteger, CheckConstraint, Column, DateTime
from sqlmodel import Field, SQLModel

# Reserved metadata key stamped when a payment clears the balance.
PAID_OFF_DATE_KEY = "paidOffDate"
RESERVED_METADATA_KEYS = frozenset({PAID_OFF_DATE_KEY})


def new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DebtType(str, Enum):
    """Product types with distinct amortization rules."""

    PERSONAL = "PERSONAL"  # interest-free, no fixed cadence
    CONVENTIONAL = "CONVENTIONAL"  # declining-balance annuity
    ISLAMIC = "ISLAMIC"  # Murabahah, fixed contractual margin


def ensure_covers_all_types(table: Mapping[DebtType, Any], owner: str) -> None:
    """Fail at import time when a per-type dispatch table misses a product type."""

    missing = set(DebtType) - set(table)
    if missing:
        names = ", ".join(sorted(t.value for t in missing))
        raise RuntimeError(f"{owner} has no handler for debt type(s): {names}")


class Debt(SQLModel, table=True):
    """A household debt or financing tracked in integer minor units."""

    __tablename__: ClassVar[str] = "debt"
    __table_args__ = (
        CheckConstraint("current_balance_cents >= 0", name="ck_debt_balance_non_negative"),
        CheckConstraint(
            "current_balance_cents <= principal_amount_cents", name="ck_debt_balance_le_principal"
        ),
    )

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    household_id: str = Field(nullable=False, index=True, max_length=64)
    type: DebtType = Field(nullable=False, index=True)
    name: str = Field(nullable=False, max_length=255)
    creditor: str = Field(nullable=False, max_length=255)
    principal_amount_cents: int = Field(sa_type=BigInteger, nullable=False)
    current_balance_cents: int = Field(sa_type=BigInteger, nullable=False)
    currency: str = Field(default="IDR", max_length=3, description="ISO-4217 currency code")
    interest_rate: Optional[Decimal] = Field(default=None, max_digits=7, decimal_places=6)
    margin_rate: Optional[Decimal] = Field(default=None, max_digits=7, decimal_places=6)
    start_date: date = Field(nullable=False)
    maturity_date: Optional[date] = Field(default=None)
    is_active: bool = Field(default=True, nullable=False, index=True)
    # Stored in the "metadata" column; the attribute name is taken by SQLAlchemy.
    meta: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON, nullable=False)
    )
    created_by: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False
    )

    @property
    def paid_off_at(self) -> Optional[datetime]:
        """Timestamp stamped under ``metadata.paidOffDate``, if any."""

        raw = (self.meta or {}).get(PAID_OFF_DATE_KEY)
        if not raw:
            return None
        return datetime.fromisoformat(str(raw))

    @property
    def rate(self) -> Optional[Decimal]:
        """The rate that applies to this debt's type (interest or margin)."""

        if self.type == DebtType.CONVENTIONAL:
            return self.interest_rate
        if self.type == DebtType.ISLAMIC:
            return self.margin_rate
        return None
