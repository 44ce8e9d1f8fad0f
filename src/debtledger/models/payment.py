"""Payments recorded against a debt."""

from __future__ import annotations

from datetime import date, datetime
from typing import ClassVar, Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from .debt import new_id, utcnow


class DebtPayment(SQLModel, table=True):
    """An immutable payment; the interest column also carries Islamic margin."""

    __tablename__: ClassVar[str] = "debt_payment"
    __table_args__ = (
        UniqueConstraint(
            "debt_id", "payment_date", "amount_cents", name="uq_debt_payment_date_amount"
        ),
        CheckConstraint("principal_amount_cents >= 0", name="ck_payment_principal_non_negative"),
        CheckConstraint("interest_amount_cents >= 0", name="ck_payment_interest_non_negative"),
    )

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    debt_id: str = Field(foreign_key="debt.id", ondelete="CASCADE", nullable=False, index=True)
    amount_cents: int = Field(sa_type=BigInteger, nullable=False)
    principal_amount_cents: int = Field(sa_type=BigInteger, nullable=False)
    interest_amount_cents: int = Field(default=0, sa_type=BigInteger, nullable=False)
    payment_date: date = Field(nullable=False, index=True)
    currency: str = Field(max_length=3, nullable=False)
    transaction_id: Optional[str] = Field(default=None, max_length=128)
    created_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False
    )
