"""SQLModel table exports."""

from .debt import (
    PAID_OFF_DATE_KEY,
    RESERVED_METADATA_KEYS,
    Debt,
    DebtType,
    ensure_covers_all_types,
)
from .payment import DebtPayment

__all__ = [
    "Debt",
    "DebtPayment",
    "DebtType",
    "PAID_OFF_DATE_KEY",
    "RESERVED_METADATA_KEYS",
    "ensure_covers_all_types",
]
