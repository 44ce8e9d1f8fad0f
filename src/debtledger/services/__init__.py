"""Service module exports."""

from . import amortization, debts, ownership, payments, summary, validation
from .debts import DebtDetail, DebtFilters, DebtService

__all__ = [
    "DebtDetail",
    "DebtFilters",
    "DebtService",
    "amortization",
    "debts",
    "ownership",
    "payments",
    "summary",
    "validation",
]
