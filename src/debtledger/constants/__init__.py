"""Static reference data."""

from .currencies import (
    DEFAULT_CURRENCY,
    MAX_PRINCIPAL_DIGITS,
    MIN_PRINCIPAL,
    SUPPORTED_CURRENCIES,
    max_principal_cents,
)

__all__ = [
    "DEFAULT_CURRENCY",
    "MAX_PRINCIPAL_DIGITS",
    "MIN_PRINCIPAL",
    "SUPPORTED_CURRENCIES",
    "max_principal_cents",
]
