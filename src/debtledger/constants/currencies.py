"""
Supported debt currencies and their principal limits.

Limits are expressed as the number of integer digits a principal may carry in
major units, keeping cent values well inside a signed 64-bit column.
"""

DEFAULT_CURRENCY = "IDR"

# ISO 4217 code -> maximum integer digits of the principal (major units)
MAX_PRINCIPAL_DIGITS = {
    "IDR": 12,
    "USD": 9,
    "EUR": 9,
    "SGD": 9,
    "MYR": 9,
    "THB": 9,
}

SUPPORTED_CURRENCIES = tuple(MAX_PRINCIPAL_DIGITS)

# Smallest principal accepted at creation, in major units
MIN_PRINCIPAL = 1


def max_principal_cents(currency: str) -> int:
    """Return the largest principal allowed for *currency*, in cents."""

    digits = MAX_PRINCIPAL_DIGITS[currency]
    return (10**digits - 1) * 100
