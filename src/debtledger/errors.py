"""Error taxonomy shared by every debt operation.

Each error carries a machine-readable ``kind`` so callers can map failures to
their own transport (HTTP status, CLI exit code) without string matching.
"""

from __future__ import annotations

from typing import ClassVar, Optional


class DebtLedgerError(Exception):
    """Base class for all classified failures."""

    kind: ClassVar[str] = "error"
    retryable: ClassVar[bool] = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind, "message": self.message, "retryable": self.retryable}


class ValidationError(DebtLedgerError):
    """Malformed or out-of-policy input, naming the failing field and rule."""

    kind = "validation"

    def __init__(self, field: str, rule: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.rule = rule

    def to_dict(self) -> dict[str, object]:
        data = super().to_dict()
        data.update({"field": self.field, "rule": self.rule})
        return data


class NotFoundError(DebtLedgerError):
    """The requested debt or payment does not exist."""

    kind = "not_found"


class ForbiddenError(DebtLedgerError):
    """The record exists but belongs to another household."""

    kind = "forbidden"

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message)


class BusinessRuleError(DebtLedgerError):
    """Well-formed input rejected by a ledger rule (duplicate, overdraft, ...)."""

    kind = "business_rule"

    def __init__(self, rule: str, message: str) -> None:
        super().__init__(message)
        self.rule = rule

    def to_dict(self) -> dict[str, object]:
        data = super().to_dict()
        data["rule"] = self.rule
        return data


class CalculationError(DebtLedgerError):
    """A schedule could not be produced for the debt."""

    kind = "calculation"


class StorageError(DebtLedgerError):
    """Timeout, contention or connectivity failure in the record store."""

    kind = "storage"
    retryable = True

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


__all__ = [
    "BusinessRuleError",
    "CalculationError",
    "DebtLedgerError",
    "ForbiddenError",
    "NotFoundError",
    "StorageError",
    "ValidationError",
]
