"""Creation and update rules for debts.

Input is first normalized (cents, trimmed strings, Decimal rates, dates) and
then run through an ordered pipeline of rules. The first failing rule raises
a :class:`~debtledger.errors.ValidationError` naming its field and rule.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Iterable, Optional, Union

from ..constants import DEFAULT_CURRENCY, MIN_PRINCIPAL, SUPPORTED_CURRENCIES, max_principal_cents
from ..errors import ValidationError
from ..models.debt import (
    PAID_OFF_DATE_KEY,
    RESERVED_METADATA_KEYS,
    Debt,
    DebtType,
    ensure_covers_all_types,
)
from ..money import Amount, add_years, to_cents, to_decimal

MIN_START_DATE = date(1900, 1, 1)
MAX_TERM_YEARS = 50
MIN_RATE = Decimal("0.001")
MAX_RATE = Decimal("0.5")
RATE_QUANTUM = Decimal("0.000001")
MAX_TEXT_LENGTH = 255

DateLike = Union[date, datetime, str]


class _Unset:
    """Marker for patch fields the caller did not provide."""

    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(slots=True)
class DebtInput:
    """Caller-supplied values for a new debt (amounts in major units)."""

    type: Union[DebtType, str]
    name: str
    creditor: str
    principal_amount: Amount
    start_date: DateLike
    currency: str = DEFAULT_CURRENCY
    interest_rate: Optional[Amount] = None
    margin_rate: Optional[Amount] = None
    maturity_date: Optional[DateLike] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class DebtPatch:
    """Partial update; fields left as ``UNSET`` are not touched.

    ``type``, ``principal_amount`` and ``currency`` exist only so that an
    attempt to change them can be reported; they are immutable.
    """

    name: Any = UNSET
    creditor: Any = UNSET
    interest_rate: Any = UNSET
    margin_rate: Any = UNSET
    start_date: Any = UNSET
    maturity_date: Any = UNSET
    is_active: Any = UNSET
    metadata: Any = UNSET
    type: Any = UNSET
    principal_amount: Any = UNSET
    currency: Any = UNSET

    def provided(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}


@dataclass(slots=True)
class DebtFields:
    """Normalized debt values the rule pipeline operates on."""

    type: DebtType
    name: str
    creditor: str
    principal_amount_cents: int
    currency: str
    interest_rate: Optional[Decimal]
    margin_rate: Optional[Decimal]
    start_date: date
    maturity_date: Optional[date]
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_debt(cls, debt: Debt) -> "DebtFields":
        return cls(
            type=DebtType(debt.type),
            name=debt.name,
            creditor=debt.creditor,
            principal_amount_cents=debt.principal_amount_cents,
            currency=debt.currency,
            interest_rate=debt.interest_rate,
            margin_rate=debt.margin_rate,
            start_date=debt.start_date,
            maturity_date=debt.maturity_date,
            metadata=dict(debt.meta or {}),
        )


@dataclass(frozen=True, slots=True)
class Rule:
    """One predicate of the pipeline and the error it raises."""

    watches: frozenset[str]
    field: str
    rule: str
    check: Callable[[DebtFields], bool]
    message: Callable[[DebtFields], str]


def _rule(watches: Iterable[str], field_name: str, rule: str, check, message) -> Rule:
    text = message if callable(message) else (lambda _d, _m=message: _m)
    return Rule(frozenset(watches), field_name, rule, check, text)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _normalize_type(value: Any) -> DebtType:
    try:
        return DebtType(value.upper() if isinstance(value, str) else value)
    except ValueError as exc:
        allowed = ", ".join(t.value for t in DebtType)
        raise ValidationError("type", "supported", f"Debt type must be one of: {allowed}") from exc


def _normalize_text(field_name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError(field_name, "type", f"{field_name} must be a string")
    return value.strip()


def _normalize_currency(value: Any) -> str:
    if value is None:
        return DEFAULT_CURRENCY
    if not isinstance(value, str):
        raise ValidationError("currency", "type", "currency must be an ISO 4217 code")
    return value.strip().upper()


def _normalize_principal(value: Any) -> int:
    try:
        return to_cents(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("principal_amount", "numeric", "Principal amount must be a number") from exc


def _normalize_rate(field_name: str, value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return to_decimal(value).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)
    except (TypeError, ValueError) as exc:
        raise ValidationError(field_name, "numeric", f"{field_name} must be a decimal number") from exc


def normalize_date(field_name: str, value: Any) -> date:
    """Accept ``date``, ``datetime`` or an ISO 8601 string; return a ``date``."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as exc:
            raise ValidationError(field_name, "date", f"{field_name} must be an ISO date") from exc
    raise ValidationError(field_name, "date", f"{field_name} must be a date")


def _normalize_optional_date(field_name: str, value: Any) -> Optional[date]:
    return None if value is None else normalize_date(field_name, value)


def _normalize_metadata(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict) or not all(isinstance(key, str) for key in value):
        raise ValidationError("metadata", "type", "metadata must be a map with string keys")
    reserved = RESERVED_METADATA_KEYS.intersection(value)
    if reserved:
        raise ValidationError(
            "metadata", "reserved_key", f"metadata key {sorted(reserved)[0]!r} is managed by the ledger"
        )
    return dict(value)


# ---------------------------------------------------------------------------
# Rule pipeline
# ---------------------------------------------------------------------------


def _text_length_ok(value: str) -> bool:
    return 1 <= len(value) <= MAX_TEXT_LENGTH


def _rate_in_range(rate: Optional[Decimal]) -> bool:
    return rate is not None and MIN_RATE <= rate <= MAX_RATE


def _term_within_limit(d: DebtFields) -> bool:
    return d.maturity_date is None or d.maturity_date <= add_years(d.start_date, MAX_TERM_YEARS)


_COMMON_RULES: tuple[Rule, ...] = (
    _rule(
        {"currency"},
        "currency",
        "supported",
        lambda d: d.currency in SUPPORTED_CURRENCIES,
        lambda d: f"Currency {d.currency} is not supported. Supported: {', '.join(SUPPORTED_CURRENCIES)}",
    ),
    _rule(
        {"principal_amount"},
        "principal_amount",
        "minimum",
        lambda d: d.principal_amount_cents >= MIN_PRINCIPAL * 100,
        f"Principal amount must be at least {MIN_PRINCIPAL}.00",
    ),
    _rule(
        {"principal_amount", "currency"},
        "principal_amount",
        "maximum",
        lambda d: d.principal_amount_cents <= max_principal_cents(d.currency),
        lambda d: f"Principal amount exceeds the maximum allowed for {d.currency}",
    ),
    _rule({"name"}, "name", "length", lambda d: _text_length_ok(d.name),
          f"name must be between 1 and {MAX_TEXT_LENGTH} characters"),
    _rule({"creditor"}, "creditor", "length", lambda d: _text_length_ok(d.creditor),
          f"creditor must be between 1 and {MAX_TEXT_LENGTH} characters"),
    _rule(
        {"start_date"},
        "start_date",
        "minimum",
        lambda d: d.start_date >= MIN_START_DATE,
        "Start date cannot be before 1900-01-01",
    ),
    _rule(
        {"start_date", "maturity_date"},
        "maturity_date",
        "after_start",
        lambda d: d.maturity_date is None or d.maturity_date > d.start_date,
        "Maturity date must be after start date",
    ),
    _rule(
        {"start_date", "maturity_date"},
        "maturity_date",
        "max_term",
        _term_within_limit,
        f"Debt term cannot exceed {MAX_TERM_YEARS} years",
    ),
)

_RATE_WATCH = {"type", "interest_rate", "margin_rate"}

_TYPE_RULES: dict[DebtType, tuple[Rule, ...]] = {
    DebtType.PERSONAL: (
        _rule(_RATE_WATCH, "interest_rate", "forbidden", lambda d: d.interest_rate is None,
              "Personal loans cannot have an interest rate"),
        _rule(_RATE_WATCH, "margin_rate", "forbidden", lambda d: d.margin_rate is None,
              "Personal loans cannot have a margin rate"),
    ),
    DebtType.CONVENTIONAL: (
        _rule(_RATE_WATCH, "interest_rate", "required", lambda d: d.interest_rate is not None,
              "Conventional debt must have an interest rate"),
        _rule(_RATE_WATCH, "interest_rate", "range", lambda d: _rate_in_range(d.interest_rate),
              f"Interest rate must be between {MIN_RATE} and {MAX_RATE}"),
        _rule(_RATE_WATCH, "margin_rate", "forbidden", lambda d: d.margin_rate is None,
              "Conventional debt cannot have a margin rate"),
    ),
    DebtType.ISLAMIC: (
        _rule(_RATE_WATCH, "margin_rate", "required", lambda d: d.margin_rate is not None,
              "Islamic financing must have a margin rate"),
        _rule(_RATE_WATCH, "margin_rate", "range", lambda d: _rate_in_range(d.margin_rate),
              f"Margin rate must be between {MIN_RATE} and {MAX_RATE}"),
        _rule(_RATE_WATCH, "interest_rate", "forbidden", lambda d: d.interest_rate is None,
              "Islamic financing cannot have an interest rate"),
    ),
}

ensure_covers_all_types(_TYPE_RULES, "debt validation")


def rules_for(debt_type: DebtType) -> tuple[Rule, ...]:
    """Ordered rules applying to a debt of *debt_type*."""
    return _COMMON_RULES + _TYPE_RULES[debt_type]


def run_rules(values: DebtFields, changed: Optional[set[str]] = None) -> DebtFields:
    """Raise on the first failing rule; ``changed`` limits rules to touched fields."""

    for rule in rules_for(values.type):
        if changed is not None and not (rule.watches & changed):
            continue
        if not rule.check(values):
            raise ValidationError(rule.field, rule.rule, rule.message(values))
    return values


def validate_for_create(data: DebtInput) -> DebtFields:
    """Normalize and validate a new debt."""

    values = DebtFields(
        type=_normalize_type(data.type),
        name=_normalize_text("name", data.name),
        creditor=_normalize_text("creditor", data.creditor),
        principal_amount_cents=_normalize_principal(data.principal_amount),
        currency=_normalize_currency(data.currency),
        interest_rate=_normalize_rate("interest_rate", data.interest_rate),
        margin_rate=_normalize_rate("margin_rate", data.margin_rate),
        start_date=normalize_date("start_date", data.start_date),
        maturity_date=_normalize_optional_date("maturity_date", data.maturity_date),
        metadata=_normalize_metadata(data.metadata),
    )
    return run_rules(values)


def _reject_immutable(existing: DebtFields, provided: dict[str, Any]) -> None:
    if "type" in provided and _normalize_type(provided["type"]) != existing.type:
        raise ValidationError("type", "immutable", "Debt type cannot be changed after creation")
    if (
        "principal_amount" in provided
        and _normalize_principal(provided["principal_amount"]) != existing.principal_amount_cents
    ):
        raise ValidationError(
            "principal_amount", "immutable", "Principal amount cannot be changed after creation"
        )
    if "currency" in provided and _normalize_currency(provided["currency"]) != existing.currency:
        raise ValidationError("currency", "immutable", "Currency cannot be changed after creation")


def validate_for_update(existing: Debt, patch: DebtPatch) -> dict[str, Any]:
    """Validate a patch against *existing* and return normalized column changes.

    Keys of the returned mapping are ``Debt`` attribute names. The stored
    ``paidOffDate`` survives a metadata replacement.
    """

    current = DebtFields.from_debt(existing)
    provided = patch.provided()
    _reject_immutable(current, provided)

    changes: dict[str, Any] = {}
    merged = replace(current)
    if "name" in provided:
        merged.name = changes["name"] = _normalize_text("name", provided["name"])
    if "creditor" in provided:
        merged.creditor = changes["creditor"] = _normalize_text("creditor", provided["creditor"])
    if "interest_rate" in provided:
        merged.interest_rate = changes["interest_rate"] = _normalize_rate(
            "interest_rate", provided["interest_rate"]
        )
    if "margin_rate" in provided:
        merged.margin_rate = changes["margin_rate"] = _normalize_rate(
            "margin_rate", provided["margin_rate"]
        )
    if "start_date" in provided:
        merged.start_date = changes["start_date"] = normalize_date("start_date", provided["start_date"])
    if "maturity_date" in provided:
        merged.maturity_date = changes["maturity_date"] = _normalize_optional_date(
            "maturity_date", provided["maturity_date"]
        )
    if "is_active" in provided:
        if not isinstance(provided["is_active"], bool):
            raise ValidationError("is_active", "type", "is_active must be a boolean")
        changes["is_active"] = provided["is_active"]
    if "metadata" in provided:
        metadata = _normalize_metadata(provided["metadata"])
        if PAID_OFF_DATE_KEY in current.metadata:
            metadata[PAID_OFF_DATE_KEY] = current.metadata[PAID_OFF_DATE_KEY]
        merged.metadata = changes["meta"] = metadata

    run_rules(merged, changed=set(provided))
    return changes


__all__ = [
    "UNSET",
    "DebtFields",
    "DebtInput",
    "DebtPatch",
    "Rule",
    "normalize_date",
    "rules_for",
    "run_rules",
    "validate_for_create",
    "validate_for_update",
]
