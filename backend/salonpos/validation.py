from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from salonpos.money import to_decimal
from salonpos.models.sales import PAYMENT_METHODS, SALE_STATUSES
from salonpos.time_utils import parse_iso_date


# Maximum price / fixed discount: 99,999,999.99 fits Numeric(10, 2)
MAX_AMOUNT = Decimal("99999999.99")


class ValidationError(ValueError):
    """
    422-level input problem, keyed by form field.

    `errors` maps a field name ("products", "promotion", ...) to a
    human-readable message so the caller can surface it next to the input.
    """

    def __init__(self, message: str | None = None, *, field: str | None = None, errors: dict | None = None):
        self.errors: dict[str, str] = dict(errors or {})
        if message is not None:
            self.errors.setdefault(field or "non_field_errors", message)
        super().__init__("; ".join(self.errors.values()) or "Invalid input")

    @property
    def field(self) -> str | None:
        return next(iter(self.errors), None)

    @property
    def message(self) -> str:
        return next(iter(self.errors.values()), str(self))


class _Unset:
    """Marker for 'field not sent' in a patch (distinct from an explicit null)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def is_set(value) -> bool:
    return value is not UNSET


@dataclass(frozen=True)
class LineItem:
    item_id: int
    quantity: int = 1


@dataclass
class SaleDraft:
    """Validated checkout payload."""
    customer_name: str
    customer_phone: str
    sale_date: date
    payment_method: str = PAYMENT_METHODS[0]
    status: str = SALE_STATUSES[0]
    hairdresser_id: int | None = None
    products: list[LineItem] = field(default_factory=list)
    services: list[LineItem] = field(default_factory=list)
    promotion_id: int | None = None


@dataclass
class SalePatch:
    """
    Validated edit payload. Every attribute is either UNSET (leave the sale
    alone) or the new value; an empty line list is a real value and clears
    the lines.
    """
    customer_name: Any = UNSET
    customer_phone: Any = UNSET
    sale_date: Any = UNSET
    payment_method: Any = UNSET
    status: Any = UNSET
    hairdresser_id: Any = UNSET
    products: Any = UNSET
    services: Any = UNSET
    promotion_id: Any = UNSET


SALE_WRITABLE_FIELDS = {
    "customer_name",
    "customer_phone",
    "sale_date",
    "payment_method",
    "status",
    "hairdresser_id",
    "products",
    "services",
    "promotion_id",
}
SALE_REQUIRED_ON_CREATE = ("customer_name", "customer_phone", "sale_date")


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{key} must be an integer", field=key)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer", field=key)
    raise ValidationError(f"{key} must be an integer", field=key)


def _coerce_optional_id(key: str, value: Any) -> int | None:
    if value is None or value == "":
        return None
    return _coerce_int(key, value)


def _coerce_string(key: str, value: Any, max_length: int) -> str:
    if value is None:
        raise ValidationError(f"{key} is required", field=key)
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{key} cannot be blank", field=key)
    if len(text) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}", field=key)
    return text


def _coerce_date(key: str, value: Any) -> date:
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an ISO-8601 date", field=key)
    if parsed is None:
        raise ValidationError(f"{key} is required", field=key)
    return parsed


def _coerce_choice(key: str, value: Any, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise ValidationError(f"{key} must be one of: {', '.join(choices)}", field=key)
    return value


def _coerce_lines(key: str, value: Any, id_key: str, quantity_required: bool) -> list[LineItem]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be a list", field=key)

    lines = []
    for row in value:
        if not isinstance(row, dict) or row.get(id_key) in (None, ""):
            raise ValidationError(f"Each {key} entry requires {id_key}", field=key)
        item_id = _coerce_int(id_key, row[id_key])

        raw_qty = row.get("quantity")
        if raw_qty is None:
            if quantity_required:
                raise ValidationError(f"Each {key} entry requires quantity", field=key)
            quantity = 1
        else:
            quantity = _coerce_int("quantity", raw_qty)
        if quantity < 1:
            raise ValidationError("quantity must be at least 1", field=key)

        lines.append(LineItem(item_id=item_id, quantity=quantity))
    return lines


def _coerce_sale_field(key: str, raw: Any):
    if key == "customer_name":
        return _coerce_string(key, raw, 255)
    if key == "customer_phone":
        return _coerce_string(key, raw, 30)
    if key == "sale_date":
        return _coerce_date(key, raw)
    if key == "payment_method":
        return _coerce_choice(key, raw, PAYMENT_METHODS)
    if key == "status":
        return _coerce_choice(key, raw, SALE_STATUSES)
    if key in ("hairdresser_id", "promotion_id"):
        return _coerce_optional_id(key, raw)
    if key == "products":
        return _coerce_lines(key, raw, "product_id", quantity_required=True)
    if key == "services":
        return _coerce_lines(key, raw, "service_id", quantity_required=False)
    raise ValidationError(f"Unknown field: {key}", field=key)


def _clean_sale_payload(payload: Any) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    for key in payload:
        if key not in SALE_WRITABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}", field=key)

    cleaned = {}
    errors = {}
    for key, raw in payload.items():
        try:
            cleaned[key] = _coerce_sale_field(key, raw)
        except ValidationError as exc:
            errors.update(exc.errors)
    if errors:
        raise ValidationError(errors=errors)
    return cleaned


def validate_sale_create(payload: Any) -> SaleDraft:
    """Validate a checkout payload; all problems are reported together."""
    if isinstance(payload, dict):
        missing = {
            key: f"{key} is required"
            for key in SALE_REQUIRED_ON_CREATE
            if payload.get(key) in (None, "")
        }
        if missing:
            raise ValidationError(errors=missing)
    cleaned = _clean_sale_payload(payload)
    return SaleDraft(**cleaned)


def validate_sale_update(payload: Any) -> SalePatch:
    """
    Patch semantics: only keys present in the payload are validated and set.
    Required text fields may be omitted but not blanked.
    """
    cleaned = _clean_sale_payload(payload)
    return SalePatch(**cleaned)


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------

PROMOTION_WRITABLE_FIELDS = {
    "name",
    "percentage",
    "amount",
    "days_of_week",
    "active",
    "applicable_to_products",
    "applicable_to_services",
    "starts_at",
    "ends_at",
}


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("", "0", "false", "no", "off"):
            return False
    raise ValidationError(f"{key} must be a boolean", field=key)


def _coerce_amount(key: str, value: Any, maximum: Decimal) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{key} must be numeric", field=key)
    if not amount.is_finite():
        raise ValidationError(f"{key} must be numeric", field=key)
    if amount < 0:
        raise ValidationError(f"{key} must be >= 0", field=key)
    if amount > maximum:
        raise ValidationError(f"{key} cannot exceed {maximum}", field=key)
    return amount


def _coerce_days(key: str, value: Any) -> list[int] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be a list", field=key)
    days = set()
    for raw in value:
        day = _coerce_int(key, raw)
        if day < 0 or day > 6:
            raise ValidationError(f"{key} entries must be between 0 and 6", field=key)
        days.add(day)
    return sorted(days)


def _coerce_optional_date(key: str, value: Any) -> date | None:
    if value is None or value == "":
        return None
    return _coerce_date(key, value)


def validate_promotion_payload(payload: Any, *, partial: bool) -> dict:
    """
    Validates + normalizes a promotion payload.

    partial=False: create semantics (name required)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial and payload.get("name") in (None, ""):
        raise ValidationError("name is required", field="name")

    patch: dict = {}
    errors: dict = {}
    for key, raw in payload.items():
        if key not in PROMOTION_WRITABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}", field=key)
        try:
            if key == "name":
                patch[key] = _coerce_string(key, raw, 255)
            elif key == "percentage":
                patch[key] = _coerce_amount(key, raw, Decimal("100"))
            elif key == "amount":
                patch[key] = _coerce_amount(key, raw, MAX_AMOUNT)
            elif key == "days_of_week":
                patch[key] = _coerce_days(key, raw)
            elif key in ("active", "applicable_to_products", "applicable_to_services"):
                patch[key] = _coerce_bool(key, raw)
            else:
                patch[key] = _coerce_optional_date(key, raw)
        except ValidationError as exc:
            errors.update(exc.errors)
    if errors:
        raise ValidationError(errors=errors)
    return patch


def enforce_rules_promotion(values: dict) -> None:
    """
    Cross-field rules, checked on the merged (existing + patch) values.
    """
    errors = {}
    pct = to_decimal(values.get("percentage") or 0)
    amt = to_decimal(values.get("amount") or 0)

    if pct <= 0 and amt <= 0:
        msg = "Set either a percentage or a fixed amount."
        errors["percentage"] = msg
        errors["amount"] = msg
    elif pct > 0 and amt > 0:
        msg = "Do not set both a percentage and a fixed amount."
        errors["percentage"] = msg
        errors["amount"] = msg

    if not values.get("applicable_to_products") and not values.get("applicable_to_services"):
        errors["applicable_to_products"] = "Select at least one of products or services."

    starts_at = values.get("starts_at")
    ends_at = values.get("ends_at")
    if starts_at and ends_at and ends_at < starts_at:
        errors["ends_at"] = "ends_at must be on or after starts_at."

    if errors:
        raise ValidationError(errors=errors)
