from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .models import DISCOUNT_TYPES
from stockpilot.time_utils import parse_iso_datetime, parse_iso_date


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Largest quantity accepted on a single line / movement
MAX_QUANTITY = 1_000_000


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


@dataclass(frozen=True)
class OrderItemRequest:
    product_id: int
    quantity: int
    # None means "use the catalog price"
    unit_price_cents: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class OrderTerms:
    discount_type: str | None
    discount_value: Decimal | None
    shipping_fee_cents: int


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(name: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def coerce_optional_int(name: str, value: Any) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_int(name, value)


def coerce_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{name} must be a finite number")
    return result


def coerce_date(name: str, value: Any) -> date | None:
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an ISO-8601 date")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        return coerce_date(col.key, value)

    if isinstance(coltype, Numeric):
        return coerce_decimal(col.key, value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("price_cents", "cost_cents"):
        if field in patch and patch[field] is not None:
            amount = patch[field]
            if amount < 0:
                raise ValidationError(f"{field} must be >= 0")
            if amount > MAX_PRICE_CENTS:
                raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    threshold = patch.get("low_stock_threshold")
    if threshold is not None and threshold < 0:
        raise ValidationError("low_stock_threshold must be >= 0")


def normalize_order_items(items: Any) -> list[OrderItemRequest]:
    """
    Validate order lines (dicts from JSON or OrderItemRequest instances).

    Input order is preserved; it is the order in which stock is checked.
    """
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError("Order must have at least one item.")

    normalized: list[OrderItemRequest] = []
    for index, raw in enumerate(items, start=1):
        if isinstance(raw, OrderItemRequest):
            raw = {
                "product_id": raw.product_id,
                "quantity": raw.quantity,
                "unit_price_cents": raw.unit_price_cents,
                "notes": raw.notes,
            }
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")

        if raw.get("product_id") is None:
            raise ValidationError(f"items[{index}].product_id is required")
        product_id = coerce_int(f"items[{index}].product_id", raw.get("product_id"))

        if raw.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity is required")
        quantity = coerce_int(f"items[{index}].quantity", raw.get("quantity"))
        if quantity < 1:
            raise ValidationError(f"items[{index}].quantity must be at least 1")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"items[{index}].quantity cannot exceed {MAX_QUANTITY}")

        unit_price = coerce_optional_int(f"items[{index}].unit_price_cents", raw.get("unit_price_cents"))
        if unit_price is not None and not (0 <= unit_price <= MAX_PRICE_CENTS):
            raise ValidationError(f"items[{index}].unit_price_cents must be between 0 and {MAX_PRICE_CENTS}")

        notes = raw.get("notes")
        normalized.append(OrderItemRequest(
            product_id=product_id,
            quantity=quantity,
            unit_price_cents=unit_price,
            notes=str(notes).strip() or None if notes is not None else None,
        ))

    return normalized


def normalize_order_terms(discount_type: Any, discount_value: Any, shipping_fee_cents: Any) -> OrderTerms:
    if discount_type in ("", None):
        discount_type = None
    elif discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"discount_type must be one of: {', '.join(DISCOUNT_TYPES)}")

    value = None
    if discount_value not in (None, ""):
        value = coerce_decimal("discount_value", discount_value)
        if value < 0:
            raise ValidationError("discount_value must be >= 0")

    shipping = coerce_optional_int("shipping_fee_cents", shipping_fee_cents) or 0
    if shipping < 0:
        raise ValidationError("shipping_fee_cents must be >= 0")
    if shipping > MAX_PRICE_CENTS:
        raise ValidationError(f"shipping_fee_cents cannot exceed {MAX_PRICE_CENTS}")

    return OrderTerms(
        discount_type=discount_type,
        discount_value=value if discount_type else None,
        shipping_fee_cents=shipping,
    )
