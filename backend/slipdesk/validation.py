from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .services.errors import InvalidLine, ValidationError
from .services.product_attrs import ProductAttrs, attrs_from_payload
from .time_utils import parse_iso_datetime

# Upper bound for any money field; keeps Numeric(12, 2) from overflowing
MAX_AMOUNT = 9_999_999_999.99


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: wire (camelCase) key -> column key clients may set
    - required_on_create: wire keys required for POST
    - choices: column key -> allowed values
    Keys outside writable_fields are ignored.
    """
    writable_fields: dict[str, str]
    required_on_create: frozenset[str] = frozenset()
    choices: dict[str, tuple] | None = None


def parse_number(value: Any, field: str, *, minimum: float | None = 0) -> float:
    """Accept ints, floats and numeric strings; reject bools, NaN and junk."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a valid number", f"Received: {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be a valid number", f"Received: {value!r}")
    else:
        raise ValidationError(f"{field} must be a valid number", f"Received: {value!r}")

    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{field} must be a valid number", f"Received: {value!r}")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} cannot be negative", f"Received: {value!r}")
    if number > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds the maximum of {MAX_AMOUNT:,.2f}")
    return round(number, 2)


def parse_int(value: Any, field: str, *, minimum: int | None = 0) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer", f"Received: {value!r}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        number = int(value.strip())
    else:
        raise ValidationError(f"{field} must be an integer", f"Received: {value!r}")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", f"Received: {value!r}")
    return number


def require_object(payload: Any) -> dict:
    """A missing body reads as {}; anything other than a JSON object is rejected."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any, wire_key: str):
    coltype = col.type

    if isinstance(coltype, Integer):
        return parse_int(value, wire_key)

    if isinstance(coltype, Numeric):
        return parse_number(value, wire_key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
        return bool(value)

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{wire_key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{wire_key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{wire_key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

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
    - SQLAlchemy column metadata (type, String length)
    - the policy's writable fields and allowed choices
    - required_on_create (if partial=False)
    Returns a patch dict keyed by column name.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    payload = require_object(payload)

    if not partial:
        missing = sorted(k for k in policy.required_on_create if payload.get(k) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    choices = policy.choices or {}
    patch: dict = {}

    for wire_key, column_key in policy.writable_fields.items():
        if wire_key not in payload:
            continue
        raw = payload[wire_key]
        col = cols[column_key]

        if raw is None:
            if not col.nullable:
                if partial:
                    continue
                raise ValidationError(f"{wire_key} cannot be null")
            patch[column_key] = None
            continue

        val = _coerce_value(col, raw, wire_key)

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{wire_key} exceeds max length {col.type.length}")

        allowed = choices.get(column_key)
        if allowed is not None and val not in allowed:
            raise ValidationError(
                f"Invalid {wire_key}: {val}",
                f"{wire_key} must be one of {', '.join(allowed)}",
            )

        patch[column_key] = val

    return patch


@dataclass(frozen=True)
class ProductLineRequest:
    """A requested slip line after parsing, before stock checks and pricing."""
    name: str
    attrs: ProductAttrs
    quantity: int
    base_price: float
    explicit_unit_price: float | None
    category: str = ""
    subcategory: str = ""
    company: str = ""


def _first_present(p: dict, *keys: str):
    for key in keys:
        value = p.get(key)
        if value is not None and value != "":
            return value
    return None


def parse_product_line(p: Any, index: int) -> ProductLineRequest:
    """
    Parse one entry of a slip's products array.

    Accepts productName or itemName, and basePrice, unitPrice or price for
    the base price. unitPrice, when sent, is the caller's explicit price.
    """
    label = f"Product {index + 1}"
    if not isinstance(p, dict):
        raise ValidationError(f"{label}: must be an object")

    quantity = parse_int(p.get("quantity"), f"{label} quantity", minimum=None)
    if quantity <= 0:
        raise InvalidLine(f"{label}: Quantity must be greater than 0")

    raw_base = None
    for key in ("basePrice", "unitPrice", "price"):
        value = p.get(key)
        if value is None or value == "":
            continue
        number = parse_number(value, f"{label} {key}", minimum=None)
        if number:
            raw_base = number
            break
    base_price = raw_base if raw_base is not None else 0.0
    if base_price < 0:
        raise InvalidLine(f"{label}: Base price cannot be negative")

    explicit = p.get("unitPrice")
    explicit_unit_price = None
    if explicit is not None and explicit != "":
        explicit_unit_price = parse_number(explicit, f"{label} unitPrice", minimum=None)

    name = _first_present(p, "productName", "itemName")
    return ProductLineRequest(
        name=str(name).strip() if name is not None else "",
        attrs=attrs_from_payload(p),
        quantity=quantity,
        base_price=base_price,
        explicit_unit_price=explicit_unit_price,
        category=str(p.get("category") or "").strip(),
        subcategory=str(p.get("subcategory") or "").strip(),
        company=str(p.get("company") or "").strip(),
    )


def parse_product_lines(products: Any) -> list[ProductLineRequest]:
    if products is None or not isinstance(products, list) or not products:
        raise ValidationError("Products cannot be empty")
    return [parse_product_line(p, i) for i, p in enumerate(products)]


def parse_slip_totals(payload: dict) -> tuple[float, float]:
    subtotal = payload.get("subtotal")
    total_amount = payload.get("totalAmount")
    if subtotal is None or total_amount is None:
        raise ValidationError("Subtotal and totalAmount required")
    return (
        parse_number(subtotal, "subtotal"),
        parse_number(total_amount, "totalAmount"),
    )
