from __future__ import annotations
import re
from datetime import date, datetime
from backoffice.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, Boolean, Date, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .models.enums import Brand, CustomerTier


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# 100% expressed in basis points
MAX_RATE_BPS = 10_000

# Upper bound for on-hand stock, stock deltas and invoice line quantities
MAX_QUANTITY = 1_000_000

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

PRODUCT_PRICE_FIELDS = ("wholesale_cents", "retail_cents", "club_cents", "cost_before_cents", "cost_after_cents")
VARIANT_PRICE_FIELDS = ("wholesale_cents", "retail_cents", "club_cents")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate article)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        # Other types
        raise ValidationError(f"{col.key} must be an integer")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
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

    # Dates ("YYYY-MM-DD")
    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

    # JSON: only containers are accepted
    if isinstance(coltype, JSON):
        if not isinstance(value, (list, dict)):
            raise ValidationError(f"{col.key} must be a list or object")
        return value

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


def _check_price(field: str, price) -> None:
    if not isinstance(price, int):
        raise ValidationError(f"{field} must be an integer")
    if price < 0:
        raise ValidationError(f"{field} must be >= 0")
    if price > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f})")


def check_quantity(field: str, quantity: int) -> None:
    if quantity < 0:
        raise ValidationError(f"{field} must be >= 0")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY:,}")


def validate_brand(brand: str | None) -> str:
    if brand not in Brand.values():
        raise ValidationError(f"brand must be one of: {', '.join(Brand.values())}")
    return brand


def validate_tier(tier) -> str:
    try:
        return CustomerTier.parse(tier).value
    except ValueError as e:
        raise ValidationError(str(e))


def validate_email(email: str | None, *, required: bool = False) -> str | None:
    if email is None or email == "":
        if required:
            raise ValidationError("email is required")
        return None
    if not EMAIL_RE.match(email):
        raise ValidationError("email must be a valid email address")
    return email.lower()


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in PRODUCT_PRICE_FIELDS:
        if field in patch and patch[field] is not None:
            _check_price(field, patch[field])

    if "brand" in patch:
        validate_brand(patch["brand"])

    if "attributes" in patch and patch["attributes"] is not None:
        attrs = patch["attributes"]
        if not isinstance(attrs, list) or not all(isinstance(a, str) and a.strip() for a in attrs):
            raise ValidationError("attributes must be a list of attribute names")

    if "min_quantity" in patch and patch["min_quantity"] is not None:
        check_quantity("min_quantity", patch["min_quantity"])


def enforce_rules_variant(patch: dict) -> None:
    # Overrides may be null (inherit product price) but never negative
    for field in VARIANT_PRICE_FIELDS:
        if field in patch and patch[field] is not None:
            _check_price(field, patch[field])

    if "quantity" in patch and patch["quantity"] is not None:
        check_quantity("quantity", patch["quantity"])

    if "attributes" in patch and patch["attributes"] is not None:
        if not isinstance(patch["attributes"], dict):
            raise ValidationError("attributes must be an object of name -> value")


def enforce_rules_customer(patch: dict) -> None:
    if "tier" in patch:
        patch["tier"] = validate_tier(patch["tier"])
    if "email" in patch:
        patch["email"] = validate_email(patch["email"])


def enforce_rules_category(patch: dict) -> None:
    if "color" in patch and patch["color"] is not None:
        if not HEX_COLOR_RE.match(patch["color"]):
            raise ValidationError("color must be a hex color like #FF0000")
