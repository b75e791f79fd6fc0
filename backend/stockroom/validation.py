# Overview: Input validation and normalization shared by routes and services.

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .time_utils import parse_iso_datetime, to_naive_utc


# Maximum price: 9,999,999.99 in major units
MAX_PRICE_CENTS = 999_999_999

# Largest value an INTEGER column holds on every supported backend
MAX_INT_VALUE = 2**31 - 1

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion: ints and plain digit strings only.

    Rejects bools, floats, decimals, scientific notation ("1e3") and
    anything outside +/-MAX_INT_VALUE.
    """
    number = _parse_int(value, field)
    if not -MAX_INT_VALUE <= number <= MAX_INT_VALUE:
        raise ValidationError(f"{field} is out of range (max {MAX_INT_VALUE})")
    return number


def _parse_int(value: Any, field: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_positive_int(value: Any, field: str) -> int:
    if value is None:
        raise ValidationError(f"{field} is required")
    number = coerce_int(value, field)
    if number < 1:
        raise ValidationError(f"{field} must be at least 1")
    return number


def require_id(value: Any, field: str) -> int:
    """A reference to another record; same rules as a positive integer."""
    return require_positive_int(value, field)


def clean_text(value: Any, field: str, max_length: int, *, required: bool = False) -> str | None:
    """Trim free text, enforce the length bound; blank optional text becomes None."""
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    text = str(value).strip()
    if not text:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} cannot exceed {max_length} characters")
    return text


def parse_datetime_field(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
    raise ValidationError(f"{field} must be a datetime")


def ensure_choice(value: Any, field: str, choices) -> str:
    if value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return value


def normalize_email(value: Any) -> str:
    if value is None or not str(value).strip():
        raise ValidationError("Valid email is required")
    email = str(value).strip().lower()
    if len(email) > 255 or not EMAIL_PATTERN.match(email):
        raise ValidationError("Valid email is required")
    return email


def parse_pagination(page: Any, limit: Any, *, default_limit: int, max_limit: int) -> tuple[int, int]:
    """Page is 1-indexed; limit is clamped to [1, max_limit]."""
    page_num = 1 if page in (None, "") else coerce_int(page, "page")
    limit_num = default_limit if limit in (None, "") else coerce_int(limit, "limit")
    if page_num < 1:
        raise ValidationError("Page must be a positive integer")
    if limit_num < 1:
        raise ValidationError("Limit must be a positive integer")
    return page_num, min(limit_num, max_limit)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, DateTime):
        return parse_datetime_field(value, col.key)

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

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and isinstance(val, str) and val == "":
            if not col.nullable:
                raise ValidationError(f"{k} cannot be blank")
            val = None

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} cannot exceed {col.type.length} characters")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    from .models.inventory import PRODUCT_STATUSES, PRODUCT_UNITS, PRODUCT_CURRENCY

    for key in ("cost_price_cents", "selling_price_cents"):
        if patch.get(key) is not None:
            price = patch[key]
            if price < 0:
                raise ValidationError(f"{key} must be >= 0")
            if price > MAX_PRICE_CENTS:
                raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")

    for key in ("stock_quantity", "min_stock", "max_stock"):
        if patch.get(key) is not None and patch[key] < 0:
            raise ValidationError(f"{key} cannot be negative")

    if patch.get("unit") is not None:
        ensure_choice(patch["unit"], "unit", PRODUCT_UNITS)
    if patch.get("status") is not None:
        ensure_choice(patch["status"], "status", PRODUCT_STATUSES)
    if patch.get("currency") is not None:
        ensure_choice(patch["currency"], "currency", (PRODUCT_CURRENCY,))

    if patch.get("tags") is not None:
        tags = [t.strip() for t in patch["tags"].split(",")]
        patch["tags"] = ",".join(t for t in tags if t) or None


def enforce_rules_user(patch: dict) -> None:
    from .permissions import ROLES

    if "email" in patch:
        patch["email"] = normalize_email(patch["email"])
    if patch.get("role") is not None:
        ensure_choice(patch["role"], "role", ROLES)
    for key in ("first_name", "last_name"):
        if key in patch and not patch[key]:
            raise ValidationError(f"{key} cannot be empty")


def json_object(payload: Any) -> dict:
    """Request body as a dict; a missing body is an empty dict."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload
