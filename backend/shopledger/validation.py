# Overview: Request validation helpers and the service-layer error types.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from shopledger.time_utils import parse_iso_datetime


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical bills or payments
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level missing order, customer or product."""


class ConflictError(ValueError):
    """409-level business rule conflict (wrong order state, duplicate id, concurrent write)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which payload keys clients may set, and which a create must carry."""
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects floats, decimals, bools and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_amount_cents(value: Any, field: str, *, allow_zero: bool = True) -> int:
    """Money in cents: integer, non-negative (or positive), bounded by MAX_AMOUNT_CENTS."""
    if value is None:
        raise ValidationError(f"{field} is required")
    amount = coerce_int(value, field)
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'>= 0' if allow_zero else '> 0'}")
    if amount > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS} ({MAX_AMOUNT_CENTS / 100:,.2f})")
    return amount


def require_text(payload: dict, fields: list[str], message: str | None = None) -> dict[str, str]:
    """Return stripped values for fields that must be present and non-blank."""
    missing = [f for f in fields if payload.get(f) is None or str(payload.get(f)).strip() == ""]
    if missing:
        raise ValidationError(message or f"Missing required fields: {', '.join(missing)}",
                              details={"missing": missing})
    return {f: str(payload[f]).strip() for f in fields}


def parse_date_param(value: str | None, field: str) -> datetime | None:
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date or datetime")


def _coerce_column(col, value: Any):
    """Coerce one JSON value to the column's Python type."""
    if isinstance(col.type, Integer):
        return coerce_int(value, col.key)
    if isinstance(col.type, Float):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{col.key} must be a number")
    if isinstance(col.type, (String, Text)):
        text = str(value).strip()
        if not text and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        if isinstance(col.type, String) and col.type.length and len(text) > col.type.length:
            raise ValidationError(f"{col.key} exceeds max length {col.type.length}")
        return text
    return value


def validate_payload(*, model: DeclarativeMeta, payload: dict, policy: ModelValidationPolicy) -> dict:
    """
    Clean a create payload against the policy allowlist and the model's columns.

    Writable keys that are not columns (a raw "pack_size" string) pass
    through untouched for the caller to handle.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(k for k in payload if k not in policy.writable_fields)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}", details={"fields": unknown})

    missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", details={"missing": missing})

    cols = _columns_by_key(model)
    patch: dict = {}
    for key, raw in payload.items():
        col = cols.get(key)
        if col is None:
            patch[key] = raw
        elif raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
        else:
            patch[key] = _coerce_column(col, raw)
    return patch


PRICE_FIELDS = ("purchase_price_cents", "selling_price_cents", "mrp_cents")
COUNT_FIELDS = ("quantity", "min_stock", "pack_quantity")


def enforce_rules_product(patch: dict) -> None:
    """Price and stock bounds that column metadata alone does not express."""
    for field in PRICE_FIELDS:
        if patch.get(field) is not None:
            coerce_amount_cents(patch[field], field)
    for field in COUNT_FIELDS:
        if patch.get(field) is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")
