from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from stockroom.models.base import ANY_SCOPE
from stockroom.time_utils import parse_iso_datetime


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate storage name)."""


class NotFoundError(ValueError):
    """404-level: the addressed row does not exist (or no longer exists)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which model attributes an edit request may set.

    writable_fields is the allowlist; an attribute outside it is rejected
    even if the model has such a column.
    """
    writable_fields: frozenset[str]


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    # Booleans first: JSON true/false only
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be an integer")

    # Quantities and prices arrive as JSON numbers or numeric strings
    if isinstance(coltype, Numeric):
        return to_decimal(value, col.key)

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise ValidationError(f"{col.key} must be a string")
        value = value.strip()
        if isinstance(coltype, String) and coltype.length and len(value) > coltype.length:
            raise ValidationError(f"{col.key} exceeds max length {coltype.length}")
        return value

    return value


def validate_payload(*, model: DeclarativeMeta, payload: dict, policy: ModelValidationPolicy) -> dict:
    """
    Validate a partial update keyed by model attribute name.

    Only the keys present are checked, against the policy allowlist and the
    column metadata (nullability, type, String length). Returns the coerced
    patch, ready for update_row.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    cols = _columns_by_key(model)
    for k in payload:
        if k not in policy.writable_fields or k not in cols:
            raise ValidationError(f"Field not allowed: {k}")

    patch: dict = {}
    for k, raw in payload.items():
        col = cols[k]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        value = _coerce_value(col, raw)
        if value == "" and not col.nullable:
            raise ValidationError(f"{k} cannot be blank")
        patch[k] = value

    return patch


# ---------------------------------------------------------------------------
# Field readers for request bodies and catalog payloads.
#
# "optional" means the field may be null, not that it may be missing.
# ---------------------------------------------------------------------------

def ensure_object(data) -> dict:
    if data is None:
        raise ValidationError("missing input data")
    if not isinstance(data, dict):
        raise ValidationError("object input data expected")
    return data


def get_optional(data: dict, key: str):
    if key not in data:
        raise ValidationError(f"{key} is missing")
    return data[key]


def to_decimal(value, key: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{key} is not a valid decimal")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{key} is not a valid decimal")
    if not result.is_finite():
        raise ValidationError(f"{key} is not a valid decimal")
    return result


def get_optional_id(data: dict, key: str) -> str | None:
    """UUID string, or None for the wildcard "*"."""
    value = get_optional(data, key)
    if value is None:
        raise ValidationError(f"{key} expected UUID, got null")
    if value == ANY_SCOPE:
        return None
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise ValidationError(f"{key} is not a valid UUID")


def get_mandatory_id(data: dict, key: str) -> str:
    value = get_optional_id(data, key)
    if value is None:
        raise ValidationError(f'{key} expected UUID, got "*"')
    return value


def ensure_empty_id(data: dict, key: str) -> None:
    if key in data and get_optional_id(data, key) is not None:
        raise ValidationError(f'{key} must be "*"')


def get_boolean(data: dict, key: str) -> bool:
    value = get_optional(data, key)
    if value is None:
        raise ValidationError(f"{key} expected boolean, got null")
    if not isinstance(value, bool):
        raise ValidationError(f"{key} is not a boolean")
    return value


def get_optional_string(data: dict, key: str) -> str | None:
    value = get_optional(data, key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} is not a string")
    return value


def get_mandatory_string(data: dict, key: str) -> str:
    value = get_optional_string(data, key)
    if value is None:
        raise ValidationError(f"{key} expected string, got null")
    return value


def get_optional_int(data: dict, key: str) -> int | None:
    value = get_optional(data, key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} is not a valid integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"{key} is not a valid integer")


def get_mandatory_int(data: dict, key: str) -> int:
    value = get_optional_int(data, key)
    if value is None:
        raise ValidationError(f"{key} expected integer, got null")
    return value


def get_optional_decimal(data: dict, key: str) -> Decimal | None:
    value = get_optional(data, key)
    if value is None:
        return None
    return to_decimal(value, key)


def get_mandatory_decimal(data: dict, key: str) -> Decimal:
    value = get_optional_decimal(data, key)
    if value is None:
        raise ValidationError(f"{key} expected decimal, got null")
    return value


def get_datetime(data: dict, key: str) -> datetime:
    value = get_optional(data, key)
    if value is None:
        raise ValidationError(f"{key} expected datetime, got null")
    try:
        dt = parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{key} is not a datetime")
    if dt is None:
        raise ValidationError(f"{key} is not a datetime")
    return dt
