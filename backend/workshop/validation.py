from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Enum as SAEnum, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum money amount: 99,999,999.99 (9,999,999,999 cents would overflow 32-bit columns)
MAX_AMOUNT_CENTS = 999_999_999
MAX_TAX_RATE_BPS = 10_000


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: wire keys clients are allowed to set (security boundary)
    - required_on_create: wire keys required for POST
    - aliases: wire key -> model column key (camelCase API over snake_case columns)
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()
    aliases: dict[str, str] = field(default_factory=dict)

    def column_for(self, key: str) -> str:
        return self.aliases.get(key, key)


def parse_uuid(value: Any) -> str:
    """Normalize a path/body identifier; malformed ids are a 400, not a 404."""
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError):
        raise ValidationError("Invalid ID format") from None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, key: str, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Enums before String: SAEnum subclasses String
    if isinstance(coltype, SAEnum) and coltype.enum_class is not None:
        try:
            return coltype.enum_class(value)
        except ValueError:
            allowed = ", ".join(member.value for member in coltype.enum_class)
            raise ValidationError(f"{key} must be one of: {allowed}") from None

    # Integers - strict validation to reject floats, bools and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not re.fullmatch(r"-?\d+", stripped):
                raise ValidationError(f"{key} must be an integer")
            return int(stripped)
        raise ValidationError(f"{key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{key} must be a boolean")

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be a string")
        return value.strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: Any,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by model column.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for key in payload.keys():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        if policy.column_for(key) not in cols:
            raise ValidationError(f"Unknown field: {key}")

    patch: dict = {}

    for key, raw in payload.items():
        column_key = policy.column_for(key)
        col = cols[column_key]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[column_key] = None
            continue

        val = _coerce_value(col, key, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not isinstance(col.type, SAEnum) and not col.nullable:
            if val == "":
                raise ValidationError(f"{key} cannot be blank")

        if isinstance(col.type, String) and not isinstance(col.type, SAEnum) and col.type.length:
            if isinstance(val, str) and len(val) > col.type.length:
                raise ValidationError(f"{key} exceeds max length {col.type.length}")

        patch[column_key] = val

    return patch


def _check_amount(patch: dict, column_key: str, label: str) -> None:
    value = patch.get(column_key)
    if value is None:
        return
    if value < 0:
        raise ValidationError(f"{label} must be >= 0")
    if value > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{label} cannot exceed {MAX_AMOUNT_CENTS}")


def enforce_rules_task(patch: dict) -> None:
    """Range rules for task fields that column metadata cannot express."""
    if patch.get("qty") is not None and patch["qty"] <= 0:
        raise ValidationError("qty must be a positive integer")

    _check_amount(patch, "unit_price_snapshot_cents", "unitPriceSnapshotCents")
    _check_amount(patch, "labor_cost_snapshot_cents", "laborCostSnapshotCents")

    bps = patch.get("tax_rate_snapshot_bps")
    if bps is not None and not 0 <= bps <= MAX_TAX_RATE_BPS:
        raise ValidationError(f"taxRateSnapshotBps must be between 0 and {MAX_TAX_RATE_BPS}")


def enforce_rules_inventory_item(patch: dict) -> None:
    _check_amount(patch, "unit_cost_cents", "unitCostCents")
    _check_amount(patch, "sell_price_cents", "sellPriceCents")
    for column_key, label in (("stock_on_hand", "stockOnHand"), ("reorder_level", "reorderLevel")):
        value = patch.get(column_key)
        if value is not None and value < 0:
            raise ValidationError(f"{label} must be >= 0")
