from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from zonecount.records import ROLES
from zonecount.time_utils import parse_iso_datetime


MIN_ZONE_NAME_LENGTH = 3
MIN_ZONE_DESCRIPTION_LENGTH = 10
MIN_USER_NAME_LENGTH = 3
MIN_COUNT_NUMBER = 1
MAX_COUNT_NUMBER = 3

# One "@", no whitespace, a dot in the domain
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """
    400-level input problem.

    `errors` carries one message per offending item when a whole
    collection (scan batch, CSV file) is rejected at once.
    """

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate zone name)."""


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
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValidationError(f"{col.key} must be true or false")

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

    # Strings / Text (barcodes arrive as JSON numbers from some scanners)
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

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
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

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


ZONE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name", "description"},
)

USER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "role"},
    required_on_create={"name", "email", "role"},
)

SCAN_ENTRY_POLICY = ModelValidationPolicy(
    writable_fields={"code", "zone_id", "count_number", "scanned_at", "is_serial"},
    required_on_create={"code", "zone_id", "count_number", "scanned_at"},
)


def enforce_rules_zone(patch: dict) -> None:
    """Length rules the column metadata cannot express."""
    if "name" in patch and len(patch["name"]) < MIN_ZONE_NAME_LENGTH:
        raise ValidationError(f"name must be at least {MIN_ZONE_NAME_LENGTH} characters")
    if "description" in patch and len(patch["description"]) < MIN_ZONE_DESCRIPTION_LENGTH:
        raise ValidationError(f"description must be at least {MIN_ZONE_DESCRIPTION_LENGTH} characters")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def enforce_rules_user(patch: dict) -> None:
    if "name" in patch and len(patch["name"]) < MIN_USER_NAME_LENGTH:
        raise ValidationError(f"name must be at least {MIN_USER_NAME_LENGTH} characters")
    if "email" in patch:
        patch["email"] = normalize_email(patch["email"])
        if not EMAIL_RE.match(patch["email"]):
            raise ValidationError("email must be a valid e-mail address")
    if "role" in patch and patch["role"] not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")


def enforce_rules_count_number(value: int) -> None:
    if value < MIN_COUNT_NUMBER or value > MAX_COUNT_NUMBER:
        raise ValidationError(f"count_number must be between {MIN_COUNT_NUMBER} and {MAX_COUNT_NUMBER}")
