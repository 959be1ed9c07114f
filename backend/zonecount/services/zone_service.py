# Overview: Zone CRUD, the bulk zone builder and print ranges.

"""
Zone Service

Zones are named physical locations ("C01-E03" = street 1, rack 3).

The builder expands a street range and a rack range into the Cartesian
product of names, street-major, and inserts every name the company does
not have yet in one transaction. Re-running the same ranges is a no-op
reported as a ConflictError, so an accidental double click never creates
duplicates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..models import Zone
from ..records import ZoneRecord
from ..repositories import get_repository
from ..validation import (
    ZONE_POLICY,
    ConflictError,
    ValidationError,
    enforce_rules_zone,
    validate_payload,
)
from .permission_service import Principal, authorize
from .tenant_service import TenantAccessError, require_zone_in_company


MAX_PREFIX_LENGTH = 3
MIN_RANGE_VALUE = 1
MAX_RANGE_VALUE = 99

_DIGITS_RE = re.compile(r"(\d+)")


@dataclass(frozen=True)
class ZoneBuilderRequest:
    street_prefix: str
    street_from: int
    street_to: int
    rack_prefix: str
    rack_from: int
    rack_to: int

    @classmethod
    def from_payload(cls, payload: dict) -> "ZoneBuilderRequest":
        """Validate the builder form. Collects every problem before raising."""
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")

        errors = []
        values = {}

        for key in ("street_prefix", "rack_prefix"):
            raw = payload.get(key)
            value = raw.strip() if isinstance(raw, str) else ""
            if not value:
                errors.append(f"{key} is required")
            elif len(value) > MAX_PREFIX_LENGTH:
                errors.append(f"{key} must be at most {MAX_PREFIX_LENGTH} characters")
            values[key] = value

        for key in ("street_from", "street_to", "rack_from", "rack_to"):
            raw = payload.get(key)
            if isinstance(raw, bool) or not isinstance(raw, int):
                if isinstance(raw, str) and raw.strip().isdigit():
                    raw = int(raw.strip())
                else:
                    errors.append(f"{key} must be an integer")
                    continue
            if raw < MIN_RANGE_VALUE or raw > MAX_RANGE_VALUE:
                errors.append(f"{key} must be between {MIN_RANGE_VALUE} and {MAX_RANGE_VALUE}")
            values[key] = raw

        for prefix in ("street", "rack"):
            lo, hi = values.get(f"{prefix}_from"), values.get(f"{prefix}_to")
            if lo is not None and hi is not None and hi < lo:
                errors.append(f"{prefix}_to must be greater than or equal to {prefix}_from")

        if errors:
            raise ValidationError("Invalid zone builder input: " + "; ".join(errors), errors=errors)
        return cls(**values)


def format_zone_name(street_prefix: str, street: int, rack_prefix: str, rack: int) -> str:
    return f"{street_prefix}{street:02d}-{rack_prefix}{rack:02d}"


def preview_zone_names(request: ZoneBuilderRequest) -> list[tuple[str, int, int]]:
    """
    All generated names, street-major, as (name, street, rack).

    Pure: no storage access.
    """
    return [
        (format_zone_name(request.street_prefix, s, request.rack_prefix, r), s, r)
        for s in range(request.street_from, request.street_to + 1)
        for r in range(request.rack_from, request.rack_to + 1)
    ]


def natural_sort_key(name: str):
    """Numeric-aware key: "Z2" sorts before "Z10"."""
    return [int(part) if part.isdigit() else part.casefold() for part in _DIGITS_RE.split(name)]


def list_zones(principal: Principal, repo=None) -> list[ZoneRecord]:
    """Company zones, newest first."""
    repo = repo or get_repository()
    authorize(principal, "VIEW_ZONES")
    zones = repo.list_zones(principal.company_id)
    return sorted(zones, key=lambda z: (z.created_at is not None, z.created_at, z.id), reverse=True)


def get_zone(principal: Principal, zone_id: int, repo=None) -> ZoneRecord:
    repo = repo or get_repository()
    authorize(principal, "VIEW_ZONES")
    return require_zone_in_company(repo, zone_id, principal.company_id)


def _ensure_name_free(repo, company_id: int, name: str, exclude_id: int | None = None) -> None:
    existing = repo.get_zone_by_name(company_id, name)
    if existing is not None and existing.id != exclude_id:
        raise ConflictError(f"Zone already exists: {name}")


def create_zone(principal: Principal, payload: dict, repo=None) -> ZoneRecord:
    repo = repo or get_repository()
    authorize(principal, "MANAGE_ZONES")

    patch = validate_payload(model=Zone, payload=payload, policy=ZONE_POLICY, partial=False)
    enforce_rules_zone(patch)
    _ensure_name_free(repo, principal.company_id, patch["name"])

    with repo.transaction():
        (zone,) = repo.add_zones([
            ZoneRecord(
                id=None,
                company_id=principal.company_id,
                name=patch["name"],
                description=patch["description"],
            )
        ])
    return zone


def update_zone(principal: Principal, zone_id: int, payload: dict, repo=None) -> ZoneRecord:
    repo = repo or get_repository()
    authorize(principal, "MANAGE_ZONES")
    zone = require_zone_in_company(repo, zone_id, principal.company_id)

    if isinstance(payload, dict):
        payload = {k: v for k, v in payload.items() if k != "id"}
    patch = validate_payload(model=Zone, payload=payload, policy=ZONE_POLICY, partial=True)
    enforce_rules_zone(patch)
    if "name" in patch:
        _ensure_name_free(repo, principal.company_id, patch["name"], exclude_id=zone.id)

    with repo.transaction():
        return repo.update_zone(principal.company_id, zone.id, patch)


def delete_zone(principal: Principal, zone_id: int, repo=None) -> None:
    """Historical scans keep their zone_id and render as "Unknown zone"."""
    repo = repo or get_repository()
    authorize(principal, "MANAGE_ZONES")
    zone = require_zone_in_company(repo, zone_id, principal.company_id)
    with repo.transaction():
        repo.delete_zone(principal.company_id, zone.id)


def build_zones(principal: Principal, payload: dict, repo=None) -> list[ZoneRecord]:
    """
    Create every generated zone the company does not have yet.

    Raises ConflictError("Nothing new to create") when all names exist.
    """
    repo = repo or get_repository()
    authorize(principal, "MANAGE_ZONES")
    request = ZoneBuilderRequest.from_payload(payload)

    with repo.transaction():
        taken = {z.name for z in repo.list_zones(principal.company_id)}
        new_zones = []
        for name, street, rack in preview_zone_names(request):
            if name in taken:
                continue
            taken.add(name)
            new_zones.append(
                ZoneRecord(
                    id=None,
                    company_id=principal.company_id,
                    name=name,
                    description=f"Street {street:02d}, rack {rack:02d}",
                )
            )

        if not new_zones:
            raise ConflictError("Nothing new to create")

        return repo.add_zones(new_zones)


def zones_in_range(principal: Principal, from_id: int, to_id: int, repo=None) -> list[ZoneRecord]:
    """
    Contiguous slice of the company's zones in natural name order,
    from `from_id` to `to_id` inclusive. Used for label printing.
    """
    repo = repo or get_repository()
    authorize(principal, "VIEW_ZONES")

    ordered = sorted(repo.list_zones(principal.company_id), key=lambda z: natural_sort_key(z.name))
    index = {z.id: i for i, z in enumerate(ordered)}

    if from_id not in index or to_id not in index:
        raise TenantAccessError("Zone not found")

    start, end = index[from_id], index[to_id]
    if start > end:
        raise ValidationError("The first zone must come before the last zone")
    return ordered[start:end + 1]


def preview_build(principal: Principal, payload: dict, repo=None) -> list[dict]:
    """Builder dry run: every generated name and whether the company already has it."""
    repo = repo or get_repository()
    authorize(principal, "VIEW_ZONES")
    request = ZoneBuilderRequest.from_payload(payload)
    taken = {z.name for z in repo.list_zones(principal.company_id)}
    return [{"name": name, "exists": name in taken} for name, _, _ in preview_zone_names(request)]
