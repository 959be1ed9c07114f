# Overview: Batch submission of staged scans and scan management.

"""
Scan Service

Scanners stage codes locally and upload them in batches. A batch is
accepted or rejected as a whole:

1. Every entry is validated first; all problems are reported together.
2. Every zone id must belong to the caller's company.
3. sku/description are copied from the product master (or a fallback),
   zone_name from the zone, company and user from the principal.
4. All rows are appended in one repository transaction.

Scans are immutable once written; they can only be deleted.
"""

from __future__ import annotations

from ..models import ScannedArticle
from ..records import ScanRecord, ZoneRecord
from ..repositories import get_repository
from ..validation import (
    SCAN_ENTRY_POLICY,
    ValidationError,
    enforce_rules_count_number,
    validate_payload,
)
from zonecount.time_utils import utcnow
from .permission_service import Principal, authorize
from .tenant_service import TenantAccessError, require_zone_in_company, require_zones_in_company


FALLBACK_SKU = "N/A"
FALLBACK_DESCRIPTION = "Product not found"
UNKNOWN_ZONE = "Unknown zone"
UNKNOWN_USER = "Unknown user"


def display_zone_name(scan: ScanRecord, zones_by_id: dict[int, ZoneRecord]) -> str:
    """Current name of the scan's zone, or the placeholder once the zone is gone."""
    zone = zones_by_id.get(scan.zone_id)
    return zone.name if zone is not None else UNKNOWN_ZONE


def validate_entry(entry) -> dict:
    if not isinstance(entry, dict):
        raise ValidationError("entry must be an object")
    patch = validate_payload(
        model=ScannedArticle,
        payload=entry,
        policy=SCAN_ENTRY_POLICY,
        partial=False,
    )
    enforce_rules_count_number(patch["count_number"])
    patch.setdefault("is_serial", False)
    return patch


def validate_batch(entries) -> list[dict]:
    """
    Validate and normalize a whole batch.

    Raises one ValidationError whose `errors` lists every bad entry by
    index. Nothing is partially accepted.
    """
    if not isinstance(entries, list):
        raise ValidationError("scans must be a list")
    if not entries:
        raise ValidationError("No scans to upload")

    normalized = []
    errors = []
    for index, entry in enumerate(entries):
        try:
            normalized.append(validate_entry(entry))
        except ValidationError as e:
            errors.append(f"Entry {index}: {e}")

    if errors:
        raise ValidationError(f"Invalid batch data ({len(errors)} invalid entries)", errors=errors)
    return normalized


def _append_scans(principal: Principal, entries: list[dict], repo) -> list[ScanRecord]:
    with repo.transaction():
        zones = require_zones_in_company(repo, {e["zone_id"] for e in entries}, principal.company_id)
        products = repo.get_products_by_codes(principal.company_id, {e["code"] for e in entries})

        records = []
        for e in entries:
            product = products.get(e["code"])
            records.append(
                ScanRecord(
                    id=None,
                    company_id=principal.company_id,
                    code=e["code"],
                    sku=product.sku if product else FALLBACK_SKU,
                    description=product.description if product else FALLBACK_DESCRIPTION,
                    zone_id=e["zone_id"],
                    zone_name=zones[e["zone_id"]].name,
                    user_id=principal.user_id,
                    count_number=e["count_number"],
                    scanned_at=e["scanned_at"],
                    is_serial=bool(e.get("is_serial")),
                )
            )
        return repo.add_scans(records)


def submit_batch(principal: Principal, entries, repo=None) -> list[ScanRecord]:
    """
    Append a staged batch as one transaction.

    Raises:
        PermissionDeniedError: principal may not submit scans
        ValidationError: any entry is malformed (nothing written)
        TenantAccessError: a zone id is unknown in the company (nothing written)
    """
    repo = repo or get_repository()
    authorize(principal, "SUBMIT_SCANS")
    normalized = validate_batch(entries)
    return _append_scans(principal, normalized, repo)


def submit_serials(principal: Principal, serials, zone_id, count_number, repo=None) -> list[ScanRecord]:
    """
    Serial-number flow: one zone and count for the whole list, stamped now.
    """
    repo = repo or get_repository()
    authorize(principal, "SUBMIT_SCANS")

    if not isinstance(serials, list) or not serials:
        raise ValidationError("serials must be a non-empty list")

    now = utcnow()
    entries = [
        {
            "code": serial,
            "zone_id": zone_id,
            "count_number": count_number,
            "scanned_at": now,
            "is_serial": True,
        }
        for serial in serials
    ]
    normalized = validate_batch(entries)
    return _append_scans(principal, normalized, repo)


def list_scans(principal: Principal, repo=None) -> list[dict]:
    """Company scans, newest first, with current zone names."""
    repo = repo or get_repository()
    authorize(principal, "VIEW_SCANS")

    zones = {z.id: z for z in repo.list_zones(principal.company_id)}
    users = {u.id: u for u in repo.list_users(principal.company_id)}
    scans = sorted(
        repo.list_scans(principal.company_id),
        key=lambda s: (s.scanned_at, s.id),
        reverse=True,
    )

    rows = []
    for scan in scans:
        row = scan.to_dict()
        row["zone_name"] = display_zone_name(scan, zones)
        user = users.get(scan.user_id)
        row["user_name"] = user.name if user else UNKNOWN_USER
        rows.append(row)
    return rows


def scan_history(principal: Principal, repo=None, zone_id: int | None = None, count_number: int | None = None) -> list[dict]:
    """
    Scans grouped by code with quantity and the time of the last scan.

    Optionally narrowed to one zone and/or count pass, which is what the
    scanning screen shows under the input field.
    """
    repo = repo or get_repository()
    authorize(principal, "VIEW_SCANS")

    if zone_id is not None:
        require_zone_in_company(repo, zone_id, principal.company_id)

    groups: dict[str, dict] = {}
    for scan in repo.list_scans(principal.company_id):
        if zone_id is not None and scan.zone_id != zone_id:
            continue
        if count_number is not None and scan.count_number != count_number:
            continue
        group = groups.get(scan.code)
        if group is None:
            group = groups[scan.code] = {
                "code": scan.code,
                "sku": scan.sku,
                "description": scan.description,
                "is_serial": scan.is_serial,
                "quantity": 0,
                "last_scanned_at": scan.scanned_at,
            }
        group["quantity"] += 1
        if scan.scanned_at > group["last_scanned_at"]:
            group["last_scanned_at"] = scan.scanned_at

    return sorted(groups.values(), key=lambda g: g["last_scanned_at"], reverse=True)


def delete_scan(principal: Principal, scan_id: int, repo=None) -> None:
    repo = repo or get_repository()
    authorize(principal, "DELETE_SCANS")
    with repo.transaction():
        if not repo.delete_scan(principal.company_id, scan_id):
            raise TenantAccessError("Scan not found")


def delete_scans_by_code(principal: Principal, code: str, repo=None) -> int:
    repo = repo or get_repository()
    authorize(principal, "DELETE_SCANS")
    code = (code or "").strip()
    if not code:
        raise ValidationError("code is required")
    with repo.transaction():
        deleted = repo.delete_scans_by_code(principal.company_id, code)
        if not deleted:
            raise TenantAccessError("Scan not found")
    return deleted


def delete_all_scans(principal: Principal, repo=None) -> int:
    repo = repo or get_repository()
    authorize(principal, "DELETE_SCANS")
    with repo.transaction():
        return repo.delete_all_scans(principal.company_id)
