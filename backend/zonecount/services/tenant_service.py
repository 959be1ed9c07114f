# Overview: Tenant validation and scoping helpers shared by services and routes.

"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

Every request is scoped to a company. Ids that arrive from client input
(zone ids in a scan batch, user ids in a URL) must be validated against
the caller's company before use.

SECURITY INVARIANTS:
1. Every authenticated request has g.company_id set
2. Zone ids from client input are resolved inside the caller's company
3. A foreign id is answered exactly like a missing one ("not found")

USAGE:
    from zonecount.services.tenant_service import require_zone_in_company

    zone = require_zone_in_company(repo, zone_id, principal.company_id)
"""

from __future__ import annotations

from flask import g

from ..records import CompanyRecord, ZoneRecord
from ..repositories import InventoryRepository


class TenantAccessError(Exception):
    """Raised when a resource is missing or belongs to another company."""
    pass


def get_current_company_id() -> int:
    """
    Company id of the authenticated request.

    Raises TenantAccessError if @require_auth has not established it.
    """
    company_id = getattr(g, "company_id", None)
    if company_id is None:
        raise TenantAccessError("Tenant context not established")
    return company_id


def require_zone_in_company(repo: InventoryRepository, zone_id: int, company_id: int) -> ZoneRecord:
    zone = repo.get_zone(company_id, zone_id)
    if zone is None:
        # Don't reveal whether it exists in another company
        raise TenantAccessError("Zone not found")
    return zone


def require_zones_in_company(
    repo: InventoryRepository,
    zone_ids,
    company_id: int,
) -> dict[int, ZoneRecord]:
    """
    Validate a set of zone ids in one pass.

    Returns {zone_id: ZoneRecord}. Raises TenantAccessError if any id is
    unknown within the company.
    """
    zones = {z.id: z for z in repo.list_zones(company_id)}
    missing = set(zone_ids) - set(zones)
    if missing:
        raise TenantAccessError("Zone not found")
    return {zid: zones[zid] for zid in set(zone_ids)}


def require_user_in_company(repo: InventoryRepository, user_id: int, company_id: int):
    user = repo.get_user(company_id, user_id)
    if user is None:
        raise TenantAccessError("User not found")
    return user


def validate_company_active(repo: InventoryRepository, company_id: int) -> CompanyRecord:
    """
    Raises TenantAccessError if the company doesn't exist or is inactive.
    """
    company = repo.get_company(company_id)
    if company is None:
        raise TenantAccessError("Company not found")
    if not company.is_active:
        raise TenantAccessError("Company is not active")
    return company
