# Overview: Flask API routes for scan batch upload and scan management.

"""
Scan routes.

Batch upload is all-or-nothing: a 400 or 404 answer means no row was
written and the client keeps its staged list.
"""
from flask import Blueprint, request, g, current_app

from ..services import scan_service
from ..services.permission_service import PermissionDeniedError
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError
from zonecount.time_utils import to_utc_z
from ..decorators import (
    require_auth,
    require_permission,
    not_found_response,
    permission_denied_response,
    validation_error_response,
)


scans_bp = Blueprint("scans", __name__, url_prefix="/api/scans")


@scans_bp.post("/batch")
@require_auth
@require_permission("SUBMIT_SCANS")
def submit_batch_route():
    """
    Upload a staged batch.

    Body: {"scans": [{"code", "zone_id", "count_number", "scanned_at"}, ...]}
    """
    data = request.get_json(silent=True)
    entries = data.get("scans") if isinstance(data, dict) else data

    try:
        created = scan_service.submit_batch(g.principal, entries)
    except ValidationError as e:
        return validation_error_response(e)
    except TenantAccessError as e:
        return not_found_response(e)
    except PermissionDeniedError as e:
        return permission_denied_response(e)

    current_app.logger.info(
        "Accepted batch of %d scans from user %s (company %s)",
        len(created), g.principal.user_id, g.company_id,
    )
    return {"message": f"Uploaded {len(created)} scans.", "count": len(created)}, 201


@scans_bp.post("/serials")
@require_auth
@require_permission("SUBMIT_SCANS")
def submit_serials_route():
    """Body: {"serials": [...], "zone_id": int, "count_number": 1..3}"""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return {"error": "Invalid JSON payload"}, 400

    try:
        created = scan_service.submit_serials(
            g.principal,
            data.get("serials"),
            data.get("zone_id"),
            data.get("count_number"),
        )
    except ValidationError as e:
        return validation_error_response(e)
    except TenantAccessError as e:
        return not_found_response(e)

    current_app.logger.info(
        "Accepted %d serial numbers from user %s (company %s)",
        len(created), g.principal.user_id, g.company_id,
    )
    return {"message": f"Uploaded {len(created)} serial numbers.", "count": len(created)}, 201


@scans_bp.get("")
@require_auth
@require_permission("VIEW_SCANS")
def list_scans_route():
    scans = scan_service.list_scans(g.principal)
    return {"scans": scans, "count": len(scans)}, 200


@scans_bp.get("/history")
@require_auth
@require_permission("VIEW_SCANS")
def scan_history_route():
    """Grouped by code. Optional query params: zone_id, count_number."""
    zone_id = request.args.get("zone_id", type=int)
    count_number = request.args.get("count_number", type=int)
    try:
        history = scan_service.scan_history(g.principal, zone_id=zone_id, count_number=count_number)
    except TenantAccessError as e:
        return not_found_response(e)

    for group in history:
        group["last_scanned_at"] = to_utc_z(group["last_scanned_at"])
    return {"history": history}, 200


@scans_bp.delete("/<int:scan_id>")
@require_auth
@require_permission("DELETE_SCANS")
def delete_scan_route(scan_id: int):
    try:
        scan_service.delete_scan(g.principal, scan_id)
    except TenantAccessError as e:
        return not_found_response(e)
    return {"message": "Scan record deleted successfully."}, 200


@scans_bp.delete("/by-code/<code>")
@require_auth
@require_permission("DELETE_SCANS")
def delete_scans_by_code_route(code: str):
    try:
        deleted = scan_service.delete_scans_by_code(g.principal, code)
    except ValidationError as e:
        return validation_error_response(e)
    except TenantAccessError as e:
        return not_found_response(e)
    return {"deleted": deleted, "message": f"Deleted {deleted} scans of {code}."}, 200


@scans_bp.delete("")
@require_auth
@require_permission("DELETE_SCANS")
def delete_all_scans_route():
    deleted = scan_service.delete_all_scans(g.principal)
    current_app.logger.info("Deleted all %d scans of company %s", deleted, g.company_id)
    return {"deleted": deleted, "message": f"Deleted {deleted} scans."}, 200
