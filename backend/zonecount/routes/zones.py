# Overview: Flask API routes for zones, the zone builder and QR labels.

"""
Zone routes.

MULTI-TENANT: every zone id in a URL is resolved inside g.company_id.
A zone of another company answers 404 exactly like a missing one.

- Read operations require VIEW_ZONES
- Write operations and the builder require MANAGE_ZONES
"""
from flask import Blueprint, request, g, current_app

from ..services import zone_service, label_service
from ..services.permission_service import PermissionDeniedError
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError, ConflictError
from ..decorators import (
    require_auth,
    require_permission,
    not_found_response,
    permission_denied_response,
    validation_error_response,
)


zones_bp = Blueprint("zones", __name__, url_prefix="/api/zones")


@zones_bp.get("")
@require_auth
@require_permission("VIEW_ZONES")
def list_zones_route():
    zones = zone_service.list_zones(g.principal)
    return {"zones": [z.to_dict() for z in zones]}, 200


@zones_bp.post("")
@require_auth
@require_permission("MANAGE_ZONES")
def create_zone_route():
    payload = request.get_json(silent=True) or {}
    try:
        zone = zone_service.create_zone(g.principal, payload)
    except ValidationError as e:
        return validation_error_response(e)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PermissionDeniedError as e:
        return permission_denied_response(e)

    return {"zone": zone.to_dict(), "message": "Zone created successfully."}, 201


@zones_bp.get("/<int:zone_id>")
@require_auth
@require_permission("VIEW_ZONES")
def get_zone_route(zone_id: int):
    try:
        zone = zone_service.get_zone(g.principal, zone_id)
    except TenantAccessError as e:
        return not_found_response(e)
    return {"zone": zone.to_dict()}, 200


@zones_bp.put("/<int:zone_id>")
@require_auth
@require_permission("MANAGE_ZONES")
def update_zone_route(zone_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        zone = zone_service.update_zone(g.principal, zone_id, payload)
    except ValidationError as e:
        return validation_error_response(e)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError as e:
        return not_found_response(e)
    except PermissionDeniedError as e:
        return permission_denied_response(e)

    return {"zone": zone.to_dict(), "message": "Zone updated successfully."}, 200


@zones_bp.delete("/<int:zone_id>")
@require_auth
@require_permission("MANAGE_ZONES")
def delete_zone_route(zone_id: int):
    try:
        zone_service.delete_zone(g.principal, zone_id)
    except TenantAccessError as e:
        return not_found_response(e)
    except PermissionDeniedError as e:
        return permission_denied_response(e)

    return {"message": "Zone deleted successfully."}, 200


@zones_bp.post("/build/preview")
@require_auth
@require_permission("VIEW_ZONES")
def preview_build_route():
    payload = request.get_json(silent=True) or {}
    try:
        names = zone_service.preview_build(g.principal, payload)
    except ValidationError as e:
        return validation_error_response(e)

    return {
        "zones": names,
        "new_count": sum(1 for n in names if not n["exists"]),
    }, 200


@zones_bp.post("/build")
@require_auth
@require_permission("MANAGE_ZONES")
def build_zones_route():
    """
    Bulk-create zones from a street range and a rack range.

    Body: street_prefix, street_from, street_to, rack_prefix, rack_from, rack_to
    """
    payload = request.get_json(silent=True) or {}
    try:
        created = zone_service.build_zones(g.principal, payload)
    except ValidationError as e:
        return validation_error_response(e)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PermissionDeniedError as e:
        return permission_denied_response(e)

    current_app.logger.info(
        "Zone builder created %d zones for company %s", len(created), g.company_id
    )
    return {
        "zones": [z.to_dict() for z in created],
        "count": len(created),
        "message": f"Created {len(created)} zones.",
    }, 201


@zones_bp.get("/labels")
@require_auth
@require_permission("VIEW_ZONES")
def zone_labels_route():
    """
    QR labels for a contiguous range of zones in natural name order.

    Query params: from_id, to_id (zone ids, inclusive)
    """
    from_id = request.args.get("from_id", type=int)
    to_id = request.args.get("to_id", type=int)
    if from_id is None or to_id is None:
        return {"error": "from_id and to_id are required"}, 400

    try:
        labels = label_service.zone_labels(g.principal, from_id, to_id)
    except ValidationError as e:
        return validation_error_response(e)
    except TenantAccessError as e:
        return not_found_response(e)

    return {"labels": labels, "count": len(labels)}, 200
