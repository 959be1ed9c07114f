# Overview: Flask API routes for user administration within a company.

"""
User administration routes.

Every route requires MANAGE_USERS (admin role). Users are always created
in the admin's own company; a company_id in the body is ignored.
"""
from flask import Blueprint, request, g, current_app

from ..services import user_service, session_service, permission_service
from ..services.auth_service import PasswordValidationError
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError, ConflictError
from ..decorators import (
    require_auth,
    require_permission,
    not_found_response,
    validation_error_response,
)


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission("MANAGE_USERS")
def list_users_route():
    users = user_service.list_users(g.principal)
    return {"users": [u.to_dict() for u in users]}, 200


@users_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    """
    Body: name, email, role, password (optional).

    Without a password a random one is generated and returned once as
    "generated_password".
    """
    payload = request.get_json(silent=True) or {}
    try:
        user, generated = user_service.create_user(g.principal, payload)
    except PasswordValidationError as e:
        return {"error": str(e)}, 400
    except ValidationError as e:
        return validation_error_response(e)
    except ConflictError as e:
        return {"error": str(e)}, 409

    permission_service.log_security_event(
        user_id=g.principal.user_id,
        company_id=g.company_id,
        event_type="USER_CREATED",
        success=True,
        resource=request.path,
        action="CREATE",
        reason=f"Created user {user.id}",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    current_app.logger.info("User %s created user %s in company %s", g.principal.user_id, user.id, g.company_id)

    body = {"user": user.to_dict(), "message": "User created successfully."}
    if generated:
        body["generated_password"] = generated
    return body, 201


@users_bp.get("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def get_user_route(user_id: int):
    try:
        user = user_service.get_user(g.principal, user_id)
    except TenantAccessError as e:
        return not_found_response(e)
    return {"user": user.to_dict()}, 200


@users_bp.put("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def update_user_route(user_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        user = user_service.update_user(g.principal, user_id, payload)
    except PasswordValidationError as e:
        return {"error": str(e)}, 400
    except ValidationError as e:
        return validation_error_response(e)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError as e:
        return not_found_response(e)

    if isinstance(payload, dict) and payload.get("password"):
        session_service.revoke_all_user_sessions(user.id, reason="Password changed")

    return {"user": user.to_dict(), "message": "User updated successfully."}, 200


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(g.principal, user_id)
    except ValidationError as e:
        return validation_error_response(e)
    except TenantAccessError as e:
        return not_found_response(e)

    return {"message": "User deleted successfully."}, 200
