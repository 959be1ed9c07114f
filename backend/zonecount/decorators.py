# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .services import session_service, permission_service
from .services.permission_service import Principal


def _is_authenticated() -> bool:
    return getattr(g, "principal", None) is not None


def extract_token() -> str | None:
    """Bearer header first, then the HttpOnly session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return request.cookies.get(current_app.config["AUTH_COOKIE_NAME"]) or None


def require_auth(f):
    """
    Require authentication and establish tenant context.

    Sets the following Flask g attributes:
    - g.current_user: the authenticated UserRecord
    - g.company_id: the company of the session (tenant context)
    - g.principal: Principal passed to every service call
    - g.session_context: the full SessionContext

    Returns 401 if the token is missing, unknown, expired or revoked, or
    if the user or company is gone.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = extract_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.company_id = context.company_id
        g.principal = Principal.from_user(context.user)
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def _log_denial(event_type: str, action: str, reason: str) -> None:
    principal = getattr(g, "principal", None)
    permission_service.log_security_event(
        user_id=principal.user_id if principal else None,
        company_id=principal.company_id if principal else None,
        event_type=event_type,
        success=False,
        resource=request.path,
        action=action,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def require_permission(permission_code: str):
    """
    Require a specific capability. Denials are written to security_events.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not permission_service.has_permission(g.principal, permission_code):
                _log_denial("PERMISSION_DENIED", permission_code, f"Missing permission: {permission_code}")
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def permission_denied_response(exc):
    """403 for a PermissionDeniedError raised by a service."""
    _log_denial("PERMISSION_DENIED", request.method, str(exc))
    return {"error": str(exc)}, 403


def not_found_response(exc):
    """
    404 for a TenantAccessError.

    Unknown and foreign ids look the same to the caller; the attempt is
    still recorded.
    """
    _log_denial("CROSS_TENANT_ACCESS_DENIED", request.method, str(exc))
    return {"error": str(exc)}, 404


def validation_error_response(exc):
    body = {"error": str(exc)}
    if getattr(exc, "errors", None):
        body["errors"] = exc.errors
    return body, 400
