# Overview: Login, logout and session validation.

"""
Authentication API routes

Login returns an opaque token in the body and also sets it as an
HttpOnly cookie. Either one authenticates later requests.
Self-registration does not exist: admins create users.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service, session_service, permission_service
from ..decorators import require_auth, extract_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, company_id: int) -> dict:
    return {
        "user": user.to_dict(),
        "company_id": company_id,
        "permissions": sorted(permission_service.get_role_permissions(user.role)),
    }


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body: {"email": ..., "password": ..., "company_id": optional}
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")
        company_id = data.get("company_id")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400
        if company_id is not None and (isinstance(company_id, bool) or not isinstance(company_id, int)):
            return jsonify({"error": "company_id must be an integer"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(email, password, company_id=company_id)

        if not user:
            permission_service.log_security_event(
                user_id=None,
                company_id=company_id,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action="LOGIN",
                reason="Invalid credentials",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user,
            user_agent=user_agent,
            ip_address=ip_address,
        )

        body = _session_payload(user, session.company_id)
        body.update({
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        })
        response = jsonify(body)
        response.set_cookie(
            current_app.config["AUTH_COOKIE_NAME"],
            token,
            max_age=int(session_service.session_lifetime().total_seconds()),
            httponly=True,
            secure=current_app.config.get("AUTH_COOKIE_SECURE", False),
            samesite="Lax",
        )
        return response, 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the session token (header or cookie) and clear the cookie."""
    try:
        token = extract_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        revoked = session_service.revoke_session(token, reason="User logout")
        if not revoked:
            return jsonify({"error": "Invalid or expired token"}), 401

        response = jsonify({"message": "Logout successful"})
        response.delete_cookie(current_app.config["AUTH_COOKIE_NAME"])
        return response, 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user, company and capabilities, for the client's navigation."""
    body = _session_payload(g.current_user, g.company_id)
    body["message"] = "Token valid"
    return jsonify(body), 200
