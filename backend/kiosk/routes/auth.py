# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/kiosk/routes/auth.py
"""
PIN authentication routes.

- POST /api/auth/login   {pin} -> {token, user, permissions}
- POST /api/auth/logout  revokes the bearer token
- GET  /api/auth/me      current staff and frozen permissions

Every login attempt is audited (LOGIN_OK / LOGIN_FAIL).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service, session_service, audit_service
from ..services.auth_service import AuthError
from ..decorators import require_auth
from ..errors import error_response


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate staff by PIN and create a session token.

    Token must be included as "Authorization: Bearer <token>" on protected routes.
    """
    data = request.get_json(silent=True) or {}
    pin = data.get("pin")
    user_agent = request.headers.get("User-Agent")
    ip_address = request.remote_addr

    try:
        staff = auth_service.authenticate(pin)
    except AuthError as e:
        audit_service.record(
            actor_id=None,
            actor_name="UNKNOWN",
            action="LOGIN_FAIL",
            entity_type="staff",
            metadata={"reason": e.code, "ip_address": ip_address},
        )
        return error_response(e.code, e.http_status)

    try:
        session, token = session_service.create_session(
            staff,
            user_agent=user_agent,
            ip_address=ip_address,
        )
    except Exception:
        current_app.logger.exception("Failed to create session")
        return error_response("INTERNAL_ERROR", 500)

    audit_service.record(
        actor_id=staff.id,
        actor_name=staff.full_name,
        action="LOGIN_OK",
        entity_type="staff",
        entity_id=staff.id,
        metadata={"ip_address": ip_address},
    )

    return jsonify({
        "token": token,
        "user": staff.to_dict(),
        "permissions": list(session.permissions or []),
        "session": session.to_dict(),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    session_service.revoke_session(g.token, reason="Staff logout")
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current staff and the permission set frozen at login."""
    return jsonify({
        "user": g.current_staff.to_dict(),
        "permissions": list(g.permissions),
        "session": g.session_context.session.to_dict(),
    }), 200
