# Overview: Flask API routes for staff and role operations; parses input and returns JSON responses.

# backend/kiosk/routes/staff.py
"""
Staff management routes.

SECURITY: All routes require authentication.
- Staff listing, creation, edits and PIN resets require STAFF_MANAGE
- Role listing requires ROLES_MANAGE (read-only, grants are not editable)
- Any signed-in staff member may change their own UI language
"""
from flask import Blueprint, request, g, current_app

from ..services import staff_service
from ..services.auth_service import AuthError
from ..decorators import require_auth, require_permission
from ..errors import error_response, service_error_response

staff_bp = Blueprint("staff", __name__, url_prefix="/api")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@staff_bp.get("/staff")
@require_auth
@require_permission("STAFF_MANAGE")
def list_staff_route():
    staff = staff_service.list_staff()
    return {"staff": [s.to_dict() for s in staff], "count": len(staff)}


@staff_bp.post("/staff")
@require_auth
@require_permission("STAFF_MANAGE")
def create_staff_route():
    """
    Create a staff account.

    Body: {full_name, pin, role, ui_language?}. Role is a role code (CASHIER, ...).
    """
    try:
        staff = staff_service.create_staff_account(_json_body(), actor=g.current_staff)
    except AuthError as e:
        return service_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create staff")
        return error_response("INTERNAL_ERROR", 500)

    return staff.to_dict(), 201


@staff_bp.patch("/staff/<int:staff_id>")
@require_auth
@require_permission("STAFF_MANAGE")
def update_staff_route(staff_id: int):
    """Partial update: full_name, role, is_active, ui_language. Root accounts are protected."""
    try:
        staff = staff_service.update_staff(staff_id, _json_body(), actor=g.current_staff)
    except AuthError as e:
        return service_error_response(e)

    return staff.to_dict()


@staff_bp.post("/staff/<int:staff_id>/reset-pin")
@require_auth
@require_permission("STAFF_MANAGE")
def reset_pin_route(staff_id: int):
    try:
        staff_service.reset_pin(staff_id, _json_body().get("pin"), actor=g.current_staff)
    except AuthError as e:
        return service_error_response(e)

    return {"ok": True}


@staff_bp.patch("/staff/me/preferences")
@require_auth
def update_preferences_route():
    language = staff_service.update_preferences(g.current_staff, _json_body().get("ui_language"))
    return {"ok": True, "ui_language": language}


@staff_bp.get("/roles")
@require_auth
@require_permission("ROLES_MANAGE")
def list_roles_route():
    roles = staff_service.list_roles()
    return {"roles": roles, "count": len(roles)}
