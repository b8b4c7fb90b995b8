# Overview: Service-layer operations for staff accounts; encapsulates business logic and database work.

# backend/kiosk/services/staff_service.py
"""
Staff account management.

- Root accounts are protected: they cannot be edited or have their PIN reset
  through the API, and only root staff may hand out the ROOT role.
- Role changes apply at the staff member's next login (permissions are frozen
  on the session token).
- Deactivated staff are rejected on their next request (see session_service).
- Roles are read-only here; grants come from the permission bootstrap.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Permission, Role, RolePermission, StaffUser
from ..permissions import filter_known_codes
from . import audit_service, auth_service
from .auth_service import AuthError

UI_LANGUAGES = ("fr", "en")
UPDATABLE_FIELDS = {"full_name", "role", "is_active", "ui_language"}


class StaffError(AuthError):
    """Staff management failure carrying a machine code and HTTP status."""


def _actor_fields(actor: StaffUser | None) -> dict:
    return {
        "actor_id": actor.id if actor else None,
        "actor_name": actor.full_name if actor else None,
    }


def _resolve_role(role_code, actor: StaffUser | None) -> Role:
    code = str(role_code or "").strip().upper()
    if not code:
        raise StaffError("ROLE_REQUIRED", 400, "role is required")
    role = db.session.query(Role).filter_by(code=code).first()
    if role is None:
        raise StaffError("ROLE_NOT_FOUND", 400, f"Role {code} not found")
    if role.code == "ROOT" and not (actor and actor.is_root):
        raise StaffError("ROOT_PROTECTED", 403, "Only root staff can assign the ROOT role")
    return role


def _editable(staff_id: int) -> StaffUser:
    staff = get_staff(staff_id)
    if staff.is_root:
        raise StaffError("ROOT_PROTECTED", 403, "Root accounts cannot be changed here")
    return staff


def _profile(staff: StaffUser) -> dict:
    return {
        "full_name": staff.full_name,
        "role": staff.role.code if staff.role else None,
        "is_active": staff.is_active,
        "ui_language": staff.ui_language,
    }


def list_staff() -> list[StaffUser]:
    return (
        db.session.query(StaffUser)
        .order_by(StaffUser.created_at.desc(), StaffUser.id.desc())
        .all()
    )


def get_staff(staff_id: int) -> StaffUser:
    staff = db.session.get(StaffUser, staff_id)
    if staff is None:
        raise StaffError("STAFF_NOT_FOUND", 404, "Staff not found")
    return staff


def create_staff_account(payload: dict, *, actor: StaffUser | None) -> StaffUser:
    """
    Create a staff account from an API payload {full_name, pin, role, ui_language?}.

    Raises StaffError / AuthError: FULL_NAME_REQUIRED, ROLE_REQUIRED,
    ROLE_NOT_FOUND, ROOT_PROTECTED, INVALID_PIN_FORMAT, PIN_IN_USE.
    """
    full_name = str(payload.get("full_name") or "").strip()
    if not full_name:
        raise StaffError("FULL_NAME_REQUIRED", 400, "full_name is required")
    auth_service.validate_pin_format(payload.get("pin"))
    role = _resolve_role(payload.get("role"), actor)

    language = str(payload.get("ui_language") or "").strip().lower()
    staff = auth_service.create_staff(
        full_name,
        payload.get("pin"),
        role.code,
        is_root=False,
        ui_language=language if language in UI_LANGUAGES else "fr",
    )

    audit_service.record(
        **_actor_fields(actor),
        action="CREATE_STAFF",
        entity_type="staff",
        entity_id=staff.id,
        metadata={"full_name": staff.full_name, "role": role.code},
    )
    return staff


def update_staff(staff_id: int, payload: dict, *, actor: StaffUser | None) -> StaffUser:
    """
    Partial update of name, role, active flag and UI language.

    Audited as UPDATE_STAFF with the before/after values of changed fields.
    """
    staff = _editable(staff_id)

    for key in payload:
        if key not in UPDATABLE_FIELDS:
            raise StaffError("FIELD_NOT_ALLOWED", 400, f"Field not allowed: {key}")

    before = _profile(staff)

    changes: dict = {}
    if "full_name" in payload:
        full_name = str(payload["full_name"] or "").strip()
        if not full_name:
            raise StaffError("FULL_NAME_REQUIRED", 400, "full_name cannot be blank")
        changes["full_name"] = full_name

    if "role" in payload:
        changes["role"] = _resolve_role(payload["role"], actor)

    if "is_active" in payload:
        if not isinstance(payload["is_active"], bool):
            raise StaffError("VALIDATION_ERROR", 400, "is_active must be a boolean")
        changes["is_active"] = payload["is_active"]

    if "ui_language" in payload:
        language = str(payload["ui_language"] or "").strip().lower()
        if language not in UI_LANGUAGES:
            raise StaffError("VALIDATION_ERROR", 400, "ui_language must be fr or en")
        changes["ui_language"] = language

    # Apply only once every field is valid
    for key, value in changes.items():
        setattr(staff, key, value)
    after = _profile(staff)
    db.session.commit()

    changed = [key for key in before if before[key] != after[key]]
    if changed:
        audit_service.record(
            **_actor_fields(actor),
            action="UPDATE_STAFF",
            entity_type="staff",
            entity_id=staff.id,
            metadata={
                "before": {key: before[key] for key in changed},
                "after": {key: after[key] for key in changed},
            },
        )
    return staff


def reset_pin(staff_id: int, pin, *, actor: StaffUser | None) -> StaffUser:
    """Replace a staff member's PIN. The PIN itself is never audited."""
    staff = _editable(staff_id)

    normalized = auth_service.validate_pin_format(pin)
    if auth_service.pin_in_use(normalized, exclude_staff_id=staff.id):
        raise StaffError("PIN_IN_USE", 409, "PIN already in use")

    staff.pin_hash = auth_service.hash_pin(normalized)
    db.session.commit()

    audit_service.record(
        **_actor_fields(actor),
        action="RESET_PIN",
        entity_type="staff",
        entity_id=staff.id,
    )
    return staff


def update_preferences(staff: StaffUser, ui_language) -> str:
    """Set the caller's UI language. Anything other than "en" means French."""
    language = "en" if str(ui_language or "").strip().lower() == "en" else "fr"
    staff.ui_language = language
    db.session.commit()

    audit_service.record(
        **_actor_fields(staff),
        action="UPDATE_PREFERENCES",
        entity_type="staff",
        entity_id=staff.id,
        metadata={"ui_language": language},
    )
    return language


def list_roles() -> list[dict]:
    """Roles with their granted capability codes, for display only."""
    grants: dict[int, list[str]] = {}
    rows = (
        db.session.query(RolePermission.role_id, Permission.code)
        .join(Permission, Permission.id == RolePermission.permission_id)
        .all()
    )
    for role_id, code in rows:
        grants.setdefault(role_id, []).append(code)

    roles = db.session.query(Role).order_by(Role.code.asc()).all()
    result = []
    for role in roles:
        data = role.to_dict()
        data["permissions"] = filter_known_codes(grants.get(role.id, []))
        result.append(data)
    return result
