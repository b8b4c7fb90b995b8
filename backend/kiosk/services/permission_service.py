# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission resolution for staff sessions.

DESIGN PRINCIPLES:
- Fail closed: deny by default, require explicit grant through a role
- Root staff hold every enumerated capability
- Resolved codes are always filtered to the enumerated list, so a stray
  row in role_permissions can never grant an unknown capability
- Resolution happens once at login; the result is frozen on the session
"""

from ..extensions import db
from ..models import StaffUser, Role, RolePermission, Permission
from ..permissions import (
    PERMISSION_DEFINITIONS,
    DEFAULT_ROLES,
    DEFAULT_ROLE_PERMISSIONS,
    get_all_permission_codes,
    filter_known_codes,
)


class PermissionDeniedError(Exception):
    """Raised when staff lacks required permission."""

    def __init__(self, permission_code: str):
        super().__init__(f"Permission denied: {permission_code}")
        self.permission_code = permission_code


def resolve_staff_permissions(staff: StaffUser) -> list[str]:
    """
    Capability codes for a staff member, in definition order.

    Root staff get every code; otherwise the union of the role grants.
    """
    if staff.is_root:
        return get_all_permission_codes()

    if not staff.role_id:
        return []

    codes = (
        db.session.query(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == staff.role_id)
        .all()
    )
    return filter_known_codes(code for (code,) in codes)


def initialize_permissions():
    """
    Initialize all permission definitions in database.

    Creates Permission records for all codes in PERMISSION_DEFINITIONS.
    Idempotent: Safe to run multiple times.
    """
    created_count = 0

    for code, name, description, category in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(code=code).first()

        if not existing:
            permission = Permission(
                code=code,
                name=name,
                description=description,
                category=category
            )
            db.session.add(permission)
            created_count += 1

    db.session.commit()
    return created_count


def create_default_roles():
    """Create standard kiosk roles if they don't exist."""
    created_count = 0
    for code, name, description in DEFAULT_ROLES:
        existing = db.session.query(Role).filter_by(code=code).first()
        if not existing:
            db.session.add(Role(code=code, name=name, description=description))
            created_count += 1

    db.session.commit()
    return created_count


def assign_default_role_permissions():
    """
    Assign default permissions to roles based on DEFAULT_ROLE_PERMISSIONS.

    Creates RolePermission records linking roles to their default permissions.
    Idempotent: Safe to run multiple times (skips existing).
    """
    created_count = 0

    for role_code, permission_codes in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.session.query(Role).filter_by(code=role_code).first()

        if not role:
            continue  # Role doesn't exist, skip

        for permission_code in permission_codes:
            permission = db.session.query(Permission).filter_by(code=permission_code).first()

            if not permission:
                continue  # Permission doesn't exist, skip

            existing = db.session.query(RolePermission).filter_by(
                role_id=role.id,
                permission_id=permission.id
            ).first()

            if not existing:
                db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                created_count += 1

    db.session.commit()
    return created_count


def bootstrap_access_control() -> dict:
    """Permissions, roles and default grants in one idempotent call."""
    return {
        "permissions_created": initialize_permissions(),
        "roles_created": create_default_roles(),
        "grants_created": assign_default_role_permissions(),
    }


def has_permission(permissions, permission_code: str) -> bool:
    """Check a frozen session permission set against one enumerated code."""
    return permission_code in filter_known_codes(permissions)
