# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
PIN authentication for kiosk staff.

WHY: Every action must be attributable. Staff log in with a personal PIN
on the shared kiosk terminal.

SECURITY NOTES:
- PIN format: two letters, dash, six digits ("ab-123456"), case-insensitive
- PINs hashed with bcrypt (cost from BCRYPT_ROUNDS, 12 by default)
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import StaffUser, Role
from kiosk.time_utils import utcnow

PIN_PATTERN = re.compile(r"^[a-z]{2}-\d{6}$")


class AuthError(Exception):
    """Authentication failure carrying a machine code and HTTP status."""

    def __init__(self, code: str, http_status: int = 401, message: str | None = None):
        super().__init__(message or code)
        self.code = code
        self.http_status = http_status


def normalize_pin(pin: str | None) -> str:
    return str(pin or "").strip().lower()


def validate_pin_format(pin: str | None) -> str:
    """
    Normalize and validate a PIN.

    Raises AuthError(INVALID_PIN_FORMAT) if it does not match "xx-123456".
    """
    normalized = normalize_pin(pin)
    if not PIN_PATTERN.match(normalized):
        raise AuthError("INVALID_PIN_FORMAT", 400, "PIN must look like ab-123456")
    return normalized


def hash_pin(pin: str) -> str:
    """Hash a PIN with bcrypt after format validation."""
    normalized = validate_pin_format(pin)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(normalized.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")  # Store as string in database


def verify_pin(pin: str, pin_hash: str) -> bool:
    """
    Verify PIN against bcrypt hash.

    bcrypt.checkpw() is timing-safe. Malformed hashes never match.
    """
    try:
        return bcrypt.checkpw(normalize_pin(pin).encode("utf-8"), pin_hash.encode("utf-8"))
    except ValueError:
        return False


def authenticate(pin: str | None) -> StaffUser:
    """
    Authenticate staff by PIN.

    PINs are not indexed (hashed with per-row salt), so every active staff
    hash is checked. Kiosk staff lists are small.

    Returns the StaffUser and stamps last_login_at.
    Raises AuthError(INVALID_PIN_FORMAT | BAD_CREDENTIALS).
    """
    normalized = validate_pin_format(pin)

    candidates = (
        db.session.query(StaffUser)
        .filter(StaffUser.is_active.is_(True))
        .order_by(StaffUser.id.asc())
        .all()
    )
    for staff in candidates:
        if verify_pin(normalized, staff.pin_hash):
            staff.last_login_at = utcnow()
            db.session.commit()
            return staff

    raise AuthError("BAD_CREDENTIALS", 401, "Invalid PIN")


def pin_in_use(pin: str, exclude_staff_id: int | None = None) -> bool:
    query = db.session.query(StaffUser)
    if exclude_staff_id is not None:
        query = query.filter(StaffUser.id != exclude_staff_id)
    return any(verify_pin(pin, staff.pin_hash) for staff in query.all())


def create_staff(
    full_name: str,
    pin: str,
    role_code: str,
    *,
    is_root: bool = False,
    ui_language: str = "fr",
) -> StaffUser:
    """
    Create a staff account with a bcrypt-hashed PIN.

    Raises AuthError with FULL_NAME_REQUIRED, ROLE_NOT_FOUND,
    INVALID_PIN_FORMAT, or PIN_IN_USE when the PIN already belongs to another
    account (PIN login must stay unambiguous).
    """
    full_name = (full_name or "").strip()
    if not full_name:
        raise AuthError("FULL_NAME_REQUIRED", 400, "full_name is required")

    role = db.session.query(Role).filter_by(code=(role_code or "").strip().upper()).first()
    if not role:
        raise AuthError("ROLE_NOT_FOUND", 400, f"Role {role_code} not found")

    normalized = validate_pin_format(pin)
    if pin_in_use(normalized):
        raise AuthError("PIN_IN_USE", 409, "PIN already in use")

    staff = StaffUser(
        full_name=full_name,
        pin_hash=hash_pin(normalized),
        role_id=role.id,
        is_root=is_root,
        is_active=True,
        ui_language=ui_language if ui_language in ("en", "fr") else "fr",
    )

    db.session.add(staff)
    db.session.commit()
    return staff


def ensure_root_staff(full_name: str, pin: str) -> tuple[StaffUser, bool]:
    """Create the root account once. Returns (staff, created)."""
    existing = db.session.query(StaffUser).filter_by(is_root=True).order_by(StaffUser.id.asc()).first()
    if existing:
        return existing, False
    return create_staff(full_name, pin, "ROOT", is_root=True), True
