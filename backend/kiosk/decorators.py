# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import validate_permission_code
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, "current_staff") and hasattr(g, "permissions")


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid session token.

    Sets the following Flask g attributes:
    - g.current_staff: The authenticated StaffUser
    - g.permissions: Capability codes frozen on the session at login
    - g.session_context: The full SessionContext object
    - g.token: The plaintext bearer token (for logout)

    Returns 401 {"error": "UNAUTHORIZED"} if:
    - No Authorization header
    - Unknown, expired or revoked token
    - Staff account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "UNAUTHORIZED"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "UNAUTHORIZED"}), 401

        g.current_staff = context.staff
        g.permissions = context.permissions
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """
    Require one capability code from the enumerated list.

    Checked against the session's frozen permission set before the view
    runs, so no business validation happens for forbidden callers.
    """
    if not validate_permission_code(permission_code):
        raise ValueError(f"Unknown permission code: {permission_code}")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "UNAUTHORIZED"}), 401

            if permission_code not in g.permissions:
                return jsonify({
                    "error": "FORBIDDEN",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
