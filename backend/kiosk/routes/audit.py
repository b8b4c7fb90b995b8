# Overview: Flask API routes for the audit trail.

from flask import Blueprint, request

from ..services import audit_service
from ..decorators import require_auth, require_permission

audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("")
@require_auth
@require_permission("AUDIT_VIEW")
def list_audit_route():
    """
    Newest audit entries (max 200).

    Query params:
    - action: str (optional) - e.g. CHECKOUT_SALE
    - entity_type: str (optional) - e.g. catalog_item
    - limit: int (optional)
    """
    limit = request.args.get("limit", default=audit_service.AUDIT_LIST_LIMIT, type=int)
    entries = audit_service.list_entries(
        limit=limit,
        action=(request.args.get("action") or "").strip().upper() or None,
        entity_type=(request.args.get("entity_type") or "").strip() or None,
    )
    return {"entries": [e.to_dict() for e in entries], "count": len(entries)}
