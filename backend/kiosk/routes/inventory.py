# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/kiosk/routes/inventory.py
"""
Stock ledger routes.

- POST /api/inventory/adjust                  INVENTORY_ADJUST
- GET  /api/inventory/<item_id>/movements     CATALOG_VIEW
- GET  /api/inventory/reconcile               AUDIT_VIEW
"""
from flask import Blueprint, request, g, current_app

from ..services import stock_ledger_service
from ..services.stock_ledger_service import StockLedgerError
from ..decorators import require_auth, require_permission
from ..errors import error_response, service_error_response

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/adjust")
@require_auth
@require_permission("INVENTORY_ADJUST")
def adjust_route():
    """
    Manual stock adjustment.

    Body: {item_id, delta, reason?}
    """
    payload = request.get_json(silent=True) or {}
    staff = g.current_staff

    try:
        result = stock_ledger_service.record_manual_adjustment(
            item_id=payload.get("item_id"),
            delta=payload.get("delta"),
            reason=payload.get("reason"),
            actor_id=staff.id,
            actor_name=staff.full_name,
        )
    except StockLedgerError as e:
        return service_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return error_response("INTERNAL_ERROR", 500)

    return {"ok": True, **result}


@inventory_bp.get("/<int:item_id>/movements")
@require_auth
@require_permission("CATALOG_VIEW")
def movements_route(item_id: int):
    """Movements for one item, newest first."""
    limit = request.args.get("limit", default=stock_ledger_service.MOVEMENT_LIST_LIMIT, type=int)
    limit = max(1, min(limit, stock_ledger_service.MOVEMENT_LIST_LIMIT))

    try:
        movements = stock_ledger_service.list_movements(item_id, limit=limit)
    except StockLedgerError as e:
        return service_error_response(e)

    return {"item_id": item_id, "movements": [m.to_dict() for m in movements]}


@inventory_bp.get("/reconcile")
@require_auth
@require_permission("AUDIT_VIEW")
def reconcile_route():
    """
    Compare ledger sums with catalog stock.

    Query params:
    - item_id: int (optional) - reconcile one item only
    """
    item_id = request.args.get("item_id", type=int)
    try:
        report = stock_ledger_service.reconcile(item_id=item_id)
    except StockLedgerError as e:
        return service_error_response(e)
    return report
