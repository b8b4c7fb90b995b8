# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

# backend/kiosk/routes/catalog.py
"""
Catalog management routes.

SECURITY: All routes require authentication.
- Read operations require CATALOG_VIEW
- Write operations require CATALOG_EDIT
- Stock adjustment requires INVENTORY_ADJUST
"""
from flask import Blueprint, request, g, current_app

from ..services import catalog_service, stock_ledger_service
from ..services.catalog_service import CatalogError
from ..services.stock_ledger_service import StockLedgerError
from ..decorators import require_auth, require_permission
from ..errors import error_response, service_error_response

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@catalog_bp.get("/items")
@require_auth
@require_permission("CATALOG_VIEW")
def list_items_route():
    """
    List catalog items.

    Query params:
    - include_inactive: bool (optional) - include deactivated items
    """
    items = catalog_service.list_items(include_inactive=_flag(request.args.get("include_inactive")))
    return {"items": [item.to_dict() for item in items], "count": len(items)}


@catalog_bp.get("/items/<int:item_id>")
@require_auth
@require_permission("CATALOG_VIEW")
def get_item_route(item_id: int):
    try:
        item = catalog_service.get_item(item_id)
    except CatalogError as e:
        return service_error_response(e)
    return item.to_dict()


@catalog_bp.post("/items")
@require_auth
@require_permission("CATALOG_EDIT")
def create_item_route():
    """
    Create a catalog item.

    Initial stock of a tracked product is written to the stock ledger.
    """
    payload = request.get_json(silent=True) or {}
    staff = g.current_staff

    try:
        item = catalog_service.create_item(payload, actor_id=staff.id, actor_name=staff.full_name)
    except CatalogError as e:
        return service_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create catalog item")
        return error_response("INTERNAL_ERROR", 500)

    return item.to_dict(), 201


@catalog_bp.patch("/items/<int:item_id>")
@require_auth
@require_permission("CATALOG_EDIT")
def update_item_route(item_id: int):
    """Partial update; stock changes are recorded as CATALOG_EDIT movements."""
    payload = request.get_json(silent=True) or {}
    staff = g.current_staff

    try:
        item = catalog_service.update_item(item_id, payload, actor_id=staff.id, actor_name=staff.full_name)
    except (CatalogError, StockLedgerError) as e:
        return service_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update catalog item")
        return error_response("INTERNAL_ERROR", 500)

    return item.to_dict()


@catalog_bp.delete("/items/<int:item_id>")
@require_auth
@require_permission("CATALOG_EDIT")
def deactivate_item_route(item_id: int):
    """Soft delete (is_active = false)."""
    staff = g.current_staff
    try:
        item = catalog_service.deactivate_item(item_id, actor_id=staff.id, actor_name=staff.full_name)
    except CatalogError as e:
        return service_error_response(e)

    return {"ok": True, "item": item.to_dict()}


@catalog_bp.post("/items/<int:item_id>/adjust-stock")
@require_auth
@require_permission("INVENTORY_ADJUST")
def adjust_item_stock_route(item_id: int):
    """Manual stock adjustment: {delta, reason?}."""
    payload = request.get_json(silent=True) or {}
    staff = g.current_staff

    try:
        result = stock_ledger_service.record_manual_adjustment(
            item_id=item_id,
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
