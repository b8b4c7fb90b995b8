# Overview: Flask API routes for point-of-sale operations; parses input and returns JSON responses.

# backend/kiosk/routes/pos.py
"""
Point-of-sale routes.

- POST /api/pos/checkout          POS_CHECKOUT
- GET  /api/pos/sales/today       SALES_VIEW
- GET  /api/pos/sales/<sale_id>   SALES_VIEW

Authorization is checked by the decorators before any cart validation.
"""
from flask import Blueprint, request, g, current_app

from ..services import checkout_service, sales_service
from ..services.checkout_service import CheckoutError
from ..services.sales_service import SaleNotFoundError
from ..validation import parse_cart, parse_payments, ValidationError
from ..decorators import require_auth, require_permission
from ..errors import error_response, service_error_response

pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


@pos_bp.post("/checkout")
@require_auth
@require_permission("POS_CHECKOUT")
def checkout_route():
    """
    Commit a cart as a sale.

    Body:
    {
        "items": [{"item_id": 1, "qty": 2}],
        "payments": [{"method": "CASH", "amount": 10000}],
        "customer_name": "...",   // optional
        "notes": "...",           // optional
        "language": "en" | "fr"   // anything else falls back to the default
    }

    Returns 200 {ok, sale_id, sale_no, receipt}.
    """
    payload = request.get_json(silent=True) or {}
    staff = g.current_staff

    try:
        cart = parse_cart(payload.get("items"))
        payments = parse_payments(payload.get("payments"))
    except ValidationError as e:
        return error_response(e.code, 400, {"message": str(e)})

    try:
        result = checkout_service.checkout(
            cart=cart,
            payments=payments,
            actor_id=staff.id,
            actor_name=staff.full_name,
            customer_name=payload.get("customer_name"),
            notes=payload.get("notes"),
            language=payload.get("language"),
        )
    except CheckoutError as e:
        return service_error_response(e)
    except Exception:
        current_app.logger.exception("Checkout crashed")
        return error_response("INTERNAL_ERROR", 500)

    return result.to_dict(), 200


@pos_bp.get("/sales/today")
@require_auth
@require_permission("SALES_VIEW")
def sales_today_route():
    """Up to 200 sales since UTC midnight, newest first."""
    sales = sales_service.list_today_sales()
    return {"sales": [s.to_dict() for s in sales], "count": len(sales)}


@pos_bp.get("/sales/<int:sale_id>")
@require_auth
@require_permission("SALES_VIEW")
def sale_detail_route(sale_id: int):
    """Sale with items, payments and receipt number."""
    try:
        sale = sales_service.get_sale(sale_id)
    except SaleNotFoundError as e:
        return service_error_response(e)
    return sale.to_dict(include_lines=True)
