# Overview: Flask API routes for receipts; returns stored receipt snapshots.

from flask import Blueprint, current_app

from ..services import receipt_service
from ..services.receipt_service import ReceiptNotFoundError
from ..decorators import require_auth, require_permission
from ..errors import service_error_response

receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/receipts")


@receipts_bp.get("/<receipt_no>")
@require_auth
@require_permission("SALES_VIEW")
def get_receipt_route(receipt_no: str):
    """
    Stored receipt payload, returned as persisted at checkout.

    The body is the stored JSON text itself, so it never changes.
    """
    try:
        receipt = receipt_service.get_receipt_by_no(receipt_no)
    except ReceiptNotFoundError as e:
        return service_error_response(e)

    return current_app.response_class(receipt.payload_json, status=200, mimetype="application/json")
