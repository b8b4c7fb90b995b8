# Overview: Service-layer read operations for committed sales.

from __future__ import annotations

from ..extensions import db
from ..models import Sale
from kiosk.time_utils import start_of_utc_day

TODAY_LIST_LIMIT = 200


class SaleNotFoundError(LookupError):
    code = "SALE_NOT_FOUND"
    http_status = 404


def list_today_sales(limit: int = TODAY_LIST_LIMIT) -> list[Sale]:
    """Sales since UTC midnight, newest first."""
    return (
        db.session.query(Sale)
        .filter(Sale.created_at >= start_of_utc_day())
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError(f"Sale {sale_id} not found")
    return sale
