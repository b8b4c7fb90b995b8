# Overview: Service-layer operations for receipts; encapsulates business logic and database work.

"""
Receipt Generator

build_receipt_payload() is a pure derivation from a sale, its lines and
payments. The payload is serialized once (sorted keys) and stored as text;
fetching a receipt returns the stored payload, never a re-derivation, so
later catalog edits cannot change it.
"""

from __future__ import annotations

import json

from ..extensions import db
from ..models import Receipt, Sale, SaleItem, SalePayment
from kiosk.time_utils import to_utc_z


class ReceiptNotFoundError(LookupError):
    code = "RECEIPT_NOT_FOUND"
    http_status = 404


def build_receipt_payload(
    *,
    sale: Sale,
    items: list[SaleItem],
    payments: list[SalePayment],
    brand: str,
    cashier_name: str | None,
    receipt_no: str,
) -> dict:
    return {
        "brand": brand,
        "sale_no": sale.sale_no,
        "receipt_no": receipt_no,
        "language": sale.language,
        "created_at": to_utc_z(sale.created_at),
        "cashier": cashier_name,
        "items": [
            {
                "item_id": line.item_id,
                "item_name_snapshot": line.item_name_snapshot,
                "unit_price_amount": line.unit_price_amount,
                "qty": line.qty,
                "line_total_amount": line.line_total_amount,
                "track_stock_snapshot": bool(line.track_stock_snapshot),
            }
            for line in items
        ],
        "totals": {
            "subtotal": sale.subtotal_amount,
            "discount_amount": sale.discount_amount,
            "tax_amount": sale.tax_amount,
            "total": sale.total_amount,
            "paid": sale.paid_amount,
            "change_amount": sale.change_amount,
        },
        "payments": [
            {
                "method": p.method,
                "provider": p.provider,
                "reference": p.reference,
                "amount": p.amount,
            }
            for p in payments
        ],
        "customer_name": sale.customer_name,
        "notes": sale.notes,
    }


def serialize_payload(payload: dict) -> str:
    return json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def get_receipt_by_no(receipt_no: str) -> Receipt:
    receipt = db.session.query(Receipt).filter_by(receipt_no=(receipt_no or "").strip()).first()
    if not receipt:
        raise ReceiptNotFoundError(f"Receipt {receipt_no} not found")
    return receipt
