from __future__ import annotations

import json

from ..extensions import db
from kiosk.time_utils import to_utc_z

SALE_STATUSES = ("DRAFT", "PARTIAL", "PAID", "VOID")
PAYMENT_METHODS = ("CASH", "MOBILE_MONEY", "CARD")


class Sale(db.Model):
    """
    Sale document produced by one checkout call.

    Created exactly once and immutable afterwards. VOID is reserved; no
    operation currently produces it.

    TOTALS (smallest currency unit):
    total_amount = subtotal_amount - discount_amount + tax_amount
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("sale_no", name="uq_sales_sale_no"),
        db.Index("ix_sales_created_at", "created_at"),
        db.Index("ix_sales_status_created", "status", "created_at"),
        db.CheckConstraint("status IN ('DRAFT', 'PARTIAL', 'PAID', 'VOID')", name="ck_sales_status"),
        db.CheckConstraint(
            "subtotal_amount >= 0 AND discount_amount >= 0 AND tax_amount >= 0 "
            "AND total_amount >= 0 AND paid_amount >= 0 AND change_amount >= 0",
            name="ck_sales_amounts_nonneg",
        ),
        db.CheckConstraint(
            "total_amount = subtotal_amount - discount_amount + tax_amount",
            name="ck_sales_total",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "ADK-2026-004211")
    sale_no = db.Column(db.String(32), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="DRAFT")

    subtotal_amount = db.Column(db.BigInteger, nullable=False, default=0)
    discount_amount = db.Column(db.BigInteger, nullable=False, default=0)
    tax_amount = db.Column(db.BigInteger, nullable=False, default=0)
    total_amount = db.Column(db.BigInteger, nullable=False, default=0)
    paid_amount = db.Column(db.BigInteger, nullable=False, default=0)
    change_amount = db.Column(db.BigInteger, nullable=False, default=0)

    customer_name = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    language = db.Column(db.String(8), nullable=False, default="fr")

    created_by = db.Column(db.Integer, db.ForeignKey("staff_users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )
    payments = db.relationship(
        "SalePayment",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SalePayment.id",
    )
    receipt = db.relationship("Receipt", backref="sale", uselist=False, lazy=True, cascade="all, delete-orphan")
    creator = db.relationship("StaffUser", foreign_keys=[created_by])

    def __repr__(self) -> str:
        return f"<Sale id={self.id} sale_no={self.sale_no!r} status={self.status} total={self.total_amount}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_no": self.sale_no,
            "status": self.status,
            "subtotal_amount": self.subtotal_amount,
            "discount_amount": self.discount_amount,
            "tax_amount": self.tax_amount,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "change_amount": self.change_amount,
            "customer_name": self.customer_name,
            "notes": self.notes,
            "language": self.language,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.items]
            data["payments"] = [p.to_dict() for p in self.payments]
            data["receipt_no"] = self.receipt.receipt_no if self.receipt else None
        return data


class SaleItem(db.Model):
    """Line snapshot: name, price and stock tracking as they were at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("qty > 0", name="ck_sale_items_qty_positive"),
        db.CheckConstraint("unit_price_amount >= 0", name="ck_sale_items_price_nonneg"),
        db.CheckConstraint("line_total_amount = unit_price_amount * qty", name="ck_sale_items_line_total"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("catalog_items.id"), nullable=False, index=True)

    item_name_snapshot = db.Column(db.String(255), nullable=False)
    unit_price_amount = db.Column(db.BigInteger, nullable=False)
    qty = db.Column(db.BigInteger, nullable=False)
    line_total_amount = db.Column(db.BigInteger, nullable=False)
    track_stock_snapshot = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_id": self.item_id,
            "item_name_snapshot": self.item_name_snapshot,
            "unit_price_amount": self.unit_price_amount,
            "qty": self.qty,
            "line_total_amount": self.line_total_amount,
            "track_stock_snapshot": self.track_stock_snapshot,
        }


class SalePayment(db.Model):
    """
    Payment received against a sale.

    METHODS: CASH, MOBILE_MONEY, CARD. Provider/reference are free text
    (e.g. operator name and transaction id for mobile money).
    Sum of amounts for a sale equals Sale.paid_amount.
    """
    __tablename__ = "sale_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_sale_payments_amount_positive"),
        db.CheckConstraint("method IN ('CASH', 'MOBILE_MONEY', 'CARD')", name="ck_sale_payments_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    method = db.Column(db.String(16), nullable=False)
    provider = db.Column(db.String(64), nullable=True)
    reference = db.Column(db.String(128), nullable=True)
    amount = db.Column(db.BigInteger, nullable=False)

    received_by = db.Column(db.Integer, db.ForeignKey("staff_users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method,
            "provider": self.provider,
            "reference": self.reference,
            "amount": self.amount,
            "received_by": self.received_by,
            "created_at": to_utc_z(self.created_at),
        }


class Receipt(db.Model):
    """
    Immutable receipt snapshot for a committed sale.

    payload_json is serialized once (sorted keys) at checkout and never
    rewritten, so re-fetching returns the same bytes after catalog edits.
    """
    __tablename__ = "receipts"
    __table_args__ = (
        db.UniqueConstraint("sale_id", name="uq_receipts_sale_id"),
        db.UniqueConstraint("receipt_no", name="uq_receipts_receipt_no"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    receipt_no = db.Column(db.String(32), nullable=False)
    payload_json = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def payload(self) -> dict:
        return json.loads(self.payload_json)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "receipt_no": self.receipt_no,
            "payload": self.payload,
            "created_at": to_utc_z(self.created_at),
        }
