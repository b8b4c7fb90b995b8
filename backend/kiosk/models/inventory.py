from __future__ import annotations

from ..extensions import db
from kiosk.time_utils import to_utc_z

MOVEMENT_REF_TYPES = ("SALE", "MANUAL", "INITIAL", "CATALOG")


class InventoryMovement(db.Model):
    """
    Append-only stock ledger entry.

    IMMUTABLE: Never update or delete. Every change to
    CatalogItem.stock_qty is backed by exactly one movement, so
    SUM(delta) per item equals its stock_qty.

    reason: SALE, ADJUSTMENT (or a caller-supplied reason), INITIAL_STOCK, CATALOG_EDIT
    ref_type: SALE, MANUAL, INITIAL, CATALOG (ref_id is the Sale id for SALE)
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_inventory_movements_item_created", "item_id", "created_at"),
        db.Index("ix_inventory_movements_ref", "ref_type", "ref_id"),
        db.CheckConstraint("delta <> 0", name="ck_inventory_movements_delta_nonzero"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("catalog_items.id"), nullable=False, index=True)

    delta = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(128), nullable=False)

    ref_type = db.Column(db.String(16), nullable=False)
    ref_id = db.Column(db.Integer, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("staff_users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("CatalogItem", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "delta": self.delta,
            "reason": self.reason,
            "ref_type": self.ref_type,
            "ref_id": self.ref_id,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
