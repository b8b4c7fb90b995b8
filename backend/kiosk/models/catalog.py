from __future__ import annotations

from ..extensions import db
from kiosk.time_utils import to_utc_z

ITEM_TYPES = ("PRODUCT", "SERVICE")


class CatalogItem(db.Model):
    """
    Sellable item master data (phones, accessories, IT services...).

    STOCK RULES:
    - SERVICE items never track stock and hold stock_qty = 0
    - Non-tracked products also hold stock_qty = 0
    - stock_qty is only mutated through the stock ledger (checkout, manual
      adjustment, initial stock, catalog correction), so that
      SUM(inventory_movements.delta) == stock_qty for every item

    Items are never physically deleted once created: DELETE deactivates.
    """
    __tablename__ = "catalog_items"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_catalog_items_sku"),
        db.Index("ix_catalog_items_category_name", "category", "name"),
        db.Index("ix_catalog_items_active", "is_active"),
        db.CheckConstraint("item_type IN ('PRODUCT', 'SERVICE')", name="ck_catalog_items_type"),
        db.CheckConstraint("price_amount >= 0", name="ck_catalog_items_price_nonneg"),
        db.CheckConstraint("cost_amount IS NULL OR cost_amount >= 0", name="ck_catalog_items_cost_nonneg"),
        db.CheckConstraint("stock_qty >= 0", name="ck_catalog_items_stock_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Optional; unique when present (NULLs do not collide)
    sku = db.Column(db.String(64), nullable=True)

    item_type = db.Column(db.String(16), nullable=False, default="PRODUCT")
    category = db.Column(db.String(64), nullable=False, index=True)  # PHONE, ACCESSORY, IT_SERVICE, SIM...
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Smallest currency unit
    price_amount = db.Column(db.BigInteger, nullable=False, default=0)
    cost_amount = db.Column(db.BigInteger, nullable=True)

    track_stock = db.Column(db.Boolean, nullable=False, default=False)
    stock_qty = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_stock_tracked(self) -> bool:
        return self.item_type == "PRODUCT" and bool(self.track_stock)

    def __repr__(self) -> str:
        return f"<CatalogItem id={self.id} sku={self.sku!r} name={self.name!r} type={self.item_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "item_type": self.item_type,
            "category": self.category,
            "name": self.name,
            "description": self.description,
            "price_amount": self.price_amount,
            "cost_amount": self.cost_amount,
            "track_stock": self.track_stock,
            "stock_qty": self.stock_qty,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
