# backend/kiosk/services/catalog_service.py
"""
Catalog Store

Items are never physically deleted: DELETE deactivates. Stock is never
written directly here; initial stock and stock edits go through the stock
ledger so every change is backed by a movement.

Type rules:
- SERVICE items: track_stock = False, stock_qty = 0 (forced)
- Non-tracked PRODUCT items: stock_qty = 0 (forced)
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CatalogItem
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    validate_payload,
    enforce_rules_catalog_item,
)
from . import audit_service, stock_ledger_service
from .concurrency import begin_write_transaction, lock_for_update

CATALOG_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "item_type",
        "category",
        "name",
        "description",
        "price_amount",
        "cost_amount",
        "track_stock",
        "stock_qty",
        "is_active",
    },
    required_on_create={"name", "category"},
    error_codes={
        "name": "NAME_REQUIRED",
        "category": "CATEGORY_REQUIRED",
        "price_amount": "PRICE_INVALID",
        "cost_amount": "COST_INVALID",
        "stock_qty": "STOCK_INVALID",
        "item_type": "TYPE_INVALID",
        "sku": "SKU_INVALID",
    },
)

# Fields compared for UPDATE_ITEM audit metadata
AUDITED_FIELDS = (
    "sku",
    "item_type",
    "category",
    "name",
    "description",
    "price_amount",
    "cost_amount",
    "track_stock",
    "stock_qty",
    "is_active",
)


class CatalogError(Exception):
    code = "CATALOG_ERROR"
    http_status = 400

    def __init__(self, message: str | None = None, code: str | None = None, **details):
        super().__init__(message or code or self.code)
        if code:
            self.code = code
        self.details = details


class CatalogItemNotFound(CatalogError):
    code = "ITEM_NOT_FOUND"
    http_status = 404


class DuplicateSku(CatalogError):
    code = "SKU_EXISTS"
    http_status = 409


def _validate(payload: dict, *, partial: bool) -> dict:
    try:
        patch = validate_payload(
            model=CatalogItem,
            payload=payload,
            policy=CATALOG_ITEM_POLICY,
            partial=partial,
        )
        enforce_rules_catalog_item(patch)
    except ValidationError as exc:
        raise CatalogError(str(exc), code=exc.code, field=exc.field)
    return patch


def _ensure_sku_free(sku: str | None, exclude_id: int | None = None) -> None:
    if not sku:
        return
    query = db.session.query(CatalogItem.id).filter(CatalogItem.sku == sku)
    if exclude_id is not None:
        query = query.filter(CatalogItem.id != exclude_id)
    if query.first() is not None:
        raise DuplicateSku(f"SKU {sku} already exists", sku=sku)


def _snapshot(item: CatalogItem) -> dict:
    return {key: getattr(item, key) for key in AUDITED_FIELDS}


def list_items(include_inactive: bool = False) -> list[CatalogItem]:
    query = db.session.query(CatalogItem)
    if not include_inactive:
        query = query.filter(CatalogItem.is_active.is_(True))
    return query.order_by(CatalogItem.category.asc(), CatalogItem.name.asc(), CatalogItem.id.asc()).all()


def get_item(item_id: int) -> CatalogItem:
    item = db.session.get(CatalogItem, item_id)
    if item is None:
        raise CatalogItemNotFound("Item not found", item_id=item_id)
    return item


def create_item(payload: dict, *, actor_id: int | None, actor_name: str | None) -> CatalogItem:
    """
    Create a catalog item. Initial stock is recorded as an INITIAL movement.

    Raises CatalogError (NAME_REQUIRED, CATEGORY_REQUIRED, PRICE_INVALID,
    STOCK_INVALID...) or DuplicateSku.
    """
    patch = _validate(payload, partial=False)

    item_type = patch.get("item_type") or "PRODUCT"
    track_stock = bool(patch.get("track_stock", item_type == "PRODUCT")) and item_type == "PRODUCT"
    stock_qty = (patch.get("stock_qty") or 0) if track_stock else 0

    _ensure_sku_free(patch.get("sku"))

    item = CatalogItem(
        sku=patch.get("sku"),
        item_type=item_type,
        category=patch["category"],
        name=patch["name"],
        description=patch.get("description"),
        price_amount=patch.get("price_amount") or 0,
        cost_amount=patch.get("cost_amount"),
        track_stock=track_stock,
        stock_qty=stock_qty,
        is_active=patch.get("is_active", True) is not False,
    )

    try:
        db.session.add(item)
        db.session.flush()  # ensure item.id exists before the ledger entry
        stock_ledger_service.record_initial_stock(item, actor_id)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if "sku" in str(exc.orig):
            raise DuplicateSku(f"SKU {patch.get('sku')} already exists", sku=patch.get("sku"))
        raise

    audit_service.record(
        actor_id=actor_id,
        actor_name=actor_name,
        action="CREATE_ITEM",
        entity_type="catalog_item",
        entity_id=item.id,
        metadata={
            "name": item.name,
            "item_type": item.item_type,
            "price_amount": item.price_amount,
            "stock_qty": item.stock_qty,
        },
    )
    return item


def update_item(item_id: int, payload: dict, *, actor_id: int | None, actor_name: str | None) -> CatalogItem:
    """
    Partial update. A stock_qty change is written through the ledger as a
    CATALOG_EDIT movement; switching an item to SERVICE or non-tracked
    zeroes its stock the same way.
    """
    patch = _validate(payload, partial=True)

    try:
        begin_write_transaction()
        item = lock_for_update(db.session.query(CatalogItem).filter_by(id=item_id)).populate_existing().first()
        if item is None:
            raise CatalogItemNotFound("Item not found", item_id=item_id)

        before = _snapshot(item)

        if "sku" in patch:
            _ensure_sku_free(patch["sku"], exclude_id=item.id)

        item_type = patch.get("item_type", item.item_type)
        track_stock = bool(patch.get("track_stock", item.track_stock)) and item_type == "PRODUCT"
        target_stock = patch.get("stock_qty", item.stock_qty) if track_stock else 0
        if target_stock is None:
            raise CatalogError("stock_qty cannot be null", code="STOCK_INVALID", field="stock_qty")

        stock_ledger_service.record_catalog_correction(item, target_stock, actor_id)

        for key, value in patch.items():
            if key in ("stock_qty", "track_stock", "item_type"):
                continue
            if key == "price_amount" and value is None:
                raise CatalogError("price_amount cannot be null", code="PRICE_INVALID", field=key)
            setattr(item, key, value)
        item.item_type = item_type
        item.track_stock = track_stock

        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if "sku" in str(exc.orig):
            raise DuplicateSku(f"SKU {patch.get('sku')} already exists", sku=patch.get("sku"))
        raise
    except (CatalogError, stock_ledger_service.StockLedgerError):
        db.session.rollback()
        raise

    after = _snapshot(item)
    changed = [key for key in AUDITED_FIELDS if before[key] != after[key]]
    if changed:
        audit_service.record(
            actor_id=actor_id,
            actor_name=actor_name,
            action="UPDATE_ITEM",
            entity_type="catalog_item",
            entity_id=item.id,
            metadata={
                "before": {key: before[key] for key in changed},
                "after": {key: after[key] for key in changed},
            },
        )
    return item


def deactivate_item(item_id: int, *, actor_id: int | None, actor_name: str | None) -> CatalogItem:
    """Soft delete: is_active = False. Sales history keeps referencing the row."""
    item = get_item(item_id)
    was_active = item.is_active
    item.is_active = False
    db.session.commit()

    if was_active:
        audit_service.record(
            actor_id=actor_id,
            actor_name=actor_name,
            action="DEACTIVATE_ITEM",
            entity_type="catalog_item",
            entity_id=item.id,
            metadata={"name": item.name},
        )
    return item


DEFAULT_SERVICES = (
    "Photocopie",
    "Saisie de documents",
    "Impression noir et couleur",
    "Scanner",
    "Mise à jour WhatsApp sur téléphone",
    "Demande passeport en ligne",
    "Demande casier judiciaire en ligne",
    "Demande duplicata de nationalité en ligne",
    "Demande de prêt en ligne",
)
DEFAULT_SERVICE_CATEGORY = "IT_SERVICE"


def ensure_default_services() -> int:
    """
    Seed the kiosk's standard IT services (price 0, priced at the counter
    by editing the item). Existing names are left untouched.
    """
    existing = {
        name
        for (name,) in db.session.query(CatalogItem.name)
        .filter(CatalogItem.item_type == "SERVICE")
        .all()
    }

    created = 0
    for name in DEFAULT_SERVICES:
        if name in existing:
            continue
        db.session.add(CatalogItem(
            item_type="SERVICE",
            category=DEFAULT_SERVICE_CATEGORY,
            name=name,
            price_amount=0,
            track_stock=False,
            stock_qty=0,
            is_active=True,
        ))
        created += 1

    db.session.commit()
    return created
