# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

"""
Stock Ledger Invariants (authoritative)

- inventory_movements is append-only: rows are never updated or deleted.
- Every change to catalog_items.stock_qty is written together with exactly
  one movement in the same DB transaction, so for every item
  SUM(delta) == stock_qty (reconcile() checks this).
- Decrements use a conditional UPDATE (stock_qty >= qty) verified by the
  affected-row count; a lost race never drives stock negative.
- Only stock-tracked PRODUCT items accept sale consumption and manual
  adjustments. Services never hold stock.

Reasons / ref types:
- SALE / SALE (ref_id = sale id)
- ADJUSTMENT or caller-supplied reason / MANUAL
- INITIAL_STOCK / INITIAL (ref_id = item id)
- CATALOG_EDIT / CATALOG (ref_id = item id)
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, update

from ..extensions import db
from ..models import CatalogItem, InventoryMovement
from ..validation import parse_strict_int, ValidationError
from . import audit_service
from .concurrency import lock_for_update, run_with_retry, begin_write_transaction
from kiosk.time_utils import utcnow

MOVEMENT_LIST_LIMIT = 200
REASON_MAX_LENGTH = 128


class StockLedgerError(Exception):
    code = "STOCK_LEDGER_ERROR"
    http_status = 400

    def __init__(self, message: str | None = None, **details):
        super().__init__(message or self.code)
        self.details = details


class InvalidDeltaError(StockLedgerError):
    code = "DELTA_INVALID"
    http_status = 400


class ItemNotFoundError(StockLedgerError):
    code = "ITEM_NOT_FOUND"
    http_status = 404


class StockNotTrackedError(StockLedgerError):
    code = "STOCK_NOT_TRACKED"
    http_status = 400


class NegativeStockError(StockLedgerError):
    code = "STOCK_NEGATIVE"
    http_status = 409


class InsufficientStockError(StockLedgerError):
    """Conditional decrement matched no row: another writer took the stock."""
    code = "OUT_OF_STOCK"
    http_status = 409


def _apply_delta(item_id: int, delta: int) -> bool:
    """
    Conditional stock update. Decrements only match while stock_qty >= -delta.

    Returns True when exactly one row was updated.
    """
    stmt = update(CatalogItem).where(CatalogItem.id == item_id)
    if delta < 0:
        stmt = stmt.where(CatalogItem.stock_qty >= -delta)
    stmt = stmt.values(stock_qty=CatalogItem.stock_qty + delta, updated_at=utcnow())

    result = db.session.execute(stmt.execution_options(synchronize_session=False))

    # Keep any loaded instance in step with the row
    item = db.session.identity_map.get(db.session.identity_key(CatalogItem, item_id))
    if item is not None:
        db.session.expire(item, ["stock_qty", "updated_at"])

    return result.rowcount == 1


def _append_movement(
    *,
    item_id: int,
    delta: int,
    reason: str,
    ref_type: str,
    ref_id: int | None,
    actor_id: int | None,
) -> InventoryMovement:
    movement = InventoryMovement(
        item_id=item_id,
        delta=delta,
        reason=reason,
        ref_type=ref_type,
        ref_id=ref_id,
        created_by=actor_id,
        created_at=utcnow(),
    )
    db.session.add(movement)
    return movement


def record_sale_consumption(*, item_id: int, qty: int, sale_id: int, actor_id: int | None) -> InventoryMovement:
    """
    Consume stock for one sale line. Runs in the caller's transaction (no commit).

    Raises InsufficientStockError when the conditional decrement matches no row.
    """
    if qty <= 0:
        raise InvalidDeltaError("qty must be > 0")

    if not _apply_delta(item_id, -qty):
        raise InsufficientStockError(f"Insufficient stock for item {item_id}", item_id=item_id)

    return _append_movement(
        item_id=item_id,
        delta=-qty,
        reason="SALE",
        ref_type="SALE",
        ref_id=sale_id,
        actor_id=actor_id,
    )


def record_initial_stock(item: CatalogItem, actor_id: int | None) -> InventoryMovement | None:
    """
    Back the stock an item was created with by an INITIAL movement.

    The item row already carries stock_qty; only the movement is written.
    Runs in the caller's transaction (item must be flushed).
    """
    if not item.stock_qty:
        return None
    return _append_movement(
        item_id=item.id,
        delta=item.stock_qty,
        reason="INITIAL_STOCK",
        ref_type="INITIAL",
        ref_id=item.id,
        actor_id=actor_id,
    )


def record_catalog_correction(item: CatalogItem, new_qty: int, actor_id: int | None) -> InventoryMovement | None:
    """
    Set stock to new_qty from a catalog edit, through the ledger.

    Runs in the caller's transaction. Returns None when nothing changes.
    """
    if new_qty < 0:
        raise NegativeStockError("stock_qty must be >= 0")

    delta = new_qty - (item.stock_qty or 0)
    if delta == 0:
        return None

    if not _apply_delta(item.id, delta):
        raise InsufficientStockError(f"Stock changed concurrently for item {item.id}", item_id=item.id)

    return _append_movement(
        item_id=item.id,
        delta=delta,
        reason="CATALOG_EDIT",
        ref_type="CATALOG",
        ref_id=item.id,
        actor_id=actor_id,
    )


def _normalize_reason(reason: str | None) -> str:
    reason = (reason or "").strip()
    if not reason:
        return "ADJUSTMENT"
    return reason[:REASON_MAX_LENGTH]


def record_manual_adjustment(
    *,
    item_id,
    delta,
    reason: str | None,
    actor_id: int | None,
    actor_name: str | None = None,
) -> dict:
    """
    Manual stock adjustment (restock, shrink, correction).

    Stock update and movement are committed together; ADJUST_STOCK is
    audited after commit.

    Raises DELTA_INVALID, ITEM_NOT_FOUND, STOCK_NOT_TRACKED, STOCK_NEGATIVE.
    """
    try:
        delta = parse_strict_int(delta, "delta", InvalidDeltaError.code)
    except ValidationError as exc:
        raise InvalidDeltaError(str(exc))
    if delta == 0:
        raise InvalidDeltaError("delta must be a non-zero integer")

    try:
        item_id = parse_strict_int(item_id, "item_id", ItemNotFoundError.code)
    except ValidationError:
        raise ItemNotFoundError("Item not found")

    reason = _normalize_reason(reason)
    timeout = current_app.config.get("CHECKOUT_TIMEOUT_SECONDS")

    def _op():
        begin_write_transaction(timeout)
        item = lock_for_update(db.session.query(CatalogItem).filter_by(id=item_id)).populate_existing().first()
        if not item:
            raise ItemNotFoundError("Item not found", item_id=item_id)
        if not item.is_stock_tracked:
            raise StockNotTrackedError("Item does not track stock", item_id=item_id)

        before = item.stock_qty
        if before + delta < 0:
            raise NegativeStockError(
                "Adjustment would make stock negative",
                item_id=item_id,
                stock_qty=before,
            )

        if not _apply_delta(item_id, delta):
            raise NegativeStockError("Adjustment would make stock negative", item_id=item_id)

        movement = _append_movement(
            item_id=item_id,
            delta=delta,
            reason=reason,
            ref_type="MANUAL",
            ref_id=None,
            actor_id=actor_id,
        )
        db.session.commit()
        return movement, before

    try:
        movement, before = run_with_retry(
            _op,
            attempts=current_app.config.get("CHECKOUT_RETRY_ATTEMPTS", 3),
        )
    except StockLedgerError:
        db.session.rollback()
        raise

    after = before + delta
    audit_service.record(
        actor_id=actor_id,
        actor_name=actor_name,
        action="ADJUST_STOCK",
        entity_type="catalog_item",
        entity_id=item_id,
        metadata={"delta": delta, "reason": reason, "stock_before": before, "stock_after": after},
    )

    return {
        "item_id": item_id,
        "delta": delta,
        "reason": reason,
        "stock_qty": after,
        "movement": movement.to_dict(),
    }


def list_movements(item_id: int, limit: int = MOVEMENT_LIST_LIMIT) -> list[InventoryMovement]:
    """Movements for one item, newest first."""
    if db.session.get(CatalogItem, item_id) is None:
        raise ItemNotFoundError("Item not found", item_id=item_id)

    return (
        db.session.query(InventoryMovement)
        .filter(InventoryMovement.item_id == item_id)
        .order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .limit(limit)
        .all()
    )


def reconcile(item_id: int | None = None) -> dict:
    """
    Compare SUM(delta) with stock_qty.

    item_id given: that item only (tracked or not). Otherwise every
    stock-tracked item plus any item that still has movements.

    Returns {"checked": n, "ok": bool, "discrepancies": [...]}.
    """
    ledger_sum = (
        db.session.query(
            InventoryMovement.item_id.label("item_id"),
            func.coalesce(func.sum(InventoryMovement.delta), 0).label("ledger_qty"),
        )
        .group_by(InventoryMovement.item_id)
        .subquery()
    )

    query = db.session.query(
        CatalogItem,
        func.coalesce(ledger_sum.c.ledger_qty, 0),
    ).outerjoin(ledger_sum, ledger_sum.c.item_id == CatalogItem.id)

    if item_id is not None:
        query = query.filter(CatalogItem.id == item_id)
        rows = query.all()
        if not rows:
            raise ItemNotFoundError("Item not found", item_id=item_id)
    else:
        query = query.filter(
            db.or_(
                db.and_(CatalogItem.item_type == "PRODUCT", CatalogItem.track_stock.is_(True)),
                ledger_sum.c.item_id.isnot(None),
            )
        )
        rows = query.order_by(CatalogItem.id.asc()).all()

    discrepancies = []
    for item, ledger_qty in rows:
        ledger_qty = int(ledger_qty or 0)
        if ledger_qty != item.stock_qty:
            discrepancies.append({
                "item_id": item.id,
                "name": item.name,
                "stock_qty": item.stock_qty,
                "ledger_qty": ledger_qty,
                "difference": item.stock_qty - ledger_qty,
            })

    if discrepancies:
        current_app.logger.warning("Stock ledger reconciliation found %d discrepancies", len(discrepancies))

    return {
        "checked": len(rows),
        "ok": not discrepancies,
        "discrepancies": discrepancies,
    }
