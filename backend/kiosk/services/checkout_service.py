# Overview: Service-layer operations for checkout; encapsulates business logic and database work.

"""
Checkout Engine Invariants (authoritative)

- One call produces exactly one Sale, or nothing at all.
- Prices come from the catalog row read inside the write transaction,
  never from the client.
- Line checks run in submitted order (exists, active, qty, stock); the
  first failing line decides the error. Quantities for an item repeated on
  several lines are summed before the stock ceiling is applied.
- Stock-tracked decrements go through the stock ledger's conditional
  update, so two checkouts for the last unit can never both succeed.
- Sale, lines, payments, stock movements and the receipt commit together.
  CHECKOUT_SALE is audited after commit, on its own.

Settlement:
- status: PAID if paid >= total, PARTIAL if 0 < paid < total, else DRAFT
- change = paid - total only when overpaid and at least one payment is CASH

Transaction bounds:
- SQLite: BEGIN IMMEDIATE, writers queue on the DB lock (busy timeout).
- Others: SELECT ... FOR UPDATE on the catalog rows, statement_timeout.
- Lock errors and document number collisions are retried with backoff
  until CHECKOUT_TIMEOUT_SECONDS has elapsed.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from ..extensions import db
from ..models import CatalogItem, Sale, SaleItem, SalePayment, Receipt
from ..models.sales import PAYMENT_METHODS
from ..validation import parse_integral_number, parse_strict_int, ValidationError
from . import audit_service, receipt_service
from .concurrency import (
    Deadline,
    TRANSIENT_ERRORS,
    begin_write_transaction,
    lock_for_update,
    run_with_retry,
)
from .numbering_service import allocate_unique_number, NumberAllocationError
from .stock_ledger_service import record_sale_consumption, InsufficientStockError
from kiosk.time_utils import utcnow

SUPPORTED_LANGUAGES = ("en", "fr")


class CheckoutError(Exception):
    code = "CHECKOUT_ERROR"
    http_status = 400

    def __init__(self, message: str | None = None, **details):
        super().__init__(message or self.code)
        self.details = details


class EmptyCart(CheckoutError):
    code = "EMPTY_CART"
    http_status = 400


class InvalidQuantity(CheckoutError):
    code = "QTY_INVALID"
    http_status = 400


class InvalidPayment(CheckoutError):
    code = "PAYMENT_INVALID"
    http_status = 400


class ItemNotFound(CheckoutError):
    code = "ITEM_NOT_FOUND"
    http_status = 404


class ItemInactive(CheckoutError):
    code = "ITEM_INACTIVE"
    http_status = 409


class OutOfStock(CheckoutError):
    code = "OUT_OF_STOCK"
    http_status = 409


class CheckoutFailed(CheckoutError):
    """Persistence failure; nothing was committed, safe to retry."""
    code = "CHECKOUT_FAILED"
    http_status = 503


class CheckoutTimeout(CheckoutFailed):
    code = "CHECKOUT_TIMEOUT"
    http_status = 503


class _NumberCollision(Exception):
    """sale_no / receipt_no taken between allocation and commit."""


@dataclass(frozen=True)
class AcceptedPayment:
    method: str
    amount: int
    provider: str | None = None
    reference: str | None = None


@dataclass(frozen=True)
class PricedLine:
    item_id: int
    name: str
    unit_price: int
    qty: int
    track_stock: bool

    @property
    def line_total(self) -> int:
        return self.unit_price * self.qty


@dataclass
class CheckoutResult:
    sale_id: int
    sale_no: str
    receipt: dict
    status: str = "DRAFT"
    total_amount: int = 0
    paid_amount: int = 0
    change_amount: int = 0
    receipt_no: str | None = None
    dropped_payments: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "sale_id": self.sale_id,
            "sale_no": self.sale_no,
            "receipt": self.receipt,
        }


def normalize_language(language: str | None) -> str:
    language = (language or "").strip().lower()
    if language in SUPPORTED_LANGUAGES:
        return language
    return current_app.config.get("DEFAULT_LANGUAGE", "fr")


def _clean_text(value, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    return value[:max_length] if max_length else value


def filter_payments(payments, *, strict: bool) -> tuple[list[AcceptedPayment], list[int]]:
    """
    Keep payment entries with a known method and a positive integer amount.

    Lenient (default): malformed entries are dropped and their indexes returned.
    Strict: the first malformed entry raises InvalidPayment.
    """
    accepted: list[AcceptedPayment] = []
    dropped: list[int] = []

    for index, raw in enumerate(payments or []):
        raw = raw if isinstance(raw, dict) else {}
        method = str(raw.get("method") or "").strip().upper()

        problem = None
        amount = None
        try:
            amount = parse_integral_number(raw.get("amount"), "amount")
        except ValidationError:
            problem = "amount is not an integral number"
        if problem is None and amount <= 0:
            problem = "amount must be > 0"
        if problem is None and method not in PAYMENT_METHODS:
            problem = f"unknown method {method!r}"

        if problem is not None:
            if strict:
                raise InvalidPayment(f"Payment #{index + 1}: {problem}", index=index)
            current_app.logger.info("Checkout: dropping payment entry #%d (%s)", index + 1, problem)
            dropped.append(index)
            continue

        accepted.append(
            AcceptedPayment(
                method=method,
                amount=amount,
                provider=_clean_text(raw.get("provider"), 64),
                reference=_clean_text(raw.get("reference"), 128),
            )
        )

    return accepted, dropped


def compute_settlement(total: int, payments: list[AcceptedPayment]) -> tuple[str, int, int]:
    """Returns (status, paid, change)."""
    paid = sum(p.amount for p in payments)
    if paid >= total:
        status = "PAID"
    elif paid > 0:
        status = "PARTIAL"
    else:
        status = "DRAFT"

    has_cash = any(p.method == "CASH" for p in payments)
    change = paid - total if paid > total and has_cash else 0
    return status, paid, change


def _coerce_item_id(raw) -> int | None:
    try:
        return parse_strict_int(raw, "item_id")
    except ValidationError:
        return None


def _price_lines(cart: list[dict]) -> list[PricedLine]:
    """
    Read the referenced catalog rows (locked) and validate every line in order.
    """
    ids = {item_id for item_id in (_coerce_item_id(line.get("item_id")) for line in cart) if item_id is not None}

    rows = []
    if ids:
        rows = (
            lock_for_update(db.session.query(CatalogItem).filter(CatalogItem.id.in_(ids)))
            .populate_existing()
            .all()
        )
    by_id = {row.id: row for row in rows}

    requested: dict[int, int] = defaultdict(int)
    priced: list[PricedLine] = []

    for position, line in enumerate(cart, start=1):
        item_id = _coerce_item_id(line.get("item_id"))
        row = by_id.get(item_id) if item_id is not None else None
        if row is None:
            raise ItemNotFound(f"Line {position}: item not found", line=position, item_id=line.get("item_id"))
        if not row.is_active:
            raise ItemInactive(f"Line {position}: item is inactive", line=position, item_id=row.id)

        try:
            qty = parse_integral_number(line.get("qty"), "qty")
        except ValidationError:
            raise InvalidQuantity(f"Line {position}: qty must be a positive integer", line=position, item_id=row.id)
        if qty <= 0:
            raise InvalidQuantity(f"Line {position}: qty must be a positive integer", line=position, item_id=row.id)

        tracked = row.is_stock_tracked
        if tracked:
            requested[row.id] += qty
            if requested[row.id] > row.stock_qty:
                raise OutOfStock(
                    f"Line {position}: only {row.stock_qty} in stock",
                    line=position,
                    item_id=row.id,
                    available=row.stock_qty,
                )

        priced.append(
            PricedLine(
                item_id=row.id,
                name=row.name,
                unit_price=row.price_amount,
                qty=qty,
                track_stock=tracked,
            )
        )

    return priced


def _is_number_collision(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return "sale_no" in message or "receipt_no" in message


def _is_lock_timeout(exc: OperationalError) -> bool:
    message = str(exc.orig).lower()
    return "database is locked" in message or "statement timeout" in message or "lock timeout" in message


def checkout(
    *,
    cart,
    payments,
    actor_id: int | None,
    actor_name: str | None,
    customer_name: str | None = None,
    notes: str | None = None,
    language: str | None = None,
) -> CheckoutResult:
    """
    Convert a cart into a committed Sale with lines, payments, stock
    movements and a receipt snapshot.

    cart: [{"item_id": int, "qty": int}]
    payments: [{"method", "provider"?, "reference"?, "amount"}]

    Raises a CheckoutError subclass; nothing is persisted when it does.
    """
    config = current_app.config

    cart = [line if isinstance(line, dict) else {} for line in (cart or [])]
    if not cart:
        raise EmptyCart("Cart is empty")

    accepted, dropped = filter_payments(payments, strict=bool(config.get("STRICT_PAYMENTS")))
    language = normalize_language(language)
    customer_name = _clean_text(customer_name, 255)
    notes = _clean_text(notes)

    deadline = Deadline(float(config.get("CHECKOUT_TIMEOUT_SECONDS", 10)))
    number_attempts = int(config.get("NUMBER_ALLOCATION_ATTEMPTS", 5))

    def _checkout_once():
        if deadline.expired():
            raise CheckoutTimeout("Checkout deadline exceeded")

        begin_write_transaction(deadline.remaining())
        priced = _price_lines(cart)

        subtotal = sum(line.line_total for line in priced)
        discount_amount = 0
        tax_amount = 0
        total = subtotal - discount_amount + tax_amount
        status, paid, change = compute_settlement(total, accepted)

        sale_no = allocate_unique_number(
            Sale.sale_no, config.get("SALE_NO_PREFIX", "ADK"), attempts=number_attempts
        )
        receipt_no = allocate_unique_number(
            Receipt.receipt_no, config.get("RECEIPT_NO_PREFIX", "R"), attempts=number_attempts
        )

        now = utcnow()
        sale = Sale(
            sale_no=sale_no,
            status=status,
            subtotal_amount=subtotal,
            discount_amount=discount_amount,
            tax_amount=tax_amount,
            total_amount=total,
            paid_amount=paid,
            change_amount=change,
            customer_name=customer_name,
            notes=notes,
            language=language,
            created_by=actor_id,
            created_at=now,
        )
        db.session.add(sale)
        db.session.flush()  # ensure sale.id exists before lines and movements

        sale_items = []
        for line in priced:
            sale_item = SaleItem(
                sale_id=sale.id,
                item_id=line.item_id,
                item_name_snapshot=line.name,
                unit_price_amount=line.unit_price,
                qty=line.qty,
                line_total_amount=line.line_total,
                track_stock_snapshot=line.track_stock,
            )
            db.session.add(sale_item)
            sale_items.append(sale_item)

            if line.track_stock:
                record_sale_consumption(
                    item_id=line.item_id,
                    qty=line.qty,
                    sale_id=sale.id,
                    actor_id=actor_id,
                )

        sale_payments = []
        for p in accepted:
            sale_payment = SalePayment(
                sale_id=sale.id,
                method=p.method,
                provider=p.provider,
                reference=p.reference,
                amount=p.amount,
                received_by=actor_id,
                created_at=now,
            )
            db.session.add(sale_payment)
            sale_payments.append(sale_payment)

        payload = receipt_service.build_receipt_payload(
            sale=sale,
            items=sale_items,
            payments=sale_payments,
            brand=config.get("RECEIPT_BRAND", "ALLIANCE DigiKiosk"),
            cashier_name=actor_name,
            receipt_no=receipt_no,
        )
        db.session.add(
            Receipt(
                sale_id=sale.id,
                receipt_no=receipt_no,
                payload_json=receipt_service.serialize_payload(payload),
                created_at=now,
            )
        )

        sale_id = sale.id
        db.session.commit()

        return CheckoutResult(
            sale_id=sale_id,
            sale_no=sale_no,
            receipt=payload,
            status=status,
            total_amount=total,
            paid_amount=paid,
            change_amount=change,
            receipt_no=receipt_no,
            dropped_payments=dropped,
        )

    def _op():
        try:
            return _checkout_once()
        except IntegrityError as exc:
            db.session.rollback()
            if _is_number_collision(exc):
                raise _NumberCollision(str(exc.orig)) from exc
            raise

    def _log_retry(attempt, exc):
        current_app.logger.warning("Checkout retry %d after %s: %s", attempt, type(exc).__name__, exc)

    try:
        result = run_with_retry(
            _op,
            attempts=int(config.get("CHECKOUT_RETRY_ATTEMPTS", 3)),
            backoff_base=0.05,
            retry_on=TRANSIENT_ERRORS + (_NumberCollision,),
            deadline=deadline,
            on_retry=_log_retry,
        )
    except CheckoutError:
        db.session.rollback()
        raise
    except InsufficientStockError as exc:
        db.session.rollback()
        current_app.logger.info("Checkout lost stock race: %s", exc)
        raise OutOfStock(str(exc), **exc.details) from exc
    except OperationalError as exc:
        db.session.rollback()
        if deadline.expired() or _is_lock_timeout(exc):
            current_app.logger.warning("Checkout timed out: %s", exc)
            raise CheckoutTimeout("Checkout timed out waiting for the database") from exc
        current_app.logger.exception("Checkout failed")
        raise CheckoutFailed("Checkout failed") from exc
    except (SQLAlchemyError, _NumberCollision, NumberAllocationError) as exc:
        db.session.rollback()
        current_app.logger.exception("Checkout failed")
        raise CheckoutFailed("Checkout failed") from exc

    audit_service.record(
        actor_id=actor_id,
        actor_name=actor_name,
        action="CHECKOUT_SALE",
        entity_type="sale",
        entity_id=result.sale_id,
        metadata={
            "sale_no": result.sale_no,
            "total_amount": result.total_amount,
            "paid_amount": result.paid_amount,
            "status": result.status,
        },
    )

    return result
