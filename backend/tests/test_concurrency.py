"""
Concurrent checkout tests against a file-backed SQLite database.

Two kiosks race for the last unit: exactly one sale commits, the other
gets OUT_OF_STOCK, and stock never goes negative.
"""

import threading

import pytest

from kiosk import create_app
from kiosk.extensions import db
from kiosk.models import CatalogItem, InventoryMovement, Sale
from kiosk.services import auth_service, checkout_service, permission_service, stock_ledger_service
from kiosk.services.checkout_service import CheckoutError

from conftest import TEST_CONFIG, create_product


@pytest.fixture()
def file_app(tmp_path):
    config = dict(TEST_CONFIG)
    config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{tmp_path / 'kiosk.sqlite3'}"
    app = create_app(config)

    with app.app_context():
        db.create_all()
        permission_service.bootstrap_access_control()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _race(app, staff_id, item_id, qty, contenders):
    barrier = threading.Barrier(contenders)
    outcomes = []
    lock = threading.Lock()

    def _worker():
        with app.app_context():
            barrier.wait()
            try:
                result = checkout_service.checkout(
                    cart=[{"item_id": item_id, "qty": qty}],
                    payments=[{"method": "CASH", "amount": 100000}],
                    actor_id=staff_id,
                    actor_name="kiosk",
                )
                outcome = ("OK", result.sale_id)
            except CheckoutError as exc:
                outcome = (exc.code, None)
            finally:
                db.session.remove()
            with lock:
                outcomes.append(outcome)

    threads = [threading.Thread(target=_worker) for _ in range(contenders)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


class TestConcurrentCheckout:

    def test_last_unit_sold_once(self, file_app):
        staff = auth_service.create_staff("Kiosk One", "ko-111111", "CASHIER")
        item = create_product(name="Samsung A05", price=65000, stock=1, category="PHONE")
        staff_id, item_id = staff.id, item.id

        outcomes = _race(file_app, staff_id, item_id, qty=1, contenders=2)

        codes = sorted(code for code, _ in outcomes)
        assert codes == ["OK", "OUT_OF_STOCK"]

        db.session.expire_all()
        assert db.session.get(CatalogItem, item_id).stock_qty == 0
        assert db.session.query(Sale).count() == 1
        assert db.session.query(InventoryMovement).filter_by(item_id=item_id, ref_type="SALE").count() == 1
        assert stock_ledger_service.reconcile(item_id)["ok"] is True

    def test_parallel_checkouts_never_oversell(self, file_app):
        staff = auth_service.create_staff("Kiosk Two", "kt-222222", "CASHIER")
        item = create_product(name="Ecouteurs", price=3000, stock=5, category="ACCESSORY")
        staff_id, item_id = staff.id, item.id

        outcomes = _race(file_app, staff_id, item_id, qty=2, contenders=4)

        sold = [sale_id for code, sale_id in outcomes if code == "OK"]
        assert len(outcomes) == 4
        assert len(sold) == 2
        assert all(code in ("OK", "OUT_OF_STOCK") for code, _ in outcomes)

        db.session.expire_all()
        assert db.session.get(CatalogItem, item_id).stock_qty == 1
        assert stock_ledger_service.reconcile(item_id)["ok"] is True
