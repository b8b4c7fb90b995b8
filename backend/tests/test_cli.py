"""
CLI command tests (flask system / staff / perms / inventory).
"""

from kiosk.extensions import db
from kiosk.models import CatalogItem, StaffUser
from kiosk.services.catalog_service import DEFAULT_SERVICES


def test_system_init_is_idempotent(app):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    second = runner.invoke(args=["system", "init"])

    assert first.exit_code == 0, first.output
    assert "Created root staff" in first.output
    assert "Root staff already exists" in second.output

    db.session.expire_all()
    assert db.session.query(StaffUser).filter_by(is_root=True).count() == 1
    services = db.session.query(CatalogItem).filter_by(item_type="SERVICE").all()
    assert sorted(s.name for s in services) == sorted(DEFAULT_SERVICES)
    assert all(s.category == "IT_SERVICE" and s.stock_qty == 0 for s in services)


def test_staff_create_and_list(app):
    runner = app.test_cli_runner()

    created = runner.invoke(args=["staff", "create", "--name", "Fatou", "--pin", "fa-123456", "--role", "cashier"])
    duplicate = runner.invoke(args=["staff", "create", "--name", "Other", "--pin", "fa-123456", "--role", "VIEWER"])
    listing = runner.invoke(args=["staff", "list"])

    assert created.exit_code == 0, created.output
    assert duplicate.exit_code == 1
    assert "PIN already in use" in duplicate.output
    assert "PIN_IN_USE" in duplicate.output
    assert "Fatou" in listing.output
    assert "CASHIER" in listing.output


def test_staff_create_rejects_bad_pin(app):
    result = app.test_cli_runner().invoke(
        args=["staff", "create", "--name", "Fatou", "--pin", "1234", "--role", "CASHIER"]
    )
    assert result.exit_code == 1
    assert "INVALID_PIN_FORMAT" in result.output


def test_perms_list_for_role(app):
    result = app.test_cli_runner().invoke(args=["perms", "list", "--role", "cashier"])

    assert result.exit_code == 0
    assert "POS_CHECKOUT" in result.output
    assert "AUDIT_VIEW" not in result.output
    assert "Total: 4 permissions" in result.output


def test_inventory_reconcile(app, charger):
    runner = app.test_cli_runner()

    clean = runner.invoke(args=["inventory", "reconcile"])
    assert clean.exit_code == 0
    assert "ledger matches stock" in clean.output

    db.session.query(CatalogItem).filter_by(id=charger.id).update({"stock_qty": 3})
    db.session.commit()

    drifted = runner.invoke(args=["inventory", "reconcile", "--item-id", str(charger.id)])
    assert drifted.exit_code == 1
    assert "out of balance" in drifted.output
