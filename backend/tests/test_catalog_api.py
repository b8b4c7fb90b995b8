"""
Catalog, inventory and audit API tests.
"""

import pytest

from kiosk.extensions import db
from kiosk.models import AuditLogEntry, CatalogItem, InventoryMovement

from conftest import reload


# =============================================================================
# CATALOG
# =============================================================================


class TestCatalogCreate:

    def test_create_product_with_initial_stock(self, client, manager_headers):
        resp = client.post(
            "/api/catalog/items",
            json={
                "sku": "TEC-SPARK10",
                "name": "Tecno Spark 10",
                "category": "phone",
                "price_amount": 85000,
                "cost_amount": 70000,
                "stock_qty": 4,
            },
            headers=manager_headers,
        )

        assert resp.status_code == 201
        item = resp.get_json()
        assert item["item_type"] == "PRODUCT"
        assert item["category"] == "PHONE"
        assert item["track_stock"] is True
        assert item["stock_qty"] == 4

        movement = db.session.query(InventoryMovement).filter_by(item_id=item["id"]).one()
        assert (movement.delta, movement.reason) == (4, "INITIAL_STOCK")
        assert db.session.query(AuditLogEntry).filter_by(action="CREATE_ITEM").count() == 1

    def test_service_never_tracks_stock(self, client, manager_headers):
        resp = client.post(
            "/api/catalog/items",
            json={
                "name": "Impression couleur",
                "category": "IT_SERVICE",
                "item_type": "service",
                "price_amount": 250,
                "track_stock": True,
                "stock_qty": 99,
            },
            headers=manager_headers,
        )

        assert resp.status_code == 201
        item = resp.get_json()
        assert item["item_type"] == "SERVICE"
        assert item["track_stock"] is False
        assert item["stock_qty"] == 0
        assert db.session.query(InventoryMovement).count() == 0

    @pytest.mark.parametrize(
        "payload,code",
        [
            ({"category": "PHONE"}, "NAME_REQUIRED"),
            ({"name": "X"}, "CATEGORY_REQUIRED"),
            ({"name": "X", "category": "PHONE", "price_amount": -1}, "PRICE_INVALID"),
            ({"name": "X", "category": "PHONE", "price_amount": "12.5"}, "PRICE_INVALID"),
            ({"name": "X", "category": "PHONE", "stock_qty": -2}, "STOCK_INVALID"),
            ({"name": "X", "category": "PHONE", "item_type": "BUNDLE"}, "TYPE_INVALID"),
            ({"name": "X", "category": "PHONE", "stock_qty": 1, "id": 5}, "FIELD_NOT_ALLOWED"),
        ],
    )
    def test_validation(self, client, manager_headers, payload, code):
        resp = client.post("/api/catalog/items", json=payload, headers=manager_headers)

        assert resp.status_code == 400
        assert resp.get_json()["error"] == code
        assert db.session.query(CatalogItem).count() == 0

    def test_duplicate_sku(self, client, manager_headers, last_unit):
        resp = client.post(
            "/api/catalog/items",
            json={"sku": "SM-A05", "name": "Autre", "category": "PHONE"},
            headers=manager_headers,
        )
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "SKU_EXISTS"

    def test_empty_sku_is_not_unique(self, client, manager_headers):
        for name in ("Cable A", "Cable B"):
            resp = client.post(
                "/api/catalog/items",
                json={"sku": "", "name": name, "category": "ACCESSORY"},
                headers=manager_headers,
            )
            assert resp.status_code == 201


class TestCatalogReadUpdate:

    def test_list_hides_inactive(self, client, cashier_headers, charger, photocopy):
        photocopy.is_active = False
        db.session.commit()

        active = client.get("/api/catalog/items", headers=cashier_headers).get_json()
        everything = client.get("/api/catalog/items?include_inactive=1", headers=cashier_headers).get_json()

        assert [i["name"] for i in active["items"]] == ["Chargeur USB-C"]
        assert everything["count"] == 2

    def test_get_item(self, client, cashier_headers, charger):
        assert client.get(f"/api/catalog/items/{charger.id}", headers=cashier_headers).get_json()["sku"] is None
        assert client.get("/api/catalog/items/999", headers=cashier_headers).status_code == 404

    def test_update_price_is_audited(self, client, manager_headers, charger):
        resp = client.patch(f"/api/catalog/items/{charger.id}", json={"price_amount": 3000}, headers=manager_headers)

        assert resp.status_code == 200
        assert resp.get_json()["price_amount"] == 3000
        entry = db.session.query(AuditLogEntry).filter_by(action="UPDATE_ITEM").one()
        assert entry.meta == {"before": {"price_amount": 2500}, "after": {"price_amount": 3000}}

    def test_stock_edit_goes_through_ledger(self, client, manager_headers, charger):
        resp = client.patch(f"/api/catalog/items/{charger.id}", json={"stock_qty": 3}, headers=manager_headers)

        assert resp.status_code == 200
        assert resp.get_json()["stock_qty"] == 3
        movement = db.session.query(InventoryMovement).filter_by(ref_type="CATALOG").one()
        assert (movement.delta, movement.reason) == (-7, "CATALOG_EDIT")

    def test_switching_to_service_zeroes_stock(self, client, manager_headers, charger):
        resp = client.patch(f"/api/catalog/items/{charger.id}", json={"item_type": "SERVICE"}, headers=manager_headers)

        assert resp.status_code == 200
        assert resp.get_json()["stock_qty"] == 0
        assert resp.get_json()["track_stock"] is False

    def test_update_unknown_item(self, client, manager_headers):
        resp = client.patch("/api/catalog/items/999", json={"price_amount": 1}, headers=manager_headers)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "ITEM_NOT_FOUND"

    def test_duplicate_sku_on_update(self, client, manager_headers, charger, last_unit):
        resp = client.patch(f"/api/catalog/items/{charger.id}", json={"sku": "SM-A05"}, headers=manager_headers)
        assert resp.status_code == 409

    def test_delete_deactivates(self, client, manager_headers, charger):
        resp = client.delete(f"/api/catalog/items/{charger.id}", headers=manager_headers)

        assert resp.status_code == 200
        assert resp.get_json()["item"]["is_active"] is False
        assert reload(charger.id) is not None
        assert db.session.query(AuditLogEntry).filter_by(action="DEACTIVATE_ITEM").count() == 1


# =============================================================================
# INVENTORY
# =============================================================================


class TestInventoryEndpoints:

    def test_adjust(self, client, manager_headers, charger):
        resp = client.post(
            "/api/inventory/adjust",
            json={"item_id": charger.id, "delta": 5, "reason": "Livraison"},
            headers=manager_headers,
        )

        assert resp.status_code == 200
        assert resp.get_json()["stock_qty"] == 15

    def test_adjust_via_item_route(self, client, manager_headers, charger):
        resp = client.post(f"/api/catalog/items/{charger.id}/adjust-stock", json={"delta": -4}, headers=manager_headers)

        assert resp.status_code == 200
        assert resp.get_json()["stock_qty"] == 6

    @pytest.mark.parametrize(
        "body,status,code",
        [
            ({"delta": 0}, 400, "DELTA_INVALID"),
            ({"delta": "x"}, 400, "DELTA_INVALID"),
            ({"delta": -50}, 409, "STOCK_NEGATIVE"),
        ],
    )
    def test_adjust_errors(self, client, manager_headers, charger, body, status, code):
        body = dict(body, item_id=charger.id)
        resp = client.post("/api/inventory/adjust", json=body, headers=manager_headers)

        assert resp.status_code == status
        assert resp.get_json()["error"] == code

    def test_adjust_service(self, client, manager_headers, photocopy):
        resp = client.post("/api/inventory/adjust", json={"item_id": photocopy.id, "delta": 1}, headers=manager_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "STOCK_NOT_TRACKED"

    def test_adjust_unknown_item(self, client, manager_headers):
        resp = client.post("/api/inventory/adjust", json={"item_id": 31337, "delta": 1}, headers=manager_headers)
        assert resp.status_code == 404

    def test_movements(self, client, cashier_headers, charger):
        resp = client.get(f"/api/inventory/{charger.id}/movements", headers=cashier_headers)

        assert resp.status_code == 200
        assert [m["reason"] for m in resp.get_json()["movements"]] == ["INITIAL_STOCK"]

    def test_reconcile(self, client, viewer_headers, charger):
        resp = client.get("/api/inventory/reconcile", headers=viewer_headers)

        assert resp.status_code == 200
        assert resp.get_json()["ok"] is True


# =============================================================================
# AUDIT
# =============================================================================


class TestAuditEndpoint:

    def test_newest_first_with_filters(self, client, manager_headers, viewer_headers, charger):
        client.post(f"/api/catalog/items/{charger.id}/adjust-stock", json={"delta": 1}, headers=manager_headers)
        client.post(f"/api/catalog/items/{charger.id}/adjust-stock", json={"delta": 2}, headers=manager_headers)

        resp = client.get("/api/audit?action=adjust_stock", headers=viewer_headers)

        assert resp.status_code == 200
        entries = resp.get_json()["entries"]
        assert [e["metadata"]["delta"] for e in entries] == [2, 1]
        assert all(e["entity_type"] == "catalog_item" for e in entries)

    def test_limit(self, client, viewer_headers, charger, photocopy):
        resp = client.get("/api/audit?limit=1", headers=viewer_headers)
        assert resp.get_json()["count"] == 1
