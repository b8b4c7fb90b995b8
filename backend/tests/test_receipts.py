"""
Receipt snapshot tests.

A receipt is serialized once at checkout; later catalog edits, including
renaming, repricing and deactivating an item, never change its bytes.
"""

import json

from kiosk.extensions import db
from kiosk.models import Receipt
from kiosk.services import catalog_service


def _checkout(client, headers, items, payments=None, **extra):
    body = {"items": items, "payments": payments or []}
    body.update(extra)
    return client.post("/api/pos/checkout", json=body, headers=headers)


class TestReceiptPayload:

    def test_checkout_returns_receipt(self, client, cashier, cashier_headers, charger, photocopy):
        resp = _checkout(
            client,
            cashier_headers,
            [{"item_id": charger.id, "qty": 1}, {"item_id": photocopy.id, "qty": 2}],
            [{"method": "CASH", "amount": 3000}],
            customer_name="  Awa  ",
            notes="facture",
            language="en",
        )
        assert resp.status_code == 200
        data = resp.get_json()
        receipt = data["receipt"]

        assert data["ok"] is True
        assert receipt["sale_no"] == data["sale_no"]
        assert receipt["brand"] == "ALLIANCE DigiKiosk"
        assert receipt["cashier"] == cashier.full_name
        assert receipt["language"] == "en"
        assert receipt["customer_name"] == "Awa"
        assert receipt["notes"] == "facture"
        assert receipt["totals"] == {
            "subtotal": 2700,
            "discount_amount": 0,
            "tax_amount": 0,
            "total": 2700,
            "paid": 3000,
            "change_amount": 300,
        }
        assert [line["item_name_snapshot"] for line in receipt["items"]] == ["Chargeur USB-C", "Photocopie"]
        assert receipt["items"][1]["track_stock_snapshot"] is False
        assert receipt["payments"] == [{"method": "CASH", "provider": None, "reference": None, "amount": 3000}]

    def test_stored_payload_matches_response(self, client, cashier_headers, charger):
        resp = _checkout(client, cashier_headers, [{"item_id": charger.id, "qty": 1}])
        data = resp.get_json()

        stored = db.session.query(Receipt).filter_by(sale_id=data["sale_id"]).one()
        assert stored.payload == data["receipt"]


class TestReceiptImmutability:

    def test_fetch_is_byte_identical_after_catalog_edit(self, client, manager, cashier_headers, charger):
        resp = _checkout(client, cashier_headers, [{"item_id": charger.id, "qty": 2}])
        receipt_no = resp.get_json()["receipt"]["receipt_no"]

        before = client.get(f"/api/receipts/{receipt_no}", headers=cashier_headers)
        assert before.status_code == 200
        assert before.mimetype == "application/json"

        catalog_service.update_item(
            charger.id,
            {"name": "Chargeur Rapide 65W", "price_amount": 9900},
            actor_id=manager.id,
            actor_name=manager.full_name,
        )
        catalog_service.deactivate_item(charger.id, actor_id=manager.id, actor_name=manager.full_name)

        after = client.get(f"/api/receipts/{receipt_no}", headers=cashier_headers)

        assert after.status_code == 200
        assert after.data == before.data
        payload = json.loads(after.data)
        assert payload["items"][0]["item_name_snapshot"] == "Chargeur USB-C"
        assert payload["items"][0]["unit_price_amount"] == 2500

    def test_sale_detail_keeps_snapshot(self, client, manager, cashier_headers, charger):
        resp = _checkout(client, cashier_headers, [{"item_id": charger.id, "qty": 1}])
        sale_id = resp.get_json()["sale_id"]

        catalog_service.update_item(charger.id, {"price_amount": 1}, actor_id=manager.id, actor_name=manager.full_name)

        detail = client.get(f"/api/pos/sales/{sale_id}", headers=cashier_headers).get_json()
        assert detail["items"][0]["unit_price_amount"] == 2500
        assert detail["total_amount"] == 2500

    def test_unknown_receipt(self, client, cashier_headers):
        resp = client.get("/api/receipts/R-2000-000000", headers=cashier_headers)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "RECEIPT_NOT_FOUND"
