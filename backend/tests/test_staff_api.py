"""
Staff and role management API tests.

Verifies:
- STAFF_MANAGE gates staff listing, creation, edits and PIN resets
- Root accounts and the ROOT role are protected from non-root managers
- Deactivation cuts off existing sessions; role changes apply at next login
- Every change is audited, PINs never appear in audit metadata
"""

import pytest

from kiosk.extensions import db
from kiosk.models import AuditLogEntry, StaffUser
from kiosk.permissions import get_all_permission_codes

from conftest import CASHIER_PIN, MANAGER_PIN, auth_headers, get_auth_token


def _staff(staff_id: int) -> StaffUser:
    db.session.expire_all()
    return db.session.get(StaffUser, staff_id)


# =============================================================================
# LIST / CREATE
# =============================================================================


class TestStaffCreate:

    def test_list(self, client, manager_headers, cashier):
        resp = client.get("/api/staff", headers=manager_headers)

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["count"] == 2
        assert {s["full_name"] for s in data["staff"]} == {"Mariam Manager", "Cheick Cashier"}
        assert all("pin_hash" not in s for s in data["staff"])

    def test_create_and_login(self, client, manager, manager_headers):
        resp = client.post(
            "/api/staff",
            json={"full_name": "  Awa Traoré ", "pin": "AW-123456", "role": "cashier", "ui_language": "en"},
            headers=manager_headers,
        )

        assert resp.status_code == 201
        created = resp.get_json()
        assert created["full_name"] == "Awa Traoré"
        assert created["role"] == "CASHIER"
        assert created["ui_language"] == "en"
        assert created["is_root"] is False

        login = client.post("/api/auth/login", json={"pin": "aw-123456"})
        assert login.status_code == 200
        assert login.get_json()["user"]["id"] == created["id"]

        entry = db.session.query(AuditLogEntry).filter_by(action="CREATE_STAFF").one()
        assert entry.actor_id == manager.id
        assert entry.meta == {"full_name": "Awa Traoré", "role": "CASHIER"}

    @pytest.mark.parametrize(
        "payload,code",
        [
            ({"pin": "aa-111111", "role": "CASHIER"}, "FULL_NAME_REQUIRED"),
            ({"full_name": "X", "pin": "1234", "role": "CASHIER"}, "INVALID_PIN_FORMAT"),
            ({"full_name": "X", "pin": "aa-111111"}, "ROLE_REQUIRED"),
            ({"full_name": "X", "pin": "aa-111111", "role": "PILOT"}, "ROLE_NOT_FOUND"),
        ],
    )
    def test_create_validation(self, client, manager_headers, payload, code):
        resp = client.post("/api/staff", json=payload, headers=manager_headers)

        assert resp.status_code == 400
        assert resp.get_json()["error"] == code
        assert db.session.query(StaffUser).count() == 1

    def test_pin_must_be_unique(self, client, manager_headers, cashier):
        resp = client.post(
            "/api/staff",
            json={"full_name": "Copy Cat", "pin": CASHIER_PIN, "role": "VIEWER"},
            headers=manager_headers,
        )
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "PIN_IN_USE"

    def test_manager_cannot_grant_root_role(self, client, manager_headers):
        resp = client.post(
            "/api/staff",
            json={"full_name": "Usurper", "pin": "us-999999", "role": "ROOT"},
            headers=manager_headers,
        )
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "ROOT_PROTECTED"

    def test_root_can_grant_root_role(self, client, root_headers):
        resp = client.post(
            "/api/staff",
            json={"full_name": "Deputy", "pin": "de-999999", "role": "ROOT"},
            headers=root_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["role"] == "ROOT"
        assert resp.get_json()["is_root"] is False


# =============================================================================
# UPDATE
# =============================================================================


class TestStaffUpdate:

    def test_rename_and_change_role(self, client, manager_headers, cashier):
        resp = client.patch(
            f"/api/staff/{cashier.id}",
            json={"full_name": "Cheick Viewer", "role": "VIEWER"},
            headers=manager_headers,
        )

        assert resp.status_code == 200
        assert resp.get_json()["role"] == "VIEWER"
        entry = db.session.query(AuditLogEntry).filter_by(action="UPDATE_STAFF").one()
        assert entry.meta == {
            "before": {"full_name": "Cheick Cashier", "role": "CASHIER"},
            "after": {"full_name": "Cheick Viewer", "role": "VIEWER"},
        }

    def test_role_change_applies_at_next_login(self, client, manager_headers, cashier, cashier_headers):
        client.patch(f"/api/staff/{cashier.id}", json={"role": "VIEWER"}, headers=manager_headers)

        assert client.get("/api/audit", headers=cashier_headers).status_code == 403

        fresh = auth_headers(get_auth_token(client, CASHIER_PIN))
        assert client.get("/api/audit", headers=fresh).status_code == 200

    def test_deactivation_cuts_existing_sessions(self, client, manager_headers, cashier, cashier_headers):
        resp = client.patch(f"/api/staff/{cashier.id}", json={"is_active": False}, headers=manager_headers)

        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 401
        assert client.post("/api/auth/login", json={"pin": CASHIER_PIN}).status_code == 401

    def test_root_is_protected(self, client, manager_headers, root_staff):
        resp = client.patch(f"/api/staff/{root_staff.id}", json={"is_active": False}, headers=manager_headers)

        assert resp.status_code == 403
        assert resp.get_json()["error"] == "ROOT_PROTECTED"
        assert _staff(root_staff.id).is_active is True

    @pytest.mark.parametrize(
        "payload,code",
        [
            ({"pin_hash": "x"}, "FIELD_NOT_ALLOWED"),
            ({"is_active": "no"}, "VALIDATION_ERROR"),
            ({"full_name": "   "}, "FULL_NAME_REQUIRED"),
            ({"ui_language": "de"}, "VALIDATION_ERROR"),
        ],
    )
    def test_update_validation(self, client, manager_headers, cashier, payload, code):
        resp = client.patch(f"/api/staff/{cashier.id}", json=payload, headers=manager_headers)

        assert resp.status_code == 400
        assert resp.get_json()["error"] == code
        assert _staff(cashier.id).full_name == "Cheick Cashier"

    def test_unknown_staff(self, client, manager_headers):
        resp = client.patch("/api/staff/999", json={"full_name": "Ghost"}, headers=manager_headers)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "STAFF_NOT_FOUND"


# =============================================================================
# PIN RESET
# =============================================================================


class TestResetPin:

    def test_reset_pin(self, client, manager_headers, cashier):
        resp = client.post(f"/api/staff/{cashier.id}/reset-pin", json={"pin": "cn-777777"}, headers=manager_headers)

        assert resp.status_code == 200
        assert client.post("/api/auth/login", json={"pin": CASHIER_PIN}).status_code == 401
        assert client.post("/api/auth/login", json={"pin": "cn-777777"}).status_code == 200

        entry = db.session.query(AuditLogEntry).filter_by(action="RESET_PIN").one()
        assert entry.entity_id == str(cashier.id)
        assert entry.meta == {}

    def test_same_pin_again_is_allowed(self, client, manager_headers, cashier):
        resp = client.post(f"/api/staff/{cashier.id}/reset-pin", json={"pin": CASHIER_PIN}, headers=manager_headers)
        assert resp.status_code == 200

    @pytest.mark.parametrize(
        "pin,status,code",
        [
            ("12-345678", 400, "INVALID_PIN_FORMAT"),
            (None, 400, "INVALID_PIN_FORMAT"),
            (MANAGER_PIN, 409, "PIN_IN_USE"),
        ],
    )
    def test_reset_pin_errors(self, client, manager_headers, cashier, pin, status, code):
        resp = client.post(f"/api/staff/{cashier.id}/reset-pin", json={"pin": pin}, headers=manager_headers)

        assert resp.status_code == status
        assert resp.get_json()["error"] == code

    def test_root_pin_cannot_be_reset(self, client, manager_headers, root_staff):
        resp = client.post(f"/api/staff/{root_staff.id}/reset-pin", json={"pin": "zz-000000"}, headers=manager_headers)
        assert resp.status_code == 403


# =============================================================================
# PREFERENCES / ROLES
# =============================================================================


class TestPreferencesAndRoles:

    def test_any_staff_sets_own_language(self, client, cashier, cashier_headers):
        resp = client.patch("/api/staff/me/preferences", json={"ui_language": "EN"}, headers=cashier_headers)

        assert resp.status_code == 200
        assert resp.get_json() == {"ok": True, "ui_language": "en"}
        assert client.get("/api/auth/me", headers=cashier_headers).get_json()["user"]["ui_language"] == "en"
        assert db.session.query(AuditLogEntry).filter_by(action="UPDATE_PREFERENCES").count() == 1

    def test_unknown_language_falls_back_to_french(self, client, cashier, cashier_headers):
        resp = client.patch("/api/staff/me/preferences", json={"ui_language": "wolof"}, headers=cashier_headers)
        assert resp.get_json()["ui_language"] == "fr"

    def test_roles_listing(self, client, root_headers):
        resp = client.get("/api/roles", headers=root_headers)

        assert resp.status_code == 200
        roles = {r["code"]: r for r in resp.get_json()["roles"]}
        assert sorted(roles) == ["CASHIER", "IT_AGENT", "MANAGER", "ROOT", "VIEWER"]
        assert roles["ROOT"]["permissions"] == get_all_permission_codes()
        assert roles["CASHIER"]["permissions"] == ["POS_VIEW", "POS_CHECKOUT", "SALES_VIEW", "CATALOG_VIEW"]
