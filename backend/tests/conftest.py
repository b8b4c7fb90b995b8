"""
Pytest fixtures for kiosk backend tests.

Provides a fresh in-memory database per test, seeded access control,
staff accounts for each role, catalog items and authenticated headers.
"""

import pytest

from kiosk import create_app
from kiosk.extensions import db
from kiosk.models import CatalogItem
from kiosk.services import auth_service, catalog_service, permission_service


ROOT_PIN = "ra-000001"
MANAGER_PIN = "ma-100001"
CASHIER_PIN = "ca-200002"
VIEWER_PIN = "vi-300003"
IT_AGENT_PIN = "it-400004"


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'CHECKOUT_TIMEOUT_SECONDS': 5.0,
}


@pytest.fixture()
def app():
    """Create application with a fresh database and default roles."""
    app = create_app(dict(TEST_CONFIG))

    with app.app_context():
        db.create_all()
        permission_service.bootstrap_access_control()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture()
def root_staff(app):
    staff, _ = auth_service.ensure_root_staff("ROOT", ROOT_PIN)
    return staff


@pytest.fixture()
def manager(app):
    return auth_service.create_staff("Mariam Manager", MANAGER_PIN, "MANAGER")


@pytest.fixture()
def cashier(app):
    return auth_service.create_staff("Cheick Cashier", CASHIER_PIN, "CASHIER")


@pytest.fixture()
def viewer(app):
    return auth_service.create_staff("Vera Viewer", VIEWER_PIN, "VIEWER")


@pytest.fixture()
def it_agent(app):
    return auth_service.create_staff("Ibrahim IT", IT_AGENT_PIN, "IT_AGENT")


def create_product(name="Chargeur USB-C", price=2500, stock=10, category="ACCESSORY", sku=None, actor_id=None):
    """Create a stock-tracked product through the catalog service."""
    return catalog_service.create_item(
        {
            "name": name,
            "category": category,
            "item_type": "PRODUCT",
            "price_amount": price,
            "track_stock": True,
            "stock_qty": stock,
            "sku": sku,
        },
        actor_id=actor_id,
        actor_name="fixture",
    )


def create_service(name="Photocopie", price=100):
    return catalog_service.create_item(
        {"name": name, "category": "IT_SERVICE", "item_type": "SERVICE", "price_amount": price},
        actor_id=None,
        actor_name="fixture",
    )


@pytest.fixture()
def charger(app):
    """Tracked product: 2500 per unit, 10 in stock."""
    return create_product()


@pytest.fixture()
def last_unit(app):
    """Tracked product with a single unit left."""
    return create_product(name="Samsung A05", price=65000, stock=1, category="PHONE", sku="SM-A05")


@pytest.fixture()
def photocopy(app):
    """Untracked service."""
    return create_service()


def reload(item_id: int) -> CatalogItem:
    """Fresh copy of a catalog row, bypassing the identity map."""
    db.session.expire_all()
    return db.session.get(CatalogItem, item_id)


def get_auth_token(client, pin: str) -> str:
    """Helper to get auth token for a PIN."""
    response = client.post('/api/auth/login', json={'pin': pin})
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture()
def root_headers(client, root_staff):
    return auth_headers(get_auth_token(client, ROOT_PIN))


@pytest.fixture()
def manager_headers(client, manager):
    return auth_headers(get_auth_token(client, MANAGER_PIN))


@pytest.fixture()
def cashier_headers(client, cashier):
    return auth_headers(get_auth_token(client, CASHIER_PIN))


@pytest.fixture()
def viewer_headers(client, viewer):
    return auth_headers(get_auth_token(client, VIEWER_PIN))


@pytest.fixture()
def it_agent_headers(client, it_agent):
    return auth_headers(get_auth_token(client, IT_AGENT_PIN))
