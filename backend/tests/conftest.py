"""
Pytest fixtures for stockroom backend tests.

Provides an in-memory database, per-test table wipe, test client, actor ids
and ready2order payload builders.
"""

from types import SimpleNamespace

import pytest
from stockroom import create_app
from stockroom.extensions import db
from stockroom.services import catalog_service, storage_service


USER_ID = "11111111-1111-4111-8111-111111111111"
OTHER_USER_ID = "22222222-2222-4222-8222-222222222222"


def r2o_group(api_id, name, parent=None, **overrides):
    """A ready2order product group payload."""
    data = {
        "productgroup_id": api_id,
        "productgroup_name": name,
        "productgroup_description": None,
        "productgroup_shortcut": None,
        "productgroup_active": True,
        "productgroup_parent": parent,
        "productgroup_sortIndex": 0,
        "productgroup_accountingCode": None,
        "productgroup_type_id": None,
        "productgroup_created_at": "2024-01-01T10:00:00Z",
        "productgroup_updated_at": "2024-01-01T10:00:00Z",
    }
    data.update(overrides)
    return data


def r2o_product(api_id, name, group=None, **overrides):
    """A ready2order product payload."""
    data = {
        "product_id": api_id,
        "product_externalReference": None,
        "product_itemnumber": None,
        "product_barcode": None,
        "product_name": name,
        "product_description": None,
        "product_price": "2.50",
        "product_priceIncludesVat": True,
        "product_vat": "20",
        "product_stock_enabled": True,
        "product_stock_value": 0,
        "product_stock_unit": None,
        "product_stock_reorderLevel": None,
        "product_stock_safetyStock": None,
        "product_sortIndex": 0,
        "product_active": True,
        "product_soldOut": False,
        "product_discountable": True,
        "product_accountingCode": None,
        "product_alternativeNameOnReceipts": None,
        "product_alternativeNameInPos": None,
        "product_created_at": "2024-01-01T10:00:00Z",
        "product_updated_at": "2024-01-01T10:00:00Z",
        "productgroup": {"productgroup_id": group},
    }
    data.update(overrides)
    return data


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SYNC_RETRY_BACKOFF': 0,
        'CATALOG_WEBHOOK_ENABLED': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def user_headers():
    return {"X-Actor-Id": USER_ID}


@pytest.fixture(scope='function')
def catalog(db_session):
    """Group G1 (api 10) holding product P1 (api 100)."""
    group = catalog_service.upsert_product_group(r2o_group(10, "G1"))
    product = catalog_service.upsert_product(r2o_product(100, "P1", group=10))
    return SimpleNamespace(group=group, product=product)


@pytest.fixture(scope='function')
def storage(db_session):
    """Storage S1, created by USER_ID."""
    return storage_service.create_storage(USER_ID, name="S1")


@pytest.fixture(scope='function')
def r2o():
    """Payload builders: r2o.group(api_id, name, ...) and r2o.product(api_id, name, ...)."""
    return SimpleNamespace(group=r2o_group, product=r2o_product)
