"""
Pytest fixtures for slipdesk backend tests.

Provides test database setup, item factories, and test client.
"""

import pytest
from slipdesk import create_app
from slipdesk.extensions import db
from slipdesk.models import Item


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SQLALCHEMY_ENGINE_OPTIONS': {},
        'RESET_SECRET': 'test-reset-secret',
        'TRANSACTION_RETRY_ATTEMPTS': 2,
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
def make_item(db_session):
    """Factory for committed catalog items. Defaults to an Aster Cover."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "name": f"Item {counter['n']}",
            "sku": f"SKU-{counter['n']:04d}",
            "product_type": "Cover",
            "cover_type": "Aster Cover",
            "quantity": 20,
            "price": 100,
            "base_price": 100,
            "cost_price": 60,
            "is_active": True,
        }
        fields.update(overrides)
        item = Item(**fields)
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture(scope='function')
def aster_cover(make_item):
    return make_item(name="Aster Cover", sku="COVER-ASTER", cover_type="Aster Cover", quantity=20)


@pytest.fixture(scope='function')
def single_plate(make_item):
    return make_item(
        name="Plate Single 70",
        sku="PLATE-70-SINGLE",
        product_type="Plate",
        cover_type="",
        plate_company="DY",
        bike_name="70",
        plate_type="Single",
        quantity=15,
        price=250,
        base_price=250,
    )


@pytest.fixture(scope='function')
def soft_form(make_item):
    return make_item(
        name="Form AG Soft",
        sku="FORM-AG-SOFT",
        product_type="Form",
        cover_type="",
        form_company="AG",
        form_type="Soft",
        form_variant="Soft",
        quantity=8,
        price=400,
        base_price=400,
    )


@pytest.fixture(scope="function")
def stock_of(db_session):
    """Fresh read of an item's quantity."""
    def _stock(item_id):
        db_session.expire_all()
        return db_session.get(Item, item_id).quantity

    return _stock
