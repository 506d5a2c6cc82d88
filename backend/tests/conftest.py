"""
Pytest fixtures for the wholesale backend tests.

One in-memory database per test session; every test starts from empty tables.
"""

import pytest
from wholesale import create_app
from wholesale.extensions import db
from wholesale.models import Store, Product, OrderStatus
from wholesale.services import order_service, delivery_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(config_overrides={
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test."""
    # Clear all data but keep schema
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def store(db_session):
    """Active store with no credit limit."""
    store = Store(name="Corner Deli", code="DELI01", credit_limit_cents=None, current_balance_cents=0)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def limited_store(db_session):
    """Store with a 5000 limit already owing 4000."""
    store = Store(name="Bakery Row", code="BAKE01", credit_limit_cents=5000, current_balance_cents=4000)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(sku="SAND-HAM", name="Ham Sandwich", unit="tray", price_cents=1000, min_stock_level=0)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session):
    product = Product(sku="SALAD-GRN", name="Green Salad", unit="box", price_cents=250, min_stock_level=0)
    db_session.add(product)
    db_session.commit()
    return product


def make_order(store, items, **kwargs):
    """Pending order for `store`; items are (product, quantity[, unit_price_cents]) tuples."""
    specs = []
    for entry in items:
        spec = {"product_id": entry[0].id, "quantity": entry[1]}
        if len(entry) > 2:
            spec["unit_price_cents"] = entry[2]
        specs.append(spec)
    return order_service.create_order(store.id, specs, **kwargs)


def make_delivered_order(store, items):
    """Approved order whose delivery has been driven all the way to delivered."""
    order = make_order(store, items)
    order = order_service.approve_order(order.id, approved_by="manager")
    delivery_id = order.delivery.id
    delivery_service.assign_driver(delivery_id, "driver-7")
    delivery_service.start_transit(delivery_id)
    delivery_service.mark_delivered(delivery_id)
    assert order.status == OrderStatus.COMPLETED.value
    return order, order.delivery
