"""
Pytest fixtures for ShopLedger backend tests.

Provides test database setup, a shop with a customer and products, and an
order factory that goes through the settlement engine.
"""

import itertools

import pytest
from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import Customer, Product
from shopledger.services import settlement_service


SHOP_ID = "shop-1"
OTHER_SHOP_ID = "shop-2"
ADMIN_ID = "admin-1"

_order_numbers = itertools.count(1)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ADMIN_USER_ID': ADMIN_ID,
        'ENFORCE_STOCK_ON_CREATE': False,
        'ORDER_WEBHOOK_URL': None,
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
def customer(db_session):
    """Customer of shop-1 with zero balances."""
    c = Customer(
        user_id=SHOP_ID,
        name="Ravi Kumar",
        shop_name="Ravi General Store",
        shop_address="12 Market Road",
        contacts=["9800000001"],
    )
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def other_customer(db_session):
    """Customer belonging to a different shop."""
    c = Customer(
        user_id=OTHER_SHOP_ID,
        name="Meena Devi",
        shop_name="Meena Stores",
        shop_address="4 Station Lane",
        contacts=["9800000002"],
    )
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def milk(db_session):
    p = Product(
        user_id=SHOP_ID,
        name="Toned Milk 1L",
        unit="litre",
        pack_size_value=1000,
        pack_size_unit="ml",
        purchase_price_cents=4500,
        selling_price_cents=5000,
        quantity=50,
    )
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def biscuits(db_session):
    p = Product(
        user_id=SHOP_ID,
        name="Butter Biscuits",
        unit="box",
        purchase_price_cents=8000,
        selling_price_cents=10000,
        quantity=20,
    )
    db_session.add(p)
    db_session.commit()
    return p


def order_payload(customer, items, *, total_cents=1000, free_items=None, **overrides):
    """Build a create-order request body for the given customer."""
    number = next(_order_numbers)
    payload = {
        "user_id": customer.user_id,
        "order_id": f"ORD-{number:06d}",
        "serial_number": f"{number:04d}",
        "shop_name": "Test Shop",
        "customer_id": customer.id,
        "customer_name": customer.name,
        "customer_address": customer.shop_address,
        "customer_contact": customer.contacts[0],
        "items": items,
        "free_items": free_items or [],
        "subtotal_cents": total_cents,
        "discount_percentage": 0,
        "total_cents": total_cents,
        "remarks": None,
    }
    payload.update(overrides)
    return payload


@pytest.fixture(scope='function')
def make_order(db_session, customer, milk):
    """Factory creating an order through the engine (default: 2 x milk, total 1000)."""
    def _make(total_cents=1000, items=None, target_customer=None, **overrides):
        target = target_customer or customer
        if items is None:
            items = [{"product_id": milk.id, "product_name": milk.name, "quantity": 2, "unit": "litre"}]
        return settlement_service.create_order(
            order_payload(target, items, total_cents=total_cents, **overrides)
        )
    return _make


def reload(model, pk):
    """Fresh copy of a row, bypassing the identity map."""
    return db.session.get(model, pk, populate_existing=True)
